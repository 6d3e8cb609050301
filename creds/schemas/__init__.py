"""Pydantic request/response schemas."""

from creds.schemas.auth import (
    AddTokenRequest,
    AddUserRequest,
    CreatedResponse,
    TokenItem,
    TokensListResponse,
    UserItem,
    UsersListResponse,
)
from creds.schemas.health import HealthResponse

__all__ = [
    "AddTokenRequest",
    "AddUserRequest",
    "CreatedResponse",
    "HealthResponse",
    "TokenItem",
    "TokensListResponse",
    "UserItem",
    "UsersListResponse",
]
