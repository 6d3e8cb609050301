"""Request/response schemas for user and token endpoints."""

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class AddUserRequest(BaseModel):
    """Body for POST /users. Fields are optional here so missing ones are reported together."""

    name: str | None = Field(default=None, max_length=255, description="Display name")
    username: str | None = Field(default=None, max_length=255, description="Unique username")


class AddTokenRequest(BaseModel):
    """Body for POST /tokens."""

    user_id: UUID | None = Field(
        default=None,
        validation_alias=AliasChoices("userId", "user_id"),
        description="Id of the user the token is issued to",
    )
    scope: str | None = Field(default=None, max_length=255, description="Scope the token grants")


class CreatedResponse(BaseModel):
    """Identifier of a newly created user or token."""

    id: UUID


class TokenItem(BaseModel):
    """Token as returned by the API."""

    id: UUID
    scope: str
    user_id: UUID = Field(serialization_alias="userId")

    class Config:
        from_attributes = True


class UserItem(BaseModel):
    """User with the tokens it owns."""

    id: UUID
    name: str
    username: str
    tokens: list[TokenItem] = Field(default_factory=list)

    class Config:
        from_attributes = True


class UsersListResponse(BaseModel):
    """Response for GET /users."""

    users: list[UserItem]


class TokensListResponse(BaseModel):
    """Response for GET /tokens."""

    tokens: list[TokenItem]
