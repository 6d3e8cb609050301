"""API v1 routes."""

from fastapi import APIRouter

from creds.api.v1 import health, tokens, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(tokens.router, prefix="/tokens", tags=["tokens"])
