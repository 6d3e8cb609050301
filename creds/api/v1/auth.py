"""Bearer-token dependencies shared by the user and token routers."""

import json
from functools import lru_cache
from typing import Annotated, TypeVar
from uuid import UUID

import pydantic
from fastapi import Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from creds.core.config import get_settings
from creds.core.database import get_db, get_session_factory
from creds.core.errors import Decision
from creds.services.authorizer import Authorizer
from creds.services.credential_store import parse_token_id
from creds.services.issuer import CredentialIssuer

UNAUTHORIZED_DETAIL = "Incorrect or no authorization token given for this resource"

security = HTTPBearer(auto_error=False)

BodyT = TypeVar("BodyT", bound=BaseModel)


@lru_cache
def get_authorizer() -> Authorizer:
    """Authorizer bound to the admin scope read once at startup."""
    return Authorizer(get_settings().ADMIN_SCOPE)


def get_issuer(
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> CredentialIssuer:
    return CredentialIssuer(session_factory, authorizer)


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=UNAUTHORIZED_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_admin_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> UUID:
    """
    Dependency: pre-flight check that the bearer token carries the admin scope.
    Returns the token id so mutating routes can hand it to the issuer, which checks again.
    """
    if credentials is None:
        raise unauthorized()
    token_id = parse_token_id(credentials.credentials)
    if token_id is None:
        raise unauthorized()
    decision = authorizer.authorize(db, token_id)
    # End the autobegun read; the issuer opens its own transaction.
    db.rollback()
    if decision is Decision.DENIED:
        raise unauthorized()
    return token_id


async def read_body(request: Request, model: type[BodyT]) -> BodyT:
    """
    Decode the JSON body into model. Only called from dependencies that already
    depend on require_admin_token, so an unauthenticated caller never gets this far.

    An empty body counts as {} so missing fields are reported by the issuer.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body is not valid JSON",
        ) from e
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False), body=payload) from e
