"""User registry endpoints (admin scope required)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from creds.api.v1.auth import get_issuer, read_body, require_admin_token
from creds.api.v1.errors import http_error
from creds.core.database import get_db
from creds.core.errors import CredsError
from creds.schemas.auth import AddUserRequest, CreatedResponse, UserItem, UsersListResponse
from creds.services.issuer import CredentialIssuer
from creds.services.registry_store import RegistryStore

router = APIRouter()


async def add_user_body(
    request: Request,
    _token: Annotated[UUID, Depends(require_admin_token)],
) -> AddUserRequest:
    return await read_body(request, AddUserRequest)


@router.get("", response_model=UsersListResponse)
def list_users(
    _token: Annotated[UUID, Depends(require_admin_token)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all users with the tokens they own."""
    try:
        users = RegistryStore(db).list_users()
    except CredsError as e:
        raise http_error(e) from e
    return UsersListResponse(users=[UserItem.model_validate(u) for u in users])


@router.post("", response_model=CreatedResponse)
def add_user(
    body: Annotated[AddUserRequest, Depends(add_user_body)],
    token: Annotated[UUID, Depends(require_admin_token)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
) -> CreatedResponse:
    """
    Create a user. Both name and username are required; if either is missing the
    400 response names every missing field. A taken username is also a 400.
    """
    try:
        user_id = issuer.add_user(token, body.name, body.username)
    except CredsError as e:
        raise http_error(e) from e
    return CreatedResponse(id=user_id)


@router.get("/{user_id}", response_model=UserItem)
def get_user(
    user_id: UUID,
    _token: Annotated[UUID, Depends(require_admin_token)],
    db: Annotated[Session, Depends(get_db)],
) -> UserItem:
    try:
        user = RegistryStore(db).get_user(user_id)
    except CredsError as e:
        raise http_error(e) from e
    return UserItem.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
def delete_user(
    user_id: UUID,
    token: Annotated[UUID, Depends(require_admin_token)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
) -> Response:
    """Delete a user together with all of its tokens."""
    try:
        issuer.delete_user(token, user_id)
    except CredsError as e:
        raise http_error(e) from e
    return Response(status_code=status.HTTP_200_OK)
