"""Token endpoints (admin scope required)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from creds.api.v1.auth import get_issuer, read_body, require_admin_token
from creds.api.v1.errors import http_error
from creds.core.database import get_db
from creds.core.errors import CredsError
from creds.schemas.auth import AddTokenRequest, CreatedResponse, TokenItem, TokensListResponse
from creds.services.credential_store import CredentialStore
from creds.services.issuer import CredentialIssuer

router = APIRouter()


async def add_token_body(
    request: Request,
    _token: Annotated[UUID, Depends(require_admin_token)],
) -> AddTokenRequest:
    return await read_body(request, AddTokenRequest)


@router.get("", response_model=TokensListResponse)
def list_tokens(
    _token: Annotated[UUID, Depends(require_admin_token)],
    db: Annotated[Session, Depends(get_db)],
) -> TokensListResponse:
    try:
        tokens = CredentialStore(db).list_tokens()
    except CredsError as e:
        raise http_error(e) from e
    return TokensListResponse(tokens=[TokenItem.model_validate(t) for t in tokens])


@router.post("", response_model=CreatedResponse)
def add_token(
    body: Annotated[AddTokenRequest, Depends(add_token_body)],
    token: Annotated[UUID, Depends(require_admin_token)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
) -> CreatedResponse:
    """
    Issue a token with the given scope to an existing user.
    Returns 404 if the user does not exist, 400 if userId or scope is missing.
    """
    try:
        token_id = issuer.add_token(token, body.user_id, body.scope)
    except CredsError as e:
        raise http_error(e) from e
    return CreatedResponse(id=token_id)


@router.get("/{token_id}", response_model=TokenItem)
def get_token(
    token_id: UUID,
    _token: Annotated[UUID, Depends(require_admin_token)],
    db: Annotated[Session, Depends(get_db)],
) -> TokenItem:
    try:
        found = CredentialStore(db).get_token(token_id)
    except CredsError as e:
        raise http_error(e) from e
    return TokenItem.model_validate(found)


@router.delete("/{token_id}", status_code=status.HTTP_200_OK)
def delete_token(
    token_id: UUID,
    token: Annotated[UUID, Depends(require_admin_token)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
) -> Response:
    """Revoke a token. Revoking an unknown token succeeds."""
    try:
        issuer.delete_token(token, token_id)
    except CredsError as e:
        raise http_error(e) from e
    return Response(status_code=status.HTTP_200_OK)
