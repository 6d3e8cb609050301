"""Bearer-token authorization: does the presented token carry the required scope right now."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from creds.core.errors import Decision
from creds.services.credential_store import CredentialStore


class Authorizer:
    """
    Side-effect-free scope check against current store data.

    The same predicate runs twice for a mutation: once before the request body is
    handled, and again inside the issuer's transaction so a token revoked in between
    cannot be used to write. Nothing is cached between calls.
    """

    def __init__(self, admin_scope: str) -> None:
        if not admin_scope:
            raise ValueError("admin_scope must be non-empty")
        self.admin_scope = admin_scope

    def authorize(
        self,
        session: Session,
        presented_token_id: UUID | str | None,
        required_scope: str | None = None,
        lock: bool = False,
    ) -> Decision:
        """ALLOWED iff the token exists with exactly required_scope (default: the admin scope)."""
        scope = required_scope or self.admin_scope
        if CredentialStore(session).token_has_scope(presented_token_id, scope, lock=lock):
            return Decision.ALLOWED
        return Decision.DENIED
