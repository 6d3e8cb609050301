"""Credential store: tokens keyed by id, each carrying one scope for one user."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from creds.core.errors import (
    ConstraintKind,
    NoSuchUserError,
    NotFoundError,
    StoreError,
    constraint_kind,
)
from creds.models import Token

logger = logging.getLogger(__name__)


def parse_token_id(value: UUID | str | None) -> UUID | None:
    """Return value as a UUID, or None if it is absent or malformed."""
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError):
        return None


def store_failure(operation: str, exc: Exception) -> StoreError:
    """Log a storage fault with its cause and return the generic error to raise."""
    logger.error(
        "Store operation failed",
        extra={"operation": operation, "cause": type(exc).__name__},
        exc_info=exc,
    )
    return StoreError(operation)


class CredentialStore:
    """
    Token persistence bound to a Session. The caller owns the transaction:
    nothing here commits, so calls compose into one atomic unit.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_token(
        self,
        user_id: UUID,
        scope: str,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
    ) -> UUID:
        """Insert a token for user_id and return its fresh id. Raises NoSuchUserError if the user is absent."""
        token = Token(
            id=uuid.uuid4(),
            scope=scope,
            user_id=user_id,
            valid_from=valid_from,
            valid_until=valid_until,
        )
        try:
            self.session.add(token)
            self.session.flush()
        except IntegrityError as e:
            if constraint_kind(e) is ConstraintKind.FOREIGN_KEY:
                raise NoSuchUserError(user_id) from e
            raise store_failure("insert_token", e) from e
        except SQLAlchemyError as e:
            raise store_failure("insert_token", e) from e
        return token.id

    def get_token(self, token_id: UUID) -> Token:
        try:
            token = self.session.get(Token, token_id)
        except SQLAlchemyError as e:
            raise store_failure("get_token", e) from e
        if token is None:
            raise NotFoundError("token", token_id)
        return token

    def list_tokens(self) -> list[Token]:
        try:
            return list(self.session.scalars(select(Token).order_by(Token.user_id, Token.scope)))
        except SQLAlchemyError as e:
            raise store_failure("list_tokens", e) from e

    def delete_token(self, token_id: UUID) -> None:
        """Delete a token. Deleting an absent token is not an error."""
        try:
            self.session.execute(delete(Token).where(Token.id == token_id))
        except SQLAlchemyError as e:
            raise store_failure("delete_token", e) from e

    def delete_tokens_for_user(self, user_id: UUID) -> int:
        """Delete every token owned by user_id; returns how many went."""
        try:
            result = self.session.execute(delete(Token).where(Token.user_id == user_id))
        except SQLAlchemyError as e:
            raise store_failure("delete_tokens_for_user", e) from e
        return result.rowcount or 0

    def token_has_scope(self, token_id: UUID | str | None, scope: str, lock: bool = False) -> bool:
        """
        True iff a token with this id exists, carries exactly scope, and is inside its
        validity window (if it has one).

        Never raises: absent or malformed ids and storage failures all return False.
        With lock=True the matching row is read FOR SHARE, so a concurrent delete of
        the token waits for the enclosing transaction to finish.
        """
        parsed = parse_token_id(token_id)
        if parsed is None or not scope:
            return False

        now = datetime.now(UTC)
        stmt = select(Token.id).where(
            Token.id == parsed,
            Token.scope == scope,
            or_(Token.valid_from.is_(None), Token.valid_from <= now),
            or_(Token.valid_until.is_(None), Token.valid_until > now),
        )
        if lock:
            stmt = stmt.with_for_update(read=True)
        try:
            return self.session.execute(stmt).first() is not None
        except SQLAlchemyError as e:
            logger.warning(
                "Scope check failed closed",
                extra={"cause": type(e).__name__},
                exc_info=e,
            )
            return False
