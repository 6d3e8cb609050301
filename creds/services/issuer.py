"""
Credential issuer: every user/token mutation runs as one transaction that first
re-checks the caller's authorization, then validates input, then writes.

If the re-check fails nothing is written. If anything raises inside the unit
(validation, constraint violation, cancellation) the whole unit rolls back, so a
cascading user delete can never leave orphaned tokens behind.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from creds.core.errors import AccessDenied, Decision, ValidationError
from creds.services.authorizer import Authorizer
from creds.services.credential_store import CredentialStore, store_failure
from creds.services.registry_store import RegistryStore

logger = logging.getLogger(__name__)


def missing_fields(fields: Mapping[str, object]) -> set[str]:
    """Names of fields that are None or blank strings."""
    missing = set()
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.add(name)
    return missing


def require_fields(fields: Mapping[str, object]) -> None:
    """Raise ValidationError naming every missing field at once."""
    missing = missing_fields(fields)
    if missing:
        raise ValidationError(missing)


class CredentialIssuer:
    """Creates and deletes users and tokens, each behind an in-transaction scope check."""

    def __init__(self, session_factory: sessionmaker[Session], authorizer: Authorizer) -> None:
        self.session_factory = session_factory
        self.authorizer = authorizer

    @contextmanager
    def _atomic(
        self,
        operation: str,
        presented_token_id: UUID | str | None,
        required_scope: str | None,
    ) -> Iterator[Session]:
        """Open the unit, re-authorize inside it, and yield the session for the write."""
        try:
            with self.session_factory.begin() as session:
                decision = self.authorizer.authorize(
                    session, presented_token_id, required_scope, lock=True
                )
                if decision is Decision.DENIED:
                    logger.info("Mutation denied", extra={"operation": operation})
                    raise AccessDenied()
                yield session
        except SQLAlchemyError as e:
            # Faults the stores did not translate, e.g. at commit.
            raise store_failure(operation, e) from e

    def add_user(
        self,
        presented_token_id: UUID | str | None,
        name: str | None,
        username: str | None,
        required_scope: str | None = None,
    ) -> UUID:
        with self._atomic("add_user", presented_token_id, required_scope) as session:
            require_fields({"name": name, "username": username})
            user_id = RegistryStore(session).insert_user(name.strip(), username.strip())
        logger.info("User created", extra={"user_id": str(user_id)})
        return user_id

    def add_token(
        self,
        presented_token_id: UUID | str | None,
        user_id: UUID | None,
        scope: str | None,
        required_scope: str | None = None,
    ) -> UUID:
        with self._atomic("add_token", presented_token_id, required_scope) as session:
            require_fields({"userId": user_id, "scope": scope})
            token_id = CredentialStore(session).insert_token(user_id, scope.strip())
        logger.info("Token created", extra={"token_id": str(token_id), "user_id": str(user_id)})
        return token_id

    def delete_user(
        self,
        presented_token_id: UUID | str | None,
        user_id: UUID,
        required_scope: str | None = None,
    ) -> None:
        """Delete the user's tokens, then the user, in the same transaction."""
        with self._atomic("delete_user", presented_token_id, required_scope) as session:
            tokens_deleted = CredentialStore(session).delete_tokens_for_user(user_id)
            RegistryStore(session).delete_user(user_id)
        logger.info(
            "User deleted",
            extra={"user_id": str(user_id), "tokens_deleted": tokens_deleted},
        )

    def delete_token(
        self,
        presented_token_id: UUID | str | None,
        token_id: UUID,
        required_scope: str | None = None,
    ) -> None:
        with self._atomic("delete_token", presented_token_id, required_scope) as session:
            CredentialStore(session).delete_token(token_id)
        logger.info("Token deleted", extra={"token_id": str(token_id)})
