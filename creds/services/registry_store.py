"""Registry store: users and the tokens they own."""

from __future__ import annotations

import uuid
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from creds.core.errors import (
    ConstraintKind,
    DuplicateUsernameError,
    NotFoundError,
    constraint_kind,
)
from creds.models import User
from creds.services.credential_store import store_failure


class RegistryStore:
    """User persistence bound to a Session. Like CredentialStore, never commits."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_user(self, name: str, username: str) -> UUID:
        """Insert a user and return its fresh id. Raises DuplicateUsernameError on a taken username."""
        user = User(id=uuid.uuid4(), name=name, username=username)
        try:
            self.session.add(user)
            self.session.flush()
        except IntegrityError as e:
            if constraint_kind(e) is ConstraintKind.UNIQUE:
                raise DuplicateUsernameError(username) from e
            raise store_failure("insert_user", e) from e
        except SQLAlchemyError as e:
            raise store_failure("insert_user", e) from e
        return user.id

    def get_user(self, user_id: UUID) -> User:
        """Return the user with its tokens loaded."""
        try:
            user = self.session.scalars(select(User).where(User.id == user_id)).first()
        except SQLAlchemyError as e:
            raise store_failure("get_user", e) from e
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def list_users(self) -> list[User]:
        try:
            return list(self.session.scalars(select(User).order_by(User.username)))
        except SQLAlchemyError as e:
            raise store_failure("list_users", e) from e

    def delete_user(self, user_id: UUID) -> None:
        """
        Delete the user row only. Owned tokens must already be gone in the same
        transaction (see CredentialIssuer.delete_user); otherwise the foreign key rejects it.
        """
        try:
            self.session.execute(delete(User).where(User.id == user_id))
        except SQLAlchemyError as e:
            raise store_failure("delete_user", e) from e
