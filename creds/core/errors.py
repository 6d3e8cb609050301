"""Authorization outcomes and the error taxonomy shared by stores, issuer and routes."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.exc import IntegrityError


class Decision(enum.Enum):
    """Outcome of an authorization check. DENIED is a normal result, not an error."""

    ALLOWED = "allowed"
    DENIED = "denied"


class CredsError(Exception):
    """Base class for errors surfaced to the HTTP boundary."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccessDenied(CredsError):
    """Raised to abort an atomic unit whose authorization re-check was denied."""

    def __init__(self, message: str = "Incorrect or no authorization token given for this resource") -> None:
        super().__init__(message)


class ValidationError(CredsError):
    """One or more required fields are absent. Every missing field is named."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = tuple(sorted(missing))
        super().__init__(", ".join(f"'{name}' missing" for name in self.missing))


class DuplicateUsernameError(CredsError):
    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username '{username}' is already taken")


class NoSuchUserError(CredsError):
    """A token was requested for a user that does not exist."""

    def __init__(self, user_id: UUID | str) -> None:
        self.user_id = user_id
        super().__init__(f"User with id '{user_id}' does not exist")


class NotFoundError(CredsError):
    def __init__(self, kind: str, identifier: UUID | str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} with id '{identifier}' not found")


class StoreError(CredsError):
    """Unrecovered storage or connectivity fault. The message never carries driver detail."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")


class ConstraintKind(enum.Enum):
    FOREIGN_KEY = "foreign_key"
    UNIQUE = "unique"
    OTHER = "other"


# SQLSTATE codes (PostgreSQL) and extended result names (SQLite) per constraint kind.
_FOREIGN_KEY_CODES = frozenset({"23503", "SQLITE_CONSTRAINT_FOREIGNKEY"})
_UNIQUE_CODES = frozenset({"23505", "SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def constraint_kind(exc: IntegrityError) -> ConstraintKind:
    """Classify an IntegrityError from the driver's structured error code."""
    orig = exc.orig
    code = (
        getattr(orig, "pgcode", None)
        or getattr(orig, "sqlstate", None)
        or getattr(orig, "sqlite_errorname", None)
    )
    if code in _FOREIGN_KEY_CODES:
        return ConstraintKind.FOREIGN_KEY
    if code in _UNIQUE_CODES:
        return ConstraintKind.UNIQUE
    return ConstraintKind.OTHER
