"""Helpers for building throwaway SQLite databases seeded with users and tokens."""

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from creds.core.database import build_engine, build_session_factory
from creds.models import Base
from creds.services.credential_store import CredentialStore
from creds.services.registry_store import RegistryStore

ADMIN_SCOPE = "admin"


def make_session_factory(url: str = "sqlite://") -> sessionmaker[Session]:
    """
    Fresh schema on a new engine. The default in-memory URL uses StaticPool so every
    session (and every TestClient worker thread) sees the same database; file URLs get
    a real pool and a generous lock timeout for the concurrency tests.
    """
    if url == "sqlite://":
        engine = build_engine(url, poolclass=StaticPool)
    else:
        engine = build_engine(url, connect_args={"timeout": 30})
    Base.metadata.create_all(engine)
    return build_session_factory(engine)


def seed_user_with_token(
    session_factory: sessionmaker[Session],
    scope: str = ADMIN_SCOPE,
    name: str = "Admin",
    username: str = "admin",
) -> tuple[UUID, UUID]:
    """Insert a user holding one token with scope; returns (user_id, token_id)."""
    with session_factory.begin() as db:
        user_id = RegistryStore(db).insert_user(name, username)
        token_id = CredentialStore(db).insert_token(user_id, scope)
    return user_id, token_id


def count_rows(session_factory: sessionmaker[Session], model) -> int:
    with session_factory() as db:
        return db.query(model).count()
