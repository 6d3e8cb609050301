"""
Create the first admin user and an admin-scope token. Run from project root:
  python -m creds.scripts.bootstrap_admin NAME USERNAME [--create-schema]
Example:
  python -m creds.scripts.bootstrap_admin "Ada Lovelace" ada --create-schema

Every other write needs an admin token, so this is the one path that skips
authorization. User and token are inserted in a single transaction.
"""
import argparse
import logging
import sys

from creds.core.config import get_settings
from creds.core.database import SessionLocal, engine
from creds.core.errors import CredsError
from creds.models import Base
from creds.services.credential_store import CredentialStore
from creds.services.registry_store import RegistryStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the first admin user and token.")
    parser.add_argument("name", help="Display name (1-255 chars)")
    parser.add_argument("username", help="Unique username (1-255 chars)")
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables first (use Alembic migrations in production)",
    )
    args = parser.parse_args(argv)

    name = args.name.strip()
    username = args.username.strip()
    if not name or len(name) > 255:
        print("Invalid name length.", file=sys.stderr)
        return 1
    if not username or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1

    if args.create_schema:
        Base.metadata.create_all(engine)

    admin_scope = get_settings().ADMIN_SCOPE
    try:
        with SessionLocal.begin() as db:
            user_id = RegistryStore(db).insert_user(name, username)
            token_id = CredentialStore(db).insert_token(user_id, admin_scope)
    except CredsError as e:
        print(e.message, file=sys.stderr)
        return 1

    logger.info("Bootstrapped admin user", extra={"user_id": str(user_id)})
    print(f"Created user '{username}' ({user_id}) with '{admin_scope}' token:")
    print(token_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
