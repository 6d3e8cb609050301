"""SQLAlchemy ORM models."""

from creds.models.base import Base
from creds.models.token import Token
from creds.models.user import User

__all__ = ["Base", "Token", "User"]
