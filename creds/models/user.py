"""ORM model for registry users."""

import uuid

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship

from creds.models.base import Base


class User(Base):
    """
    A registry entry that tokens are issued to.

    Never updated in place: rows are only inserted, read, or deleted.
    tokens is derived from tokens.user_id and loaded with the user.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    username = Column(String(255), nullable=False, unique=True, index=True)

    tokens = relationship(
        "Token",
        back_populates="user",
        lazy="selectin",
        order_by="Token.scope",
        passive_deletes=True,
    )
