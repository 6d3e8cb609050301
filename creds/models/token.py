"""ORM model for scoped bearer tokens."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from creds.models.base import Base


class Token(Base):
    """
    Opaque bearer credential granting one scope on behalf of a user.

    valid_from / valid_until are optional; a token without them is valid indefinitely.
    """

    __tablename__ = "tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    scope = Column(String(255), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="tokens")
