"""
TallyHub Backend — User SQLAlchemy Model
==========================================

What:  ORM model representing the `users` table.
Who:   Used by UserService for CRUD operations and by Alembic for schema management.

Table Design Rationale:
    - UUID primary key generated in Python, so the id is known before flush
    - email is stored trimmed and lowercased; the UNIQUE index on it is what
      makes "one account per address" hold under concurrent signups
    - password_hash holds the bcrypt hash; no plaintext is ever stored, and the
      response schemas have no field that could carry it
    - created_at DESC index serves the newest-first listing
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tallyhub.database import Base, utcnow


class User(Base):
    """
    A registered person.

    Query Patterns:
        - Get by id:        WHERE id = :uuid            (primary key)
        - Get by email:     WHERE email = :lowered      (ix_users_email, unique)
        - List newest first: ORDER BY created_at DESC    (idx_users_created_at)
        - Statistics:       WHERE created_at >= :since  (idx_users_created_at)
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("idx_users_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        # password_hash deliberately omitted
        return f"<User(id={self.id}, email='{self.email}')>"
