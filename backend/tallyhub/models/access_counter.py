"""
TallyHub Backend — AccessCounter SQLAlchemy Model
===================================================

What:  ORM model for the `access_counter` table: one logical counter row.
Why:   The counter is mutated only through single-statement upserts, so the
       row needs a column the database can use as a conflict target.
How:   `singleton_key` is a constant with a UNIQUE constraint. Increment and
       reset are `INSERT ... ON CONFLICT (singleton_key) DO UPDATE`, which
       creates the row on first use and otherwise mutates it atomically.

Table Design Rationale:
    - No CHECK (count >= 0): the integrity check reports a negative count as
      an inconsistency instead of the database hiding it behind a constraint.
    - No uniqueness on the table as a whole: a stray second row is something
      the integrity check must be able to observe.
    - created_at is written on the first insert only; the upsert never touches it.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tallyhub.database import Base, utcnow

SINGLETON_KEY = "global"


class AccessCounter(Base):
    """
    The application-wide access counter.

    Lifecycle:
        1. Created implicitly by the first increment or reset (upsert)
        2. increment: count + 1, last_updated = now
        3. reset:     count = 0, last_updated = now
        4. Never deleted
    """

    __tablename__ = "access_counter"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Conflict target for the upsert; every writer uses SINGLETON_KEY
    singleton_key: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        default=SINGLETON_KEY,
    )

    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("idx_access_counter_last_updated", last_updated.desc()),
    )

    def __repr__(self) -> str:
        return f"<AccessCounter(count={self.count}, last_updated='{self.last_updated}')>"
