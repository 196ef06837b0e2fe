"""Holiday ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrportal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Holiday(Base):
    """Public or company holiday.

    ``applicable_branches`` is a list of branch id strings; ``None`` means
    the holiday applies to every branch. A recurring holiday repeats on the
    same month/day every year regardless of the stored year.
    """

    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_recurring: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.false(),
    )
    applicable_branches: Mapped[Optional[list[str]]] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    def applies_to_branch(self, branch_id: Optional[uuid.UUID]) -> bool:
        if not self.applicable_branches or branch_id is None:
            return True
        return str(branch_id) in self.applicable_branches

    def __repr__(self) -> str:
        return f"<Holiday {self.title!r} {self.date}>"
