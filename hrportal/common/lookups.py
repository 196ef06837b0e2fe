"""Row lookup helpers shared by the service layers."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.common.exceptions import NotFoundException, ValidationException


async def get_or_404(
    db: AsyncSession,
    model: Any,
    row_id: uuid.UUID,
    *options: Any,
    label: Optional[str] = None,
) -> Any:
    """Load ``model`` by primary key (with loader *options*) or raise 404.

    Always repopulates an identity-mapped instance so relationships reflect
    the latest flushed foreign keys.
    """
    result = await db.execute(
        select(model)
        .where(model.id == row_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    row = result.scalars().first()
    if row is None:
        raise NotFoundException(label or model.__name__, str(row_id))
    return row


async def ensure_exists(
    db: AsyncSession,
    model: Any,
    row_id: Optional[uuid.UUID],
    field: str,
) -> None:
    """Raise a field-level 422 if *row_id* is given but no such row exists."""
    if row_id is None:
        return
    found = await db.scalar(select(model.id).where(model.id == row_id))
    if found is None:
        label = field.removesuffix("_id").replace("_", " ")
        raise ValidationException({field: [f"The selected {label} is invalid."]})


async def count_where(db: AsyncSession, model: Any, *conditions: Any) -> int:
    return (
        await db.execute(select(func.count()).select_from(model).where(*conditions))
    ).scalar_one()
