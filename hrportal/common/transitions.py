"""Guarded status changes for approval workflows."""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.common.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


async def transition(
    db: AsyncSession,
    model: Any,
    row_id: uuid.UUID,
    *,
    expected: enum.Enum,
    target: enum.Enum,
    action: str,
    label: str,
    **values: Any,
) -> None:
    """Move *row_id* from *expected* to *target* in a single conditional UPDATE.

    The ``WHERE status = expected`` clause makes the change atomic: when two
    requests race, the loser matches zero rows and gets
    :class:`InvalidTransitionError` instead of overwriting the winner.
    """
    result = await db.execute(
        update(model)
        .where(model.id == row_id, model.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(
            "%s %s not %s: status is no longer %s", label, row_id, action, expected.value,
        )
        raise InvalidTransitionError(label.lower(), expected.value, action)
    logger.info("%s %s %s (%s → %s)", label, row_id, action, expected.value, target.value)
