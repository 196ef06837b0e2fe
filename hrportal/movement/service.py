"""Movement service — out-of-office requests and their approval workflow.

``pending → approved → completed``; ``pending → rejected | cancelled``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import MovementStatus, MovementType
from hrportal.common.exceptions import ForbiddenException, InvalidTransitionError, ValidationException
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.lookups import get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.common.scoping import can_manage, restrict_visible
from hrportal.common.transitions import transition
from hrportal.core_hr.models import Employee
from hrportal.movement.models import Movement
from hrportal.movement.schemas import MovementCreate, MovementReportSummary, MovementUpdate

logger = logging.getLogger(__name__)

_LABEL = "Movement"
_SEARCH_COLUMNS = ["first_name", "last_name", "employee_code"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive(value: datetime) -> datetime:
    """Movement times are stored as local wall-clock values without a zone."""
    return value.replace(tzinfo=None)


class MovementService:

    @staticmethod
    async def list_movements(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        status: Optional[MovementStatus] = None,
        movement_type: Optional[MovementType] = None,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = (
            select(Movement)
            .join(Movement.employee)
            .options(selectinload(Movement.employee))
            .order_by(Movement.from_datetime.desc())
        )
        query = restrict_visible(query, Movement, scope, principal, "movements.view")
        query = apply_filters(query, Movement, {
            "status": status,
            "movement_type": movement_type,
            "employee_id": employee_id,
            "from_datetime__from": datetime.combine(from_date, time.min) if from_date else None,
            "to_datetime__to": datetime.combine(to_date, time.max) if to_date else None,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=Movement)

    @staticmethod
    async def get_movement(
        db: AsyncSession,
        movement_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        movement = await get_or_404(
            db, Movement, movement_id, selectinload(Movement.employee), label=_LABEL,
        )
        if not can_manage(principal, scope, movement.employee, "movements.view"):
            raise ForbiddenException("You do not have permission to view this movement request.")
        return movement

    @staticmethod
    async def create_movement(
        db: AsyncSession,
        data: MovementCreate,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        if principal.can("movements.create") and data.employee_id is not None:
            employee = await db.get(Employee, data.employee_id)
            if employee is None:
                raise ValidationException({"employee_id": ["The selected employee is invalid."]})
            if not scope.covers((employee.current_branch_id,), (employee.department_id,)):
                raise ForbiddenException("This employee is outside your branch or department.")
            employee_id = employee.id
        elif principal.employee_id is not None:
            employee_id = principal.employee_id
        else:
            raise ValidationException({"employee_id": ["The employee id field is required."]})

        movement = Movement(
            employee_id=employee_id,
            movement_type=data.movement_type,
            from_datetime=_naive(data.from_datetime),
            to_datetime=_naive(data.to_datetime),
            purpose=data.purpose,
            destination=data.destination,
            remarks=data.remarks,
            status=MovementStatus.pending,
        )
        db.add(movement)
        await db.flush()
        logger.info("Movement %s filed for employee %s", movement.id, employee_id)
        return await MovementService.get_movement(db, movement.id, principal, scope)

    @staticmethod
    def _check_owner_or_editor(principal: Principal, movement: Movement, verb: str) -> None:
        if principal.can("movements.edit"):
            return
        if principal.employee_id is None or principal.employee_id != movement.employee_id:
            raise ForbiddenException(f"You do not have permission to {verb} this movement request.")

    @staticmethod
    async def update_movement(
        db: AsyncSession,
        movement_id: uuid.UUID,
        data: MovementUpdate,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        movement = await MovementService.get_movement(db, movement_id, principal, scope)
        MovementService._check_owner_or_editor(principal, movement, "update")
        if movement.status is not MovementStatus.pending:
            raise InvalidTransitionError("movement", MovementStatus.pending.value, "edited")

        changes = data.model_dump(exclude_unset=True)
        for field in ("movement_type", "from_datetime", "to_datetime", "purpose", "destination"):
            if field in changes and changes[field] is None:
                raise ValidationException({field: [f"The {field.replace('_', ' ')} field is required."]})
        for field in ("from_datetime", "to_datetime"):
            if field in changes:
                changes[field] = _naive(changes[field])
        start = changes.get("from_datetime", movement.from_datetime)
        end = changes.get("to_datetime", movement.to_datetime)
        if end <= start:
            raise ValidationException(
                {"to_datetime": ["The to datetime must be a date after from datetime."]}
            )

        for field, value in changes.items():
            setattr(movement, field, value)
        await db.flush()
        return await MovementService.get_movement(db, movement_id, principal, scope)

    # ── Workflow ────────────────────────────────────────────────────

    @staticmethod
    async def cancel(
        db: AsyncSession,
        movement_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        movement = await MovementService.get_movement(db, movement_id, principal, scope)
        MovementService._check_owner_or_editor(principal, movement, "cancel")
        await transition(
            db, Movement, movement_id,
            expected=MovementStatus.pending,
            target=MovementStatus.cancelled,
            action="cancelled",
            label=_LABEL,
        )
        return await MovementService.get_movement(db, movement_id, principal, scope)

    @staticmethod
    async def _for_decision(
        db: AsyncSession,
        movement_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        movement = await get_or_404(
            db, Movement, movement_id, selectinload(Movement.employee), label=_LABEL,
        )
        if principal.employee_id is not None and movement.employee_id == principal.employee_id:
            raise ForbiddenException("You cannot decide on your own movement request.")
        employee = movement.employee
        if not scope.covers((employee.current_branch_id,), (employee.department_id,)):
            raise ForbiddenException("This movement request is outside your branch or department.")
        return movement

    @staticmethod
    async def approve(
        db: AsyncSession,
        movement_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
        remarks: Optional[str] = None,
    ) -> Movement:
        await MovementService._for_decision(db, movement_id, principal, scope)
        values = {"approved_by": principal.user_id, "approved_at": _utcnow()}
        if remarks:
            values["remarks"] = remarks
        await transition(
            db, Movement, movement_id,
            expected=MovementStatus.pending,
            target=MovementStatus.approved,
            action="approved",
            label=_LABEL,
            **values,
        )
        return await MovementService.get_movement(db, movement_id, principal, scope)

    @staticmethod
    async def reject(
        db: AsyncSession,
        movement_id: uuid.UUID,
        remarks: str,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        await MovementService._for_decision(db, movement_id, principal, scope)
        await transition(
            db, Movement, movement_id,
            expected=MovementStatus.pending,
            target=MovementStatus.rejected,
            action="rejected",
            label=_LABEL,
            approved_by=principal.user_id,
            approved_at=_utcnow(),
            remarks=remarks,
        )
        return await MovementService.get_movement(db, movement_id, principal, scope)

    @staticmethod
    async def complete(
        db: AsyncSession,
        movement_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Movement:
        movement = await MovementService.get_movement(db, movement_id, principal, scope)
        MovementService._check_owner_or_editor(principal, movement, "complete")
        await transition(
            db, Movement, movement_id,
            expected=MovementStatus.approved,
            target=MovementStatus.completed,
            action="completed",
            label=_LABEL,
        )
        return await MovementService.get_movement(db, movement_id, principal, scope)

    # ── Report ──────────────────────────────────────────────────────

    @staticmethod
    async def report(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[MovementStatus] = None,
        movement_type: Optional[MovementType] = None,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> tuple[PaginatedResponse, MovementReportSummary]:
        """Movements starting inside the range (default: last 30 days) plus totals."""
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=30)
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["The end date must be a date after or equal to start date."]}
            )

        query = (
            select(Movement)
            .join(Movement.employee)
            .where(
                Movement.from_datetime >= datetime.combine(start_date, time.min),
                Movement.from_datetime < datetime.combine(end_date + timedelta(days=1), time.min),
            )
        )
        query = restrict_visible(query, Movement, scope, principal, "movements.view")
        query = apply_filters(query, Movement, {
            "status": status,
            "movement_type": movement_type,
            "employee_id": employee_id,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})

        filtered = query.subquery()
        rows = await db.execute(
            select(filtered.c.movement_type, filtered.c.status, func.count())
            .group_by(filtered.c.movement_type, filtered.c.status)
        )
        summary = MovementReportSummary()
        for kind, st, n in rows.all():
            summary.total += n
            kind_key = MovementType(kind).value
            st_key = MovementStatus(st).value
            setattr(summary, kind_key, getattr(summary, kind_key) + n)
            setattr(summary, st_key, getattr(summary, st_key) + n)

        query = query.options(selectinload(Movement.employee)).order_by(Movement.from_datetime.desc())
        return await paginate(db, query, pagination, model=Movement), summary
