"""Transfer service — inter-branch transfers.

``pending → approved → completed``; ``pending → rejected | cancelled``.
Completing a transfer moves the employee to the destination placement in
the same transaction as the status change.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import TransferStatus
from hrportal.common.exceptions import ForbiddenException, InvalidTransitionError, ValidationException
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.lookups import ensure_exists, get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.common.scoping import restrict_visible
from hrportal.common.transitions import transition
from hrportal.core_hr.models import Branch, Department, Designation, Employee
from hrportal.transfer.models import Transfer
from hrportal.transfer.schemas import TransferCreate, TransferReportSummary, TransferUpdate

logger = logging.getLogger(__name__)

_LABEL = "Transfer"
_SEARCH_COLUMNS = ["first_name", "last_name", "employee_code"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def transfer_options():
    return (
        selectinload(Transfer.employee),
        selectinload(Transfer.from_branch),
        selectinload(Transfer.to_branch),
        selectinload(Transfer.from_department),
        selectinload(Transfer.to_department),
        selectinload(Transfer.from_designation),
        selectinload(Transfer.to_designation),
    )


def _covers(scope: Scope, transfer: Transfer) -> bool:
    return scope.covers(
        (transfer.from_branch_id, transfer.to_branch_id),
        (transfer.from_department_id, transfer.to_department_id),
    )


async def _validate_targets(db: AsyncSession, values: dict[str, Any]) -> None:
    for field, model in (
        ("from_branch_id", Branch),
        ("to_branch_id", Branch),
        ("from_department_id", Department),
        ("to_department_id", Department),
        ("from_designation_id", Designation),
        ("to_designation_id", Designation),
    ):
        await ensure_exists(db, model, values.get(field), field)


def _check_effective_date(effective: date) -> None:
    if effective < date.today():
        raise ValidationException({"effective_date": [
            "The effective date must be a date after or equal to today."
        ]})


class TransferService:

    @staticmethod
    async def list_transfers(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        status: Optional[TransferStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        from_branch_id: Optional[uuid.UUID] = None,
        to_branch_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = (
            select(Transfer)
            .join(Transfer.employee)
            .options(*transfer_options())
            .order_by(Transfer.effective_date.desc())
        )
        query = restrict_visible(query, Transfer, scope, principal, "transfers.view")
        query = apply_filters(query, Transfer, {
            "status": status,
            "employee_id": employee_id,
            "from_branch_id": from_branch_id,
            "to_branch_id": to_branch_id,
            "effective_date__from": from_date,
            "effective_date__to": to_date,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=Transfer)

    @staticmethod
    async def get_transfer(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        transfer = await get_or_404(db, Transfer, transfer_id, *transfer_options(), label=_LABEL)
        if not scope.is_unrestricted:
            visible = _covers(scope, transfer)
        else:
            visible = principal.can("transfers.view") or transfer.employee_id == principal.employee_id
        if not visible:
            raise ForbiddenException("You do not have permission to view this transfer.")
        return transfer

    @staticmethod
    async def create_transfer(
        db: AsyncSession,
        data: TransferCreate,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise ValidationException({"employee_id": ["The selected employee is invalid."]})

        values = data.model_dump()
        values["from_branch_id"] = values["from_branch_id"] or employee.current_branch_id
        values["from_department_id"] = values["from_department_id"] or employee.department_id
        values["from_designation_id"] = values["from_designation_id"] or employee.designation_id

        if values["to_branch_id"] == values["from_branch_id"]:
            raise ValidationException({"to_branch_id": [
                "The destination branch must be different from the current branch."
            ]})
        _check_effective_date(data.effective_date)
        await _validate_targets(db, values)

        transfer = Transfer(**values, status=TransferStatus.pending)
        if not _covers(scope, transfer):
            raise ForbiddenException("This transfer is outside your branch or department.")
        db.add(transfer)
        await db.flush()
        logger.info(
            "Transfer %s filed for employee %s: %s → %s",
            transfer.id, employee.id, transfer.from_branch_id, transfer.to_branch_id,
        )
        return await TransferService.get_transfer(db, transfer.id, principal, scope)

    @staticmethod
    async def update_transfer(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        data: TransferUpdate,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        transfer = await TransferService.get_transfer(db, transfer_id, principal, scope)
        if transfer.status is not TransferStatus.pending:
            raise InvalidTransitionError("transfer", TransferStatus.pending.value, "updated")

        changes = data.model_dump(exclude_unset=True)
        for field in ("to_branch_id", "effective_date", "reason"):
            if field in changes and changes[field] is None:
                raise ValidationException({field: [f"The {field.replace('_', ' ')} field is required."]})
        if changes.get("to_branch_id") == transfer.from_branch_id:
            raise ValidationException({"to_branch_id": [
                "The destination branch must be different from the current branch."
            ]})
        if "effective_date" in changes:
            _check_effective_date(changes["effective_date"])
        await _validate_targets(db, changes)

        for field, value in changes.items():
            setattr(transfer, field, value)
        await db.flush()
        return await TransferService.get_transfer(db, transfer_id, principal, scope)

    # ── Workflow ────────────────────────────────────────────────────

    @staticmethod
    async def _guarded(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        transfer = await get_or_404(db, Transfer, transfer_id, *transfer_options(), label=_LABEL)
        if not _covers(scope, transfer):
            raise ForbiddenException("This transfer is outside your branch or department.")
        return transfer

    @staticmethod
    async def cancel(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        await TransferService._guarded(db, transfer_id, principal, scope)
        await transition(
            db, Transfer, transfer_id,
            expected=TransferStatus.pending,
            target=TransferStatus.cancelled,
            action="cancelled",
            label=_LABEL,
        )
        return await TransferService.get_transfer(db, transfer_id, principal, scope)

    @staticmethod
    async def approve(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        transfer = await TransferService._guarded(db, transfer_id, principal, scope)
        if principal.employee_id is not None and transfer.employee_id == principal.employee_id:
            raise ForbiddenException("You cannot approve your own transfer.")
        await transition(
            db, Transfer, transfer_id,
            expected=TransferStatus.pending,
            target=TransferStatus.approved,
            action="approved",
            label=_LABEL,
            approved_by=principal.user_id,
            approved_at=_utcnow(),
        )
        return await TransferService.get_transfer(db, transfer_id, principal, scope)

    @staticmethod
    async def reject(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        reason: str,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        await TransferService._guarded(db, transfer_id, principal, scope)
        await transition(
            db, Transfer, transfer_id,
            expected=TransferStatus.pending,
            target=TransferStatus.rejected,
            action="rejected",
            label=_LABEL,
            approved_by=principal.user_id,
            approved_at=_utcnow(),
            rejection_reason=reason,
        )
        return await TransferService.get_transfer(db, transfer_id, principal, scope)

    @staticmethod
    async def complete(
        db: AsyncSession,
        transfer_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Transfer:
        transfer = await TransferService._guarded(db, transfer_id, principal, scope)
        await transition(
            db, Transfer, transfer_id,
            expected=TransferStatus.approved,
            target=TransferStatus.completed,
            action="completed",
            label=_LABEL,
        )

        employee = await get_or_404(db, Employee, transfer.employee_id, label="Employee")
        employee.current_branch_id = transfer.to_branch_id
        if transfer.to_department_id is not None:
            employee.department_id = transfer.to_department_id
        if transfer.to_designation_id is not None:
            employee.designation_id = transfer.to_designation_id
        await db.flush()
        logger.info(
            "Employee %s moved to branch %s by transfer %s",
            employee.id, transfer.to_branch_id, transfer_id,
        )
        return await TransferService.get_transfer(db, transfer_id, principal, scope)

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
        status: Optional[TransferStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        from_branch_id: Optional[uuid.UUID] = None,
        to_branch_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> tuple[PaginatedResponse, TransferReportSummary]:
        """Transfers effective inside the range (default: last 30 days) plus totals."""
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=30)
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["The end date must be a date after or equal to start date."]}
            )

        query = (
            select(Transfer)
            .join(Transfer.employee)
            .where(Transfer.effective_date.between(start_date, end_date))
        )
        query = restrict_visible(query, Transfer, scope, principal, "transfers.view")
        query = apply_filters(query, Transfer, {
            "status": status,
            "from_branch_id": from_branch_id,
            "to_branch_id": to_branch_id,
            "employee_id": employee_id,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})

        filtered = query.subquery()
        rows = await db.execute(
            select(filtered.c.status, func.count()).group_by(filtered.c.status)
        )
        summary = TransferReportSummary()
        for st, n in rows.all():
            setattr(summary, TransferStatus(st).value, n)
            summary.total += n

        query = query.options(*transfer_options()).order_by(Transfer.effective_date.desc())
        return await paginate(db, query, pagination, model=Transfer), summary
