"""Transfer router.

Routes:
    /transfers                  — List, create (transfers.create)
    /transfers/report           — Date-range report with summary
    /transfers/{id}             — Get, update a pending transfer (transfers.edit)
    /transfers/{id}/cancel      — Cancel a pending transfer (transfers.edit)
    /transfers/{id}/approve     — Approve (transfers.approve)
    /transfers/{id}/reject      — Reject with reason (transfers.approve)
    /transfers/{id}/complete    — Apply an approved transfer (transfers.edit)
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_user, require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import RecordType, TransferStatus
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db
from hrportal.transfer.schemas import TransferCreate, TransferOut, TransferReject, TransferUpdate
from hrportal.transfer.service import TransferService

router = APIRouter(prefix="", tags=["transfers"])

_transfer_scope = scope_for(RecordType.transfer)


def _out(transfer) -> dict:
    return TransferOut.model_validate(transfer).model_dump(mode="json")


@router.get("")
async def list_transfers(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_transfer_scope),
    pagination: PaginationParams = Depends(),
    status: Optional[TransferStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    from_branch_id: Optional[uuid.UUID] = Query(None),
    to_branch_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None, description="Effective on or after"),
    to_date: Optional[date] = Query(None, description="Effective on or before"),
    search: Optional[str] = Query(None, description="Search by employee name or code"),
):
    result = await TransferService.list_transfers(
        db, pagination, principal, scope,
        status=status, department_id=department_id, employee_id=employee_id,
        from_branch_id=from_branch_id, to_branch_id=to_branch_id,
        from_date=from_date, to_date=to_date, search=search,
    )
    return {
        "data": [_out(t) for t in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} transfers.",
    }


@router.post("", status_code=201)
async def create_transfer(
    body: TransferCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.create")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.create_transfer(db, body, principal, scope)
    return {"data": _out(transfer), "message": "Transfer request created successfully."}


@router.get("/report")
async def transfer_report(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.view", "reports.view")),
    scope: Scope = Depends(_transfer_scope),
    pagination: PaginationParams = Depends(),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[TransferStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    from_branch_id: Optional[uuid.UUID] = Query(None),
    to_branch_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
):
    result, summary = await TransferService.report(
        db, pagination, principal, scope,
        start_date=start_date, end_date=end_date, status=status,
        department_id=department_id, from_branch_id=from_branch_id,
        to_branch_id=to_branch_id, employee_id=employee_id,
    )
    return {
        "data": {
            "transfers": [_out(t) for t in result.data],
            "summary": summary.model_dump(),
        },
        "meta": result.meta.model_dump(),
        "message": "Transfer report generated successfully.",
    }


@router.get("/{transfer_id}")
async def get_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.get_transfer(db, transfer_id, principal, scope)
    return {"data": _out(transfer), "message": "Transfer retrieved successfully."}


@router.put("/{transfer_id}")
async def update_transfer(
    transfer_id: uuid.UUID,
    body: TransferUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.edit")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.update_transfer(db, transfer_id, body, principal, scope)
    return {"data": _out(transfer), "message": "Transfer request updated successfully."}


@router.post("/{transfer_id}/cancel")
async def cancel_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.edit")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.cancel(db, transfer_id, principal, scope)
    return {"data": _out(transfer), "message": "Transfer request cancelled successfully."}


@router.post("/{transfer_id}/approve")
async def approve_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.approve")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.approve(db, transfer_id, principal, scope)
    return {"data": _out(transfer), "message": "Transfer request approved successfully."}


@router.post("/{transfer_id}/reject")
async def reject_transfer(
    transfer_id: uuid.UUID,
    body: TransferReject,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.approve")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.reject(db, transfer_id, body.reason, principal, scope)
    return {"data": _out(transfer), "message": "Transfer request rejected successfully."}


@router.post("/{transfer_id}/complete")
async def complete_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("transfers.edit")),
    scope: Scope = Depends(_transfer_scope),
):
    transfer = await TransferService.complete(db, transfer_id, principal, scope)
    return {"data": _out(transfer), "message": "Transfer completed successfully."}
