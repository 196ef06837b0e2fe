"""Movement router.

Routes:
    /movements                  — List, file a movement request
    /movements/report           — Date-range report with summary
    /movements/{id}             — Get, update (pending only)
    /movements/{id}/cancel      — Cancel a pending request
    /movements/{id}/approve     — Approve (movements.approve)
    /movements/{id}/reject      — Reject with remarks (movements.approve)
    /movements/{id}/complete    — Mark an approved movement completed
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_user, require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import MovementStatus, MovementType, RecordType
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db
from hrportal.movement.schemas import (
    MovementCreate,
    MovementDecision,
    MovementOut,
    MovementReject,
    MovementUpdate,
)
from hrportal.movement.service import MovementService

router = APIRouter(prefix="", tags=["movements"])

_movement_scope = scope_for(RecordType.movement)


def _out(movement) -> dict:
    return MovementOut.model_validate(movement).model_dump(mode="json")


@router.get("")
async def list_movements(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
    pagination: PaginationParams = Depends(),
    status: Optional[MovementStatus] = Query(None),
    movement_type: Optional[MovementType] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Search by employee name or code"),
):
    result = await MovementService.list_movements(
        db, pagination, principal, scope,
        status=status, movement_type=movement_type, department_id=department_id,
        employee_id=employee_id, from_date=from_date, to_date=to_date, search=search,
    )
    return {
        "data": [_out(m) for m in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} movements.",
    }


@router.post("", status_code=201)
async def create_movement(
    body: MovementCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.create_movement(db, body, principal, scope)
    return {"data": _out(movement), "message": "Movement request submitted successfully."}


@router.get("/report")
async def movement_report(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("movements.view", "reports.view")),
    scope: Scope = Depends(_movement_scope),
    pagination: PaginationParams = Depends(),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[MovementStatus] = Query(None),
    movement_type: Optional[MovementType] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
):
    result, summary = await MovementService.report(
        db, pagination, principal, scope,
        start_date=start_date, end_date=end_date, status=status,
        movement_type=movement_type, department_id=department_id, employee_id=employee_id,
    )
    return {
        "data": {
            "movements": [_out(m) for m in result.data],
            "summary": summary.model_dump(),
        },
        "meta": result.meta.model_dump(),
        "message": "Movement report generated successfully.",
    }


@router.get("/{movement_id}")
async def get_movement(
    movement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.get_movement(db, movement_id, principal, scope)
    return {"data": _out(movement), "message": "Movement retrieved successfully."}


@router.put("/{movement_id}")
async def update_movement(
    movement_id: uuid.UUID,
    body: MovementUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.update_movement(db, movement_id, body, principal, scope)
    return {"data": _out(movement), "message": "Movement request updated successfully."}


@router.post("/{movement_id}/cancel")
async def cancel_movement(
    movement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.cancel(db, movement_id, principal, scope)
    return {"data": _out(movement), "message": "Movement request cancelled successfully."}


@router.post("/{movement_id}/approve")
async def approve_movement(
    movement_id: uuid.UUID,
    body: Optional[MovementDecision] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("movements.approve")),
    scope: Scope = Depends(_movement_scope),
):
    remarks = body.remarks if body else None
    movement = await MovementService.approve(db, movement_id, principal, scope, remarks)
    return {"data": _out(movement), "message": "Movement request approved successfully."}


@router.post("/{movement_id}/reject")
async def reject_movement(
    movement_id: uuid.UUID,
    body: MovementReject,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("movements.approve")),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.reject(db, movement_id, body.remarks, principal, scope)
    return {"data": _out(movement), "message": "Movement request rejected successfully."}


@router.post("/{movement_id}/complete")
async def complete_movement(
    movement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_movement_scope),
):
    movement = await MovementService.complete(db, movement_id, principal, scope)
    return {"data": _out(movement), "message": "Movement marked as completed successfully."}
