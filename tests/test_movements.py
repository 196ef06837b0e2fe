"""Movement (out-of-office) requests — filing, workflow and report."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from hrportal.auth.scope import UNRESTRICTED, Scope
from hrportal.common.constants import BRANCH_MANAGER, MovementStatus, MovementType
from hrportal.common.exceptions import ForbiddenException, InvalidTransitionError, ValidationException
from hrportal.common.pagination import PaginationParams
from hrportal.movement.models import Movement
from hrportal.movement.schemas import MovementCreate, MovementUpdate
from hrportal.movement.service import MovementService
from tests.conftest import login_as, make_principal, seed_employee

START = datetime(2025, 3, 12, 10, 0)
PAGE = PaginationParams(page=1, page_size=20, sort=None)


def _payload(**overrides) -> MovementCreate:
    data = dict(
        movement_type=MovementType.official,
        from_datetime=START,
        to_datetime=START + timedelta(hours=3),
        purpose="Client visit",
        destination="Motijheel office",
    )
    data.update(overrides)
    return MovementCreate(**data)


async def _pending(db, employee, start=START, movement_type=MovementType.official) -> Movement:
    movement = Movement(
        employee_id=employee.id,
        movement_type=movement_type,
        from_datetime=start,
        to_datetime=start + timedelta(hours=2),
        purpose="Bank errand",
        destination="Gulshan",
        status=MovementStatus.pending,
    )
    db.add(movement)
    await db.commit()
    return movement


@pytest.fixture
def approver():
    return make_principal(["movements.approve", "movements.view"])


class TestFileMovement:

    async def test_file_for_self(self, db, org, employee):
        me = make_principal(employee_id=employee.id)
        movement = await MovementService.create_movement(db, _payload(), me, UNRESTRICTED)
        assert movement.employee_id == employee.id
        assert movement.status is MovementStatus.pending

    async def test_aware_datetimes_stored_as_wall_clock(self, db, org, employee):
        me = make_principal(employee_id=employee.id)
        aware = START.replace(tzinfo=timezone(timedelta(hours=6)))
        movement = await MovementService.create_movement(
            db, _payload(from_datetime=aware, to_datetime=aware + timedelta(hours=1)),
            me, UNRESTRICTED,
        )
        assert movement.from_datetime == START

    async def test_file_on_behalf_needs_scope(self, db, org, employee):
        manager = make_principal(
            ["movements.create", BRANCH_MANAGER], branch_id=org.other_branch.id,
        )
        with pytest.raises(ForbiddenException):
            await MovementService.create_movement(
                db, _payload(employee_id=employee.id), manager,
                Scope.for_branch(org.other_branch.id),
            )

    async def test_no_employee_record(self, db):
        with pytest.raises(ValidationException):
            await MovementService.create_movement(db, _payload(), make_principal(), UNRESTRICTED)

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            _payload(to_datetime=START)

    async def test_update_only_while_pending(self, db, org, employee, approver):
        movement = await _pending(db, employee)
        me = make_principal(employee_id=employee.id)
        updated = await MovementService.update_movement(
            db, movement.id, MovementUpdate(destination="Banani"), me, UNRESTRICTED,
        )
        assert updated.destination == "Banani"

        await MovementService.approve(db, movement.id, approver, UNRESTRICTED)
        with pytest.raises(InvalidTransitionError):
            await MovementService.update_movement(
                db, movement.id, MovementUpdate(destination="Uttara"), me, UNRESTRICTED,
            )

    async def test_update_rejects_inverted_window(self, db, org, employee):
        movement = await _pending(db, employee)
        me = make_principal(employee_id=employee.id)
        with pytest.raises(ValidationException):
            await MovementService.update_movement(
                db, movement.id, MovementUpdate(to_datetime=START - timedelta(hours=1)),
                me, UNRESTRICTED,
            )


class TestMovementWorkflow:

    async def test_approve_then_complete(self, db, org, employee, approver):
        movement = await _pending(db, employee)
        approved = await MovementService.approve(db, movement.id, approver, UNRESTRICTED, "OK")
        assert approved.status is MovementStatus.approved
        assert approved.remarks == "OK"

        me = make_principal(employee_id=employee.id)
        completed = await MovementService.complete(db, movement.id, me, UNRESTRICTED)
        assert completed.status is MovementStatus.completed

    async def test_complete_requires_approval(self, db, org, employee):
        movement = await _pending(db, employee)
        me = make_principal(employee_id=employee.id)
        with pytest.raises(InvalidTransitionError):
            await MovementService.complete(db, movement.id, me, UNRESTRICTED)

    async def test_reject_records_remarks(self, db, org, employee, approver):
        movement = await _pending(db, employee)
        rejected = await MovementService.reject(db, movement.id, "Not needed", approver, UNRESTRICTED)
        assert rejected.status is MovementStatus.rejected
        assert rejected.remarks == "Not needed"

    async def test_cannot_decide_own(self, db, org, employee):
        movement = await _pending(db, employee)
        me = make_principal(["movements.approve"], employee_id=employee.id)
        with pytest.raises(ForbiddenException):
            await MovementService.approve(db, movement.id, me, UNRESTRICTED)

    async def test_department_head_outside_department(self, db, org, employee):
        movement = await _pending(db, employee)
        head = make_principal(["movements.approve"])
        with pytest.raises(ForbiddenException):
            await MovementService.approve(
                db, movement.id, head, Scope.for_department(org.other_department.id),
            )

    async def test_only_owner_or_editor_cancels(self, db, org, employee):
        movement = await _pending(db, employee)
        stranger = make_principal(["movements.view"])
        with pytest.raises(ForbiddenException):
            await MovementService.cancel(db, movement.id, stranger, UNRESTRICTED)

        me = make_principal(employee_id=employee.id)
        cancelled = await MovementService.cancel(db, movement.id, me, UNRESTRICTED)
        assert cancelled.status is MovementStatus.cancelled

    async def test_report_groups_by_type_and_status(self, db, org, employee, approver):
        await _pending(db, employee)
        await _pending(db, employee, start=START + timedelta(days=1), movement_type=MovementType.personal)
        rejected = await _pending(db, employee, start=START + timedelta(days=2))
        await MovementService.reject(db, rejected.id, "No", approver, UNRESTRICTED)
        await _pending(db, employee, start=datetime(2025, 5, 1, 9))

        result, summary = await MovementService.report(
            db, PAGE, approver, UNRESTRICTED,
            start_date=date(2025, 3, 1), end_date=date(2025, 3, 31),
        )
        assert result.meta.total == 3
        assert (summary.total, summary.official, summary.personal) == (3, 2, 1)
        assert (summary.pending, summary.rejected) == (2, 1)


class TestMovementAPI:

    async def test_file_and_list(self, client, db, org, employee):
        await _pending(db, await seed_employee(db, org))
        _, headers = await login_as(db, employee=employee)

        resp = await client.post(
            "/api/v1/movements",
            json={
                "movement_type": "official",
                "from_datetime": "2025-03-12T10:00:00",
                "to_datetime": "2025-03-12T12:00:00",
                "purpose": "Vendor meeting",
                "destination": "Tejgaon",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "pending"

        resp = await client.get("/api/v1/movements", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1

    async def test_approve_needs_permission(self, client, db, org, employee):
        movement = await _pending(db, employee)
        _, headers = await login_as(db, ["movements.view"])
        resp = await client.post(f"/api/v1/movements/{movement.id}/approve", headers=headers)
        assert resp.status_code == 403

    async def test_approve_without_body(self, client, db, org, employee):
        movement = await _pending(db, employee)
        _, headers = await login_as(db, ["movements.approve", "movements.view"])
        resp = await client.post(f"/api/v1/movements/{movement.id}/approve", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "approved"
