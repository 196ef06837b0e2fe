"""Inter-branch transfers — filing, visibility and the completion side effect."""

from __future__ import annotations

import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from hrportal.auth.scope import UNRESTRICTED, Scope
from hrportal.common.constants import BRANCH_MANAGER, TransferStatus
from hrportal.common.exceptions import ForbiddenException, InvalidTransitionError, ValidationException
from hrportal.common.pagination import PaginationParams
from hrportal.core_hr.models import Employee
from hrportal.transfer.models import Transfer
from hrportal.transfer.schemas import TransferCreate, TransferUpdate
from hrportal.transfer.service import TransferService
from tests.conftest import login_as, make_principal, seed_employee

PAGE = PaginationParams(page=1, page_size=20, sort=None)


def _next_week() -> date:
    return date.today() + timedelta(days=7)


def _payload(employee, org, **overrides) -> TransferCreate:
    data = dict(
        employee_id=employee.id,
        to_branch_id=org.other_branch.id,
        to_department_id=org.other_department.id,
        to_designation_id=org.other_designation.id,
        effective_date=_next_week(),
        reason="Opening the new branch",
    )
    data.update(overrides)
    return TransferCreate(**data)


@pytest.fixture
def hr():
    return make_principal(["transfers.view", "transfers.create", "transfers.approve", "transfers.edit"])


class TestCreateTransfer:

    async def test_source_defaults_to_current_placement(self, db, org, employee, hr):
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        assert transfer.from_branch_id == org.branch.id
        assert transfer.from_department_id == org.department.id
        assert transfer.from_designation_id == org.designation.id
        assert transfer.status is TransferStatus.pending

    async def test_destination_must_differ(self, db, org, employee, hr):
        with pytest.raises(ValidationException) as exc_info:
            await TransferService.create_transfer(
                db, _payload(employee, org, to_branch_id=org.branch.id), hr, UNRESTRICTED,
            )
        assert "to_branch_id" in exc_info.value.errors

    async def test_past_effective_date(self, db, org, employee, hr):
        with pytest.raises(ValidationException) as exc_info:
            await TransferService.create_transfer(
                db, _payload(employee, org, effective_date=date.today() - timedelta(days=1)),
                hr, UNRESTRICTED,
            )
        assert "effective_date" in exc_info.value.errors

    async def test_unknown_department(self, db, org, employee, hr):
        with pytest.raises(ValidationException) as exc_info:
            await TransferService.create_transfer(
                db,
                _payload(employee, org, to_department_id="00000000-0000-0000-0000-000000000001"),
                hr, UNRESTRICTED,
            )
        assert "to_department_id" in exc_info.value.errors

    async def test_branch_manager_needs_one_end(self, db, org, employee):
        manager = make_principal(["transfers.create", BRANCH_MANAGER], branch_id=org.other_branch.id)
        # Inbound to the manager's branch is allowed.
        transfer = await TransferService.create_transfer(
            db, _payload(employee, org), manager, Scope.for_branch(org.other_branch.id),
        )
        assert transfer.to_branch_id == org.other_branch.id

    async def test_branch_manager_of_unrelated_branch(self, db, org):
        outsider = await seed_employee(db, org, other=True)
        manager = make_principal(["transfers.create", BRANCH_MANAGER], branch_id=uuid.uuid4())
        with pytest.raises(ForbiddenException):
            await TransferService.create_transfer(
                db,
                _payload(outsider, org, to_branch_id=org.branch.id, to_department_id=None, to_designation_id=None),
                manager, Scope.for_branch(manager.branch_id),
            )


class TestTransferWorkflow:

    async def _approved(self, db, employee, org, hr) -> Transfer:
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        return await TransferService.approve(db, transfer.id, hr, UNRESTRICTED)

    async def test_complete_moves_employee(self, db, org, employee, hr):
        transfer = await self._approved(db, employee, org, hr)
        completed = await TransferService.complete(db, transfer.id, hr, UNRESTRICTED)
        assert completed.status is TransferStatus.completed

        moved = await db.get(Employee, employee.id)
        assert moved.current_branch_id == org.other_branch.id
        assert moved.department_id == org.other_department.id
        assert moved.designation_id == org.other_designation.id

    async def test_complete_requires_approval(self, db, org, employee, hr):
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        with pytest.raises(InvalidTransitionError):
            await TransferService.complete(db, transfer.id, hr, UNRESTRICTED)
        assert (await db.get(Employee, employee.id)).current_branch_id == org.branch.id

    async def test_cannot_approve_own(self, db, org, employee):
        hr = make_principal(["transfers.create", "transfers.approve"], employee_id=employee.id)
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        with pytest.raises(ForbiddenException):
            await TransferService.approve(db, transfer.id, hr, UNRESTRICTED)

    async def test_reject_then_cancel_refused(self, db, org, employee, hr):
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        rejected = await TransferService.reject(db, transfer.id, "Budget freeze", hr, UNRESTRICTED)
        assert rejected.rejection_reason == "Budget freeze"
        with pytest.raises(InvalidTransitionError):
            await TransferService.cancel(db, transfer.id, hr, UNRESTRICTED)

    async def test_update_only_while_pending(self, db, org, employee, hr):
        transfer = await self._approved(db, employee, org, hr)
        with pytest.raises(InvalidTransitionError):
            await TransferService.update_transfer(
                db, transfer.id, TransferUpdate(reason="Changed"), hr, UNRESTRICTED,
            )

    async def test_update_to_source_branch_refused(self, db, org, employee, hr):
        transfer = await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        with pytest.raises(ValidationException):
            await TransferService.update_transfer(
                db, transfer.id, TransferUpdate(to_branch_id=org.branch.id), hr, UNRESTRICTED,
            )

    async def test_list_visible_from_destination_branch(self, db, org, employee, hr):
        await TransferService.create_transfer(db, _payload(employee, org), hr, UNRESTRICTED)
        result = await TransferService.list_transfers(
            db, PAGE, make_principal(["transfers.view"]), Scope.for_branch(org.other_branch.id),
        )
        assert result.meta.total == 1


class TestTransferAPI:

    async def test_create_approve_complete(self, client, db, org, employee):
        _, headers = await login_as(
            db, ["transfers.view", "transfers.create", "transfers.approve", "transfers.edit"],
        )
        resp = await client.post(
            "/api/v1/transfers",
            json={
                "employee_id": str(employee.id),
                "to_branch_id": str(org.other_branch.id),
                "effective_date": _next_week().isoformat(),
                "reason": "Team rebalancing",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        transfer_id = resp.json()["data"]["id"]
        assert resp.json()["data"]["from_branch"]["id"] == str(org.branch.id)

        assert (await client.post(f"/api/v1/transfers/{transfer_id}/approve", headers=headers)).status_code == 200
        resp = await client.post(f"/api/v1/transfers/{transfer_id}/complete", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "completed"

        moved = await db.scalar(
            select(Employee.current_branch_id).where(Employee.id == employee.id)
        )
        assert moved == org.other_branch.id

    async def test_create_needs_permission(self, client, db, org, employee):
        _, headers = await login_as(db, ["transfers.view"])
        resp = await client.post(
            "/api/v1/transfers",
            json={
                "employee_id": str(employee.id),
                "to_branch_id": str(org.other_branch.id),
                "effective_date": _next_week().isoformat(),
                "reason": "Team rebalancing",
            },
            headers=headers,
        )
        assert resp.status_code == 403
