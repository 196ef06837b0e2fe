"""Movement (out-of-office) Pydantic schemas."""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrportal.common.constants import MovementStatus, MovementType
from hrportal.core_hr.schemas import EmployeeBrief


class MovementCreate(BaseModel):
    employee_id: Optional[uuid.UUID] = Field(
        None, description="Required when filing for someone else (movements.create)",
    )
    movement_type: MovementType
    from_datetime: dt.datetime
    to_datetime: dt.datetime
    purpose: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1, max_length=255)
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.to_datetime <= self.from_datetime:
            raise ValueError("to_datetime must be after from_datetime")
        return self


class MovementUpdate(BaseModel):
    movement_type: Optional[MovementType] = None
    from_datetime: Optional[dt.datetime] = None
    to_datetime: Optional[dt.datetime] = None
    purpose: Optional[str] = Field(None, min_length=1)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    remarks: Optional[str] = None


class MovementDecision(BaseModel):
    remarks: Optional[str] = None


class MovementReject(BaseModel):
    remarks: str = Field(..., min_length=1)


class MovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    movement_type: MovementType
    from_datetime: dt.datetime
    to_datetime: dt.datetime
    purpose: str
    destination: Optional[str] = None
    remarks: Optional[str] = None
    status: MovementStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[dt.datetime] = None
    employee: Optional[EmployeeBrief] = None
    created_at: dt.datetime


class MovementReportSummary(BaseModel):
    total: int = 0
    official: int = 0
    personal: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
    cancelled: int = 0
