"""Admin Pydantic schemas — roles and user accounts."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from hrportal.common.constants import MIN_PASSWORD_LENGTH


# ── Roles ───────────────────────────────────────────────────────────

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[list[str]] = None


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: list[str]
    users_count: int = 0
    created_at: datetime
    updated_at: datetime


# ── Users ───────────────────────────────────────────────────────────

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    password_confirmation: str
    role_id: uuid.UUID
    employee_id: Optional[uuid.UUID] = None
    branch_id: Optional[uuid.UUID] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _passwords_match(self) -> "UserCreate":
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)
    password_confirmation: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    employee_id: Optional[uuid.UUID] = None
    branch_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _passwords_match(self) -> "UserUpdate":
        if self.password is not None and self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class RoleBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role_id: uuid.UUID
    role: Optional[RoleBrief] = None
    employee_id: Optional[uuid.UUID] = None
    branch_id: Optional[uuid.UUID] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
