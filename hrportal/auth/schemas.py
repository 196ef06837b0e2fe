"""Auth Pydantic schemas for request / response validation."""

import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from hrportal.common.constants import MIN_PASSWORD_LENGTH


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordChangeRequest(BaseModel):
    current_password: str
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    password_confirmation: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "PasswordChangeRequest":
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


# ── Responses ───────────────────────────────────────────────────────

class UserInfo(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    employee_id: Optional[uuid.UUID] = None
    branch_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class ScopeOut(BaseModel):
    kind: str
    branch_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None


class MeResponse(UserInfo):
    permissions: list[str]
    scopes: dict[str, ScopeOut]
