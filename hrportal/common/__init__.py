"""Common module — shared utilities for HR Portal."""

from hrportal.common.constants import (
    BRANCH_MANAGER,
    DEPARTMENT_HEAD,
    MAX_PAGE_SIZE,
    AttendanceStatus,
    EmployeeStatus,
    GenderType,
    LeaveStatus,
    MovementStatus,
    MovementType,
    RecordType,
    TransferStatus,
)
from hrportal.common.exceptions import (
    AppException,
    AuthenticationError,
    ConflictError,
    DependentRecordsError,
    ForbiddenException,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    "BRANCH_MANAGER",
    "DEPARTMENT_HEAD",
    "MAX_PAGE_SIZE",
    "AttendanceStatus",
    "EmployeeStatus",
    "GenderType",
    "LeaveStatus",
    "MovementStatus",
    "MovementType",
    "RecordType",
    "TransferStatus",
    "AppException",
    "AuthenticationError",
    "ConflictError",
    "DependentRecordsError",
    "ForbiddenException",
    "InvalidTransitionError",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    "apply_filters",
    "apply_search",
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
