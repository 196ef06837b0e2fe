"""001 – Initial schema: organisation, auth, attendance, leave, movements, transfers.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employee_status", ["active", "inactive", "on_leave", "terminated"]),
    ("gender_type", ["male", "female", "other"]),
    ("attendance_status", ["present", "absent", "late", "half_day", "leave"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("movement_type", ["official", "personal"]),
    ("movement_status", ["pending", "approved", "rejected", "completed", "cancelled"]),
    ("transfer_status", ["pending", "approved", "rejected", "completed", "cancelled"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. branches ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE branches (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name             VARCHAR(150) NOT NULL,
            branch_code      VARCHAR(20)  NOT NULL UNIQUE,
            address          TEXT,
            phone            VARCHAR(20),
            email            VARCHAR(255),
            head_employee_id UUID,  -- FK added after employees table
            is_head_office   BOOLEAN DEFAULT FALSE,
            is_active        BOOLEAN DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                 VARCHAR(150) NOT NULL,
            description          TEXT,
            branch_id            UUID NOT NULL REFERENCES branches(id) ON DELETE RESTRICT,
            parent_department_id UUID REFERENCES departments(id) ON DELETE RESTRICT,
            head_employee_id     UUID,  -- FK added after employees table
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_departments_branch ON departments(branch_id)")
    op.execute("CREATE INDEX idx_departments_parent ON departments(parent_department_id)")

    # ── 3. designations ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE designations (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(150) NOT NULL,
            description   TEXT,
            department_id UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
            rank          INTEGER NOT NULL DEFAULT 1,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code        VARCHAR(20)  NOT NULL UNIQUE,
            first_name           VARCHAR(100) NOT NULL,
            last_name            VARCHAR(100) NOT NULL,
            email                VARCHAR(255) NOT NULL UNIQUE,
            phone                VARCHAR(20),
            gender               gender_type,
            date_of_birth        DATE,
            joining_date         DATE NOT NULL,
            address              TEXT,
            nid                  VARCHAR(50) UNIQUE,
            emergency_contact    VARCHAR(255),
            basic_salary         NUMERIC(12, 2),
            bank_account_details JSONB,
            department_id        UUID NOT NULL REFERENCES departments(id) ON DELETE RESTRICT,
            designation_id       UUID NOT NULL REFERENCES designations(id) ON DELETE RESTRICT,
            current_branch_id    UUID NOT NULL REFERENCES branches(id) ON DELETE RESTRICT,
            reporting_to         UUID REFERENCES employees(id) ON DELETE SET NULL,
            status               employee_status NOT NULL DEFAULT 'active',
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_branch     ON employees(current_branch_id)")
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")
    op.execute("CREATE INDEX idx_employees_reporting  ON employees(reporting_to)")

    # Deferred FKs: branch / department heads → employees.id
    op.execute("""
        ALTER TABLE branches
            ADD CONSTRAINT fk_branch_head
            FOREIGN KEY (head_employee_id) REFERENCES employees(id) ON DELETE SET NULL
    """)
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_dept_head
            FOREIGN KEY (head_employee_id) REFERENCES employees(id) ON DELETE SET NULL
    """)

    # ── 5. roles ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE roles (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(100) NOT NULL UNIQUE,
            description TEXT,
            permissions JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(150) NOT NULL,
            email         VARCHAR(255) NOT NULL UNIQUE,
            password_hash VARCHAR(255) NOT NULL,
            role_id       UUID NOT NULL REFERENCES roles(id) ON DELETE RESTRICT,
            employee_id   UUID UNIQUE REFERENCES employees(id) ON DELETE SET NULL,
            branch_id     UUID REFERENCES branches(id) ON DELETE SET NULL,
            is_active     BOOLEAN DEFAULT TRUE,
            last_login_at TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 7. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash  VARCHAR(512) NOT NULL,
            ip_address  VARCHAR(45),
            user_agent  TEXT,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_user    ON user_sessions(user_id)")
    op.execute("CREATE INDEX idx_user_sessions_token   ON user_sessions(token_hash)")
    op.execute("CREATE INDEX idx_user_sessions_expires ON user_sessions(expires_at)")

    # ── 8. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title               VARCHAR(150) NOT NULL,
            date                DATE NOT NULL,
            description         TEXT,
            is_recurring        BOOLEAN DEFAULT FALSE,
            applicable_branches JSONB,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_holidays_date ON holidays(date)")

    # ── 9. attendances, attendance_settings ───────────────────────────────
    op.execute("""
        CREATE TABLE attendances (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            date        DATE NOT NULL,
            check_in    TIME,
            check_out   TIME,
            status      attendance_status NOT NULL,
            remarks     TEXT,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_employee_date UNIQUE (employee_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_attendances_date ON attendances(date)")

    op.execute("""
        CREATE TABLE attendance_settings (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            branch_id              UUID NOT NULL UNIQUE REFERENCES branches(id) ON DELETE CASCADE,
            work_start_time        TIME NOT NULL,
            work_end_time          TIME NOT NULL,
            late_threshold_minutes INTEGER NOT NULL DEFAULT 15,
            half_day_hours         INTEGER NOT NULL DEFAULT 4,
            weekend_days           JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 10. leave_types ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(100) NOT NULL UNIQUE,
            days_allowed  INTEGER NOT NULL DEFAULT 0,
            is_paid       BOOLEAN DEFAULT TRUE,
            carry_forward BOOLEAN DEFAULT FALSE,
            description   TEXT,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 11. leave_balances ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id UUID NOT NULL REFERENCES leave_types(id) ON DELETE CASCADE,
            year          INTEGER NOT NULL,
            allocated     INTEGER NOT NULL DEFAULT 0,
            used          INTEGER NOT NULL DEFAULT 0,
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_employee_type_year
                UNIQUE (employee_id, leave_type_id, year)
        )
    """)

    # ── 12. leave_applications ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_applications (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id    UUID NOT NULL REFERENCES leave_types(id) ON DELETE RESTRICT,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            days             INTEGER NOT NULL,
            reason           TEXT NOT NULL,
            status           leave_status NOT NULL DEFAULT 'pending',
            approved_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at      TIMESTAMPTZ,
            rejection_reason TEXT,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_applications_status ON leave_applications(status)")
    op.execute("CREATE INDEX ix_leave_applications_dates  ON leave_applications(start_date, end_date)")

    # ── 13. movements ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE movements (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            movement_type movement_type NOT NULL,
            from_datetime TIMESTAMP NOT NULL,
            to_datetime   TIMESTAMP NOT NULL,
            purpose       TEXT NOT NULL,
            destination   VARCHAR(255),
            remarks       TEXT,
            status        movement_status NOT NULL DEFAULT 'pending',
            approved_by   UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at   TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CHECK (to_datetime > from_datetime)
        )
    """)
    op.execute("CREATE INDEX ix_movements_status ON movements(status)")

    # ── 14. transfers ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE transfers (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            from_branch_id      UUID NOT NULL REFERENCES branches(id) ON DELETE RESTRICT,
            to_branch_id        UUID NOT NULL REFERENCES branches(id) ON DELETE RESTRICT,
            from_department_id  UUID REFERENCES departments(id) ON DELETE SET NULL,
            to_department_id    UUID REFERENCES departments(id) ON DELETE SET NULL,
            from_designation_id UUID REFERENCES designations(id) ON DELETE SET NULL,
            to_designation_id   UUID REFERENCES designations(id) ON DELETE SET NULL,
            effective_date      DATE NOT NULL,
            transfer_order_no   VARCHAR(50),
            reason              TEXT,
            status              transfer_status NOT NULL DEFAULT 'pending',
            approved_by         UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at         TIMESTAMPTZ,
            rejection_reason    TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_transfers_status ON transfers(status)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "transfers",
        "movements",
        "leave_applications",
        "leave_balances",
        "leave_types",
        "attendance_settings",
        "attendances",
        "holidays",
        "user_sessions",
        "users",
        "roles",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FKs before dropping employees / departments / branches
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_dept_head")
    op.execute("ALTER TABLE branches DROP CONSTRAINT IF EXISTS fk_branch_head")
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS designations CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")
    op.execute("DROP TABLE IF EXISTS branches CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
