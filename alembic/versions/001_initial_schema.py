"""001 – Initial schema: scheduling, time accounting, requests, approvals.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# Enum-valued columns are VARCHAR(32) holding the member value; the
# application validates them, so no native PostgreSQL enum types exist.


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. locations ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE locations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id   UUID NOT NULL,
            name        VARCHAR(100) NOT NULL,
            is_active   BOOLEAN NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_locations_tenant_name UNIQUE (tenant_id, name)
        )
    """)
    op.execute("CREATE INDEX ix_locations_tenant_id ON locations(tenant_id)")

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id        UUID NOT NULL,
            organization_id  UUID,
            location_id      UUID REFERENCES locations(id),
            employee_code    VARCHAR(30)  NOT NULL,
            first_name       VARCHAR(100) NOT NULL,
            last_name        VARCHAR(100) NOT NULL,
            email            VARCHAR(255) NOT NULL,
            role             VARCHAR(32)  NOT NULL DEFAULT 'employee',
            hourly_rate      NUMERIC(10, 2) NOT NULL DEFAULT 0,
            is_active        BOOLEAN NOT NULL DEFAULT TRUE,
            is_online        BOOLEAN NOT NULL DEFAULT FALSE,
            last_online      TIMESTAMPTZ,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_employees_tenant_email UNIQUE (tenant_id, email),
            CONSTRAINT uq_employees_tenant_code  UNIQUE (tenant_id, employee_code)
        )
    """)
    op.execute("CREATE INDEX ix_employees_tenant_id       ON employees(tenant_id)")
    op.execute("CREATE INDEX ix_employees_tenant_location ON employees(tenant_id, location_id)")

    # ── 3. manager_locations ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE manager_locations (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id    UUID NOT NULL,
            manager_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            location_id  UUID NOT NULL REFERENCES locations(id) ON DELETE CASCADE,
            CONSTRAINT uq_manager_locations UNIQUE (tenant_id, manager_id, location_id)
        )
    """)

    # ── 4. tenant_settings ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE tenant_settings (
            tenant_id                UUID PRIMARY KEY,
            allow_manager_approvals  BOOLEAN NOT NULL DEFAULT FALSE,
            pay_period_type          VARCHAR(32) NOT NULL DEFAULT 'weekly',
            custom_period_days       INTEGER,
            week_start_day           INTEGER NOT NULL DEFAULT 1,
            created_at               TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at               TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 5. shift_templates ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE shift_templates (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id       UUID NOT NULL,
            name            VARCHAR(100) NOT NULL,
            start_time      TIME NOT NULL,
            end_time        TIME NOT NULL,
            department      VARCHAR(100),
            color           VARCHAR(20) NOT NULL DEFAULT '#3B82F6',
            required_staff  INTEGER NOT NULL DEFAULT 1,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_by      UUID REFERENCES employees(id),
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_shift_templates_tenant_id ON shift_templates(tenant_id)")

    # ── 6. rotas ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE rotas (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id        UUID NOT NULL,
            name             VARCHAR(100) NOT NULL,
            week_start_date  DATE NOT NULL,
            status           VARCHAR(32) NOT NULL DEFAULT 'draft',
            published_at     TIMESTAMPTZ,
            created_by       UUID REFERENCES employees(id),
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_rotas_tenant_week ON rotas(tenant_id, week_start_date)")

    # ── 7. shift_assignments ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE shift_assignments (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id            UUID NOT NULL,
            employee_id          UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            date                 DATE NOT NULL,
            template_id          UUID REFERENCES shift_templates(id),
            override_name        VARCHAR(100),
            override_start_time  TIME,
            override_end_time    TIME,
            override_color       VARCHAR(20),
            status               VARCHAR(32) NOT NULL DEFAULT 'assigned',
            rota_id              UUID REFERENCES rotas(id) ON DELETE SET NULL,
            is_published         BOOLEAN NOT NULL DEFAULT FALSE,
            notes                TEXT,
            cancellation_reason  VARCHAR(255),
            assigned_by          UUID REFERENCES employees(id),
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_shift_assignments_shape CHECK (
                template_id IS NOT NULL OR (
                    override_name IS NOT NULL
                    AND override_start_time IS NOT NULL
                    AND override_end_time IS NOT NULL
                )
            )
        )
    """)
    # One live assignment per employee per day
    op.execute("""
        CREATE UNIQUE INDEX uq_shift_assignments_employee_day
            ON shift_assignments(tenant_id, employee_id, date)
            WHERE status <> 'cancelled'
    """)
    op.execute("CREATE INDEX ix_shift_assignments_tenant_date ON shift_assignments(tenant_id, date)")
    op.execute("CREATE INDEX ix_shift_assignments_rota        ON shift_assignments(rota_id)")

    # ── 8. time_entries ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_entries (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id            UUID NOT NULL,
            employee_id          UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            shift_assignment_id  UUID REFERENCES shift_assignments(id) ON DELETE SET NULL,
            date                 DATE NOT NULL,
            clock_in             TIMESTAMPTZ NOT NULL,
            clock_out            TIMESTAMPTZ,
            break_hours          DOUBLE PRECISION NOT NULL DEFAULT 0,
            max_break_hours      DOUBLE PRECISION NOT NULL DEFAULT 1,
            total_hours          DOUBLE PRECISION NOT NULL DEFAULT 0,
            status               VARCHAR(32) NOT NULL DEFAULT 'in-progress',
            approval_status      VARCHAR(32) NOT NULL DEFAULT 'pending',
            approved_by          UUID REFERENCES employees(id),
            approved_at          TIMESTAMPTZ,
            approved_hours       DOUBLE PRECISION,
            approved_rate        DOUBLE PRECISION,
            total_pay            DOUBLE PRECISION,
            admin_notes          TEXT,
            rejection_reason     TEXT,
            total_calls_taken    INTEGER NOT NULL DEFAULT 0,
            leads_generated      INTEGER NOT NULL DEFAULT 0,
            shift_remarks        TEXT,
            performance_rating   INTEGER,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    # At most one open entry per employee
    op.execute("""
        CREATE UNIQUE INDEX uq_time_entries_open_per_employee
            ON time_entries(employee_id)
            WHERE status IN ('in-progress', 'break')
    """)
    op.execute("CREATE INDEX ix_time_entries_tenant_date ON time_entries(tenant_id, date)")
    op.execute("CREATE INDEX ix_time_entries_approval    ON time_entries(tenant_id, approval_status)")

    # ── 9. break_logs ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE break_logs (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id      UUID NOT NULL,
            time_entry_id  UUID NOT NULL REFERENCES time_entries(id) ON DELETE CASCADE,
            employee_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            break_start    TIMESTAMPTZ NOT NULL,
            break_end      TIMESTAMPTZ,
            break_hours    DOUBLE PRECISION NOT NULL DEFAULT 0,
            status         VARCHAR(32) NOT NULL DEFAULT 'active'
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_break_logs_open_per_employee
            ON break_logs(employee_id)
            WHERE status = 'active'
    """)

    # ── 10. leave_requests ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id         UUID NOT NULL,
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type        VARCHAR(32) NOT NULL,
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            days_requested    DOUBLE PRECISION NOT NULL,
            reason            TEXT,
            status            VARCHAR(32) NOT NULL DEFAULT 'pending',
            approved_by       UUID REFERENCES employees(id),
            approved_at       TIMESTAMPTZ,
            rejection_reason  TEXT,
            manager_notes     TEXT,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_range CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_requests_tenant_status  ON leave_requests(tenant_id, status)")
    op.execute("CREATE INDEX ix_leave_requests_employee_dates ON leave_requests(employee_id, start_date, end_date)")

    # ── 11. shift_swap_requests ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE shift_swap_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id           UUID NOT NULL,
            requester_id        UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            target_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            swap_date           DATE NOT NULL,
            original_shift_id   UUID NOT NULL REFERENCES shift_assignments(id) ON DELETE CASCADE,
            requested_shift_id  UUID NOT NULL REFERENCES shift_assignments(id) ON DELETE CASCADE,
            reason              TEXT NOT NULL,
            status              VARCHAR(32) NOT NULL DEFAULT 'pending',
            approved_by         UUID REFERENCES employees(id),
            approved_at         TIMESTAMPTZ,
            rejection_reason    TEXT,
            manager_notes       TEXT,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_shift_swaps_distinct_parties CHECK (requester_id <> target_id)
        )
    """)
    op.execute("CREATE INDEX ix_shift_swap_requests_tenant_status ON shift_swap_requests(tenant_id, status)")

    # ── 12. approval_history ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE approval_history (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id       UUID NOT NULL,
            entity_type     VARCHAR(32) NOT NULL,
            entity_id       UUID NOT NULL,
            approver_id     UUID NOT NULL REFERENCES employees(id),
            status          VARCHAR(20) NOT NULL,
            notes           TEXT,
            approved_hours  DOUBLE PRECISION,
            approved_rate   DOUBLE PRECISION,
            total_pay       DOUBLE PRECISION,
            decided_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_approval_history_entity ON approval_history(tenant_id, entity_type, entity_id)")

    # ── 13. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id    UUID NOT NULL,
            actor_id     UUID REFERENCES employees(id),
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_tenant_entity ON audit_trail(tenant_id, entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_actor_id      ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at    ON audit_trail(created_at)")

    # ── 14. notifications ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id     UUID NOT NULL,
            recipient_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type          VARCHAR(32) NOT NULL DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            action_url    VARCHAR(500),
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN NOT NULL DEFAULT FALSE,
            read_at       TIMESTAMPTZ,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_notifications_recipient_unread ON notifications(recipient_id, is_read)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "notifications",
        "audit_trail",
        "approval_history",
        "shift_swap_requests",
        "leave_requests",
        "break_logs",
        "time_entries",
        "shift_assignments",
        "rotas",
        "shift_templates",
        "tenant_settings",
        "manager_locations",
        "employees",
        "locations",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")
