"""Tests for common utilities — filters, pagination, time helpers, enum columns,
and the exception hierarchy.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from rotaflow.common.filters import _get_column, apply_filters
from rotaflow.common.pagination import PaginationParams, paginate
from rotaflow.common.time_utils import as_utc, hours_between, week_bounds, whole_minutes
from rotaflow.core_hr.models import Employee
from rotaflow.timekeeping.service import TimeAccountingService
from tests.conftest import seed_employee


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:
    """Tests for apply_filters utility."""

    async def test_filter_by_equality(self, db: AsyncSession):
        await seed_employee(db, first_name="Alice")
        await seed_employee(db, first_name="Bob")

        query = apply_filters(select(Employee), Employee, {"first_name": "Alice"})
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["Alice"]

    async def test_filter_none_values_skipped(self, db: AsyncSession):
        await seed_employee(db)

        query = apply_filters(select(Employee), Employee, {"first_name": None, "is_active": True})
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_filter_by_from_to_range(self, db: AsyncSession):
        for name, rate in (("Low", 9.0), ("Mid", 12.0), ("High", 20.0)):
            await seed_employee(db, first_name=name, hourly_rate=rate)

        query = apply_filters(select(Employee), Employee, {
            "hourly_rate__from": 10.0,
            "hourly_rate__to": 15.0,
        })
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["Mid"]

    async def test_filter_by_in_and_ne(self, db: AsyncSession):
        for name in ("Alice", "Bob", "Charlie"):
            await seed_employee(db, first_name=name)

        picked = apply_filters(select(Employee), Employee, {"first_name__in": ["Alice", "Charlie"]})
        others = apply_filters(select(Employee), Employee, {"first_name__ne": "Bob"})

        assert {e.first_name for e in (await db.execute(picked)).scalars().all()} == {"Alice", "Charlie"}
        assert len((await db.execute(others)).scalars().all()) == 2

    def test_unknown_column_raises(self):
        with pytest.raises(AttributeError):
            apply_filters(select(Employee), Employee, {"nonexistent_field": "value"})

    def test_unknown_operator_raises(self):
        with pytest.raises(ValueError):
            apply_filters(select(Employee), Employee, {"first_name__ilike": "al"})

    def test_get_existing_column(self):
        assert _get_column(Employee, "first_name") is Employee.first_name


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:
    """Tests for pagination helper."""

    async def test_paginate_page_2(self, db: AsyncSession):
        for i in range(5):
            await seed_employee(db, first_name=f"Q{i}")

        rows, meta = await paginate(
            db, select(Employee).order_by(Employee.first_name), PaginationParams(page=2, page_size=3),
        )

        assert [e.first_name for e in rows] == ["Q3", "Q4"]
        assert meta.total == 5
        assert meta.has_prev is True
        assert meta.has_next is False

    async def test_paginate_empty_result(self, db: AsyncSession):
        query = select(Employee).where(Employee.first_name == "ZZZ_NONEXISTENT")
        rows, meta = await paginate(db, query, PaginationParams(page=1, page_size=10))

        assert len(rows) == 0
        assert meta.total == 0
        assert meta.total_pages == 0


# ═════════════════════════════════════════════════════════════════════
# TIME HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestTimeUtils:

    def test_as_utc_attaches_zone_to_naive(self):
        assert as_utc(datetime(2026, 3, 2, 9)) == datetime(2026, 3, 2, 9, tzinfo=timezone.utc)
        assert as_utc(None) is None

    def test_as_utc_converts_aware(self):
        plus_two = timezone(timedelta(hours=2))
        assert as_utc(datetime(2026, 3, 2, 11, tzinfo=plus_two)).hour == 9

    def test_hours_between_rounds_to_two_places(self):
        start = datetime(2026, 3, 2, 9, tzinfo=timezone.utc)
        assert hours_between(start, start + timedelta(minutes=20)) == 0.33

    def test_whole_minutes_floors(self):
        assert whole_minutes(timedelta(minutes=5, seconds=59)) == 5

    def test_week_bounds_is_monday_aligned(self):
        assert week_bounds(date(2026, 3, 8)) == (date(2026, 3, 2), date(2026, 3, 8))
        assert week_bounds(date(2026, 3, 2)) == (date(2026, 3, 2), date(2026, 3, 8))


# ═════════════════════════════════════════════════════════════════════
# ENUM COLUMNS
# ═════════════════════════════════════════════════════════════════════


class TestEnumColumns:

    async def test_values_are_persisted_not_names(self, db: AsyncSession, employee_ctx):
        now = datetime(2026, 3, 2, 9, tzinfo=timezone.utc)
        await TimeAccountingService.clock_in(db, employee_ctx, now=now)
        await TimeAccountingService.break_start(db, employee_ctx, now=now + timedelta(hours=2))

        stored = (await db.execute(text("SELECT status FROM time_entries"))).scalar_one()

        assert stored == "break"


# ═════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    def test_validation_errors_flatten_per_message(self):
        exc = ValidationException({"start_date": ["too early", "not a weekday"]})

        assert exc.status_code == 400
        assert exc.errors == [
            {"field": "start_date", "message": "too early"},
            {"field": "start_date", "message": "not a weekday"},
        ]

    def test_not_found_messages(self):
        assert NotFoundException("Rota").detail == "Rota not found."
        assert NotFoundException("Rota", "abc").detail == "Rota with id 'abc' does not exist."
        assert NotFoundException("Rota", detail="No active rota").status_code == 404

    def test_conflict_carries_field(self):
        exc = ConflictError("date", "2026-03-02")

        assert exc.status_code == 409
        assert exc.errors == [{"field": "date", "message": "'2026-03-02' is already in use."}]
