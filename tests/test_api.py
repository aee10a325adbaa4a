"""HTTP surface — auth, RBAC, response envelopes and end-to-end flows.

Seed rows are committed before each request because the app opens its own
session per request.
"""

from __future__ import annotations

import uuid
from datetime import date, time

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.common.constants import UserRole
from rotaflow.notifications.service import NotificationService
from tests.conftest import (
    TENANT_ID,
    auth_header,
    create_access_token,
    seed_employee,
    seed_template,
)


class TestHealth:

    async def test_health_is_public(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"


# ═════════════════════════════════════════════════════════════════════
# Authentication
# ═════════════════════════════════════════════════════════════════════


class TestAuth:

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/notifications")

        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Missing or invalid Authorization header."}

    async def test_expired_token(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.id, expired=True)

        resp = await client.get("/api/v1/notifications", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Token has expired."

    async def test_refresh_token_rejected(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.id, token_type="refresh")

        resp = await client.get("/api/v1/notifications", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid token type."

    async def test_token_for_other_tenant_rejected(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.id, tenant_id=uuid.uuid4())

        resp = await client.get("/api/v1/notifications", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401

    async def test_inactive_employee_rejected(self, client: AsyncClient, db: AsyncSession, employee):
        employee.is_active = False
        await db.commit()

        resp = await client.get("/api/v1/notifications", headers=auth_header(employee))

        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# Role checks
# ═════════════════════════════════════════════════════════════════════


class TestRoles:

    async def test_employee_cannot_assign(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()

        resp = await client.post(
            "/api/v1/scheduling/assign",
            json={"employee_id": str(employee.id), "date": "2026-03-02", "override_name": "X",
                  "override_start_time": "09:00", "override_end_time": "17:00"},
            headers=auth_header(employee),
        )

        assert resp.status_code == 403
        assert resp.json()["success"] is False

    async def test_employee_has_no_manager_queue(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        resp = await client.get("/api/v1/manager/approvals", headers=auth_header(employee))
        assert resp.status_code == 403

    async def test_employee_cannot_open_dashboard_feed(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        resp = await client.get("/api/v1/dashboard/events", headers=auth_header(employee))
        assert resp.status_code == 403

    async def test_manager_cannot_change_settings(self, client: AsyncClient, db: AsyncSession, manager):
        await db.commit()
        resp = await client.put(
            "/api/v1/admin/settings/approvals",
            json={"allow_manager_approvals": True},
            headers=auth_header(manager),
        )
        assert resp.status_code == 403

    async def test_admin_reads_default_settings(self, client: AsyncClient, db: AsyncSession, admin):
        await db.commit()

        resp = await client.get("/api/v1/admin/settings/approvals", headers=auth_header(admin))

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["allow_manager_approvals"] is False
        assert data["pay_period_type"] == "weekly"
        assert data["week_start_day"] == 1


# ═════════════════════════════════════════════════════════════════════
# Error envelope
# ═════════════════════════════════════════════════════════════════════


class TestEnvelope:

    async def test_request_validation_is_400_with_details(self, client: AsyncClient, db: AsyncSession, admin):
        await db.commit()

        resp = await client.post("/api/v1/scheduling/assign", json={}, headers=auth_header(admin))

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Request validation failed."
        fields = {d["field"] for d in body["details"]}
        assert {"employee_id", "date"} <= fields

    async def test_not_found(self, client: AsyncClient, db: AsyncSession, admin):
        await db.commit()

        resp = await client.patch(
            f"/api/v1/admin/shift-approvals/{uuid.uuid4()}",
            json={"action": "approve"},
            headers=auth_header(admin),
        )

        assert resp.status_code == 404
        assert resp.json()["success"] is False

    async def test_conflict_details(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        headers = auth_header(employee)

        first = await client.post("/api/v1/time/clock-in", headers=headers)
        second = await client.post("/api/v1/time/clock-in", headers=headers)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"] == "Already clocked in. Please clock out first."

    async def test_bulk_approve_is_rate_limited(self, client: AsyncClient, db: AsyncSession, admin):
        await db.commit()
        headers = auth_header(admin)

        statuses = [
            (await client.post(
                "/api/v1/admin/timesheet/bulk-approve", json={"entry_ids": []}, headers=headers,
            )).status_code
            for _ in range(11)
        ]

        assert statuses[:10] == [400] * 10
        assert statuses[10] == 429


# ═════════════════════════════════════════════════════════════════════
# Notification inbox
# ═════════════════════════════════════════════════════════════════════


class TestNotificationInbox:

    async def _seed(self, db: AsyncSession, recipient, *titles: str) -> list:
        notes = [
            await NotificationService.create_notification(
                db, tenant_id=TENANT_ID, recipient_id=recipient.id, title=title, message=f"{title}.",
            )
            for title in titles
        ]
        await db.commit()
        return notes

    async def test_read_one_then_all(self, client: AsyncClient, db: AsyncSession, employee):
        first, _ = await self._seed(db, employee, "Shift Added", "Shift Removed")
        headers = auth_header(employee)

        marked = await client.put(f"/api/v1/notifications/{first.id}/read", headers=headers)
        assert marked.status_code == 200
        assert marked.json()["data"]["is_read"] is True

        unread = await client.get("/api/v1/notifications?is_read=false", headers=headers)
        assert [n["title"] for n in unread.json()["data"]] == ["Shift Removed"]
        assert unread.json()["meta"]["unread"] == 1

        cleared = await client.put("/api/v1/notifications/read-all", headers=headers)
        assert cleared.json()["data"]["count"] == 1

        count = await client.get("/api/v1/notifications/unread-count", headers=headers)
        assert count.json() == {"success": True, "data": {"count": 0}}

    async def test_cannot_mark_someone_elses(self, client: AsyncClient, db: AsyncSession, employee, admin):
        (note,) = await self._seed(db, admin, "Shift Approval Required")

        resp = await client.put(f"/api/v1/notifications/{note.id}/read", headers=auth_header(employee))

        assert resp.status_code == 403
        assert resp.json()["success"] is False


# ═════════════════════════════════════════════════════════════════════
# End-to-end flows
# ═════════════════════════════════════════════════════════════════════


class TestFlows:

    async def test_schedule_publish_and_view(self, client: AsyncClient, db: AsyncSession, manager, employee):
        template = await seed_template(db, name="Late", start=time(14), end=time(22))
        await db.commit()

        created = await client.post(
            "/api/v1/scheduling/assign",
            json={"employee_id": str(employee.id), "date": "2026-03-04", "template_id": str(template.id)},
            headers=auth_header(manager),
        )
        assert created.status_code == 201
        assert created.json()["data"]["shape"]["name"] == "Late"

        hidden = await client.get("/api/v1/scheduling/week/2026-03-04", headers=auth_header(employee))
        assert hidden.status_code == 200
        assert hidden.json()["data"]["employees"][0]["shifts"]["2026-03-04"] == []

        published = await client.post(
            "/api/v1/scheduling/publish",
            json={"start_date": "2026-03-02", "end_date": "2026-03-08"},
            headers=auth_header(manager),
        )
        assert published.status_code == 200
        assert published.json()["data"]["published_shifts"] == 1

        visible = await client.get("/api/v1/scheduling/week/2026-03-04", headers=auth_header(employee))
        assert len(visible.json()["data"]["employees"][0]["shifts"]["2026-03-04"]) == 1

        unread = await client.get("/api/v1/notifications/unread-count", headers=auth_header(employee))
        assert unread.json()["data"]["count"] == 1

    async def test_clock_and_approve(self, client: AsyncClient, db: AsyncSession, admin, employee):
        await db.commit()

        clocked_in = await client.post("/api/v1/time/clock-in", headers=auth_header(employee))
        entry_id = clocked_in.json()["data"]["id"]
        clocked_out = await client.post(
            "/api/v1/time/clock-out", json={"total_calls_taken": 12}, headers=auth_header(employee),
        )
        assert clocked_out.status_code == 200
        assert clocked_out.json()["data"]["entry"]["total_calls_taken"] == 12

        listing = await client.get("/api/v1/notifications", headers=auth_header(admin))
        assert [n["title"] for n in listing.json()["data"]] == ["Shift Approval Required"]

        decided = await client.patch(
            f"/api/v1/admin/shift-approvals/{entry_id}",
            json={"action": "approve", "approved_hours": 8, "approved_rate": 15},
            headers=auth_header(admin),
        )
        assert decided.status_code == 200
        assert decided.json()["data"]["approval_status"] == "approved"
        assert decided.json()["data"]["total_pay"] == 120.0

    async def test_manager_decisions_follow_tenant_setting(
        self, client: AsyncClient, db: AsyncSession, admin, manager, employee,
    ):
        await db.commit()
        leave = await client.post(
            "/api/v1/leave-requests",
            json={"leave_type": "sick", "start_date": "2099-01-05", "end_date": "2099-01-06",
                  "days_requested": 2},
            headers=auth_header(employee),
        )
        assert leave.status_code == 201
        leave_id = leave.json()["data"]["id"]
        decision = {"action": "approve", "manager_notes": "Get well"}

        blocked = await client.patch(
            f"/api/v1/manager/approvals/leave-request/{leave_id}", json=decision, headers=auth_header(manager),
        )
        assert blocked.status_code == 403

        enabled = await client.put(
            "/api/v1/admin/settings/approvals", json={"allow_manager_approvals": True},
            headers=auth_header(admin),
        )
        assert enabled.json()["data"]["allow_manager_approvals"] is True

        queue = await client.get("/api/v1/manager/approvals?type=leave_requests", headers=auth_header(manager))
        assert [r["id"] for r in queue.json()["data"]["leave_requests"]] == [leave_id]

        allowed = await client.patch(
            f"/api/v1/manager/approvals/leave-request/{leave_id}", json=decision, headers=auth_header(manager),
        )
        assert allowed.status_code == 200
        assert allowed.json()["data"]["status"] == "approved"

    async def test_swap_request_over_http(self, client: AsyncClient, db: AsyncSession, admin, employee, location):
        colleague = await seed_employee(db, role=UserRole.employee, first_name="Col", location_id=location.id)
        template = await seed_template(db)
        await db.commit()
        for person in (employee, colleague):
            resp = await client.post(
                "/api/v1/scheduling/assign",
                json={"employee_id": str(person.id), "date": "2026-03-05", "template_id": str(template.id)},
                headers=auth_header(admin),
            )
            assert resp.status_code == 201

        swap = await client.post(
            "/api/v1/shift-swaps",
            json={"target_employee_id": str(colleague.id), "swap_date": "2026-03-05", "reason": "Wedding"},
            headers=auth_header(employee),
        )
        assert swap.status_code == 201

        theirs = await client.get("/api/v1/shift-swaps", headers=auth_header(colleague))
        assert [s["id"] for s in theirs.json()["data"]] == [swap.json()["data"]["id"]]
        assert date.fromisoformat(theirs.json()["data"][0]["swap_date"]) == date(2026, 3, 5)
