"""Lifecycle transition tables and the published-rota edit policy."""

from __future__ import annotations

import pytest

from rotaflow.common.constants import (
    ApprovalStatus,
    AssignmentStatus,
    RequestStatus,
    RotaStatus,
    TimeEntryStatus,
)
from rotaflow.common.exceptions import InvalidStateException
from rotaflow.common.state import (
    ASSIGNMENT,
    LEAVE_REQUEST,
    ROTA,
    SHIFT_SWAP,
    TIME_ENTRY,
    TIMESHEET_APPROVAL,
    AssignmentAction,
    ensure_assignment_action,
)


class TestTransitionTables:

    def test_rota_toggles_between_draft_and_published(self):
        assert ROTA.can(RotaStatus.draft, RotaStatus.published)
        assert ROTA.can(RotaStatus.published, RotaStatus.draft)
        assert not ROTA.can(RotaStatus.draft, RotaStatus.draft)

    def test_cancelled_assignment_is_terminal(self):
        assert ASSIGNMENT.targets(AssignmentStatus.cancelled) == set()
        assert ASSIGNMENT.targets(AssignmentStatus.completed) == set()
        assert ASSIGNMENT.targets(AssignmentStatus.assigned) == {
            AssignmentStatus.completed,
            AssignmentStatus.cancelled,
        }

    def test_time_entry_cannot_complete_from_break(self):
        assert TIME_ENTRY.can(TimeEntryStatus.in_progress, TimeEntryStatus.completed)
        assert not TIME_ENTRY.can(TimeEntryStatus.on_break, TimeEntryStatus.completed)
        assert TIME_ENTRY.targets(TimeEntryStatus.completed) == set()

    @pytest.mark.parametrize("decided", [
        ApprovalStatus.approved, ApprovalStatus.rejected, ApprovalStatus.edited,
    ])
    def test_decided_timesheet_is_final(self, decided):
        assert TIMESHEET_APPROVAL.can(ApprovalStatus.pending, decided)
        with pytest.raises(InvalidStateException):
            TIMESHEET_APPROVAL.ensure(decided, ApprovalStatus.approved)

    @pytest.mark.parametrize("machine", [LEAVE_REQUEST, SHIFT_SWAP])
    def test_requests_decide_once(self, machine):
        assert machine.targets(RequestStatus.pending) == {RequestStatus.approved, RequestStatus.rejected}
        with pytest.raises(InvalidStateException) as exc_info:
            machine.ensure(RequestStatus.approved, RequestStatus.rejected)
        assert "'approved'" in exc_info.value.detail


class TestAssignmentEditPolicy:

    def test_published_rota_allows_update(self):
        ensure_assignment_action(RotaStatus.published, AssignmentAction.update)

    def test_published_rota_blocks_delete(self):
        with pytest.raises(InvalidStateException) as exc_info:
            ensure_assignment_action(RotaStatus.published, AssignmentAction.delete)
        assert exc_info.value.detail == "Cannot delete assignments from published rotas"

    def test_assignment_without_rota_follows_draft(self):
        ensure_assignment_action(None, AssignmentAction.delete)
