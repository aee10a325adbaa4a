"""Explicit lifecycle state machines.

Each lifecycle column has one transition table here. Services never flip a
status directly: they call ``MACHINE.ensure(current, target)`` first, and any
edge missing from the table is rejected with :class:`InvalidStateException`.
"""

from __future__ import annotations

import enum
from typing import Generic, Iterable, TypeVar

from rotaflow.common.constants import (
    ApprovalStatus,
    AssignmentStatus,
    RequestStatus,
    RotaStatus,
    TimeEntryStatus,
)
from rotaflow.common.exceptions import InvalidStateException

S = TypeVar("S", bound=enum.Enum)


class StateMachine(Generic[S]):
    """A named set of allowed ``(from, to)`` edges over one enum."""

    def __init__(self, name: str, edges: Iterable[tuple[S, S]]) -> None:
        self.name = name
        self._edges: frozenset[tuple[S, S]] = frozenset(edges)

    def can(self, current: S, target: S) -> bool:
        return (current, target) in self._edges

    def targets(self, current: S) -> set[S]:
        return {dst for src, dst in self._edges if src == current}

    def ensure(self, current: S, target: S) -> None:
        if not self.can(current, target):
            raise InvalidStateException(
                f"{self.name} cannot move from '{current.value}' to '{target.value}'."
            )


# ── Scheduling ──────────────────────────────────────────────────────

ROTA = StateMachine[RotaStatus](
    "Rota",
    [
        (RotaStatus.draft, RotaStatus.published),
        (RotaStatus.published, RotaStatus.draft),
    ],
)

ASSIGNMENT = StateMachine[AssignmentStatus](
    "Shift assignment",
    [
        (AssignmentStatus.scheduled, AssignmentStatus.assigned),
        (AssignmentStatus.scheduled, AssignmentStatus.completed),
        (AssignmentStatus.assigned, AssignmentStatus.completed),
        (AssignmentStatus.scheduled, AssignmentStatus.cancelled),
        (AssignmentStatus.assigned, AssignmentStatus.cancelled),
    ],
)


class AssignmentAction(str, enum.Enum):
    update = "update"
    delete = "delete"


# Edits allowed on an assignment, keyed by the status of the rota holding it.
# Assignments outside any rota follow the draft row.
ASSIGNMENT_EDIT_POLICY: dict[tuple[RotaStatus, AssignmentAction], bool] = {
    (RotaStatus.draft, AssignmentAction.update): True,
    (RotaStatus.draft, AssignmentAction.delete): True,
    (RotaStatus.published, AssignmentAction.update): True,
    (RotaStatus.published, AssignmentAction.delete): False,
}


def ensure_assignment_action(rota_status: RotaStatus | None, action: AssignmentAction) -> None:
    """Reject *action* on an assignment whose rota is in *rota_status*."""
    status = rota_status or RotaStatus.draft
    if not ASSIGNMENT_EDIT_POLICY[(status, action)]:
        if action is AssignmentAction.delete:
            raise InvalidStateException("Cannot delete assignments from published rotas")
        raise InvalidStateException(
            f"Cannot {action.value} assignments in {status.value} rotas"
        )


# ── Time accounting ─────────────────────────────────────────────────

TIME_ENTRY = StateMachine[TimeEntryStatus](
    "Time entry",
    [
        (TimeEntryStatus.in_progress, TimeEntryStatus.on_break),
        (TimeEntryStatus.on_break, TimeEntryStatus.in_progress),
        (TimeEntryStatus.in_progress, TimeEntryStatus.completed),
    ],
)

TIMESHEET_APPROVAL = StateMachine[ApprovalStatus](
    "Timesheet",
    [
        (ApprovalStatus.pending, ApprovalStatus.approved),
        (ApprovalStatus.pending, ApprovalStatus.rejected),
        (ApprovalStatus.pending, ApprovalStatus.edited),
    ],
)


# ── Requests ────────────────────────────────────────────────────────

LEAVE_REQUEST = StateMachine[RequestStatus](
    "Leave request",
    [
        (RequestStatus.pending, RequestStatus.approved),
        (RequestStatus.pending, RequestStatus.rejected),
    ],
)

SHIFT_SWAP = StateMachine[RequestStatus](
    "Shift swap request",
    [
        (RequestStatus.pending, RequestStatus.approved),
        (RequestStatus.pending, RequestStatus.rejected),
    ],
)
