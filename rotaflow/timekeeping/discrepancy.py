"""Discrepancy detection between a time entry and its scheduled shift.

Pure functions only: no database access, no clock reads. Scheduled start and
end are wall-clock times interpreted in *tz* on the entry's date; a shift
whose end is at or before its start runs overnight into the next day.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Optional

from rotaflow.common.time_utils import as_utc, whole_minutes
from rotaflow.scheduling.shapes import ShiftShape, scheduled_duration, shape_window

LATE_GRACE_MINUTES = 5
LATE_ERROR_MINUTES = 15
EARLY_GRACE_MINUTES = 5
EARLY_ERROR_MINUTES = 30
OVERTIME_GRACE_MINUTES = 15
OVERTIME_ERROR_MINUTES = 60


class DiscrepancyType(str, enum.Enum):
    missing_clock_out = "missing_clock_out"
    late_clock_in = "late_clock_in"
    early_clock_out = "early_clock_out"
    overtime = "overtime"
    no_show = "no_show"


class Severity(str, enum.Enum):
    warning = "warning"
    error = "error"


@dataclass(frozen=True)
class Discrepancy:
    type: DiscrepancyType
    severity: Severity
    message: str
    minutes: Optional[int] = None


def _no_show() -> Discrepancy:
    return Discrepancy(
        type=DiscrepancyType.no_show,
        severity=Severity.error,
        message="Employee did not clock in for scheduled shift",
    )


def detect(entry, scheduled: Optional[ShiftShape], *, tz: tzinfo = timezone.utc) -> list[Discrepancy]:
    """Compare *entry* (or ``None`` when nobody clocked in) against *scheduled*.

    Output order is fixed: ``missing_clock_out`` alone, otherwise
    ``late_clock_in``, ``early_clock_out``, ``overtime``, ``no_show``.
    """
    if entry is None:
        return [_no_show()] if scheduled is not None else []

    if entry.clock_out is None:
        return [Discrepancy(
            type=DiscrepancyType.missing_clock_out,
            severity=Severity.error,
            message="Missing clock-out time",
        )]

    found: list[Discrepancy] = []
    if scheduled is None:
        return found

    naive_start, naive_end = shape_window(scheduled, entry.date)
    scheduled_start = naive_start.replace(tzinfo=tz)
    scheduled_end = naive_end.replace(tzinfo=tz)

    if entry.clock_in is None:
        found.append(_no_show())
        return found

    actual_start = as_utc(entry.clock_in)
    actual_end = as_utc(entry.clock_out)

    late = whole_minutes(actual_start - scheduled_start)
    if late > LATE_GRACE_MINUTES:
        found.append(Discrepancy(
            type=DiscrepancyType.late_clock_in,
            severity=Severity.error if late > LATE_ERROR_MINUTES else Severity.warning,
            message=f"Clock-in was {late} minutes late",
            minutes=late,
        ))

    early = whole_minutes(scheduled_end - actual_end)
    if early > EARLY_GRACE_MINUTES:
        found.append(Discrepancy(
            type=DiscrepancyType.early_clock_out,
            severity=Severity.error if early > EARLY_ERROR_MINUTES else Severity.warning,
            message=f"Clock-out was {early} minutes early",
            minutes=early,
        ))

    overtime = whole_minutes((actual_end - actual_start) - scheduled_duration(scheduled))
    if overtime > OVERTIME_GRACE_MINUTES:
        found.append(Discrepancy(
            type=DiscrepancyType.overtime,
            severity=Severity.error if overtime > OVERTIME_ERROR_MINUTES else Severity.warning,
            message=f"Worked {overtime} minutes overtime",
            minutes=overtime,
        ))

    return found
