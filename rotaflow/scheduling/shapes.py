"""Effective shift shape: either a template reference or a custom override.

An assignment is rendered from exactly one of the two variants. When an
assignment carries both a template and a complete override, the override
wins.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

DEFAULT_COLOR = "#3B82F6"


@dataclass(frozen=True)
class TemplateShape:
    template_id: uuid.UUID
    name: str
    start_time: time
    end_time: time
    color: str

    kind = "template"


@dataclass(frozen=True)
class CustomShape:
    name: str
    start_time: time
    end_time: time
    color: str = DEFAULT_COLOR

    kind = "custom"


ShiftShape = Union[TemplateShape, CustomShape]


def resolve_shape(assignment, template=None) -> Optional[ShiftShape]:
    """Return the shape *assignment* should be rendered with.

    *template* is the assignment's loaded template row, or ``None``. Returns
    ``None`` when there is neither a template nor a complete override.
    """
    if assignment.has_override:
        return CustomShape(
            name=assignment.override_name,
            start_time=assignment.override_start_time,
            end_time=assignment.override_end_time,
            color=assignment.override_color or (template.color if template else DEFAULT_COLOR),
        )
    if template is None:
        return None
    return TemplateShape(
        template_id=template.id,
        name=template.name,
        start_time=template.start_time,
        end_time=template.end_time,
        color=template.color,
    )


def shape_window(shape: ShiftShape, on: date) -> tuple[datetime, datetime]:
    """Naive ``(start, end)`` datetimes of *shape* on *on*; overnight shifts end next day."""
    start = datetime.combine(on, shape.start_time)
    end = datetime.combine(on, shape.end_time)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def scheduled_duration(shape: ShiftShape) -> timedelta:
    start, end = shape_window(shape, date(2000, 1, 1))
    return end - start
