"""Commit-then-publish outbox for notification events.

Services never write notification rows inline. They record a
:class:`NotificationEvent` on the session's outbox; the request's session
dependency commits the primary mutation and only then calls
:func:`dispatch_pending`. Each event is committed on its own, so a failed
notification is logged and kept for retry without touching the committed
decision.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.common.constants import NotificationType

logger = logging.getLogger(__name__)

_OUTBOX_KEY = "rotaflow.outbox"


@dataclass(frozen=True)
class NotificationEvent:
    tenant_id: uuid.UUID
    recipient_id: uuid.UUID
    title: str
    message: str
    type: NotificationType = NotificationType.info
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None


class EventOutbox:
    """Pending notification events for one unit of work."""

    def __init__(self) -> None:
        self._pending: list[NotificationEvent] = []

    def record(self, event: NotificationEvent) -> None:
        self._pending.append(event)

    @property
    def pending(self) -> list[NotificationEvent]:
        return list(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)

    async def dispatch(self, session: AsyncSession) -> int:
        """Write every pending event; returns how many were delivered."""
        from rotaflow.notifications.service import NotificationService

        delivered = 0
        undelivered: list[NotificationEvent] = []
        for event in self._pending:
            try:
                await NotificationService.create_notification(
                    session,
                    tenant_id=event.tenant_id,
                    recipient_id=event.recipient_id,
                    type=event.type,
                    title=event.title,
                    message=event.message,
                    action_url=event.action_url,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                )
                await session.commit()
                delivered += 1
            except SQLAlchemyError:
                await session.rollback()
                logger.exception(
                    "Failed to deliver notification %r to %s",
                    event.title, event.recipient_id,
                )
                undelivered.append(event)
        self._pending = undelivered
        return delivered


def outbox_for(session: AsyncSession) -> EventOutbox:
    """The outbox bound to *session*, created on first use."""
    outbox = session.info.get(_OUTBOX_KEY)
    if outbox is None:
        outbox = EventOutbox()
        session.info[_OUTBOX_KEY] = outbox
    return outbox


def record_event(session: AsyncSession, event: NotificationEvent) -> None:
    outbox_for(session).record(event)


async def dispatch_pending(session: AsyncSession) -> int:
    """Deliver the session's pending events after the primary commit."""
    outbox = session.info.get(_OUTBOX_KEY)
    if not outbox:
        return 0
    delivered = await outbox.dispatch(session)
    if len(outbox):
        logger.warning("%d notification(s) left undelivered on the outbox", len(outbox))
    return delivered


def discard_pending(session: AsyncSession) -> None:
    """Drop recorded events after the primary mutation rolled back."""
    outbox = session.info.get(_OUTBOX_KEY)
    if outbox:
        logger.debug("Discarding %d event(s) from a rolled-back unit of work", len(outbox))
        outbox.clear()
