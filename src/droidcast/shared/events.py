"""Notification fan-out from the core to the presentation layer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

from droidcast.shared.enums import AcquisitionStage, EventName
from droidcast.shared.models import AcquisitionStatus, DownloadProgress, Event, SessionStatus

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Anything that accepts notifications without blocking the caller."""

    def publish(self, event: Event) -> None:
        """Deliver one notification.

        Implementations must not await or raise; a slow consumer is the
        consumer's problem, never the publisher's.
        """
        ...


def log_line(notifier: Notifier, line: str) -> None:
    notifier.publish(Event(name=EventName.LOG, payload=line))


def session_status(notifier: Notifier, device: str, running: bool) -> None:
    notifier.publish(Event(name=EventName.STATUS, payload=SessionStatus(device=device, running=running)))


def acquisition_status(notifier: Notifier, stage: AcquisitionStage, success: bool, message: str) -> None:
    notifier.publish(
        Event(
            name=EventName.STATUS,
            payload=AcquisitionStatus(type=stage, success=success, message=message),
        )
    )


def download_progress(notifier: Notifier, percent: int) -> None:
    notifier.publish(Event(name=EventName.PROGRESS, payload=DownloadProgress(percent=percent)))


class EventBus:
    """Fans every published event out to all current subscribers.

    Each subscriber owns a bounded queue. Publishing never blocks: when a
    subscriber's queue is full the event is dropped for that subscriber only.
    """

    def __init__(self, *, max_queue: int = 1000) -> None:
        self._max_queue = max_queue
        self._subscribers: set[asyncio.Queue[Event]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: Event) -> None:
        if event.name is EventName.LOG:
            logger.debug("%s", event.payload)
        for queue in tuple(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("subscriber queue full, dropping %s event", event.name.value)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[Event]]:
        """Register a subscriber queue for the duration of the context."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)


class NullNotifier:
    """Discards everything; used where nobody is listening."""

    def publish(self, event: Event) -> None:  # noqa: ARG002
        return None
