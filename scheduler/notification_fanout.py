"""
Notification fan-out for detected chapter updates.

This module provides:
- The Messenger interface used to deliver text to a channel
- A logging messenger for dry runs
- The consumer that drains update events and notifies every subscriber
"""

import asyncio
from typing import Protocol

import structlog

from scheduler.messages import render_update_message
from scheduler.models import FanoutResult, UpdateEvent

logger = structlog.get_logger(__name__)


class Messenger(Protocol):
    """Outbound messaging surface."""

    async def send_message(self, channel_id: int, content: str) -> None:
        ...


class LoggingMessenger:
    """Messenger that logs messages instead of sending them."""

    def __init__(self):
        self.logger = logger.bind(component="logging_messenger")

    async def send_message(self, channel_id: int, content: str) -> None:
        self.logger.info("[DRY RUN] Would send message", channel_id=channel_id, content=content)


class NotificationFanout:
    """Consumes update events and notifies each subscribed channel."""

    def __init__(self, messenger: Messenger, events: "asyncio.Queue[UpdateEvent]", site_root: str = "https://mangadex.org"):
        """
        Initialize the fan-out consumer.

        Args:
            messenger: Delivery surface for rendered messages
            events: Queue of update events produced by the scanner
            site_root: Base URL used for chapter links
        """
        self.messenger = messenger
        self.events = events
        self.site_root = site_root
        self.logger = logger.bind(component="notification_fanout")

    async def run(self) -> None:
        """Drain the event queue forever, one event at a time."""
        self.logger.info("Notification fan-out started")
        while True:
            event = await self.events.get()
            try:
                await self.dispatch(event)
            except Exception as e:
                self.logger.error(
                    "Failed to dispatch update event",
                    manga_id=event.manga_id,
                    chapter_id=event.chapter.id,
                    error=str(e)
                )
            finally:
                self.events.task_done()

    async def dispatch(self, event: UpdateEvent) -> FanoutResult:
        """
        Send one notification attempt to every channel in the event's snapshot.

        A failed send is logged and does not affect the other channels.
        Failed deliveries are not retried.
        """
        content = render_update_message(event.manga_title, event.chapter, self.site_root)
        channels = sorted(event.channels)

        outcomes = await asyncio.gather(
            *(self.messenger.send_message(channel_id, content) for channel_id in channels),
            return_exceptions=True
        )

        result = FanoutResult(manga_id=event.manga_id, chapter_id=event.chapter.id)
        for channel_id, outcome in zip(channels, outcomes):
            if isinstance(outcome, BaseException):
                # TODO: prune channels that no longer exist once delivery errors are classified
                result.failed.append(channel_id)
                self.logger.warning(
                    "Failed to deliver update",
                    manga_id=event.manga_id,
                    channel_id=channel_id,
                    error=str(outcome)
                )
            else:
                result.delivered.append(channel_id)

        self.logger.info(
            "Update notifications sent",
            manga_id=event.manga_id,
            chapter_id=event.chapter.id,
            delivered=len(result.delivered),
            failed=len(result.failed)
        )

        return result
