"""Notification sinks.

Events are published after the originating transaction commits. A sink may
fail; callers log the failure and carry on.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .models import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def publish(self, event: NotificationEvent) -> None:
        ...


class LoggingNotificationSink:
    async def publish(self, event: NotificationEvent) -> None:
        logger.info("Notification %s for %s: %s", event.event_type, event.user_id, event.payload)
