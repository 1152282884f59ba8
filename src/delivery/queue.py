"""
Notification queue drained once per update tick, after state is consistent
"""
import logging
from typing import List

from delivery.base import Notification, PresentationSink

logger = logging.getLogger(__name__)


class NotificationQueue:
    def __init__(self):
        self._pending: List[Notification] = []
        self._sinks: List[PresentationSink] = []

    def subscribe(self, sink: PresentationSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def unsubscribe(self, sink: PresentationSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def publish(self, notification: Notification) -> None:
        self._pending.append(notification)

    def __len__(self) -> int:
        return len(self._pending)

    def drain(self) -> List[Notification]:
        pending, self._pending = self._pending, []
        return pending

    def flush(self) -> List[Notification]:
        """Deliver pending notifications to every sink, in publish order."""
        pending = self.drain()
        for notification in pending:
            for sink in self._sinks:
                try:
                    sink.deliver(notification)
                except Exception as e:
                    logger.error(
                        f"Delivery failed: kind={notification.kind.value}, sink={sink.name}, error={e}"
                    )
        return pending
