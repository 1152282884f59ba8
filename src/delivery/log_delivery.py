"""
Logging presentation sink
"""
import logging

from delivery.base import Notification, PresentationSink

logger = logging.getLogger(__name__)


class LoggingSink(PresentationSink):
    name = "log"

    def deliver(self, notification: Notification) -> None:
        stage = notification.stage.name if notification.stage is not None else "-"
        headline = notification.payload.get("headline", "")
        action = " [action required]" if notification.requires_action else ""

        logger.info(
            f"{notification.kind.value}: event={notification.event_id or '-'} "
            f"stage={stage} {headline}{action}".rstrip()
        )
