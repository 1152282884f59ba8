import json
import logging

from delivery.base import Notification, NotificationKind, PresentationSink
from delivery.log_delivery import LoggingSink
from delivery.queue import NotificationQueue
from services.logging import JsonFormatter

from conftest import RecordingSink


class BrokenSink(PresentationSink):
    name = "broken"

    def deliver(self, notification: Notification) -> None:
        raise RuntimeError("screen closed")


def test_flush_delivers_in_publish_order():
    queue = NotificationQueue()
    sink = RecordingSink()
    queue.subscribe(sink)
    queue.subscribe(sink)

    queue.publish(Notification(NotificationKind.NEW_EVENT_AVAILABLE, event_id="a"))
    queue.publish(Notification(NotificationKind.BREAKING_NEWS, event_id="a"))
    delivered = queue.flush()

    assert [n.kind for n in delivered] == [NotificationKind.NEW_EVENT_AVAILABLE, NotificationKind.BREAKING_NEWS]
    assert sink.received == delivered
    assert len(queue) == 0


def test_raising_sink_does_not_block_others():
    queue = NotificationQueue()
    sink = RecordingSink()
    queue.subscribe(BrokenSink())
    queue.subscribe(sink)

    queue.publish(Notification(NotificationKind.EVENT_EXPIRED, event_id="b"))
    queue.flush()

    assert sink.kinds() == [NotificationKind.EVENT_EXPIRED]


def test_logging_sink_writes_headline(caplog):
    with caplog.at_level(logging.INFO, logger="delivery.log_delivery"):
        LoggingSink().deliver(
            Notification(
                NotificationKind.NEW_EVENT_AVAILABLE,
                event_id="evt-1",
                payload={"headline": "Smith Faces Resignation Calls"},
                requires_action=True,
            )
        )
    assert "Smith Faces Resignation Calls [action required]" in caplog.text


def test_json_formatter_includes_event_id():
    record = logging.LogRecord("workflows.orchestrator", logging.INFO, __file__, 1, "expired", None, None)
    record.event_id = "evt-9"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["event_id"] == "evt-9"
    assert payload["logger"] == "workflows.orchestrator"
    assert payload["level"] == "INFO"
