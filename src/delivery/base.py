"""
Module to contain notification types and the base class for presentation sinks
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from core.entities import CycleStage


class NotificationKind(str, Enum):
    NEW_EVENT_AVAILABLE = "new_event_available"
    STAGE_CHANGED = "stage_changed"
    BREAKING_NEWS = "breaking_news"
    EVENT_EXPIRED = "event_expired"
    RESPONSE_PROCESSED = "response_processed"
    COMMAND_REJECTED = "command_rejected"
    SOURCE_CHANGED = "source_changed"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    event_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    stage: Optional[CycleStage] = None
    requires_action: bool = False


class PresentationSink(ABC):
    """
    Base interface for anything that presents notifications to the player.
    """

    name: str

    @abstractmethod
    def deliver(self, notification: Notification) -> None:
        """
        Present one notification.
        May raise; failures are logged upstream and do not stop other sinks.
        """
        raise NotImplementedError
