"""
StanceTracker - append-only stance history with flip-flop detection.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from core.entities import StanceRecord
from services.config import StanceSettings

logger = logging.getLogger(__name__)


class StanceTracker:
    def __init__(self, settings: StanceSettings):
        self.settings = settings
        self._history: Dict[str, List[StanceRecord]] = defaultdict(list)
        self._opposites: Dict[str, str] = {}
        for left, right in settings.opposites:
            self._opposites[left.lower()] = right.lower()
            self._opposites[right.lower()] = left.lower()
        self.flip_flops = 0
        self.consistency_score = 100.0

    def are_opposite(self, first: str, second: str) -> bool:
        return self._opposites.get(first.lower()) == second.lower()

    def latest(self, issue: str) -> Optional[StanceRecord]:
        records = self._history.get(issue)
        return records[-1] if records else None

    def would_be_flip_flop(self, issue: str, stance: str) -> bool:
        previous = self.latest(issue)
        return previous is not None and self.are_opposite(previous.stance, stance)

    def record(
        self,
        issue: str,
        stance: str,
        turn: int,
        strength: float = 1.0,
        event_id: str = "",
    ) -> StanceRecord:
        flip_flop = self.would_be_flip_flop(issue, stance)
        record = StanceRecord(
            issue=issue,
            stance=stance,
            turn=turn,
            strength=strength,
            event_id=event_id,
            flip_flop=flip_flop,
        )

        records = self._history[issue]
        records.append(record)
        if len(records) > self.settings.max_records_per_issue:
            del records[: len(records) - self.settings.max_records_per_issue]

        if flip_flop:
            self.flip_flops += 1
            self.consistency_score = max(0.0, self.consistency_score - self.settings.flip_flop_penalty)
            logger.info(
                f"[stances] Flip-flop on {issue}: now {stance} (consistency {self.consistency_score:.0f})"
            )

        return record

    def history(self, issue: str) -> List[StanceRecord]:
        return list(self._history.get(issue, []))

    def issues(self) -> List[str]:
        return [issue for issue, records in self._history.items() if records]
