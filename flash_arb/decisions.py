"""
Decision journal.

Every emission, drop, sizing fallback, gate verdict and settlement outcome
is recorded with its reason and the numbers behind it, so a run can be
audited after the fact.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from .utils import get_logger, timestamp_to_iso

logger = get_logger(__name__)

# Stages
DETECT = "detect"
SIZE = "size"
GATE = "gate"
SETTLE = "settle"
SKIP = "skip"

# Outcomes that only matter when debugging
_QUIET_OUTCOMES = {"dropped", "excluded"}


@dataclass
class DecisionRecord:
    """
    One journaled decision.

    Attributes:
        stage: Pipeline stage (detect, size, gate, settle, skip)
        pair: Pair label
        outcome: Short verdict, e.g. "emitted", "dropped", "pass", "fail"
        reason: Human-readable explanation
        buy_venue: Lower-priced venue, if applicable
        sell_venue: Higher-priced venue, if applicable
        metrics: Numbers behind the decision
        timestamp: Unix time the decision was made
    """

    stage: str
    pair: str
    outcome: str
    reason: str = ""
    buy_venue: Optional[str] = None
    sell_venue: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "pair": self.pair,
            "outcome": self.outcome,
            "reason": self.reason,
            "buy_venue": self.buy_venue,
            "sell_venue": self.sell_venue,
            "metrics": self.metrics,
            "timestamp": timestamp_to_iso(self.timestamp),
        }

    def format_log(self) -> str:
        route = ""
        if self.buy_venue and self.sell_venue:
            route = f" {self.buy_venue}->{self.sell_venue}"
        text = f"[{self.stage}] {self.pair}{route}: {self.outcome}"
        if self.reason:
            text += f" ({self.reason})"
        return text


class DecisionJournal:
    """Bounded in-memory journal that also logs each record."""

    def __init__(self, maxlen: int = 500):
        self._records: Deque[DecisionRecord] = deque(maxlen=maxlen)

    def record(self, record: DecisionRecord) -> DecisionRecord:
        self._records.append(record)
        level = logging.DEBUG if record.outcome in _QUIET_OUTCOMES else logging.INFO
        logger.log(level, record.format_log())
        return record

    def recent(self, n: int = 20) -> List[DecisionRecord]:
        if n <= 0:
            return []
        return list(self._records)[-n:]

    def by_stage(self, stage: str) -> List[DecisionRecord]:
        return [r for r in self._records if r.stage == stage]

    def by_outcome(self, outcome: str) -> List[DecisionRecord]:
        return [r for r in self._records if r.outcome == outcome]

    def __len__(self) -> int:
        return len(self._records)
