"""Healing Domain Events.

Events emitted during a heal() call for observability and learning.
All events are frozen dataclasses with a to_dict() for logging sinks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass(frozen=True)
class FailureAnalyzed:
    """Emitted once the classifier has produced a verdict.

    Consumers:
    - Analytics (failure type distribution)
    - Classifier tuning (healable vs. unhealable ratio)
    """
    original_reference: str
    failure_type: str
    healable: bool
    suggested_strategies: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "failure_analyzed",
            "original_reference": self.original_reference,
            "failure_type": self.failure_type,
            "healable": self.healable,
            "suggested_strategies": list(self.suggested_strategies),
        }


@dataclass(frozen=True)
class StrategyAttempted:
    """Emitted after every strategy attempt, successful or not."""
    original_reference: str
    strategy: str
    priority: float
    success: bool
    elapsed_ms: int
    error: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "event_type": "strategy_attempted",
            "original_reference": self.original_reference,
            "strategy": self.strategy,
            "priority": self.priority,
            "success": self.success,
            "elapsed_ms": self.elapsed_ms,
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class HealingSucceeded:
    """Emitted when a strategy restored a working reference.

    Consumers:
    - Locator maintenance (suggest replacing the stale locator)
    - Analytics (strategy effectiveness)
    """
    original_reference: str
    healed_reference: str
    strategy: str
    confidence: float
    attempts: int
    total_time_ms: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "healing_succeeded",
            "original_reference": self.original_reference,
            "healed_reference": self.healed_reference,
            "strategy": self.strategy,
            "confidence": self.confidence,
            "attempts": self.attempts,
            "total_time_ms": self.total_time_ms,
        }


@dataclass(frozen=True)
class HealingFailed:
    """Emitted when heal() resolves without a fix.

    outcome is one of "none", "all_failed" or "error".
    """
    original_reference: str
    outcome: str
    strategies_tried: List[str] = field(default_factory=list)
    error: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "event_type": "healing_failed",
            "original_reference": self.original_reference,
            "outcome": self.outcome,
            "strategies_tried": list(self.strategies_tried),
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class HealingHistoryCleared:
    """Emitted when the history is reset between runs."""
    entries_removed: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "healing_history_cleared",
            "entries_removed": self.entries_removed,
        }
