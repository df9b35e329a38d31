"""Healing Domain Aggregates.

StrategyCatalog owns the ordered set of recovery strategies and
HealingHistory owns the bounded per-reference log of results.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import (
    TYPE_CHECKING, AbstractSet, Deque, Dict, Iterable, Iterator, List, Optional, Tuple,
)

from .value_objects import RESERVED_STRATEGY_NAMES, HealingResult

if TYPE_CHECKING:
    from .services import HealingStrategy

logger = logging.getLogger(__name__)

DEFAULT_ALWAYS_RUN_THRESHOLD = 7
DEFAULT_HISTORY_LIMIT = 10


class StrategyCatalog:
    """Immutable, priority-sorted list of recovery strategies.

    Invariants:
        - Strategy names are unique and never one of the reserved
          outcome names ("none", "all_failed", "error").
        - Iteration order is descending priority; equal priorities keep
          registration order.
        - The catalog never changes after construction. Extension goes
          through with_strategy(), which returns a new catalog.
    """

    def __init__(self, strategies: Iterable["HealingStrategy"] = ()) -> None:
        registered = list(strategies)
        seen = set()
        for strategy in registered:
            if strategy.name in RESERVED_STRATEGY_NAMES:
                raise ValueError(f"Strategy name '{strategy.name}' is reserved")
            if strategy.name in seen:
                raise ValueError(f"Duplicate strategy name '{strategy.name}'")
            seen.add(strategy.name)
        # sorted() is stable, so ties keep registration order
        self._strategies: Tuple["HealingStrategy", ...] = tuple(
            sorted(registered, key=lambda s: -s.priority)
        )
        self._registration_order: Tuple["HealingStrategy", ...] = tuple(registered)

    def with_strategy(self, strategy: "HealingStrategy") -> StrategyCatalog:
        """Return a new catalog with strategy appended and re-sorted."""
        return StrategyCatalog(self._registration_order + (strategy,))

    def select(
        self,
        suggested_names: AbstractSet[str],
        always_run_threshold: float = DEFAULT_ALWAYS_RUN_THRESHOLD,
    ) -> List["HealingStrategy"]:
        """Eligible strategies in catalog order.

        A strategy is eligible when the classifier suggested it by name or
        when its priority is at least always_run_threshold. Suggested names
        that are not registered are ignored.
        """
        unknown = set(suggested_names) - set(self.names)
        if unknown:
            logger.debug(
                "Ignoring suggested strategies not in catalog: %s",
                ", ".join(sorted(unknown)),
            )
        return [
            s for s in self._strategies
            if s.name in suggested_names or s.priority >= always_run_threshold
        ]

    def get(self, name: str) -> Optional["HealingStrategy"]:
        for strategy in self._strategies:
            if strategy.name == name:
                return strategy
        return None

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._strategies]

    def __iter__(self) -> Iterator["HealingStrategy"]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: object) -> bool:
        return any(s.name == name for s in self._strategies)

    def __repr__(self) -> str:
        listing = ", ".join(f"{s.name}({s.priority})" for s in self._strategies)
        return f"StrategyCatalog([{listing}])"


class HealingHistory:
    """Bounded per-reference log of healing results.

    Keys are the exact original reference strings; no normalization is
    applied, so "#btn" and "css=#btn" are separate keys.

    Concurrency:
        Appends and evictions happen under a single lock so the history
        can be shared by heal() calls running on different threads or
        event loops.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"History limit must be at least 1, got {limit}")
        self._limit = limit
        self._entries: Dict[str, Deque[HealingResult]] = {}
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def record(self, reference: str, result: HealingResult) -> None:
        """Append a result, evicting the oldest once the limit is reached."""
        with self._lock:
            entries = self._entries.get(reference)
            if entries is None:
                entries = deque(maxlen=self._limit)
                self._entries[reference] = entries
            entries.append(result)

    def get(self, reference: str) -> List[HealingResult]:
        """Results for reference, oldest first. Empty list if unknown."""
        with self._lock:
            return list(self._entries.get(reference, ()))

    def all_results(self) -> List[HealingResult]:
        with self._lock:
            return [r for entries in self._entries.values() for r in entries]

    @property
    def references(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._entries.values())
