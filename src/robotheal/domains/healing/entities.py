"""Healing Domain Entities.

Entities carry mutable state for the duration of a single heal() call.
Neither outlives the call that created it.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Set

from .value_objects import ElementDescriptor, FailureAnalysis


@dataclass
class InteractionContext:
    """What the caller knows about the interaction that just failed.

    Attributes:
        locator: The original element reference that no longer works.
        surface: InteractiveSurface the step was driving.
        step: Human-readable step text, used in logs only.
        url: Page URL at the time of failure.
        descriptor: Features of the expected element, when captured.
        diagnostics: Caller-side diagnostics (console errors, failed
            requests) handed to the classifier.
        excluded_strategies: Strategy names that must not run for this
            interaction, e.g. a forced click when the step is not a click.
    """
    locator: str
    surface: Any
    step: str = ""
    url: str = ""
    descriptor: Optional[ElementDescriptor] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    excluded_strategies: FrozenSet[str] = frozenset()


@dataclass
class HealingContext:
    """Per-call working state shared by every strategy attempt.

    Invariants:
        - Created fresh for each heal() call; tried_strategy_names never
          carries over between calls.
        - tried_strategy_names only grows.
    """
    original_reference: str
    surface: Any
    failure_reason: str
    candidate_descriptor: Optional[ElementDescriptor] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    url: str = ""
    step: str = ""
    tried_strategy_names: Set[str] = field(default_factory=set)
    attempt_deadline: Optional[float] = None

    @classmethod
    def create(
        cls,
        interaction: InteractionContext,
        analysis: FailureAnalysis,
    ) -> HealingContext:
        """Factory: build a fresh context from the caller's interaction and the analysis."""
        return cls(
            original_reference=interaction.locator,
            surface=interaction.surface,
            failure_reason=analysis.failure_type,
            candidate_descriptor=interaction.descriptor,
            diagnostics=dict(analysis.diagnostics),
            url=interaction.url,
            step=interaction.step,
        )

    def has_tried(self, strategy_name: str) -> bool:
        return strategy_name in self.tried_strategy_names

    def mark_tried(self, strategy_name: str) -> None:
        self.tried_strategy_names.add(strategy_name)

    def budget(self, seconds: float) -> float:
        """Cap a driver timeout at what is left of the running attempt.

        attempt_deadline is a time.monotonic() value set by the orchestrator
        before each attempt. Floored at one millisecond: a zero timeout
        disables the driver timeout altogether.
        """
        if self.attempt_deadline is None:
            return seconds
        remaining = self.attempt_deadline - time.monotonic()
        return max(min(seconds, remaining), 0.001)

    @property
    def attempt_count(self) -> int:
        return len(self.tried_strategy_names)
