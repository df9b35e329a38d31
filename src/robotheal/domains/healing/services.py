"""Healing Domain Services.

The HealingOrchestrator coordinates the failure classifier, the
StrategyCatalog and the HealingHistory. All browser and analysis
collaborators are reached through the protocol-based anti-corruption
layers declared here.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import (
    Any, Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable,
)

from .aggregates import HealingHistory, StrategyCatalog
from .entities import HealingContext, InteractionContext
from .events import (
    FailureAnalyzed, HealingFailed, HealingHistoryCleared,
    HealingSucceeded, StrategyAttempted,
)
from .value_objects import (
    AttemptOutcome, ElementMatch, FailureAnalysis, HealingOutcome,
    HealingResult, HealingStatistics, StrategyEffectiveness, SurfaceAction,
)
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)

EventPublisher = Callable[[object], None]


# ============================================================
# Ports
# ============================================================


@runtime_checkable
class InteractiveSurface(Protocol):
    """Protocol for the page being driven (anti-corruption layer).

    perform() raises when the action fails or times out. For
    SurfaceAction.EVALUATE and SurfaceAction.IS_VISIBLE it returns the
    evaluated value. target is a locator string, an element handle,
    or None for page-level actions such as key presses.
    """
    async def resolve(self, locator: str) -> List[Any]: ...

    async def perform(
        self,
        action: SurfaceAction,
        target: Any,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any: ...


@runtime_checkable
class FailureClassifier(Protocol):
    """Turns a raw error plus context into a healability verdict.

    Implementations may be synchronous or return an awaitable.
    """
    def analyze(self, error: BaseException, context: InteractionContext) -> Any: ...


@runtime_checkable
class PatternMatcher(Protocol):
    """Finds elements by named UI pattern (close_button, checkbox, ...)."""
    async def find_by_pattern(self, surface: Any, pattern_name: str) -> List[Any]: ...

    async def get_best_match(
        self, surface: Any, pattern_name: str
    ) -> Optional[ElementMatch]: ...


@runtime_checkable
class FeatureExtractor(Protocol):
    """Extracts comparable descriptors from live elements."""
    async def extract_features(self, handle: Any, surface: Any) -> Any: ...

    def calculate_similarity(self, first: Any, second: Any) -> float: ...


@runtime_checkable
class FingerprintStore(Protocol):
    """Previously captured element fingerprints, keyed by page and locator."""
    def get(self, key: str) -> Any: ...


@runtime_checkable
class FingerprintMatcher(Protocol):
    """Re-locates a fingerprinted element in the current DOM."""
    def generate_key(self, page_url: str, locator: str) -> str: ...

    async def self_heal(self, surface: Any, fingerprint: Any) -> Optional[ElementMatch]: ...


@runtime_checkable
class AccessibilityMatcher(Protocol):
    """Searches the accessibility tree for an element matching a descriptor."""
    async def find_element(self, surface: Any, descriptor: str) -> Optional[ElementMatch]: ...


@runtime_checkable
class HealingStrategy(Protocol):
    """Any value with a unique name, a priority and an async attempt()."""
    name: str
    priority: float

    async def attempt(self, context: HealingContext) -> AttemptOutcome: ...


# ============================================================
# Statistics
# ============================================================


class StatisticsAggregator:
    """Derives success rate and per-strategy effectiveness from results.

    Computed on demand; nothing is cached between calls.
    """

    def compute(self, results: Iterable[HealingResult]) -> HealingStatistics:
        total = 0
        successes = 0
        total_confidence = 0.0
        total_attempts = 0
        tallies: Dict[str, List[int]] = {}

        for result in results:
            total += 1
            total_attempts += result.attempt_count
            if result.success:
                successes += 1
                total_confidence += result.confidence
            tally = tallies.setdefault(result.strategy_name, [0, 0])
            tally[0] += 1
            if result.success:
                tally[1] += 1

        if total == 0:
            return HealingStatistics()

        return HealingStatistics(
            total_healings=total,
            success_rate=successes / total,
            average_confidence=total_confidence / successes if successes else 0.0,
            average_attempts=total_attempts / total,
            strategy_effectiveness={
                name: StrategyEffectiveness(attempts=a, successes=s)
                for name, (a, s) in tallies.items()
            },
        )


# ============================================================
# Orchestrator
# ============================================================


class HealingOrchestrator:
    """Repairs failed element interactions.

    Pipeline for heal():
    1. Classify the failure (an exception here ends the call as "error")
    2. Stop with "none" if the failure is not healable
    3. Select eligible strategies: suggested by name, or priority at or
       above the always-run threshold, minus the interaction's exclusions
    4. Attempt them one at a time in catalog order, each bounded by
       attempt_timeout; a raising, timed-out or overrunning strategy only
       fails itself
    5. First success wins and is recorded in history
    6. Otherwise report "all_failed"

    heal() never raises. Side effects of failed attempts on the surface
    (dismissed dialogs, scrolled viewport) are not rolled back.
    """

    def __init__(
        self,
        catalog: StrategyCatalog,
        classifier: FailureClassifier,
        config: Optional[HealingConfig] = None,
        history: Optional[HealingHistory] = None,
        statistics: Optional[StatisticsAggregator] = None,
        event_publisher: Optional[EventPublisher] = None,
    ) -> None:
        self._catalog = catalog
        self._classifier = classifier
        self._config = config or HealingConfig()
        self._history = history or HealingHistory(limit=self._config.history_limit)
        self._statistics = statistics or StatisticsAggregator()
        self._event_publisher = event_publisher

    @property
    def catalog(self) -> StrategyCatalog:
        return self._catalog

    @property
    def config(self) -> HealingConfig:
        return self._config

    @property
    def history(self) -> HealingHistory:
        return self._history

    async def heal(
        self, error: BaseException, interaction: InteractionContext
    ) -> HealingResult:
        """Attempt to repair a failed interaction.

        Args:
            error: The exception raised by the failed interaction.
            interaction: Locator, surface and caller-side context.

        Returns:
            A HealingResult. Unsuccessful results carry strategy_name
            "none", "all_failed" or "error".
        """
        start = time.monotonic()
        reference = getattr(interaction, "locator", "")
        context: Optional[HealingContext] = None
        diagnostics: Dict[str, Any] = {}

        try:
            try:
                analysis = await self._analyze(error, interaction)
            except Exception as e:
                logger.warning("Failure analysis for '%s' raised: %s", reference, e)
                return self._unsuccessful(
                    HealingOutcome.ERROR, reference, start, error_message=str(e),
                )

            diagnostics = dict(analysis.diagnostics)
            logger.debug(
                "Failure for '%s' classified as %s (healable=%s)",
                reference, analysis.failure_type, analysis.healable,
            )
            self._publish(FailureAnalyzed(
                original_reference=reference,
                failure_type=analysis.failure_type,
                healable=analysis.healable,
                suggested_strategies=sorted(analysis.suggested_strategy_names),
            ))

            if not analysis.healable:
                return self._unsuccessful(
                    HealingOutcome.NONE, reference, start,
                    diagnostics=diagnostics, failure_type=analysis.failure_type,
                )

            context = HealingContext.create(interaction, analysis)
            eligible = self._catalog.select(
                analysis.suggested_strategy_names,
                self._config.always_run_threshold,
            )

            for strategy in eligible:
                if strategy.name in interaction.excluded_strategies:
                    continue
                if context.has_tried(strategy.name):
                    continue
                context.mark_tried(strategy.name)
                logger.debug(
                    "Attempting strategy %s (priority %s) for '%s'",
                    strategy.name, strategy.priority, reference,
                )
                outcome = await self._run_attempt(strategy, context)
                if outcome is not None and outcome.success:
                    return self._succeeded(strategy, outcome, context, analysis, start)

            logger.debug(
                "All healing strategies exhausted for '%s' after %d attempts",
                reference, context.attempt_count,
            )
            return self._unsuccessful(
                HealingOutcome.ALL_FAILED, reference, start,
                attempt_count=context.attempt_count,
                diagnostics=diagnostics,
                failure_type=analysis.failure_type,
                tried=sorted(context.tried_strategy_names),
            )
        except Exception as e:
            logger.error("Healing '%s' failed unexpectedly: %s", reference, e)
            return self._unsuccessful(
                HealingOutcome.ERROR, reference, start,
                attempt_count=context.attempt_count if context else 0,
                diagnostics=diagnostics,
                error_message=str(e),
            )

    def get_healing_history(self, original_reference: str) -> List[HealingResult]:
        """Up to history_limit most recent results for this exact reference."""
        return self._history.get(original_reference)

    def get_statistics(self) -> HealingStatistics:
        return self._statistics.compute(self._history.all_results())

    def clear_history(self) -> None:
        removed = len(self._history)
        self._history.clear()
        logger.debug("Healing history cleared (%d entries)", removed)
        self._publish(HealingHistoryCleared(entries_removed=removed))

    # ============================================================
    # Internals
    # ============================================================

    async def _analyze(
        self, error: BaseException, interaction: InteractionContext
    ) -> FailureAnalysis:
        analysis = self._classifier.analyze(error, interaction)
        if inspect.isawaitable(analysis):
            analysis = await analysis
        return analysis

    async def _run_attempt(
        self, strategy: HealingStrategy, context: HealingContext
    ) -> Optional[AttemptOutcome]:
        limit = self._config.attempt_timeout
        started = time.monotonic()
        context.attempt_deadline = started + limit
        outcome: Optional[AttemptOutcome] = None
        error = ""
        try:
            outcome = await asyncio.wait_for(strategy.attempt(context), timeout=limit)
        except asyncio.TimeoutError:
            error = f"timed out after {limit}s"
            logger.debug("Strategy %s %s", strategy.name, error)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.debug("Strategy %s raised: %s", strategy.name, e)
        finally:
            context.attempt_deadline = None

        # wait_for cannot preempt a strategy blocked in a synchronous driver
        # call, so a late success is only detected here.
        overran = time.monotonic() - started > limit
        if outcome is not None and outcome.success and overran:
            error = f"overran {limit}s"
            logger.debug("Strategy %s succeeded but %s, rejected", strategy.name, error)
            outcome = AttemptOutcome.failed(elapsed_ms=_elapsed_ms(started))

        self._publish(StrategyAttempted(
            original_reference=context.original_reference,
            strategy=strategy.name,
            priority=strategy.priority,
            success=bool(outcome is not None and outcome.success),
            elapsed_ms=_elapsed_ms(started),
            error=error,
        ))
        return outcome

    def _succeeded(
        self,
        strategy: HealingStrategy,
        outcome: AttemptOutcome,
        context: HealingContext,
        analysis: FailureAnalysis,
        start: float,
    ) -> HealingResult:
        healed = (
            outcome.candidate_reference
            if outcome.candidate_reference is not None
            else context.original_reference
        )
        result = HealingResult(
            success=True,
            strategy_name=strategy.name,
            confidence=outcome.confidence,
            healed_reference=healed,
            original_reference=context.original_reference,
            attempt_count=context.attempt_count,
            elapsed_ms=_elapsed_ms(start),
            diagnostic_context=dict(analysis.diagnostics),
            failure_type=analysis.failure_type,
        )
        self._history.record(context.original_reference, result)
        logger.info(
            "Healed '%s' -> '%s' with %s (confidence %.2f, %d attempts)",
            result.original_reference, healed, strategy.name,
            result.confidence, result.attempt_count,
        )
        self._publish(HealingSucceeded(
            original_reference=result.original_reference,
            healed_reference=healed,
            strategy=strategy.name,
            confidence=result.confidence,
            attempts=result.attempt_count,
            total_time_ms=result.elapsed_ms,
        ))
        return result

    def _unsuccessful(
        self,
        outcome: HealingOutcome,
        reference: str,
        start: float,
        attempt_count: int = 0,
        diagnostics: Optional[Dict[str, Any]] = None,
        failure_type: Optional[str] = None,
        error_message: Optional[str] = None,
        tried: Optional[List[str]] = None,
    ) -> HealingResult:
        result = HealingResult.unsuccessful(
            outcome,
            original_reference=reference,
            attempt_count=attempt_count,
            elapsed_ms=_elapsed_ms(start),
            diagnostic_context=diagnostics,
            failure_type=failure_type,
            error_message=error_message,
        )
        if self._config.record_failures:
            self._history.record(reference, result)
        self._publish(HealingFailed(
            original_reference=reference,
            outcome=outcome.value,
            strategies_tried=list(tried or []),
            error=error_message or "",
        ))
        return result

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error("Failed to publish event: %s", e)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
