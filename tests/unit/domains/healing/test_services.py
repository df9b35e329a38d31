"""Tests for healing domain services."""
import asyncio
import time
from unittest.mock import MagicMock

import pytest

from robotheal.domains.healing.aggregates import HealingHistory, StrategyCatalog
from robotheal.domains.healing.entities import InteractionContext
from robotheal.domains.healing.events import (
    FailureAnalyzed,
    HealingFailed,
    HealingHistoryCleared,
    HealingSucceeded,
    StrategyAttempted,
)
from robotheal.domains.healing.services import HealingOrchestrator, StatisticsAggregator
from robotheal.domains.healing.value_objects import (
    AttemptOutcome,
    FailureAnalysis,
    HealingOutcome,
    HealingResult,
)
from robotheal.models.config_models import HealingConfig


# ── Helpers ──────────────────────────────────────────────────────────


class _ScriptedStrategy:
    def __init__(self, name, priority, outcome=None, error=None, delay=0.0, blocking=0.0):
        self.name = name
        self.priority = priority
        self.outcome = outcome
        self.error = error
        self.delay = delay
        self.blocking = blocking
        self.calls = 0
        self.budgets = []

    async def attempt(self, context):
        self.calls += 1
        self.budgets.append(context.budget(60.0))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.blocking:
            # a synchronous driver call, invisible to the event loop
            time.sleep(self.blocking)
        if self.error is not None:
            raise self.error
        return self.outcome or AttemptOutcome.failed()


class _Classifier:
    def __init__(self, analysis=None, error=None):
        self.analysis = analysis or _healable()
        self.error = error

    def analyze(self, error, context):
        if self.error is not None:
            raise self.error
        return self.analysis


class _AsyncClassifier(_Classifier):
    async def analyze(self, error, context):
        return super().analyze(error, context)


def _healable(suggested=(), failure_type="ElementNotFound"):
    return FailureAnalysis(
        failure_type=failure_type,
        healable=True,
        suggested_strategy_names=frozenset(suggested),
        diagnostics={"page_errors": []},
    )


def _interaction(locator="#submit"):
    return InteractionContext(locator=locator, surface=MagicMock())


def _orchestrator(strategies, classifier=None, config=None, publisher=None):
    return HealingOrchestrator(
        catalog=StrategyCatalog(strategies),
        classifier=classifier or _Classifier(),
        config=config or HealingConfig(),
        event_publisher=publisher,
    )


def _three_strategies(scroll_outcome=None, force_outcome=None):
    return [
        _ScriptedStrategy("byTestId", 10),
        _ScriptedStrategy("scroll", 9, outcome=scroll_outcome),
        _ScriptedStrategy("force", 1, outcome=force_outcome),
    ]


# ── heal(): selection and ordering ──────────────────────────────────


class TestHealSelection:
    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        by_test_id, scroll, force = _three_strategies(
            scroll_outcome=AttemptOutcome.succeeded(0.8),
            force_outcome=AttemptOutcome.succeeded(0.5),
        )
        orch = _orchestrator([force, scroll, by_test_id])

        result = await orch.heal(RuntimeError("not found"), _interaction())

        assert result.success is True
        assert result.strategy_name == "scroll"
        assert result.confidence == 0.8
        assert result.attempt_count == 2
        assert result.healed_reference == "#submit"
        assert by_test_id.calls == 1
        assert force.calls == 0

    @pytest.mark.asyncio
    async def test_first_success_wins_with_force_suggested(self):
        by_test_id, scroll, force = _three_strategies(
            scroll_outcome=AttemptOutcome.succeeded(0.8),
            force_outcome=AttemptOutcome.succeeded(0.5),
        )
        orch = _orchestrator(
            [force, scroll, by_test_id],
            classifier=_Classifier(_healable(suggested={"force"})),
        )

        result = await orch.heal(RuntimeError("not found"), _interaction())

        assert result.success is True
        assert result.strategy_name == "scroll"
        assert result.confidence == 0.8
        assert result.attempt_count == 2
        assert by_test_id.calls == 1
        assert force.calls == 0

    @pytest.mark.asyncio
    async def test_excluded_strategy_never_runs(self):
        strategies = _three_strategies(force_outcome=AttemptOutcome.succeeded(0.5))
        orch = _orchestrator(
            strategies, classifier=_Classifier(_healable(suggested={"force"}))
        )
        interaction = InteractionContext(
            locator="#submit", surface=MagicMock(), excluded_strategies=frozenset({"force"})
        )

        result = await orch.heal(RuntimeError("x"), interaction)

        assert result.strategy_name == "all_failed"
        assert result.attempt_count == 2
        assert strategies[2].calls == 0

    @pytest.mark.asyncio
    async def test_low_priority_runs_only_when_suggested(self):
        strategies = _three_strategies(force_outcome=AttemptOutcome.succeeded(0.5))
        orch = _orchestrator(strategies)
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.strategy_name == "all_failed"
        assert result.attempt_count == 2
        assert strategies[2].calls == 0

    @pytest.mark.asyncio
    async def test_suggested_low_priority_runs_last(self):
        strategies = _three_strategies(force_outcome=AttemptOutcome.succeeded(0.5))
        orch = _orchestrator(strategies, classifier=_Classifier(_healable({"force"})))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.success is True
        assert result.strategy_name == "force"
        assert result.attempt_count == 3
        assert result.confidence == 0.5

    @pytest.mark.asyncio
    async def test_unknown_suggestions_ignored(self):
        strategies = _three_strategies()
        orch = _orchestrator(
            strategies, classifier=_Classifier(_healable({"text_based_search", "dom_traversal"})),
        )
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.strategy_name == "all_failed"
        assert result.attempt_count == 2

    @pytest.mark.asyncio
    async def test_custom_threshold(self):
        strategies = _three_strategies(force_outcome=AttemptOutcome.succeeded(0.5))
        orch = _orchestrator(strategies, config=HealingConfig(always_run_threshold=0))
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.strategy_name == "force"
        assert result.attempt_count == 3

    @pytest.mark.asyncio
    async def test_candidate_reference_used_when_given(self):
        orch = _orchestrator([
            _ScriptedStrategy("alt", 10, outcome=AttemptOutcome.succeeded(0.8, '[data-testid="buy"]')),
        ])
        result = await orch.heal(RuntimeError("x"), _interaction("#buy"))
        assert result.healed_reference == '[data-testid="buy"]'
        assert result.original_reference == "#buy"

    @pytest.mark.asyncio
    async def test_confidence_copied_verbatim(self):
        orch = _orchestrator([
            _ScriptedStrategy("pattern", 10, outcome=AttemptOutcome.succeeded(0.6123)),
        ])
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.confidence == 0.6123


# ── heal(): unsuccessful outcomes ───────────────────────────────────


class TestHealUnsuccessful:
    @pytest.mark.asyncio
    async def test_not_healable(self):
        strategies = _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8))
        analysis = FailureAnalysis(failure_type="NetworkError", healable=False)
        orch = _orchestrator(strategies, classifier=_Classifier(analysis))

        result = await orch.heal(RuntimeError("net::ERR"), _interaction())

        assert result.success is False
        assert result.strategy_name == "none"
        assert result.attempt_count == 0
        assert result.confidence == 0.0
        assert result.healed_reference is None
        assert result.failure_type == "NetworkError"
        assert all(s.calls == 0 for s in strategies)

    @pytest.mark.asyncio
    async def test_all_failed(self):
        strategies = _three_strategies()
        orch = _orchestrator(strategies, classifier=_Classifier(_healable({"force"})))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.success is False
        assert result.strategy_name == "all_failed"
        assert result.attempt_count == 3
        assert result.healed_reference is None
        assert result.diagnostic_context == {"page_errors": []}

    @pytest.mark.asyncio
    async def test_classifier_raises(self):
        strategies = _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8))
        orch = _orchestrator(strategies, classifier=_Classifier(error=ValueError("broken")))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.success is False
        assert result.strategy_name == "error"
        assert result.error_message == "broken"
        assert result.attempt_count == 0
        assert all(s.calls == 0 for s in strategies)

    @pytest.mark.asyncio
    async def test_malformed_interaction_never_raises(self):
        orch = _orchestrator(_three_strategies())
        result = await orch.heal(RuntimeError("x"), None)
        assert result.success is False
        assert result.strategy_name == "error"

    @pytest.mark.asyncio
    async def test_empty_catalog(self):
        orch = _orchestrator([])
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.strategy_name == "all_failed"
        assert result.attempt_count == 0


# ── heal(): per-attempt isolation ───────────────────────────────────


class TestAttemptIsolation:
    @pytest.mark.asyncio
    async def test_raising_strategy_is_local_failure(self):
        a = _ScriptedStrategy("a", 10, error=RuntimeError("surface gone"))
        b = _ScriptedStrategy("b", 9, outcome=AttemptOutcome.succeeded(0.7))
        orch = _orchestrator([a, b])

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.success is True
        assert result.strategy_name == "b"
        assert result.attempt_count == 2

    @pytest.mark.asyncio
    async def test_timed_out_strategy_is_local_failure(self):
        slow = _ScriptedStrategy("slow", 10, outcome=AttemptOutcome.succeeded(0.9), delay=5)
        fast = _ScriptedStrategy("fast", 9, outcome=AttemptOutcome.succeeded(0.7))
        orch = _orchestrator([slow, fast], config=HealingConfig(attempt_timeout=0.05))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.strategy_name == "fast"
        assert result.attempt_count == 2

    @pytest.mark.asyncio
    async def test_overrunning_success_is_rejected(self):
        blocked = _ScriptedStrategy("blocked", 10, outcome=AttemptOutcome.succeeded(0.9), blocking=0.2)
        fast = _ScriptedStrategy("fast", 9, outcome=AttemptOutcome.succeeded(0.7))
        orch = _orchestrator([blocked, fast], config=HealingConfig(attempt_timeout=0.05))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert blocked.calls == 1
        assert result.strategy_name == "fast"
        assert result.attempt_count == 2

    @pytest.mark.asyncio
    async def test_overrun_only_success_is_all_failed(self):
        blocked = _ScriptedStrategy("blocked", 10, outcome=AttemptOutcome.succeeded(0.9), blocking=0.2)
        orch = _orchestrator([blocked], config=HealingConfig(attempt_timeout=0.05))

        result = await orch.heal(RuntimeError("x"), _interaction())

        assert result.success is False
        assert result.strategy_name == "all_failed"
        assert orch.history.get("#submit") == []

    @pytest.mark.asyncio
    async def test_driver_timeouts_capped_at_attempt_budget(self):
        a = _ScriptedStrategy("a", 10)
        orch = _orchestrator([a], config=HealingConfig(attempt_timeout=0.5))

        await orch.heal(RuntimeError("x"), _interaction())

        assert 0 < a.budgets[0] <= 0.5

    @pytest.mark.asyncio
    async def test_each_call_starts_fresh(self):
        a = _ScriptedStrategy("a", 10)
        orch = _orchestrator([a])
        await orch.heal(RuntimeError("x"), _interaction())
        await orch.heal(RuntimeError("x"), _interaction())
        assert a.calls == 2


# ── Classifier flavours ─────────────────────────────────────────────


class TestClassifierFlavours:
    @pytest.mark.asyncio
    async def test_sync_classifier(self):
        orch = _orchestrator(
            _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)),
            classifier=_Classifier(),
        )
        assert (await orch.heal(RuntimeError("x"), _interaction())).success

    @pytest.mark.asyncio
    async def test_async_classifier(self):
        orch = _orchestrator(
            _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)),
            classifier=_AsyncClassifier(),
        )
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.success
        assert result.strategy_name == "scroll"


# ── History and statistics ──────────────────────────────────────────


class TestHistory:
    @pytest.mark.asyncio
    async def test_success_recorded(self):
        orch = _orchestrator(_three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)))
        result = await orch.heal(RuntimeError("x"), _interaction("#a"))
        assert orch.get_healing_history("#a") == [result]

    @pytest.mark.asyncio
    async def test_failures_not_recorded_by_default(self):
        orch = _orchestrator(_three_strategies())
        await orch.heal(RuntimeError("x"), _interaction("#a"))
        assert orch.get_healing_history("#a") == []

    @pytest.mark.asyncio
    async def test_failures_recorded_when_enabled(self):
        orch = _orchestrator(_three_strategies(), config=HealingConfig(record_failures=True))
        await orch.heal(RuntimeError("x"), _interaction("#a"))
        history = orch.get_healing_history("#a")
        assert len(history) == 1
        assert history[0].strategy_name == "all_failed"

    @pytest.mark.asyncio
    async def test_eleventh_heal_evicts_oldest(self):
        orch = _orchestrator(_three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)))
        results = [await orch.heal(RuntimeError("x"), _interaction("#a")) for _ in range(11)]
        history = orch.get_healing_history("#a")
        assert len(history) == 10
        assert history[0] is results[1]
        assert history[-1] is results[-1]

    @pytest.mark.asyncio
    async def test_shared_history_instance(self):
        history = HealingHistory(limit=3)
        orch = HealingOrchestrator(
            catalog=StrategyCatalog([_ScriptedStrategy("a", 10, outcome=AttemptOutcome.succeeded(1.0))]),
            classifier=_Classifier(),
            history=history,
        )
        await orch.heal(RuntimeError("x"), _interaction("#a"))
        assert orch.history is history
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_clear_history(self):
        orch = _orchestrator(_three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)))
        await orch.heal(RuntimeError("x"), _interaction("#a"))
        orch.clear_history()
        assert orch.get_healing_history("#a") == []
        assert orch.get_statistics().total_healings == 0


class TestStatistics:
    def test_empty_statistics_all_zero(self):
        stats = _orchestrator([]).get_statistics()
        assert stats.total_healings == 0
        assert stats.success_rate == 0.0
        assert stats.average_confidence == 0.0
        assert stats.average_attempts == 0.0
        assert stats.strategy_effectiveness == {}

    def test_aggregator_formulas(self):
        results = [
            HealingResult(
                success=True, strategy_name="scroll", original_reference="#a",
                healed_reference="#a", confidence=0.8, attempt_count=2,
            ),
            HealingResult(
                success=True, strategy_name="alt", original_reference="#b",
                healed_reference="#c", confidence=0.6, attempt_count=1,
            ),
            HealingResult.unsuccessful(HealingOutcome.ALL_FAILED, "#d", attempt_count=3),
        ]
        stats = StatisticsAggregator().compute(results)

        assert stats.total_healings == 3
        assert stats.success_rate == pytest.approx(2 / 3)
        assert stats.average_confidence == pytest.approx(0.7)
        assert stats.average_attempts == pytest.approx(2.0)
        assert stats.strategy_effectiveness["scroll"].successes == 1
        assert stats.strategy_effectiveness["all_failed"].attempts == 1
        assert stats.strategy_effectiveness["all_failed"].successes == 0

    @pytest.mark.asyncio
    async def test_statistics_from_heals(self):
        orch = _orchestrator(_three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)))
        await orch.heal(RuntimeError("x"), _interaction("#a"))
        await orch.heal(RuntimeError("x"), _interaction("#b"))
        stats = orch.get_statistics()
        assert stats.total_healings == 2
        assert stats.success_rate == 1.0
        assert stats.average_confidence == pytest.approx(0.8)
        assert stats.average_attempts == 2.0
        assert stats.strategy_effectiveness["scroll"].success_rate == 1.0


# ── Events ───────────────────────────────────────────────────────────


class TestEvents:
    @pytest.mark.asyncio
    async def test_success_events(self):
        events = []
        orch = _orchestrator(
            _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)),
            publisher=events.append,
        )
        await orch.heal(RuntimeError("x"), _interaction())

        kinds = [type(e) for e in events]
        assert kinds == [FailureAnalyzed, StrategyAttempted, StrategyAttempted, HealingSucceeded]
        assert events[1].success is False
        assert events[2].success is True
        assert events[3].strategy == "scroll"

    @pytest.mark.asyncio
    async def test_failure_event_lists_tried(self):
        events = []
        orch = _orchestrator(_three_strategies(), publisher=events.append)
        await orch.heal(RuntimeError("x"), _interaction())
        failed = events[-1]
        assert isinstance(failed, HealingFailed)
        assert failed.outcome == "all_failed"
        assert failed.strategies_tried == ["byTestId", "scroll"]

    @pytest.mark.asyncio
    async def test_timeout_reported_in_attempt_event(self):
        events = []
        orch = _orchestrator(
            [_ScriptedStrategy("slow", 10, delay=5)],
            config=HealingConfig(attempt_timeout=0.05),
            publisher=events.append,
        )
        await orch.heal(RuntimeError("x"), _interaction())
        attempted = [e for e in events if isinstance(e, StrategyAttempted)]
        assert "timed out" in attempted[0].error

    @pytest.mark.asyncio
    async def test_overrun_reported_in_attempt_event(self):
        events = []
        orch = _orchestrator(
            [_ScriptedStrategy("blocked", 10, outcome=AttemptOutcome.succeeded(0.9), blocking=0.2)],
            config=HealingConfig(attempt_timeout=0.05),
            publisher=events.append,
        )
        await orch.heal(RuntimeError("x"), _interaction())
        attempted = [e for e in events if isinstance(e, StrategyAttempted)]
        assert attempted[0].success is False
        assert "overran" in attempted[0].error

    @pytest.mark.asyncio
    async def test_publisher_errors_swallowed(self):
        def broken(event):
            raise RuntimeError("sink down")

        orch = _orchestrator(
            _three_strategies(scroll_outcome=AttemptOutcome.succeeded(0.8)),
            publisher=broken,
        )
        result = await orch.heal(RuntimeError("x"), _interaction())
        assert result.success is True

    def test_clear_history_event(self):
        events = []
        orch = _orchestrator([], publisher=events.append)
        orch.clear_history()
        assert isinstance(events[0], HealingHistoryCleared)
        assert events[0].entries_removed == 0
