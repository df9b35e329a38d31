"""Healing Bounded Context.

Adaptive recovery for failed element interactions: a failure is
classified, a prioritized subset of recovery strategies is tried one
at a time until one restores a working reference, and every result is
kept in a bounded history for effectiveness statistics.
"""
from .value_objects import (
    HealingOutcome, SurfaceAction, FailureType, ElementDescriptor,
    FailureAnalysis, ElementMatch, AttemptOutcome, HealingResult,
    StrategyEffectiveness, HealingStatistics,
)
from .entities import InteractionContext, HealingContext
from .aggregates import StrategyCatalog, HealingHistory
from .services import (
    HealingOrchestrator, StatisticsAggregator,
    InteractiveSurface, FailureClassifier, PatternMatcher, FeatureExtractor,
    FingerprintStore, FingerprintMatcher, AccessibilityMatcher, HealingStrategy,
)
from .classification import ErrorPattern, PatternFailureClassifier
from .strategies import BaseHealingStrategy, build_default_catalog
from .events import (
    FailureAnalyzed, StrategyAttempted, HealingSucceeded,
    HealingFailed, HealingHistoryCleared,
)

__all__ = [
    "HealingOutcome", "SurfaceAction", "FailureType", "ElementDescriptor",
    "FailureAnalysis", "ElementMatch", "AttemptOutcome", "HealingResult",
    "StrategyEffectiveness", "HealingStatistics",
    "InteractionContext", "HealingContext",
    "StrategyCatalog", "HealingHistory",
    "HealingOrchestrator", "StatisticsAggregator",
    "InteractiveSurface", "FailureClassifier", "PatternMatcher", "FeatureExtractor",
    "FingerprintStore", "FingerprintMatcher", "AccessibilityMatcher", "HealingStrategy",
    "ErrorPattern", "PatternFailureClassifier",
    "BaseHealingStrategy", "build_default_catalog",
    "FailureAnalyzed", "StrategyAttempted", "HealingSucceeded",
    "HealingFailed", "HealingHistoryCleared",
]
