"""Dependency Injection Container for robot-heal.

Wires the healing bounded context to its collaborators: the failure
classifier, pattern matcher, feature extractor and the optional
fingerprint and accessibility-tree capabilities.

Usage:
    from robotheal.container import HealingContainer

    container = HealingContainer(feature_extractor=my_extractor)
    orchestrator = container.orchestrator
    result = await orchestrator.heal(error, interaction)

There is deliberately no process-wide instance; each container owns
its own orchestrator, catalog and history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from robotheal.adapters.pattern_matcher import SelectorPatternMatcher
from robotheal.domains.healing import (
    AccessibilityMatcher,
    FailureClassifier,
    FeatureExtractor,
    FingerprintMatcher,
    FingerprintStore,
    HealingHistory,
    HealingOrchestrator,
    PatternFailureClassifier,
    PatternMatcher,
    StrategyCatalog,
    build_default_catalog,
)
from robotheal.domains.healing.services import EventPublisher
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


@dataclass
class HealingContainer:
    """Simple dependency injection container for the healing services.

    Collaborators left as None fall back to the built-in defaults where
    one exists (classifier, pattern matcher). Optional capabilities stay
    absent and their strategies are not registered.

    Attributes:
        config: Engine configuration; read from ROBOTHEAL_* when omitted.
        classifier: FailureClassifier used by the orchestrator.
        pattern_matcher: PatternMatcher for close_modal and pattern search.
        feature_extractor: Enables visual_similarity when provided.
        fingerprint_store / fingerprint_matcher: Enable element_fingerprint
            when both are provided.
        accessibility_matcher: Enables accessibility_tree when provided.
        event_publisher: Receives domain events.
    """

    config: Optional[HealingConfig] = None
    classifier: Optional[FailureClassifier] = None
    pattern_matcher: Optional[PatternMatcher] = None
    feature_extractor: Optional[FeatureExtractor] = None
    fingerprint_store: Optional[FingerprintStore] = None
    fingerprint_matcher: Optional[FingerprintMatcher] = None
    accessibility_matcher: Optional[AccessibilityMatcher] = None
    event_publisher: Optional[EventPublisher] = None

    _catalog: Optional[StrategyCatalog] = field(default=None, repr=False)
    _history: Optional[HealingHistory] = field(default=None, repr=False)
    _orchestrator: Optional[HealingOrchestrator] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = HealingConfig.from_env()
        if self.classifier is None:
            self.classifier = PatternFailureClassifier()
        if self.pattern_matcher is None:
            self.pattern_matcher = SelectorPatternMatcher()

    @property
    def catalog(self) -> StrategyCatalog:
        """The strategy catalog, built once from the configured capabilities."""
        if self._catalog is None:
            self._catalog = build_default_catalog(
                config=self.config,
                pattern_matcher=self.pattern_matcher,
                feature_extractor=self.feature_extractor,
                fingerprint_store=self.fingerprint_store,
                fingerprint_matcher=self.fingerprint_matcher,
                accessibility_matcher=self.accessibility_matcher,
            )
        return self._catalog

    @property
    def history(self) -> HealingHistory:
        if self._history is None:
            self._history = HealingHistory(limit=self.config.history_limit)
        return self._history

    @property
    def orchestrator(self) -> HealingOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = HealingOrchestrator(
                catalog=self.catalog,
                classifier=self.classifier,
                config=self.config,
                history=self.history,
                event_publisher=self.event_publisher,
            )
            logger.debug("Healing orchestrator created with %d strategies", len(self.catalog))
        return self._orchestrator
