"""Built-in recovery strategies and the default catalog builder."""
from __future__ import annotations

import logging
from typing import List, Optional

from ..aggregates import StrategyCatalog
from ..services import (
    AccessibilityMatcher, FeatureExtractor, FingerprintMatcher,
    FingerprintStore, HealingStrategy, PatternMatcher,
)
from .actionability import ScrollIntoViewStrategy, WaitForVisibleStrategy
from .base import BaseHealingStrategy
from .forced import ForceClickStrategy
from .heuristic import PatternBasedSearchStrategy, VisualSimilarityStrategy
from .identity import (
    AccessibilityTreeStrategy, AlternativeLocatorsStrategy, ElementFingerprintStrategy,
)
from .obstruction import CloseModalStrategy, RemoveOverlaysStrategy
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


def build_default_catalog(
    config: Optional[HealingConfig] = None,
    pattern_matcher: Optional[PatternMatcher] = None,
    feature_extractor: Optional[FeatureExtractor] = None,
    fingerprint_store: Optional[FingerprintStore] = None,
    fingerprint_matcher: Optional[FingerprintMatcher] = None,
    accessibility_matcher: Optional[AccessibilityMatcher] = None,
) -> StrategyCatalog:
    """Assemble the standard strategy set.

    Strategies whose collaborator is missing are left out, so optional
    capabilities are decided once here and never re-checked per call.
    """
    config = config or HealingConfig()
    strategies: List[HealingStrategy] = [AlternativeLocatorsStrategy(config)]

    if accessibility_matcher is not None:
        strategies.append(AccessibilityTreeStrategy(accessibility_matcher, config))
    if fingerprint_store is not None and fingerprint_matcher is not None:
        strategies.append(
            ElementFingerprintStrategy(fingerprint_store, fingerprint_matcher, config)
        )

    strategies.append(ScrollIntoViewStrategy(config))
    strategies.append(WaitForVisibleStrategy(config))
    strategies.append(RemoveOverlaysStrategy(config))

    if pattern_matcher is not None:
        strategies.append(CloseModalStrategy(pattern_matcher, config))
        strategies.append(PatternBasedSearchStrategy(pattern_matcher, config))
    if feature_extractor is not None:
        strategies.append(VisualSimilarityStrategy(feature_extractor, config))

    strategies.append(ForceClickStrategy(config))

    catalog = StrategyCatalog(strategies)
    logger.debug("Initialized %d healing strategies: %s", len(catalog), catalog.names)
    return catalog


__all__ = [
    "BaseHealingStrategy",
    "AlternativeLocatorsStrategy", "AccessibilityTreeStrategy",
    "ElementFingerprintStrategy",
    "ScrollIntoViewStrategy", "WaitForVisibleStrategy",
    "RemoveOverlaysStrategy", "CloseModalStrategy",
    "PatternBasedSearchStrategy", "VisualSimilarityStrategy",
    "ForceClickStrategy",
    "build_default_catalog",
]
