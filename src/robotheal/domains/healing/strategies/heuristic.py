"""Heuristic fallback matching strategies.

Score-based searches whose confidence is the match score itself, so it
varies per call and can be lower than the fixed-confidence strategies.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..descriptors import generate_selector, infer_pattern_name
from ..entities import HealingContext
from ..services import FeatureExtractor, PatternMatcher
from ..value_objects import AttemptOutcome
from .base import BaseHealingStrategy
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


class PatternBasedSearchStrategy(BaseHealingStrategy):
    """Search by the generic UI pattern the candidate descriptor implies."""

    name = "pattern_based_search"
    priority = 6

    def __init__(
        self,
        pattern_matcher: PatternMatcher,
        config: Optional[HealingConfig] = None,
    ) -> None:
        super().__init__(config)
        self.pattern_matcher = pattern_matcher

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        pattern_name = infer_pattern_name(context.candidate_descriptor)
        if pattern_name is None:
            return AttemptOutcome.failed()
        best = await self.pattern_matcher.get_best_match(context.surface, pattern_name)
        if best is None or best.confidence <= self.config.pattern_match_threshold:
            return AttemptOutcome.failed()
        locator = best.locator or await generate_selector(context.surface, best.element)
        return AttemptOutcome.succeeded(best.confidence, locator)


class VisualSimilarityStrategy(BaseHealingStrategy):
    """Compare the descriptor against every same-tag element; keep the best."""

    name = "visual_similarity"
    priority = 5

    def __init__(
        self,
        feature_extractor: FeatureExtractor,
        config: Optional[HealingConfig] = None,
    ) -> None:
        super().__init__(config)
        self.feature_extractor = feature_extractor

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        descriptor = context.candidate_descriptor
        if descriptor is None or not descriptor.tag_name:
            return AttemptOutcome.failed()

        surface = context.surface
        best_handle: Any = None
        best_score = 0.0
        for candidate in await surface.resolve(descriptor.tag_name):
            try:
                features = await self.feature_extractor.extract_features(candidate, surface)
                score = self.feature_extractor.calculate_similarity(descriptor, features)
            except Exception as e:
                logger.debug("[%s] skipping candidate: %s", self.name, e)
                continue
            if score > best_score and score > self.config.similarity_threshold:
                best_score = score
                best_handle = candidate

        if best_handle is None:
            return AttemptOutcome.failed()
        locator = await generate_selector(surface, best_handle)
        return AttemptOutcome.succeeded(best_score, locator)
