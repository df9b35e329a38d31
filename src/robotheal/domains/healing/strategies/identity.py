"""Identity re-resolution strategies.

Find the same logical element again under a different, more stable
identifier: alternative attributes, the accessibility tree, or a
previously captured fingerprint.
"""
from __future__ import annotations

import logging
from typing import Optional

from ..descriptors import alternative_locators, extract_descriptor_from_locator, generate_selector
from ..entities import HealingContext
from ..services import AccessibilityMatcher, FingerprintMatcher, FingerprintStore
from ..value_objects import AttemptOutcome, ElementMatch
from .base import BaseHealingStrategy
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


class AlternativeLocatorsStrategy(BaseHealingStrategy):
    """Try test-id, ARIA label, role and visible-text locators in order."""

    name = "alternative_locators"
    priority = 10
    confidence = 0.8

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        for kind, locator in alternative_locators(context.candidate_descriptor):
            try:
                handles = await context.surface.resolve(locator)
            except Exception as e:
                logger.debug("[%s] %s locator %s failed: %s", self.name, kind, locator, e)
                continue
            if handles:
                logger.debug("[%s] resolved via %s: %s", self.name, kind, locator)
                return AttemptOutcome.succeeded(self.confidence, locator)
        return AttemptOutcome.failed()


class AccessibilityTreeStrategy(BaseHealingStrategy):
    """Search the accessibility tree for the descriptor hidden in the locator."""

    name = "accessibility_tree"
    priority = 9.5
    confidence_scale = 0.9

    def __init__(
        self,
        matcher: AccessibilityMatcher,
        config: Optional[HealingConfig] = None,
    ) -> None:
        super().__init__(config)
        self.matcher = matcher

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        descriptor = extract_descriptor_from_locator(context.original_reference)
        if not descriptor:
            return AttemptOutcome.failed()
        match = await self.matcher.find_element(context.surface, descriptor)
        if match is None:
            return AttemptOutcome.failed()
        locator = await _locator_for(match, context)
        return AttemptOutcome.succeeded(match.confidence * self.confidence_scale, locator)


class ElementFingerprintStrategy(BaseHealingStrategy):
    """Re-locate the element from its stored structural fingerprint."""

    name = "element_fingerprint"
    priority = 9.2

    def __init__(
        self,
        store: FingerprintStore,
        matcher: FingerprintMatcher,
        config: Optional[HealingConfig] = None,
    ) -> None:
        super().__init__(config)
        self.store = store
        self.matcher = matcher

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        key = self.matcher.generate_key(context.url, context.original_reference)
        fingerprint = self.store.get(key)
        if fingerprint is None:
            logger.debug("[%s] no fingerprint stored for %s", self.name, key)
            return AttemptOutcome.failed()
        match = await self.matcher.self_heal(context.surface, fingerprint)
        if match is None:
            return AttemptOutcome.failed()
        locator = await _locator_for(match, context)
        return AttemptOutcome.succeeded(match.confidence, locator)


async def _locator_for(match: ElementMatch, context: HealingContext) -> str:
    if match.locator:
        return match.locator
    return await generate_selector(context.surface, match.element)
