"""Actionability repair strategies.

The element identity is assumed correct; only timing or viewport
visibility is at issue, so the original reference is kept.
"""
from __future__ import annotations

from ..entities import HealingContext
from ..value_objects import AttemptOutcome, SurfaceAction
from .base import BaseHealingStrategy, timeout_options


class ScrollIntoViewStrategy(BaseHealingStrategy):
    """Scroll the target into view, let the animation settle, re-check visibility."""

    name = "scroll_into_view"
    priority = 9
    confidence = 0.85

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        target = context.original_reference
        await context.surface.perform(
            SurfaceAction.SCROLL_INTO_VIEW, target,
            timeout_options(context.budget(self.config.scroll_timeout)),
        )
        await self._settle(self.config.scroll_settle_delay)
        if await self._is_visible(context, target):
            return AttemptOutcome.succeeded(self.confidence, target)
        return AttemptOutcome.failed()


class WaitForVisibleStrategy(BaseHealingStrategy):
    """Wait, bounded, for the target to become visible."""

    name = "wait_for_visible"
    priority = 8
    confidence = 0.75

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        target = context.original_reference
        await context.surface.perform(
            SurfaceAction.WAIT_FOR_VISIBLE, target,
            timeout_options(context.budget(self.config.visible_timeout)),
        )
        return AttemptOutcome.succeeded(self.confidence, target)
