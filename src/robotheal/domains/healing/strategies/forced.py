"""Forced interaction, the last-resort strategy."""
from __future__ import annotations

from ..entities import HealingContext
from ..value_objects import AttemptOutcome, SurfaceAction
from .base import BaseHealingStrategy, timeout_options


class ForceClickStrategy(BaseHealingStrategy):
    """Click the original reference bypassing actionability checks.

    Confidence stays low: a forced click working does not explain why
    the normal interaction failed.
    """

    name = "force_click"
    priority = 1
    confidence = 0.5

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        target = context.original_reference
        await context.surface.perform(
            SurfaceAction.CLICK, target,
            timeout_options(context.budget(self.config.force_click_timeout), force=True),
        )
        return AttemptOutcome.succeeded(self.confidence, target)
