"""Obstruction removal strategies.

Clear transient overlays and dialogs that intercept the interaction,
then check whether the original reference is usable again.
"""
from __future__ import annotations

import logging
from typing import Optional

from ..entities import HealingContext
from ..services import PatternMatcher
from ..value_objects import AttemptOutcome, SurfaceAction
from .base import BaseHealingStrategy, timeout_options
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)

DIALOG_LOCATOR = '[role="dialog"]'
CLOSE_BUTTON_PATTERN = "close_button"


class RemoveOverlaysStrategy(BaseHealingStrategy):
    """Click outside and press Escape, then re-check the original reference.

    Each dismiss action is best effort: a failed click or key press does
    not stop the remaining rounds.
    """

    name = "remove_overlays"
    priority = 7
    confidence = 0.7

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        surface = context.surface
        for _ in range(self.config.overlay_dismiss_rounds):
            try:
                await surface.perform(
                    SurfaceAction.CLICK, "body",
                    timeout_options(
                        context.budget(self.config.overlay_click_timeout),
                        position={"x": 0, "y": 0},
                    ),
                )
                await self._settle(self.config.settle_delay)
            except Exception as e:
                logger.debug("[%s] click outside failed: %s", self.name, e)
            try:
                await surface.perform(SurfaceAction.PRESS, None, {"key": "Escape"})
                await self._settle(self.config.settle_delay)
            except Exception as e:
                logger.debug("[%s] escape failed: %s", self.name, e)

        target = context.original_reference
        if await self._is_visible(context, target):
            return AttemptOutcome.succeeded(self.confidence, target)
        return AttemptOutcome.failed()


class CloseModalStrategy(BaseHealingStrategy):
    """Click close controls from the pattern matcher until no dialog is open.

    Candidates are tried in the order the matcher returns them; the first
    click that leaves zero open dialogs wins.
    """

    name = "close_modal"
    priority = 7
    confidence = 0.8

    def __init__(
        self,
        pattern_matcher: PatternMatcher,
        config: Optional[HealingConfig] = None,
    ) -> None:
        super().__init__(config)
        self.pattern_matcher = pattern_matcher

    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        surface = context.surface
        close_buttons = await self.pattern_matcher.find_by_pattern(
            surface, CLOSE_BUTTON_PATTERN
        )
        for button in close_buttons:
            try:
                await surface.perform(
                    SurfaceAction.CLICK, button,
                    timeout_options(context.budget(self.config.click_timeout)),
                )
                await self._settle(self.config.modal_settle_delay)
                open_dialogs = await surface.resolve(DIALOG_LOCATOR)
            except Exception as e:
                logger.debug("[%s] close control failed: %s", self.name, e)
                continue
            if not open_dialogs:
                return AttemptOutcome.succeeded(self.confidence, context.original_reference)
        return AttemptOutcome.failed()
