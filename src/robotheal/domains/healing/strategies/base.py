"""Shared base for the built-in recovery strategies."""
from __future__ import annotations

import abc
import asyncio
import logging
import time
from typing import Any, ClassVar, Dict, Optional

from ..entities import HealingContext
from ..value_objects import AttemptOutcome, SurfaceAction
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


class BaseHealingStrategy(abc.ABC):
    """Template for strategies: timing, logging and failure conversion.

    Subclasses set ``name`` and ``priority`` and implement ``_attempt``.
    ``_attempt`` returns an AttemptOutcome (elapsed time is filled in
    here) or raises; surface errors and timeouts become failed outcomes.

    Collaborators are passed to the constructor so they can be swapped
    per run without touching strategy bodies.
    """

    name: ClassVar[str]
    priority: ClassVar[float]

    def __init__(self, config: Optional[HealingConfig] = None) -> None:
        self.config = config or HealingConfig()

    async def attempt(self, context: HealingContext) -> AttemptOutcome:
        start = time.monotonic()
        logger.debug("[%s] attempting on '%s'", self.name, context.original_reference)
        try:
            outcome = await self._attempt(context)
        except Exception as e:
            logger.debug("[%s] failed: %s", self.name, e)
            return AttemptOutcome.failed(elapsed_ms=_elapsed_ms(start))
        return AttemptOutcome(
            success=outcome.success,
            confidence=outcome.confidence,
            candidate_reference=outcome.candidate_reference,
            elapsed_ms=_elapsed_ms(start),
        )

    @abc.abstractmethod
    async def _attempt(self, context: HealingContext) -> AttemptOutcome:
        """Strategy body. May raise; the caller converts errors to failures."""

    async def _is_visible(self, context: HealingContext, target: Any) -> bool:
        return bool(await context.surface.perform(SurfaceAction.IS_VISIBLE, target))

    async def _settle(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


def timeout_options(seconds: float, **extra: Any) -> Dict[str, Any]:
    """Surface options with a timeout in milliseconds, as drivers expect."""
    options: Dict[str, Any] = {"timeout": int(seconds * 1000)}
    options.update(extra)
    return options


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
