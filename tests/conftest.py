"""Pytest configuration for the robot-heal test suite."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from robotheal.domains.healing import SurfaceAction
from robotheal.models.config_models import HealingConfig


class FakeSurface:
    """In-memory InteractiveSurface.

    ``elements`` maps locators to the handles resolve() returns.
    ``visible`` lists targets reported visible by IS_VISIBLE.
    ``failing`` maps actions to the exception perform() raises for them.
    Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        elements: Optional[Dict[str, List[Any]]] = None,
        visible: Optional[List[Any]] = None,
        failing: Optional[Dict[SurfaceAction, BaseException]] = None,
        evaluate_result: Any = None,
    ) -> None:
        self.elements = dict(elements or {})
        self.visible = list(visible or [])
        self.failing = dict(failing or {})
        self.evaluate_result = evaluate_result
        self.calls: List[Tuple[str, Any, Any]] = []

    async def resolve(self, locator: str) -> List[Any]:
        self.calls.append(("resolve", locator, None))
        return list(self.elements.get(locator, []))

    async def perform(
        self,
        action: SurfaceAction,
        target: Any,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        self.calls.append((action.value, target, options))
        if action in self.failing:
            raise self.failing[action]
        if action == SurfaceAction.IS_VISIBLE:
            return target in self.visible
        if action == SurfaceAction.EVALUATE:
            return self.evaluate_result
        return True

    def performed(self, action: SurfaceAction) -> List[Tuple[str, Any, Any]]:
        return [c for c in self.calls if c[0] == action.value]


@pytest.fixture
def fast_config() -> HealingConfig:
    """Configuration without settling pauses so strategy tests run instantly."""
    return HealingConfig(
        settle_delay=0,
        scroll_settle_delay=0,
        modal_settle_delay=0,
        attempt_timeout=2.0,
    )


@pytest.fixture
def surface_factory():
    """Build FakeSurface instances with per-test element maps."""
    return FakeSurface
