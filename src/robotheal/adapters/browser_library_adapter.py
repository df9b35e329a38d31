"""Browser Library surface adapter.

Implements the InteractiveSurface protocol on top of Robot Framework's
Browser Library (Playwright-based) by running its keywords through a
KeywordRunner. The healing domain never imports Robot Framework itself.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from robotheal.domains.healing.value_objects import SurfaceAction

logger = logging.getLogger(__name__)


class SurfaceActionError(RuntimeError):
    """Raised when the surface cannot perform a requested action."""


@runtime_checkable
class KeywordRunner(Protocol):
    """Protocol for executing Robot Framework keywords (anti-corruption layer)."""

    async def run_keyword(
        self,
        keyword: str,
        args: List[Any],
        timeout: Optional[str] = None,
    ) -> Any: ...


class BuiltInKeywordRunner:
    """Runs keywords in the active Robot Framework execution context.

    Must be used from inside a running test; keywords execute
    synchronously on Robot Framework's own thread, so an awaiting
    asyncio.wait_for cannot interrupt them. A timeout is therefore
    handed to the driver: Browser's ``Set Browser Timeout`` is applied
    for the one call and the previous value restored afterwards.
    """

    SET_TIMEOUT_KEYWORD = "Set Browser Timeout"

    def __init__(self, builtin: Any = None) -> None:
        if builtin is None:
            from robot.libraries.BuiltIn import BuiltIn

            builtin = BuiltIn()
        self._builtin = builtin

    async def run_keyword(
        self,
        keyword: str,
        args: List[Any],
        timeout: Optional[str] = None,
    ) -> Any:
        logger.debug("Running keyword %s %s (timeout %s)", keyword, args, timeout)
        if timeout is None:
            return self._builtin.run_keyword(keyword, *args)
        previous = self._builtin.run_keyword(self.SET_TIMEOUT_KEYWORD, timeout)
        try:
            return self._builtin.run_keyword(keyword, *args)
        finally:
            if previous:
                self._builtin.run_keyword(self.SET_TIMEOUT_KEYWORD, previous)


def _ms(options: Dict[str, Any]) -> Optional[str]:
    timeout = options.get("timeout")
    return f"{int(timeout)}ms" if timeout is not None else None


class BrowserLibrarySurface:
    """InteractiveSurface backed by Browser Library keywords.

    Targets are Browser selectors (``css=``, ``text=``, ``id=`` ...) or
    element references returned by ``Get Elements``; both are accepted
    wherever Browser Library expects a selector.
    """

    # Mapping of SurfaceAction to Browser Library keywords
    ACTION_KEYWORD_MAP: Dict[SurfaceAction, str] = {
        SurfaceAction.CLICK: "Click With Options",
        SurfaceAction.SCROLL_INTO_VIEW: "Scroll To Element",
        SurfaceAction.WAIT_FOR_VISIBLE: "Wait For Elements State",
        SurfaceAction.IS_VISIBLE: "Get Element States",
        SurfaceAction.PRESS: "Keyboard Key",
        SurfaceAction.EVALUATE: "Evaluate JavaScript",
    }

    def __init__(self, keyword_runner: KeywordRunner) -> None:
        self._runner = keyword_runner

    async def resolve(self, locator: str) -> List[Any]:
        elements = await self._runner.run_keyword("Get Elements", [locator])
        return list(elements or [])

    async def perform(
        self,
        action: SurfaceAction,
        target: Any,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        options = dict(options or {})
        keyword = self.ACTION_KEYWORD_MAP.get(action)
        if keyword is None:
            raise SurfaceActionError(f"Unsupported surface action: {action}")
        timeout = _ms(options)

        if action == SurfaceAction.CLICK:
            args: List[Any] = [target, "left"]
            if options.get("force"):
                args.append("force=True")
            position = options.get("position")
            if position:
                args.append(f"position_x={position.get('x', 0)}")
                args.append(f"position_y={position.get('y', 0)}")
            await self._runner.run_keyword(keyword, args, timeout=timeout)
            return True

        if action == SurfaceAction.SCROLL_INTO_VIEW:
            await self._runner.run_keyword(keyword, [target], timeout=timeout)
            return True

        if action == SurfaceAction.WAIT_FOR_VISIBLE:
            args = [target, "visible"]
            if timeout:
                args.append(timeout)
            await self._runner.run_keyword(keyword, args, timeout=timeout)
            return True

        if action == SurfaceAction.IS_VISIBLE:
            states = await self._runner.run_keyword(keyword, [target], timeout=timeout)
            return "visible" in (states or ())

        if action == SurfaceAction.PRESS:
            key = options.get("key")
            if not key:
                raise SurfaceActionError("PRESS requires a 'key' option")
            await self._runner.run_keyword(keyword, ["press", key], timeout=timeout)
            return True

        script = options.get("script")
        if not script:
            raise SurfaceActionError("EVALUATE requires a 'script' option")
        return await self._runner.run_keyword(keyword, [target, script], timeout=timeout)
