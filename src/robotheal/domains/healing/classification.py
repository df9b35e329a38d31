"""Pattern-based failure classification.

A default FailureClassifier: error messages are tested against
prioritized regex patterns, page diagnostics are consulted when the
message is inconclusive, and each failure type maps to a healability
verdict and a list of suggested strategy names.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .entities import InteractionContext
from .value_objects import FailureAnalysis, FailureType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorPattern:
    """Maps an error message regex pattern to a FailureType.

    Attributes:
        failure_type: The failure category this pattern detects.
        pattern: Compiled regex (case-insensitive matching).
        priority: Higher values are matched first; ties keep
            registration order.
    """
    failure_type: FailureType
    pattern: re.Pattern  # type: ignore[type-arg]
    priority: int = 0

    @classmethod
    def from_string(
        cls,
        failure_type: FailureType,
        pattern_str: str,
        priority: int = 0,
    ) -> ErrorPattern:
        """Convenience factory from a raw regex string."""
        return cls(
            failure_type=failure_type,
            pattern=re.compile(pattern_str, re.IGNORECASE),
            priority=priority,
        )


DEFAULT_PATTERNS: Tuple[Tuple[FailureType, str, int], ...] = (
    (FailureType.TIMEOUT, r"timeout|timed out|exceeded", 10),
    (FailureType.ELEMENT_NOT_FOUND, r"not found|no element|unable to locate|did not match", 9),
    (FailureType.ELEMENT_NOT_VISIBLE, r"not visible|hidden|outside of the viewport", 8),
    (
        FailureType.ELEMENT_NOT_INTERACTIVE,
        r"not clickable|not interactable|intercepts pointer|click intercepted|"
        r"other element would receive|not enabled",
        7,
    ),
    (FailureType.MODAL_BLOCKING, r"modal|dialog is open|unexpected alert", 6),
    (
        FailureType.UNEXPECTED_STATE,
        r"stale element|not attached to (?:the )?(?:page|dom)|detached",
        6,
    ),
)

HEALABLE_TYPES: FrozenSet[FailureType] = frozenset({
    FailureType.ELEMENT_NOT_FOUND,
    FailureType.ELEMENT_NOT_VISIBLE,
    FailureType.ELEMENT_NOT_INTERACTIVE,
    FailureType.MODAL_BLOCKING,
    FailureType.TIMEOUT,
    FailureType.UNEXPECTED_STATE,
})

# Some suggestions name strategies a catalog may not register; the
# orchestrator ignores those.
SUGGESTED_STRATEGIES: Dict[FailureType, Tuple[str, ...]] = {
    FailureType.ELEMENT_NOT_FOUND: (
        "alternative_locators", "text_based_search", "visual_similarity", "dom_traversal",
    ),
    FailureType.ELEMENT_NOT_VISIBLE: (
        "scroll_into_view", "wait_for_visible", "check_display_none",
    ),
    FailureType.ELEMENT_NOT_INTERACTIVE: (
        "remove_overlays", "wait_for_enabled", "force_click",
    ),
    FailureType.MODAL_BLOCKING: ("close_modal", "dismiss_overlay", "handle_popup"),
    FailureType.TIMEOUT: ("increase_timeout", "wait_for_network_idle", "retry_with_polling"),
    FailureType.UNEXPECTED_STATE: (
        "alternative_locators", "element_fingerprint", "pattern_based_search",
    ),
}

_NETWORK_MARKERS = ("network", "fetch")
_SCRIPT_MARKERS = ("javascript", "script error")


class PatternFailureClassifier:
    """Classify failures from the error text and page diagnostics.

    Diagnostics are a plain mapping; ``page_errors`` (list of strings or
    dicts with a ``message`` key) and ``failed_requests`` (count or list)
    are consulted when present.
    """

    def __init__(self, patterns: Optional[Iterable[ErrorPattern]] = None) -> None:
        if patterns is None:
            patterns = [ErrorPattern.from_string(*p) for p in DEFAULT_PATTERNS]
        self._patterns: List[ErrorPattern] = list(patterns)

    def register_pattern(self, pattern: ErrorPattern) -> None:
        """Register a custom error pattern."""
        self._patterns.append(pattern)

    @property
    def pattern_count(self) -> int:
        return len(self._patterns)

    def analyze(self, error: BaseException, context: InteractionContext) -> FailureAnalysis:
        diagnostics = dict(getattr(context, "diagnostics", None) or {})
        message = str(error)
        failure_type = self.classify(message, diagnostics)
        healable = failure_type in HEALABLE_TYPES
        suggested = frozenset(SUGGESTED_STRATEGIES.get(failure_type, ()))
        root_cause = _root_cause(failure_type, message, diagnostics)
        logger.debug(
            "Classified '%s' as %s (healable=%s)", message[:120], failure_type.value, healable,
        )
        return FailureAnalysis(
            failure_type=failure_type.value,
            healable=healable,
            suggested_strategy_names=suggested,
            diagnostics=diagnostics,
            root_cause=root_cause,
            confidence=_confidence(failure_type, diagnostics, len(suggested)),
        )

    def classify(
        self, error_message: str, diagnostics: Optional[Mapping[str, Any]] = None
    ) -> FailureType:
        """Patterns are evaluated in descending priority; first match wins.

        Without a pattern match, page errors decide between network and
        JavaScript failures; otherwise the result is UNKNOWN.
        """
        for pattern in sorted(self._patterns, key=lambda p: -p.priority):
            if pattern.pattern.search(error_message):
                return pattern.failure_type

        page_errors = [m.lower() for m in _page_error_messages(diagnostics or {})]
        if any(marker in m for m in page_errors for marker in _NETWORK_MARKERS):
            return FailureType.NETWORK_ERROR
        if any(marker in m for m in page_errors for marker in _SCRIPT_MARKERS):
            return FailureType.JAVASCRIPT_ERROR
        return FailureType.UNKNOWN


def _page_error_messages(diagnostics: Mapping[str, Any]) -> List[str]:
    messages = []
    for entry in diagnostics.get("page_errors") or ():
        if isinstance(entry, Mapping):
            messages.append(str(entry.get("message", "")))
        else:
            messages.append(str(entry))
    return messages


def _count(value: Any) -> int:
    if isinstance(value, int):
        return value
    return len(value) if value else 0


def _root_cause(failure_type: FailureType, message: str, diagnostics: Mapping[str, Any]) -> str:
    errors = len(_page_error_messages(diagnostics))
    failed_requests = _count(diagnostics.get("failed_requests"))
    if failure_type == FailureType.ELEMENT_NOT_FOUND:
        detail = f"{errors} page errors detected." if errors else "No page errors."
        return f"Element not found. {detail}"
    if failure_type == FailureType.ELEMENT_NOT_VISIBLE:
        return "Element not visible. May need to scroll or wait for element."
    if failure_type == FailureType.ELEMENT_NOT_INTERACTIVE:
        return "Element not interactable. May be blocked by overlay or modal."
    if failure_type == FailureType.MODAL_BLOCKING:
        return "Modal blocking interaction."
    if failure_type == FailureType.TIMEOUT:
        return f"Operation timed out. {failed_requests} failed requests. {errors} page errors."
    if failure_type == FailureType.NETWORK_ERROR:
        return f"Network error detected. {failed_requests} failed requests."
    if failure_type == FailureType.JAVASCRIPT_ERROR:
        return f"JavaScript error detected. {errors} page errors."
    if failure_type == FailureType.UNEXPECTED_STATE:
        return "Element reference went stale after a page change."
    return f"Unknown failure: {message}"


def _confidence(failure_type: FailureType, diagnostics: Mapping[str, Any], suggestions: int) -> float:
    confidence = 0.5
    if failure_type != FailureType.UNKNOWN:
        confidence += 0.2
    if diagnostics:
        confidence += 0.1
        if not _page_error_messages(diagnostics):
            confidence += 0.1
    if suggestions:
        confidence += 0.1 * min(suggestions / 3, 1)
    return min(confidence, 1.0)
