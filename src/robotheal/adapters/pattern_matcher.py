"""Selector-table pattern matcher.

A PatternMatcher that knows a handful of generic UI patterns as ordered
selector lists. Earlier selectors are more specific, so matches found
through them score higher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from robotheal.domains.healing.value_objects import ElementMatch

logger = logging.getLogger(__name__)

# Confidence lost per step down a pattern's selector list
SELECTOR_RANK_PENALTY = 0.05


@dataclass(frozen=True)
class UIPattern:
    """A named UI pattern.

    Attributes:
        name: Lookup key (e.g. "close_button").
        selectors: Selectors tried in order, most specific first.
        confidence: Score of a match through the first selector.
    """
    name: str
    selectors: Tuple[str, ...]
    confidence: float = 0.85

    def score(self, selector_index: int) -> float:
        return max(0.0, self.confidence - SELECTOR_RANK_PENALTY * selector_index)


DEFAULT_PATTERNS: Tuple[UIPattern, ...] = (
    UIPattern(
        name="submit_button",
        selectors=(
            'button[type="submit"]',
            'input[type="submit"]',
            'button:has-text("Submit")',
            'button:has-text("Sign In")',
            'button:has-text("Login")',
        ),
        confidence=0.85,
    ),
    UIPattern(
        name="search_input",
        selectors=(
            'input[type="search"]',
            'input[name*="search"]',
            'input[placeholder*="search"]',
            'input[aria-label*="search"]',
            '[role="searchbox"]',
        ),
        confidence=0.9,
    ),
    UIPattern(
        name="modal_dialog",
        selectors=(
            '[role="dialog"]',
            '[role="alertdialog"]',
            ".modal",
            ".dialog",
            '[aria-modal="true"]',
        ),
        confidence=0.95,
    ),
    UIPattern(
        name="close_button",
        selectors=(
            'button[aria-label*="close"]',
            'button:has-text("×")',
            'button:has-text("Close")',
            "button.close",
            '[role="button"][aria-label*="dismiss"]',
        ),
        confidence=0.85,
    ),
    UIPattern(
        name="checkbox",
        selectors=('input[type="checkbox"]', '[role="checkbox"]'),
        confidence=0.95,
    ),
)


class SelectorPatternMatcher:
    """PatternMatcher resolving pattern selectors against a surface."""

    def __init__(self, patterns: Optional[Iterable[UIPattern]] = None) -> None:
        self._patterns: Dict[str, UIPattern] = {
            p.name: p for p in (DEFAULT_PATTERNS if patterns is None else patterns)
        }

    def register_pattern(self, pattern: UIPattern) -> None:
        self._patterns[pattern.name] = pattern
        logger.debug("Registered custom pattern: %s", pattern.name)

    @property
    def pattern_names(self) -> List[str]:
        return list(self._patterns)

    async def find_by_pattern(self, surface: Any, pattern_name: str) -> List[Any]:
        """All matching handles, best-scored first."""
        return [m.element for m in await self._match(surface, pattern_name)]

    async def get_best_match(self, surface: Any, pattern_name: str) -> Optional[ElementMatch]:
        matches = await self._match(surface, pattern_name)
        return matches[0] if matches else None

    async def _match(self, surface: Any, pattern_name: str) -> List[ElementMatch]:
        pattern = self._patterns.get(pattern_name)
        if pattern is None:
            logger.debug("Pattern not found: %s", pattern_name)
            return []

        matches: List[ElementMatch] = []
        for index, selector in enumerate(pattern.selectors):
            try:
                handles = await surface.resolve(selector)
            except Exception as e:
                logger.debug("Selector %s failed for pattern %s: %s", selector, pattern_name, e)
                continue
            score = pattern.score(index)
            # Only the first handle of a selector gets that selector as its locator.
            for position, handle in enumerate(handles):
                matches.append(ElementMatch(
                    element=handle,
                    confidence=score,
                    locator=selector if position == 0 else None,
                ))
        # sorted() is stable: equal scores keep selector order
        matches.sort(key=lambda m: -m.confidence)
        logger.debug("Found %d elements for pattern: %s", len(matches), pattern_name)
        return matches
