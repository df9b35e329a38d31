"""Descriptor decomposition helpers.

Turn locators and candidate descriptors into the pieces the identity
and heuristic strategies search with: a human-readable descriptor
extracted from a locator string, alternative stable locators derived
from an ElementDescriptor, and a selector for a matched handle.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Optional, Tuple

from .value_objects import ElementDescriptor, SurfaceAction

logger = logging.getLogger(__name__)

FALLBACK_SELECTOR = "*"

# Evaluated in the page against a matched element handle.
SELECTOR_SCRIPT = """(el) => {
    if (el.id) return `#${el.id}`;
    const testId = el.getAttribute('data-testid');
    if (testId) return `[data-testid="${testId}"]`;
    if (typeof el.className === 'string') {
        const classes = el.className.split(' ').filter((c) => c.length > 0);
        if (classes.length > 0) return `.${classes.join('.')}`;
    }
    const tag = el.tagName.toLowerCase();
    const name = el.getAttribute('name');
    if (name) return `${tag}[name="${name}"]`;
    return tag;
}"""

# (pattern, humanize) pairs tried in order; humanize turns dashes and
# underscores of id-like values into spaces.
_DESCRIPTOR_PATTERNS: Tuple[Tuple[re.Pattern, bool], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), humanize)
    for pattern, humanize in (
        (r"text[=:]?\s*[\"']([^\"']+)[\"']", False),
        (r":has-text\([\"']([^\"']+)[\"']\)", False),
        (r"\[aria-label=[\"']([^\"']+)[\"']\]", False),
        (r"\[placeholder=[\"']([^\"']+)[\"']\]", False),
        (r"\[title=[\"']([^\"']+)[\"']\]", False),
        (r"\[name=[\"']([^\"']+)[\"']\]", False),
        (r"^#([\w-]+)$", True),
        (r"^\.([\w-]+)$", True),
        (r"\[data-(?:testid|test-id|cy)=[\"']([^\"']+)[\"']\]", True),
    )
)


def extract_descriptor_from_locator(locator: str) -> Optional[str]:
    """Extract a human-readable descriptor from a CSS/Playwright locator.

    Examples:
        >>> extract_descriptor_from_locator('text="Sign in"')
        'Sign in'
        >>> extract_descriptor_from_locator('#submit-order')
        'submit order'
        >>> extract_descriptor_from_locator('div > span:nth-child(2)') is None
        True
    """
    if not locator:
        return None
    stripped = locator.strip()
    for pattern, humanize in _DESCRIPTOR_PATTERNS:
        match = pattern.search(stripped)
        if match:
            value = match.group(1)
            return re.sub(r"[-_]", " ", value) if humanize else value
    return None


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def alternative_locators(descriptor: Optional[ElementDescriptor]) -> List[Tuple[str, str]]:
    """Alternative stable locators for the same logical element.

    Preference order is fixed: test id, ARIA label, role, visible text.
    Returns (kind, locator) pairs; kinds without a value are skipped.
    """
    if descriptor is None:
        return []
    candidates: List[Tuple[str, str]] = []
    test_id = descriptor.resolved_test_id
    if test_id:
        candidates.append(("test_id", f'[data-testid="{_quote(test_id)}"]'))
    if descriptor.aria_label:
        candidates.append(("aria_label", f'[aria-label="{_quote(descriptor.aria_label)}"]'))
    role = descriptor.resolved_role
    if role:
        candidates.append(("role", f'[role="{_quote(role)}"]'))
    text = descriptor.visible_text.strip()
    if text:
        candidates.append(("text", f'text="{_quote(text)}"'))
    return candidates


def infer_pattern_name(descriptor: Optional[ElementDescriptor]) -> Optional[str]:
    """Generic UI pattern implied by a descriptor, if any."""
    if descriptor is None:
        return None
    if descriptor.tag_name == "button":
        return "submit_button"
    if descriptor.input_type == "search":
        return "search_input"
    if descriptor.resolved_role == "checkbox":
        return "checkbox"
    return None


async def generate_selector(surface: Any, handle: Any) -> str:
    """Build a selector for a matched handle by evaluating SELECTOR_SCRIPT.

    Falls back to "*" when evaluation fails or returns nothing usable.
    """
    try:
        selector = await surface.perform(
            SurfaceAction.EVALUATE, handle, {"script": SELECTOR_SCRIPT}
        )
    except Exception as e:
        logger.debug("Selector generation failed: %s", e)
        return FALLBACK_SELECTOR
    if isinstance(selector, str) and selector:
        return selector
    return FALLBACK_SELECTOR
