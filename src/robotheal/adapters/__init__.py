"""Adapters - Anti-Corruption Layer.

Concrete implementations of the healing domain's ports:

    BrowserLibrarySurface: InteractiveSurface over Browser Library keywords
    BuiltInKeywordRunner: KeywordRunner for the active Robot Framework run
    SelectorPatternMatcher: PatternMatcher backed by selector tables
"""

from robotheal.adapters.browser_library_adapter import (
    BrowserLibrarySurface,
    BuiltInKeywordRunner,
    KeywordRunner,
    SurfaceActionError,
)
from robotheal.adapters.pattern_matcher import SelectorPatternMatcher, UIPattern

__all__ = [
    "BrowserLibrarySurface",
    "BuiltInKeywordRunner",
    "KeywordRunner",
    "SurfaceActionError",
    "SelectorPatternMatcher",
    "UIPattern",
]
