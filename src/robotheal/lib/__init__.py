"""HealingLibrary - self-healing keywords for Robot Framework.

Heals failing Browser Library locators at run time and exposes the
healing history and statistics as keywords.
"""

from robotheal.lib.HealingLibrary import HealingLibrary

__all__ = ["HealingLibrary"]
