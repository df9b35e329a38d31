"""robot-heal - adaptive recovery for failed UI interactions.

When an element interaction fails, the healing engine classifies the
failure, tries a prioritized set of recovery strategies until one
yields a working reference, and keeps a bounded history of results for
effectiveness statistics.
"""

from robotheal.container import HealingContainer
from robotheal.domains.healing import (
    ElementDescriptor,
    HealingOrchestrator,
    HealingResult,
    HealingStatistics,
    InteractionContext,
    StrategyCatalog,
    build_default_catalog,
)
from robotheal.models.config_models import HealingConfig

__version__ = "0.1.0"

__all__ = [
    "HealingConfig",
    "HealingContainer",
    "ElementDescriptor",
    "HealingOrchestrator",
    "HealingResult",
    "HealingStatistics",
    "InteractionContext",
    "StrategyCatalog",
    "build_default_catalog",
    "__version__",
]
