"""Data models shared across the package."""

from robotheal.models.config_models import HealingConfig

__all__ = ["HealingConfig"]
