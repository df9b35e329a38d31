"""Configuration data models."""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional


ENV_PREFIX = "ROBOTHEAL_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class HealingConfig:
    """Centralized configuration for the healing engine.

    Durations are in seconds.
    """

    # Strategy selection
    always_run_threshold: float = 7.0  # priority at which unsuggested strategies still run

    # History
    history_limit: int = 10  # results kept per original reference
    record_failures: bool = False  # also keep unsuccessful results in history

    # Per-attempt bound applied by the orchestrator around every strategy
    attempt_timeout: float = 15.0

    # Surface timeouts used by the built-in strategies
    scroll_timeout: float = 5.0
    visible_timeout: float = 10.0
    click_timeout: float = 2.0
    overlay_click_timeout: float = 1.0
    force_click_timeout: float = 5.0

    # Settling pauses after mutating the page
    settle_delay: float = 0.3
    scroll_settle_delay: float = 0.5
    modal_settle_delay: float = 0.5
    overlay_dismiss_rounds: int = 2

    # Acceptance thresholds for score-based strategies
    pattern_match_threshold: float = 0.6
    similarity_threshold: float = 0.7

    def __post_init__(self) -> None:
        if self.history_limit < 1:
            raise ValueError(f"history_limit must be at least 1, got {self.history_limit}")
        if self.attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be positive, got {self.attempt_timeout}")
        if self.overlay_dismiss_rounds < 0:
            raise ValueError(
                f"overlay_dismiss_rounds cannot be negative, got {self.overlay_dismiss_rounds}"
            )
        for name in ("pattern_match_threshold", "similarity_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "HealingConfig":
        """Create configuration from dictionary. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in config.items() if k in known})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HealingConfig":
        """Create configuration from ROBOTHEAL_* environment variables.

        ROBOTHEAL_HISTORY_LIMIT=20 sets history_limit, and so on.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _coerce(raw.strip(), f.default)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def update(self, **kwargs: Any) -> None:
        """Update configuration values; nothing changes if any value is invalid."""
        for key in kwargs:
            if not hasattr(self, key):
                raise ValueError(f"Unknown configuration key: {key}")
        validated = replace(self, **kwargs)
        for f in fields(self):
            setattr(self, f.name, getattr(validated, f.name))


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.lower() in _TRUE_VALUES
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
