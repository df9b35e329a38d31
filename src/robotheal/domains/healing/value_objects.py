"""Healing Domain Value Objects.

Immutable types that carry no identity. Equality is structural.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class HealingOutcome(str, enum.Enum):
    """Reserved strategy names reported when no real strategy healed.

    NONE: the classifier judged the failure unhealable.
    ALL_FAILED: every eligible strategy was tried and none succeeded.
    ERROR: classification (or orchestrator bookkeeping) raised.
    """
    NONE = "none"
    ALL_FAILED = "all_failed"
    ERROR = "error"


RESERVED_STRATEGY_NAMES: FrozenSet[str] = frozenset(o.value for o in HealingOutcome)


class SurfaceAction(str, enum.Enum):
    """Primitive interactions a strategy may request from the surface."""
    CLICK = "click"
    SCROLL_INTO_VIEW = "scroll-into-view"
    WAIT_FOR_VISIBLE = "wait-for-visible"
    IS_VISIBLE = "is-visible"
    PRESS = "press"
    EVALUATE = "evaluate"


class FailureType(str, enum.Enum):
    """Failure taxonomy produced by classifiers."""
    ELEMENT_NOT_FOUND = "ElementNotFound"
    ELEMENT_NOT_VISIBLE = "ElementNotVisible"
    ELEMENT_NOT_INTERACTIVE = "ElementNotInteractive"
    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"
    JAVASCRIPT_ERROR = "JavaScriptError"
    MODAL_BLOCKING = "ModalBlocking"
    UNEXPECTED_STATE = "UnexpectedState"
    UNKNOWN = "Unknown"


# ============================================================
# Candidate descriptor
# ============================================================


def _blank_if_none(v: Any) -> Any:
    """Browser-side feature dumps use null for missing attributes."""
    return "" if v is None else v


def _normalize_tag(v: Any) -> Any:
    if v is None:
        return ""
    return v.strip().lower() if isinstance(v, str) else v


DescriptorText = Annotated[str, BeforeValidator(_blank_if_none)]
TagName = Annotated[str, BeforeValidator(_normalize_tag)]


class ElementDescriptor(BaseModel):
    """Structured features of the element the step originally expected.

    Accepts both snake_case names and the camelCase keys produced by
    in-page feature extraction scripts::

        ElementDescriptor.model_validate({"tagName": "BUTTON", "ariaLabel": "Save"})
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    tag_name: TagName = Field(default="", alias="tagName")
    visible_text: DescriptorText = Field(default="", alias="visibleText")
    aria_label: DescriptorText = Field(default="", alias="ariaLabel")
    role: DescriptorText = ""
    test_id: DescriptorText = Field(default="", alias="testId")
    input_type: DescriptorText = Field(default="", alias="inputType")
    placeholder: DescriptorText = ""
    title: DescriptorText = ""
    name: DescriptorText = ""
    element_id: DescriptorText = Field(default="", alias="id")
    attributes: Dict[str, str] = Field(default_factory=dict)

    @property
    def resolved_test_id(self) -> str:
        """Test id from the dedicated field or the raw data-testid attribute."""
        return self.test_id or self.attributes.get("data-testid", "")

    @property
    def resolved_role(self) -> str:
        return self.role or self.attributes.get("role", "")


# ============================================================
# Classifier output
# ============================================================


@dataclass(frozen=True)
class FailureAnalysis:
    """Read-only verdict from a FailureClassifier.

    Attributes:
        failure_type: Classified failure category.
        healable: Whether repair is plausible at all.
        suggested_strategy_names: Strategy names the classifier recommends.
            Names need not exist in the catalog.
        diagnostics: Page diagnostics gathered during analysis.
        root_cause: Human-readable explanation.
        confidence: Classifier's own certainty in the analysis.
    """
    failure_type: str
    healable: bool
    suggested_strategy_names: FrozenSet[str] = frozenset()
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    root_cause: str = ""
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failure_type": self.failure_type,
            "healable": self.healable,
            "suggested_strategy_names": sorted(self.suggested_strategy_names),
            "root_cause": self.root_cause,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ElementMatch:
    """An element proposed by a matcher together with its score.

    Attributes:
        element: Surface handle of the matched element.
        confidence: Matcher-local score in [0, 1].
        locator: Selector for the element when the matcher already knows one.
    """
    element: Any
    confidence: float
    locator: Optional[str] = None


# ============================================================
# Strategy and orchestrator results
# ============================================================


def _check_confidence(confidence: float) -> None:
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"Confidence must be within [0, 1], got {confidence}")


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of a single strategy attempt.

    Confidence is local to the strategy that produced it and is not
    comparable across strategy types.
    """
    success: bool
    confidence: float = 0.0
    candidate_reference: Optional[str] = None
    elapsed_ms: int = 0

    def __post_init__(self) -> None:
        _check_confidence(self.confidence)

    @classmethod
    def succeeded(
        cls,
        confidence: float,
        candidate_reference: Optional[str] = None,
        elapsed_ms: int = 0,
    ) -> AttemptOutcome:
        return cls(
            success=True,
            confidence=confidence,
            candidate_reference=candidate_reference,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def failed(cls, elapsed_ms: int = 0) -> AttemptOutcome:
        return cls(success=False, confidence=0.0, elapsed_ms=elapsed_ms)


@dataclass(frozen=True)
class HealingResult:
    """Final, immutable outcome of one heal() call.

    Invariants:
        - success implies healed_reference is set.
        - success implies strategy_name is a real strategy, never one of
          the reserved HealingOutcome names.
    """
    success: bool
    strategy_name: str
    original_reference: str
    confidence: float = 0.0
    healed_reference: Optional[str] = None
    attempt_count: int = 0
    elapsed_ms: int = 0
    diagnostic_context: Dict[str, Any] = field(default_factory=dict)
    failure_type: Optional[str] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        _check_confidence(self.confidence)
        if self.attempt_count < 0:
            raise ValueError(f"attempt_count cannot be negative, got {self.attempt_count}")
        if self.success:
            if self.healed_reference is None:
                raise ValueError("A successful HealingResult requires healed_reference")
            if self.strategy_name in RESERVED_STRATEGY_NAMES:
                raise ValueError(
                    f"A successful HealingResult cannot use reserved name '{self.strategy_name}'"
                )

    @classmethod
    def unsuccessful(
        cls,
        outcome: HealingOutcome,
        original_reference: str,
        attempt_count: int = 0,
        elapsed_ms: int = 0,
        diagnostic_context: Optional[Dict[str, Any]] = None,
        failure_type: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> HealingResult:
        return cls(
            success=False,
            strategy_name=outcome.value,
            original_reference=original_reference,
            attempt_count=attempt_count,
            elapsed_ms=elapsed_ms,
            diagnostic_context=dict(diagnostic_context or {}),
            failure_type=failure_type,
            error_message=error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "success": self.success,
            "strategy": self.strategy_name,
            "confidence": self.confidence,
            "original_reference": self.original_reference,
            "attempts": self.attempt_count,
            "elapsed_ms": self.elapsed_ms,
        }
        if self.healed_reference is not None:
            d["healed_reference"] = self.healed_reference
        if self.failure_type:
            d["failure_type"] = self.failure_type
        if self.error_message:
            d["error"] = self.error_message
        return d


# ============================================================
# Statistics
# ============================================================


@dataclass(frozen=True)
class StrategyEffectiveness:
    """Per-strategy tally derived from history."""
    attempts: int = 0
    successes: int = 0

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.successes / self.attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "success_rate": self.success_rate,
        }


@dataclass(frozen=True)
class HealingStatistics:
    """Aggregate view over the healing history.

    All values are zero and strategy_effectiveness is empty when
    the history is empty.
    """
    total_healings: int = 0
    success_rate: float = 0.0
    average_confidence: float = 0.0
    average_attempts: float = 0.0
    strategy_effectiveness: Dict[str, StrategyEffectiveness] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_healings": self.total_healings,
            "success_rate": self.success_rate,
            "average_confidence": self.average_confidence,
            "average_attempts": self.average_attempts,
            "strategy_effectiveness": {
                name: stats.to_dict()
                for name, stats in self.strategy_effectiveness.items()
            },
        }
