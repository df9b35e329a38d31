"""HealingLibrary - self-healing keywords for Robot Framework.

Wraps Browser Library interactions so that a failing locator is
repaired by the healing engine and the step retried:
- Run Keyword With Healing: run a locator keyword, heal and retry on failure
- Heal Failed Interaction: heal a locator whose interaction already failed

And exposes the engine's bookkeeping:
- Get Healing History / Get Healing Statistics
- Log Healing Statistics / Clear Healing History
"""

import asyncio
import logging
from typing import Any, Dict, FrozenSet, List, Optional

from robot.api import logger as rf_logger
from robot.api.deco import keyword, library

from robotheal.adapters.browser_library_adapter import (
    BrowserLibrarySurface,
    BuiltInKeywordRunner,
)
from robotheal.container import HealingContainer
from robotheal.domains.healing import (
    ElementDescriptor,
    HealingResult,
    InteractionContext,
)
from robotheal.domains.healing.strategies import ForceClickStrategy
from robotheal.models.config_models import HealingConfig

logger = logging.getLogger(__name__)


def _is_click_keyword(name: str) -> bool:
    """True for Click, Browser.Click, Click With Options, click_element ..."""
    normalized = name.rsplit(".", 1)[-1].lower().replace(" ", "").replace("_", "")
    return normalized.startswith("click")


@library(scope="GLOBAL", version="0.1.0", doc_format="ROBOT")
class HealingLibrary:
    """Self-healing locators for Browser Library tests.

    When an interaction fails because its locator no longer matches a
    usable element, the library classifies the failure, tries a
    prioritized set of recovery strategies and, on success, retries the
    interaction with the healed locator.

    = Configuration =

    Defaults come from ``ROBOTHEAL_*`` environment variables and can be
    overridden by import arguments:

    | *** Settings ***
    | Library    Browser
    | Library    robotheal.lib.HealingLibrary
    | ...    history_limit=20
    | ...    attempt_timeout=10

    = Examples =

    | *** Test Cases ***
    | Submit Order
    |     Run Keyword With Healing    Click    css=#submit-order
    |     ${stats}=    Get Healing Statistics
    |     Should Be True    ${stats}[success_rate] > 0
    """

    ROBOT_LIBRARY_SCOPE = "GLOBAL"
    ROBOT_LIBRARY_VERSION = "0.1.0"

    def __init__(
        self,
        always_run_threshold: Optional[float] = None,
        history_limit: Optional[int] = None,
        record_failures: Optional[bool] = None,
        attempt_timeout: Optional[float] = None,
        container: Optional[HealingContainer] = None,
        builtin: Any = None,
    ):
        """Initialize HealingLibrary.

        Args:
            always_run_threshold: Priority at or above which a strategy
                always runs for healable failures
            history_limit: Results kept per original locator
            record_failures: Also keep unsuccessful results in history
            attempt_timeout: Seconds allowed per strategy attempt
            container: Pre-wired HealingContainer (mainly for tests)
            builtin: BuiltIn instance used to run keywords (mainly for tests)
        """
        if container is None:
            config = HealingConfig.from_env()
            overrides = {
                "always_run_threshold": always_run_threshold,
                "history_limit": history_limit,
                "record_failures": record_failures,
                "attempt_timeout": attempt_timeout,
            }
            config.update(**{k: v for k, v in overrides.items() if v is not None})
            container = HealingContainer(config=config)

        self._container = container
        self._builtin = builtin
        self._surface: Optional[BrowserLibrarySurface] = None

    @property
    def orchestrator(self):
        return self._container.orchestrator

    # ============================================================
    # Healing keywords
    # ============================================================

    @keyword("Run Keyword With Healing")
    def run_keyword_with_healing(self, name: str, locator: str, *args: Any) -> Any:
        """Run a locator keyword and heal the locator if the keyword fails.

        The locator is passed as the first argument of ``name``. When the
        keyword fails and healing succeeds, it is run once more with the
        healed locator. When healing fails, the original error is raised.

        A forced click already performs the interaction, so when it heals a
        click keyword the keyword is not run again. For any other keyword
        forced clicking is never attempted.

        | =Arguments= | =Description= |
        | name | Keyword taking a locator as its first argument |
        | locator | The locator to use (and heal if needed) |
        | args | Remaining keyword arguments |

        = Examples =
        | Run Keyword With Healing | Click | css=#submit-order |
        | Run Keyword With Healing | Fill Text | id=email | user@example.com |
        """
        builtin = self._get_builtin()
        is_click = _is_click_keyword(name)
        try:
            return builtin.run_keyword(name, locator, *args)
        except Exception as error:
            rf_logger.info(f"HealingLibrary: '{name}' failed on {locator}, healing")
            excluded = frozenset() if is_click else frozenset({ForceClickStrategy.name})
            result = self._heal(
                error, locator, step=f"{name} {locator}", excluded_strategies=excluded
            )
            if not result.success:
                rf_logger.warn(
                    f"HealingLibrary: could not heal {locator} ({result.strategy_name})"
                )
                raise

        rf_logger.info(
            f"HealingLibrary: healed {locator} -> {result.healed_reference} "
            f"via {result.strategy_name} (confidence {result.confidence:.2f})"
        )
        if is_click and result.strategy_name == ForceClickStrategy.name:
            return None
        return builtin.run_keyword(name, result.healed_reference, *args)

    @keyword("Heal Failed Interaction")
    def heal_failed_interaction(
        self,
        locator: str,
        error_message: str,
        step: str = "",
        descriptor: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Heal a locator whose interaction has already failed.

        Returns the healing result as a dictionary with ``success``,
        ``strategy``, ``confidence``, ``healed_reference`` and ``attempts``.
        This keyword never fails; check ``success`` instead.

        | =Arguments= | =Description= |
        | locator | The locator that failed |
        | error_message | Error text of the failure |
        | step | Optional step description for logs |
        | descriptor | Optional element features (tagName, text, ariaLabel, ...) |

        = Examples =
        | ${status}    ${error}= | Run Keyword And Ignore Error | Click | css=#buy |
        | ${result}= | Heal Failed Interaction | css=#buy | ${error} |
        | Click | ${result}[healed_reference] |
        """
        element = ElementDescriptor.model_validate(descriptor) if descriptor else None
        result = self._heal(
            RuntimeError(error_message), locator, step=step, descriptor=element
        )
        return result.to_dict()

    # ============================================================
    # Bookkeeping keywords
    # ============================================================

    @keyword("Get Healing History")
    def get_healing_history(self, locator: str) -> List[Dict[str, Any]]:
        """Return recorded results for ``locator``, oldest first."""
        return [r.to_dict() for r in self.orchestrator.get_healing_history(locator)]

    @keyword("Get Healing Statistics")
    def get_healing_statistics(self) -> Dict[str, Any]:
        """Return aggregate statistics over the whole healing history.

        Keys: ``total_healings``, ``success_rate``, ``average_confidence``,
        ``average_attempts`` and ``strategy_effectiveness``.
        """
        return self.orchestrator.get_statistics().to_dict()

    @keyword("Log Healing Statistics")
    def log_healing_statistics(self) -> None:
        stats = self.orchestrator.get_statistics()
        rf_logger.info(
            f"Healing: {stats.total_healings} results, "
            f"success rate {stats.success_rate:.0%}, "
            f"average confidence {stats.average_confidence:.2f}"
        )
        for name, effectiveness in sorted(stats.strategy_effectiveness.items()):
            rf_logger.info(
                f"  {name}: {effectiveness.successes}/{effectiveness.attempts}"
            )

    @keyword("Clear Healing History")
    def clear_healing_history(self) -> None:
        self.orchestrator.clear_history()
        rf_logger.info("HealingLibrary: history cleared")

    # ============================================================
    # Internals
    # ============================================================

    def _get_builtin(self) -> Any:
        if self._builtin is None:
            from robot.libraries.BuiltIn import BuiltIn

            self._builtin = BuiltIn()
        return self._builtin

    def _get_surface(self) -> BrowserLibrarySurface:
        if self._surface is None:
            runner = BuiltInKeywordRunner(self._get_builtin())
            self._surface = BrowserLibrarySurface(runner)
        return self._surface

    def _current_url(self) -> str:
        try:
            return str(self._get_builtin().run_keyword("Get Url") or "")
        except Exception as e:
            logger.debug(f"Could not read current URL: {e}")
            return ""

    def _heal(
        self,
        error: BaseException,
        locator: str,
        step: str = "",
        descriptor: Optional[ElementDescriptor] = None,
        excluded_strategies: FrozenSet[str] = frozenset(),
    ) -> HealingResult:
        interaction = InteractionContext(
            locator=locator,
            surface=self._get_surface(),
            step=step,
            url=self._current_url(),
            descriptor=descriptor,
            excluded_strategies=excluded_strategies,
        )

        # Run async healing on a private loop; keywords execute synchronously
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(self.orchestrator.heal(error, interaction))
        finally:
            loop.close()

        rf_logger.debug(f"HealingLibrary result: {result.to_dict()}")
        return result
