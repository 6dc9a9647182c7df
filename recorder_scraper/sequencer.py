import logging
import re
import time
from datetime import date
from typing import Callable, Dict, Sequence

from .date_formatter import DateFormatter
from .engine import PageHandle, SessionHandle
from .errors import ScrapeError, StepFailed
from .models import ActionResult, RunOutcome, ScrapeConfig, StepAction, WorkflowStep
from .resolver import ActionResolver

logger = logging.getLogger("recorder_scraper")


_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render(template: str, variables: Dict[str, str]) -> str:
    """
    Substitute {start_date}/{end_date}/{record_type} in a step template

    Braces that do not name a known variable are left as written, and
    substituted values are never re-parsed.
    """
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), m.group(0)), template)


class StepSequencer:
    """Runs the ordered steps of a site workflow against one browser session"""

    def __init__(
        self,
        resolver: ActionResolver,
        formatter: DateFormatter,
        navigation_timeout: float = 60.0,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the sequencer

        Args:
            resolver: Resolves each step's instruction to a UI action
            formatter: Produces the date placeholders for the target site
            navigation_timeout: Upper bound for page loads, in seconds
            poll_interval: Seconds between checks while settling on a ``settle_until`` locator
            sleep: Sleep function, injectable for tests
            clock: Monotonic clock, injectable for tests
        """
        self.resolver = resolver
        self.formatter = formatter
        self.navigation_timeout = navigation_timeout
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.clock = clock

    def variables(self, config: ScrapeConfig, today: date) -> Dict[str, str]:
        return self.formatter.variables(config.days_back, config.record_type, today)

    def run(
        self,
        session: SessionHandle,
        steps: Sequence[WorkflowStep],
        config: ScrapeConfig,
        today: date,
    ) -> RunOutcome:
        """
        Execute ``steps`` strictly in order on the session's main page

        Raises:
            StepFailed: For the first step that fails; later steps are not attempted
        """
        variables = self.variables(config, today)
        logger.info(
            f"Search window {variables['start_date']} - {variables['end_date']}, "
            f"record type {variables['record_type']!r}"
        )
        outcome = RunOutcome(page=session.main_page, variables=variables)
        for position, step in enumerate(steps, start=1):
            logger.info(f"Step {position}/{len(steps)}: {step.id}")
            result = self.execute_step(outcome.page, step, variables)
            outcome.results.append(result)
            outcome.completed.append(step.id)
        return outcome

    def execute_step(self, page: PageHandle, step: WorkflowStep, variables: Dict[str, str]) -> ActionResult:
        """
        Perform one step and wait for the page to settle

        Raises:
            StepFailed: Wrapping ActionNotFound, SequenceTimeout or any browser error
        """
        try:
            result = self._act(page, step, variables)
            self._settle(page, step)
        except StepFailed:
            raise
        except ScrapeError as e:
            logger.error(f"Step {step.id} failed: {e}")
            raise StepFailed(step.id, e)
        except Exception as e:
            logger.error(f"Step {step.id} failed: {e}", exc_info=True)
            raise StepFailed(step.id, e)
        return result

    def _act(self, page: PageHandle, step: WorkflowStep, variables: Dict[str, str]) -> ActionResult:
        if step.action == StepAction.NAVIGATE:
            url = render(step.url, variables)
            page.navigate(url, self.navigation_timeout)
            return ActionResult(success=True, method="navigation", target=url)

        value = render(step.value, variables) if step.value is not None else None
        semantic_text = render(step.instruction.semantic, variables) if step.instruction.semantic else None
        if value is not None:
            logger.info(f"Step {step.id}: entering {value!r}")
        return self.resolver.resolve(
            page,
            step.instruction,
            action=step.action,
            value=value,
            keys=step.keys,
            semantic_text=semantic_text,
        )

    def _settle(self, page: PageHandle, step: WorkflowStep) -> None:
        """Wait out the settle delay, ending early once ``settle_until`` is visible"""
        if step.settle_delay <= 0:
            return
        if step.settle_until is None:
            self.sleep(step.settle_delay)
            return

        deadline = self.clock() + step.settle_delay
        while True:
            if page.find(step.settle_until, 0) is not None:
                logger.info(f"Step {step.id}: page settled ({step.settle_until} visible)")
                return
            remaining = deadline - self.clock()
            if remaining <= 0:
                logger.warning(f"Step {step.id}: {step.settle_until} not visible after {step.settle_delay}s")
                return
            self.sleep(min(self.poll_interval, remaining))
