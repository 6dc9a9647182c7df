import logging
import time
from datetime import date
from enum import Enum
from typing import Callable, Optional

from .config import Settings
from .date_formatter import DateFormatter
from .engine import AutomationEngine, SessionHandle
from .errors import ScrapeError, SessionCloseError
from .models import ScrapeConfig, ScrapeResult
from .resolver import ActionResolver, SemanticResolver
from .sequencer import StepSequencer
from .sites import SiteWorkflow, get_site
from .storage import ArtifactSink, ArtifactStore, store_from_settings
from .tracker import DownloadTracker

logger = logging.getLogger("recorder_scraper")


class RunState(str, Enum):
    INIT = "INIT"
    SESSION_OPEN = "SESSION_OPEN"
    SEQUENCE_RUNNING = "SEQUENCE_RUNNING"
    ARTIFACT_AWAITED = "ARTIFACT_AWAITED"
    UPLOADING = "UPLOADING"
    CLOSED = "CLOSED"


class ScrapeOrchestrator:
    """Runs one site workflow end to end and reports a uniform ScrapeResult"""

    def __init__(
        self,
        engine: AutomationEngine,
        store: ArtifactStore,
        semantic: SemanticResolver,
        site: SiteWorkflow,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the orchestrator

        Args:
            engine: Browser automation capability that opens sessions
            store: Durable store receiving the downloaded document
            semantic: Natural-language fallback for steps whose selectors fail
            site: Workflow definition of the target site
            settings: Timeouts and polling intervals
            today: Returns the reference day for the search window
            sleep: Sleep function used for settle delays
            clock: Monotonic clock used for settle polling
        """
        self.engine = engine
        self.store = store
        self.semantic = semantic
        self.site = site
        self.settings = settings or Settings(site=site.site_id)
        self.today = today
        self.sleep = sleep
        self.clock = clock
        self.formatter = DateFormatter(site.date_format)

    @classmethod
    def from_settings(cls, settings: Settings, site_id: Optional[str] = None) -> "ScrapeOrchestrator":
        """Wire the Selenium engine, the configured store and the LLM resolver"""
        from .llm_resolver import LLMSemanticResolver
        from .webdriver_wrapper import SeleniumEngine

        site = get_site(site_id or settings.site)
        return cls(
            engine=SeleniumEngine(settings),
            store=store_from_settings(settings, site.storage_namespace),
            semantic=LLMSemanticResolver.from_settings(settings),
            site=site,
            settings=settings,
        )

    def _build(self):
        """Fresh per-run components, so concurrent runs share no mutable state"""
        settings = self.settings
        resolver = ActionResolver(self.semantic, settings.visibility_timeout)
        sequencer = StepSequencer(
            resolver,
            self.formatter,
            navigation_timeout=settings.navigation_timeout,
            poll_interval=settings.poll_interval,
            sleep=self.sleep,
            clock=self.clock,
        )
        tracker = DownloadTracker(
            sequencer,
            resolver,
            popup_timeout=settings.popup_timeout,
            download_timeout=settings.download_timeout,
            load_timeout=settings.load_timeout,
            fallback_name=self.site.storage_namespace,
        )
        return sequencer, tracker, ArtifactSink(self.store)

    def execute(self, config: ScrapeConfig) -> ScrapeResult:
        """
        Run the workflow once

        Args:
            config: Validated caller input; a missing record type takes the site default

        Returns:
            ScrapeResult with a locator on success or an error message on failure.
            Never raises for failures inside the run.
        """
        config = config.with_defaults(self.site.default_record_type)
        state = RunState.INIT
        session: Optional[SessionHandle] = None
        logger.info(
            f"Starting scrape of {self.site.name}: days_back={config.days_back}, "
            f"record_type={config.record_type!r}"
        )
        sequencer, tracker, sink = self._build()
        try:
            session = self.engine.open_session()
            state = RunState.SESSION_OPEN

            state = RunState.SEQUENCE_RUNNING
            outcome = sequencer.run(session, self.site.steps, config, self.today())

            state = RunState.ARTIFACT_AWAITED
            artifact = tracker.await_artifact(session, outcome.page, self.site.export, outcome.variables)

            state = RunState.UPLOADING
            locator = sink.deliver(artifact)
            result = ScrapeResult.ok(locator)
        except ScrapeError as e:
            logger.error(f"Scraping failed during {state.value}: {e}")
            result = ScrapeResult.failed(str(e))
        except Exception as e:
            logger.error(f"Scraping failed during {state.value}: {e}", exc_info=True)
            result = ScrapeResult.failed(str(e) or type(e).__name__)
        finally:
            if session is not None:
                self._close(session)

        logger.info(f"Run {RunState.CLOSED.value}: success={result.success}")
        return result

    @staticmethod
    def _close(session: SessionHandle) -> None:
        try:
            session.close()
        except Exception as e:
            error = SessionCloseError(f"failed to close browser session: {e}")
            logger.error(str(error), exc_info=True)
