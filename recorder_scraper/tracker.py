"""
Popup/download tracking for the export step of a workflow.

The tracker registers its listeners before the trigger fires, follows the
export into a popup when one opens (or stays on the original page when the
site downloads in the same tab), and drains the resulting file into memory.
"""

import logging
import time
from enum import Enum
from typing import Dict, List, Optional

from .engine import Download, DownloadWatch, PageHandle, SessionHandle
from .errors import ActionNotFound, DownloadTimeout, NoArtifact, PopupTimeout, StreamError
from .models import DownloadArtifact, SideEffect, StepAction
from .resolver import ActionResolver
from .sequencer import StepSequencer
from .sites import ExportSpec

logger = logging.getLogger("recorder_scraper")

DEFAULT_CHUNK_SIZE = 64 * 1024


class TrackerState(str, Enum):
    WAITING_TRIGGER = "WAITING_TRIGGER"
    WAITING_POPUP_OR_DIRECT = "WAITING_POPUP_OR_DIRECT"
    WAITING_DOWNLOAD_ON_POPUP = "WAITING_DOWNLOAD_ON_POPUP"
    WAITING_DOWNLOAD_DIRECT = "WAITING_DOWNLOAD_DIRECT"
    DOWNLOAD_RECEIVED = "DOWNLOAD_RECEIVED"
    STREAMED = "STREAMED"
    DONE = "DONE"
    FAILED = "FAILED"


class DownloadTracker:
    """Obtains the exported document for one run; create one per run"""

    def __init__(
        self,
        sequencer: StepSequencer,
        resolver: ActionResolver,
        popup_timeout: float = 15.0,
        download_timeout: float = 60.0,
        load_timeout: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        fallback_name: str = "document",
    ):
        self.sequencer = sequencer
        self.resolver = resolver
        self.popup_timeout = popup_timeout
        self.download_timeout = download_timeout
        self.load_timeout = load_timeout
        self.chunk_size = chunk_size
        self.fallback_name = fallback_name
        self.state = TrackerState.WAITING_TRIGGER
        self.history: List[TrackerState] = [TrackerState.WAITING_TRIGGER]

    def _transition(self, state: TrackerState) -> None:
        logger.info(f"Download tracker: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def await_artifact(
        self,
        session: SessionHandle,
        page: PageHandle,
        export: ExportSpec,
        variables: Dict[str, str],
    ) -> DownloadArtifact:
        """
        Fire the export trigger and return the downloaded document

        Args:
            session: Session the trigger runs in
            page: Page holding the search results
            export: Trigger step, download control and save shortcut
            variables: Placeholder values for the trigger step

        Returns:
            DownloadArtifact holding the fully read content

        Raises:
            StepFailed: If the trigger step itself fails
            PopupTimeout: If the export requires a popup and none opened
            DownloadTimeout: If no download arrived within download_timeout
            NoArtifact: If no export control was found and the save shortcut produced nothing
            StreamError: If reading the downloaded bytes failed
        """
        try:
            return self._await(session, page, export, variables)
        except Exception:
            self._transition(TrackerState.FAILED)
            raise

    def _await(self, session, page, export, variables) -> DownloadArtifact:
        trigger = export.trigger
        # Register both listeners before the trigger so no signal can slip past
        popup_watch = session.expect_new_page()
        direct_watch = page.expect_download()

        self.sequencer.execute_step(page, trigger, variables)
        self._transition(TrackerState.WAITING_POPUP_OR_DIRECT)

        popup_wait = 0.0 if trigger.side_effect == SideEffect.TRIGGERS_DOWNLOAD else self.popup_timeout
        popup = popup_watch.wait(popup_wait)
        if popup is not None:
            self._transition(TrackerState.WAITING_DOWNLOAD_ON_POPUP)
            logger.info(f"Export opened {popup.name}")
            active = popup
            # The original page's watch stays valid for downloads the popup forwards
            active_watch = popup.expect_download()
            popup.wait_for_load(self.load_timeout)
        else:
            if export.require_popup:
                raise PopupTimeout(f"popup timeout: no new page opened within {popup_wait}s")
            self._transition(TrackerState.WAITING_DOWNLOAD_DIRECT)
            active = page
            active_watch = direct_watch

        download = self._check(direct_watch, active_watch)
        control_found = True
        if download is None:
            control_found = self._request_download(active, export)
            download = self._wait_for_download(direct_watch, active_watch)

        if download is None:
            if not control_found:
                raise NoArtifact(
                    "no export control found and the save shortcut produced no download"
                )
            raise DownloadTimeout(f"download timeout: no download within {self.download_timeout}s")

        self._transition(TrackerState.DOWNLOAD_RECEIVED)
        content = self._drain(download)
        self._transition(TrackerState.STREAMED)

        name = download.suggested_filename or f"{self.fallback_name}-{int(time.time() * 1000)}.pdf"
        artifact = DownloadArtifact(content=content, suggested_name=name, source_page=active)
        logger.info(f"Download completed: {name} ({artifact.size:,} bytes)")
        self._transition(TrackerState.DONE)
        return artifact

    @staticmethod
    def _check(direct_watch: DownloadWatch, active_watch: DownloadWatch) -> Optional[Download]:
        """Pick up a download that already arrived, e.g. a PDF the popup saved on load"""
        download = active_watch.wait(0)
        if download is None and active_watch is not direct_watch:
            download = direct_watch.wait(0)
        return download

    def _wait_for_download(self, direct_watch: DownloadWatch, active_watch: DownloadWatch) -> Optional[Download]:
        download = active_watch.wait(self.download_timeout)
        if download is None and active_watch is not direct_watch:
            download = direct_watch.wait(0)
        return download

    def _request_download(self, page: PageHandle, export: ExportSpec) -> bool:
        """
        Click the page's download control, or press the save shortcut when there is none

        Returns:
            True if a download control was found and clicked
        """
        try:
            self.resolver.resolve(page, export.download_control, action=StepAction.CLICK)
            return True
        except ActionNotFound as e:
            logger.warning(f"No download control found ({e}), using save shortcut")
        try:
            page.press(export.save_shortcut)
        except Exception as e:
            logger.warning(f"Save shortcut failed: {e}")
        return False

    def _drain(self, download: Download) -> bytes:
        """Read the whole download stream into memory"""
        buffer = bytearray()
        try:
            with download.open() as stream:
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    buffer.extend(chunk)
        except Exception as e:
            raise StreamError(f"download stream failed after {len(buffer)} bytes: {e}")
        if not buffer:
            raise NoArtifact("download produced no bytes")
        return bytes(buffer)
