"""Tests for popup/download tracking of the export step."""

from dataclasses import replace

import pytest

from recorder_scraper.date_formatter import DateFormatter
from recorder_scraper.errors import DownloadTimeout, NoArtifact, PopupTimeout, StepFailed, StreamError
from recorder_scraper.models import Instruction, SideEffect, StepAction, StructuralLocator, WorkflowStep
from recorder_scraper.resolver import ActionResolver, ScriptedSemanticResolver
from recorder_scraper.sequencer import StepSequencer
from recorder_scraper.sites import ExportSpec
from recorder_scraper.tracker import DownloadTracker, TrackerState

from .fakes import FakeDownload, FakePage, FakeSession

PRINT = StructuralLocator.by_text("Print Checked")
DOWNLOAD = StructuralLocator.by_role("button", "Download")

EXPORT = ExportSpec(
    trigger=WorkflowStep(
        id="print_checked",
        action=StepAction.CLICK,
        instruction=Instruction((PRINT,)),
        side_effect=SideEffect.OPENS_POPUP,
    ),
    download_control=Instruction((DOWNLOAD,), "Click the download button"),
    save_shortcut=("Control+s",),
)

DOCUMENT = FakeDownload("records.pdf", b"%PDF-1.4 deeds %%EOF")


@pytest.fixture
def semantic():
    return ScriptedSemanticResolver()


@pytest.fixture
def tracker(semantic, clock):
    resolver = ActionResolver(semantic, visibility_timeout=5.0)
    sequencer = StepSequencer(resolver, DateFormatter(), sleep=clock.sleep, clock=clock)
    return DownloadTracker(sequencer, resolver, popup_timeout=15.0, download_timeout=60.0, chunk_size=4)


@pytest.fixture
def session():
    return FakeSession()


def with_popup(session, download_button=True, emits=True):
    popup = FakePage("popup", session.log)
    if download_button:
        popup.add(DOWNLOAD, "download", on_click=(lambda: popup.emit_download(DOCUMENT)) if emits else None)
    session.main_page.add(PRINT, "print", on_click=lambda: session.open_popup(popup))
    return popup


class TestPopupFlow:
    def test_popup_emitted_during_trigger_is_observed(self, tracker, session) -> None:
        popup = with_popup(session)

        artifact = tracker.await_artifact(session, session.main_page, EXPORT, {})

        assert artifact.content == DOCUMENT.content
        assert artifact.suggested_name == "records.pdf"
        assert artifact.source_page is popup
        assert tracker.history == [
            TrackerState.WAITING_TRIGGER,
            TrackerState.WAITING_POPUP_OR_DIRECT,
            TrackerState.WAITING_DOWNLOAD_ON_POPUP,
            TrackerState.DOWNLOAD_RECEIVED,
            TrackerState.STREAMED,
            TrackerState.DONE,
        ]

    def test_listeners_registered_before_trigger(self, tracker, session) -> None:
        with_popup(session)
        tracker.await_artifact(session, session.main_page, EXPORT, {})

        log = session.log
        assert log.index("watch-page") < log.index("click:print")
        assert log.index("watch-download:main") < log.index("click:print")
        assert log.index("watch-download:popup") < log.index("click:download")

    def test_popup_waits_for_load(self, tracker, session) -> None:
        popup = with_popup(session)
        tracker.await_artifact(session, session.main_page, EXPORT, {})
        assert popup.loads == [30.0]

    def test_missing_control_uses_save_shortcut(self, tracker, session, semantic) -> None:
        popup = with_popup(session, download_button=False)
        popup.on_press = lambda: popup.emit_download(DOCUMENT)

        artifact = tracker.await_artifact(session, session.main_page, EXPORT, {})

        assert semantic.calls == ["Click the download button"]
        assert popup.pressed == ["Control+s"]
        assert artifact.content == DOCUMENT.content

    def test_no_control_and_no_download(self, tracker, session) -> None:
        with_popup(session, download_button=False)

        with pytest.raises(NoArtifact):
            tracker.await_artifact(session, session.main_page, EXPORT, {})
        assert tracker.state == TrackerState.FAILED

    def test_download_never_fires(self, tracker, session) -> None:
        popup = with_popup(session, emits=False)

        with pytest.raises(DownloadTimeout, match="timeout"):
            tracker.await_artifact(session, session.main_page, EXPORT, {})
        assert popup.watches[0].waits == [0, 60.0]


class TestDirectDownload:
    def test_same_tab_download(self, tracker, session) -> None:
        main = session.main_page
        main.add(PRINT, "print", on_click=lambda: main.emit_download(DOCUMENT))

        artifact = tracker.await_artifact(session, main, EXPORT, {})

        assert artifact.source_page is main
        assert TrackerState.WAITING_DOWNLOAD_DIRECT in tracker.history
        # The download was already there, so no export control was looked for
        assert main.pressed == []
        assert "click:download" not in session.log

    def test_triggers_download_skips_popup_wait(self, tracker, session) -> None:
        main = session.main_page
        main.add(PRINT, "print", on_click=lambda: main.emit_download(DOCUMENT))
        export = replace(EXPORT, trigger=replace(EXPORT.trigger, side_effect=SideEffect.TRIGGERS_DOWNLOAD))

        tracker.await_artifact(session, main, export, {})

        assert session.page_watches[0].waits == [0.0]

    def test_popup_required(self, tracker, session) -> None:
        session.main_page.add(PRINT, "print")
        export = replace(EXPORT, require_popup=True)

        with pytest.raises(PopupTimeout, match="timeout"):
            tracker.await_artifact(session, session.main_page, export, {})


class TestFailures:
    def test_trigger_not_found(self, tracker, session) -> None:
        with pytest.raises(StepFailed, match="step print_checked failed"):
            tracker.await_artifact(session, session.main_page, EXPORT, {})

    def test_stream_error_mid_read(self, tracker, session) -> None:
        main = session.main_page
        broken = FakeDownload("records.pdf", b"%PDF-1.4 partial content", fail_after=8)
        main.add(PRINT, "print", on_click=lambda: main.emit_download(broken))

        with pytest.raises(StreamError, match="after 8 bytes"):
            tracker.await_artifact(session, main, EXPORT, {})
        assert TrackerState.DOWNLOAD_RECEIVED in tracker.history
        assert TrackerState.STREAMED not in tracker.history

    def test_empty_download(self, tracker, session) -> None:
        main = session.main_page
        main.add(PRINT, "print", on_click=lambda: main.emit_download(FakeDownload("empty.pdf", b"")))

        with pytest.raises(NoArtifact, match="no bytes"):
            tracker.await_artifact(session, main, EXPORT, {})

    def test_fallback_name(self, tracker, session) -> None:
        main = session.main_page
        main.add(PRINT, "print", on_click=lambda: main.emit_download(FakeDownload(None, b"%PDF")))

        artifact = tracker.await_artifact(session, main, EXPORT, {})

        assert artifact.suggested_name.startswith("document-")
        assert artifact.suggested_name.endswith(".pdf")
