"""Tests for ordered step execution and settle handling."""

from datetime import date

import pytest

from recorder_scraper.date_formatter import DateFormatter
from recorder_scraper.errors import ActionNotFound, SequenceTimeout, StepFailed
from recorder_scraper.models import Instruction, ScrapeConfig, StepAction, StructuralLocator, WorkflowStep
from recorder_scraper.resolver import ActionResolver, ScriptedSemanticResolver
from recorder_scraper.sequencer import StepSequencer, render

from .fakes import FakeSession

TODAY = date(2026, 1, 1)
CONFIG = ScrapeConfig(days_back=30, record_type="DEED")

FIELD = StructuralLocator.by_id("field")
BUTTON = StructuralLocator.by_id("button")
TABLE = StructuralLocator.by_id("table")


def click(step_id, locator, semantic=None, **kwargs):
    return WorkflowStep(
        id=step_id,
        action=StepAction.CLICK,
        instruction=Instruction((locator,), semantic),
        **kwargs,
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def semantic() -> ScriptedSemanticResolver:
    return ScriptedSemanticResolver()


@pytest.fixture
def sequencer(semantic, clock) -> StepSequencer:
    return StepSequencer(
        ActionResolver(semantic, visibility_timeout=5.0),
        DateFormatter("MM/DD/YYYY"),
        navigation_timeout=10.0,
        poll_interval=0.5,
        sleep=clock.sleep,
        clock=clock,
    )


class TestRun:
    def test_steps_run_in_order(self, sequencer, session) -> None:
        page = session.main_page
        page.add(BUTTON, "button")
        page.add(FIELD, "field")
        steps = [
            WorkflowStep(id="open", action=StepAction.NAVIGATE, url="https://recorder.example/"),
            click("press_button", BUTTON),
            WorkflowStep(
                id="fill_field",
                action=StepAction.FILL,
                instruction=Instruction((FIELD,)),
                value="{start_date}",
            ),
        ]

        outcome = sequencer.run(session, steps, CONFIG, TODAY)

        assert outcome.completed == ["open", "press_button", "fill_field"]
        assert session.log == [
            "navigate:https://recorder.example/",
            "click:button",
            "fill:field=12/02/2025",
        ]
        assert outcome.page is page
        assert outcome.variables == {"start_date": "12/02/2025", "end_date": "01/01/2026", "record_type": "DEED"}

    def test_failure_aborts_remaining_steps(self, sequencer, session) -> None:
        session.main_page.add(BUTTON, "button")
        steps = [click("missing", FIELD), click("press_button", BUTTON)]

        with pytest.raises(StepFailed) as excinfo:
            sequencer.run(session, steps, CONFIG, TODAY)

        assert excinfo.value.step_id == "missing"
        assert isinstance(excinfo.value.cause, ActionNotFound)
        assert str(excinfo.value).startswith("step missing failed: ")
        assert session.log == []

    def test_navigation_timeout_fails_the_step(self, sequencer, session) -> None:
        session.main_page.navigate_error = SequenceTimeout("navigation to https://x timed out after 10.0s")
        steps = [WorkflowStep(id="open", action=StepAction.NAVIGATE, url="https://x")]

        with pytest.raises(StepFailed, match="step open failed: navigation to https://x timed out"):
            sequencer.run(session, steps, CONFIG, TODAY)

    def test_unexpected_browser_error_is_wrapped(self, sequencer, session) -> None:
        session.main_page.navigate_error = RuntimeError("chrome not reachable")
        steps = [WorkflowStep(id="open", action=StepAction.NAVIGATE, url="https://x")]

        with pytest.raises(StepFailed, match="chrome not reachable"):
            sequencer.run(session, steps, CONFIG, TODAY)


class TestSemanticFallback:
    def test_semantic_text_is_rendered(self, sequencer, session, semantic) -> None:
        semantic.outcomes["Type 'DEED' into the instrument type field"] = True
        step = WorkflowStep(
            id="record_type",
            action=StepAction.FILL,
            instruction=Instruction((FIELD,), "Type '{record_type}' into the instrument type field"),
            value="{record_type}",
        )

        result = sequencer.execute_step(session.main_page, step, {"record_type": "DEED"})

        assert result.method == "semantic"
        assert semantic.calls == ["Type 'DEED' into the instrument type field"]

    def test_record_type_passes_through_verbatim(self, sequencer, session) -> None:
        field = session.main_page.add(FIELD, "field")
        step = WorkflowStep(
            id="record_type",
            action=StepAction.FILL,
            instruction=Instruction((FIELD,)),
            value="{record_type}",
        )
        record_type = '"DEED OF TRUST" {not_a_placeholder}'

        sequencer.run(session, [step], ScrapeConfig(days_back=1, record_type=record_type), TODAY)

        assert field.values == [record_type]


class TestRender:
    def test_known_placeholders(self) -> None:
        assert render("{start_date} to {end_date}", {"start_date": "a", "end_date": "b"}) == "a to b"

    def test_literal_braces_are_kept(self) -> None:
        template = "Click the cell matching td[{index}] {} dated {start_date}"
        assert render(template, {"start_date": "09/17/2026"}) == (
            "Click the cell matching td[{index}] {} dated 09/17/2026"
        )

    def test_values_are_not_rendered_again(self) -> None:
        variables = {"record_type": "{start_date}", "start_date": "09/17/2026"}
        assert render("{record_type}", variables) == "{start_date}"


class TestSettle:
    def test_fixed_settle_delay(self, sequencer, session, clock) -> None:
        session.main_page.add(BUTTON, "button")
        sequencer.run(session, [click("press_button", BUTTON, settle_delay=20.0)], CONFIG, TODAY)
        assert clock.sleeps == [20.0]

    def test_no_delay_no_sleep(self, sequencer, session, clock) -> None:
        session.main_page.add(BUTTON, "button")
        sequencer.run(session, [click("press_button", BUTTON)], CONFIG, TODAY)
        assert clock.sleeps == []

    def test_settle_until_ends_early(self, sequencer, session, clock) -> None:
        page = session.main_page
        table = page.add(TABLE, "table", visible=False)
        page.add(BUTTON, "button")

        original_sleep = clock.sleep

        def sleep_and_render(seconds):
            original_sleep(seconds)
            if clock.now >= 2.0:
                table.visible = True

        sequencer.sleep = sleep_and_render
        sequencer.run(session, [click("search", BUTTON, settle_delay=15.0, settle_until=TABLE)], CONFIG, TODAY)

        assert clock.now == 2.0
        assert clock.sleeps == [0.5, 0.5, 0.5, 0.5]

    def test_settle_until_respects_upper_bound(self, sequencer, session, clock) -> None:
        page = session.main_page
        page.add(TABLE, "table", visible=False)
        page.add(BUTTON, "button")

        sequencer.run(session, [click("search", BUTTON, settle_delay=3.2, settle_until=TABLE)], CONFIG, TODAY)

        assert clock.now == pytest.approx(3.2)
        assert max(clock.sleeps) <= 0.5

    def test_browser_error_while_settling_names_the_step(self, sequencer, session) -> None:
        page = session.main_page
        page.add(BUTTON, "button")
        page.find_errors[TABLE] = RuntimeError("chrome not reachable")

        with pytest.raises(StepFailed) as excinfo:
            sequencer.run(session, [click("search", BUTTON, settle_delay=15.0, settle_until=TABLE)], CONFIG, TODAY)

        assert excinfo.value.step_id == "search"
        assert str(excinfo.value) == "step search failed: chrome not reachable"

    def test_failed_step_does_not_settle(self, sequencer, session, clock) -> None:
        with pytest.raises(StepFailed):
            sequencer.run(session, [click("missing", BUTTON, settle_delay=20.0)], CONFIG, TODAY)
        assert clock.sleeps == []
