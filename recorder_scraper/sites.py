"""
Workflow definitions for the recorder sites the scraper knows how to drive.

Each site is data: an ordered step list, the export step that produces the
document, and the date format its search form expects. The engine is shared.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import ConfigError
from .models import Instruction, SideEffect, StepAction, StructuralLocator, WorkflowStep

L = StructuralLocator


@dataclass(frozen=True)
class ExportSpec:
    """
    How the finished search is turned into a downloaded document.

    ``trigger`` opens the print/export popup or starts a direct download;
    ``download_control`` is the save button looked for on the active page, and
    ``save_shortcut`` is pressed when that control cannot be found.
    """

    trigger: WorkflowStep
    download_control: Instruction
    save_shortcut: Tuple[str, ...] = ("Control+s",)
    require_popup: bool = False


@dataclass(frozen=True)
class SiteWorkflow:
    site_id: str
    name: str
    base_url: str
    date_format: str
    default_record_type: str
    storage_namespace: str
    steps: Tuple[WorkflowStep, ...]
    export: ExportSpec


CHATHAM_NC = SiteWorkflow(
    site_id="chatham_nc",
    name="Chatham County NC Register of Deeds",
    base_url="https://www.chathamncrod.org/",
    date_format="MM/DD/YYYY",
    default_record_type="DEED",
    storage_namespace="chatham-rod",
    steps=(
        WorkflowStep(
            id="open_site",
            action=StepAction.NAVIGATE,
            url="https://www.chathamncrod.org/",
            settle_delay=2.0,
        ),
        WorkflowStep(
            id="acknowledge_disclaimer",
            action=StepAction.CLICK,
            instruction=Instruction(
                structural=(L.by_role("link", "Acknowledge Disclaimer to"),),
                semantic="Click the link that acknowledges the disclaimer",
            ),
            settle_delay=3.0,
        ),
        WorkflowStep(
            id="full_system",
            action=StepAction.CLICK,
            instruction=Instruction(
                structural=(
                    L.by_xpath("//span[normalize-space(.)='Full System']//a"),
                    L.by_role("link", "Full System", exact=True),
                ),
                semantic="Click the 'Full System' search link",
            ),
            settle_delay=3.0,
        ),
        WorkflowStep(
            id="start_date",
            action=StepAction.FILL,
            instruction=Instruction(
                structural=(L.by_id("TRG_98"),),
                semantic="Type '{start_date}' into the start date field",
            ),
            value="{start_date}",
            keys=("Tab",),
            settle_delay=1.0,
        ),
        WorkflowStep(
            id="end_date",
            action=StepAction.FILL,
            instruction=Instruction(
                structural=(L.by_id("TRG_99"),),
                semantic="Type '{end_date}' into the end date field",
            ),
            value="{end_date}",
            keys=("Tab",),
            settle_delay=0.5,
        ),
        WorkflowStep(
            id="record_type",
            action=StepAction.FILL,
            instruction=Instruction(
                structural=(L.by_id("TRG_95"),),
                semantic="Type '{record_type}' into the instrument type field",
            ),
            value="{record_type}",
            settle_delay=1.5,
        ),
        WorkflowStep(
            id="search",
            action=StepAction.CLICK,
            instruction=Instruction(
                structural=(L.by_text("Search", exact=True),),
                semantic="Click the Search button",
            ),
            settle_delay=15.0,
            settle_until=L.by_id("TRG_171"),
        ),
        WorkflowStep(
            id="select_all",
            action=StepAction.CLICK,
            instruction=Instruction(
                structural=(L.by_css("#TRG_171 td"),),
                semantic="Click the checkbox that selects all records in the search results table",
            ),
            # Checking every row re-renders the whole table
            settle_delay=20.0,
        ),
    ),
    export=ExportSpec(
        trigger=WorkflowStep(
            id="print_checked",
            action=StepAction.CLICK,
            instruction=Instruction(
                structural=(L.by_text("Print Checked", exact=True),),
                semantic="Click 'Print Checked'",
            ),
            side_effect=SideEffect.OPENS_POPUP,
        ),
        download_control=Instruction(
            structural=(
                L.by_role("button", "Download"),
                L.by_role("button", "Save"),
                L.by_role("button", "Print"),
            ),
            semantic="Click the button that downloads or saves the document",
        ),
        save_shortcut=("Control+s",),
    ),
)

SITES: Dict[str, SiteWorkflow] = {
    CHATHAM_NC.site_id: CHATHAM_NC,
}


def get_site(site_id: str) -> SiteWorkflow:
    try:
        return SITES[site_id]
    except KeyError:
        raise ConfigError(f"Unknown site {site_id!r}; available: {', '.join(sorted(SITES))}")
