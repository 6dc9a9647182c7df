"""Data models shared by the workflow engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigError

MAX_DAYS_BACK = 365
DEFAULT_DAYS_BACK = 30

LOCATOR_KINDS = ("id", "css", "xpath", "link_text")

# Role names mapped to the element tags they match
_ROLE_TAGS = {
    "link": ["a"],
    "button": ["button", "input[@type='button']", "input[@type='submit']"],
    "cell": ["td"],
    "checkbox": ["input[@type='checkbox']"],
    "textbox": ["input[@type='text']", "textarea"],
}


def _xpath_literal(text: str) -> str:
    """Quote a string for use inside an XPath expression"""
    if "'" not in text:
        return f"'{text}'"
    if '"' not in text:
        return f'"{text}"'
    parts = text.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


def _text_predicate(text: str, exact: bool) -> str:
    literal = _xpath_literal(text)
    if exact:
        return f"normalize-space(.)={literal}"
    return f"contains(normalize-space(.), {literal})"


@dataclass(frozen=True)
class StructuralLocator:
    """A precise, markup-dependent reference to a UI element"""

    by: str
    value: str

    def __post_init__(self):
        if self.by not in LOCATOR_KINDS:
            raise ConfigError(f"Unknown locator kind: {self.by}")
        if not self.value:
            raise ConfigError("Locator value must not be empty")

    @classmethod
    def by_id(cls, element_id: str) -> "StructuralLocator":
        return cls("id", element_id)

    @classmethod
    def by_css(cls, selector: str) -> "StructuralLocator":
        return cls("css", selector)

    @classmethod
    def by_xpath(cls, expression: str) -> "StructuralLocator":
        return cls("xpath", expression)

    @classmethod
    def by_text(cls, text: str, exact: bool = True, tag: str = "*") -> "StructuralLocator":
        """
        Locate the innermost element whose text matches

        Args:
            text: Visible text to match
            exact: Whether the normalized text must equal ``text`` or only contain it
            tag: Restrict the match to this tag name
        """
        predicate = _text_predicate(text, exact)
        return cls("xpath", f"//{tag}[{predicate} and not(.//*[{predicate}])]")

    @classmethod
    def by_role(cls, role: str, name: str, exact: bool = False) -> "StructuralLocator":
        """
        Locate an element by its role and accessible name

        Args:
            role: One of link, button, cell, checkbox, textbox
            name: Visible text or aria-label of the element
            exact: Whether the name must match exactly
        """
        tags = _ROLE_TAGS.get(role)
        if tags is None:
            raise ConfigError(f"Unsupported role: {role}")
        literal = _xpath_literal(name)
        if exact:
            name_match = f"(normalize-space(.)={literal} or @aria-label={literal} or @value={literal})"
        else:
            name_match = (
                f"(contains(normalize-space(.), {literal}) or contains(@aria-label, {literal})"
                f" or contains(@value, {literal}))"
            )
        expression = " | ".join(f"//{tag}[{name_match}]" for tag in tags)
        return cls("xpath", expression)

    def __str__(self) -> str:
        return f"{self.by}={self.value}"


@dataclass(frozen=True)
class Instruction:
    """Ordered structural candidates plus one natural-language fallback"""

    structural: Tuple[StructuralLocator, ...] = ()
    semantic: Optional[str] = None

    def __post_init__(self):
        if not self.structural and not self.semantic:
            raise ConfigError("An instruction needs a structural locator or a semantic description")


class StepAction(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    PRESS = "press"


class SideEffect(str, Enum):
    OPENS_POPUP = "opens-popup"
    TRIGGERS_DOWNLOAD = "triggers-download"
    NONE = "none"


@dataclass(frozen=True)
class WorkflowStep:
    """
    One ordered unit of a site workflow.

    ``value`` and the semantic text of ``instruction`` may reference the
    placeholders ``{start_date}``, ``{end_date}`` and ``{record_type}``.
    ``settle_until`` lets the settle delay end early once the locator is visible;
    ``settle_delay`` stays the upper bound either way.
    """

    id: str
    action: StepAction
    instruction: Optional[Instruction] = None
    value: Optional[str] = None
    keys: Tuple[str, ...] = ()
    url: Optional[str] = None
    settle_delay: float = 0.0
    settle_until: Optional[StructuralLocator] = None
    side_effect: SideEffect = SideEffect.NONE

    def __post_init__(self):
        if self.settle_delay < 0:
            raise ConfigError(f"Step {self.id}: settle delay must not be negative")
        if self.action == StepAction.NAVIGATE:
            if not self.url:
                raise ConfigError(f"Step {self.id}: navigate requires a url")
        elif self.instruction is None:
            raise ConfigError(f"Step {self.id}: {self.action.value} requires an instruction")
        if self.action == StepAction.FILL and self.value is None:
            raise ConfigError(f"Step {self.id}: fill requires a value")
        if self.action == StepAction.PRESS and not self.keys:
            raise ConfigError(f"Step {self.id}: press requires keys")


@dataclass(frozen=True)
class ScrapeConfig:
    """Caller input for one run; immutable once the run starts"""

    days_back: int = DEFAULT_DAYS_BACK
    record_type: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.days_back, bool) or not isinstance(self.days_back, int):
            raise ConfigError(f"daysBack must be an integer, got {self.days_back!r}")
        if not 1 <= self.days_back <= MAX_DAYS_BACK:
            raise ConfigError(f"daysBack must be between 1 and {MAX_DAYS_BACK}, got {self.days_back}")
        if self.record_type is not None:
            if not isinstance(self.record_type, str) or not self.record_type:
                raise ConfigError("recordType must be a non-empty string")

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "ScrapeConfig":
        """Build a config from request-style keys (``daysBack``, ``recordType``)"""
        data = data or {}
        days_back = data.get("daysBack", data.get("days_back"))
        record_type = data.get("recordType", data.get("record_type"))
        return cls(
            days_back=DEFAULT_DAYS_BACK if days_back is None else days_back,
            record_type=record_type,
        )

    def with_defaults(self, default_record_type: str) -> "ScrapeConfig":
        if self.record_type is not None:
            return self
        return ScrapeConfig(days_back=self.days_back, record_type=default_record_type)


@dataclass
class ActionResult:
    success: bool
    method: str
    target: str = ""
    detail: str = ""


@dataclass
class RunOutcome:
    """What the sequencer leaves behind for the download tracker"""

    page: Any
    completed: List[str] = field(default_factory=list)
    results: List[ActionResult] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)


@dataclass
class DownloadArtifact:
    content: bytes
    suggested_name: str
    source_page: Any = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ScrapeResult:
    """Terminal value of a run; ``locator`` and ``error`` are mutually exclusive"""

    success: bool
    locator: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.success and (not self.locator or self.error is not None):
            raise ValueError("A successful result carries a locator and no error")
        if not self.success and (not self.error or self.locator is not None):
            raise ValueError("A failed result carries an error and no locator")

    @classmethod
    def ok(cls, locator: str) -> "ScrapeResult":
        return cls(success=True, locator=locator)

    @classmethod
    def failed(cls, error: str) -> "ScrapeResult":
        return cls(success=False, error=error or "Scraping failed")

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "locator": self.locator}
        return {"success": False, "error": self.error}
