"""
Action resolution: structural locators first, natural-language fallback second.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .engine import ElementHandle, PageHandle
from .errors import ActionNotFound
from .models import ActionResult, Instruction, StepAction, StructuralLocator

logger = logging.getLogger("recorder_scraper")


class SemanticResolver(ABC):
    """Resolves a natural-language instruction to a UI action on the current page"""

    @abstractmethod
    def act(self, page: PageHandle, instruction: str) -> ActionResult:
        """
        Perform the action described by ``instruction``

        Returns:
            ActionResult with success=False when the instruction could not be carried out
        """
        ...


ScriptedOutcome = Union[bool, Callable[[PageHandle, str], bool]]


class ScriptedSemanticResolver(SemanticResolver):
    """
    Deterministic semantic resolver returning scripted outcomes per instruction.

    Outcomes may be booleans or callables taking (page, instruction) so a script
    can also mutate a fake page. Every call is recorded in ``calls``.
    """

    def __init__(self, outcomes: Optional[Dict[str, ScriptedOutcome]] = None, default: bool = False):
        self.outcomes = dict(outcomes or {})
        self.default = default
        self.calls: List[str] = []

    def act(self, page: PageHandle, instruction: str) -> ActionResult:
        self.calls.append(instruction)
        outcome = self.outcomes.get(instruction, self.default)
        success = outcome(page, instruction) if callable(outcome) else bool(outcome)
        return ActionResult(
            success=success,
            method="semantic",
            target=instruction,
            detail="scripted" if instruction in self.outcomes else "default",
        )


def perform(element: ElementHandle, action: StepAction, value: Optional[str], keys: Sequence[str]) -> None:
    """Carry out a click, fill or press on a resolved element"""
    if action == StepAction.CLICK:
        element.click()
    elif action == StepAction.FILL:
        element.fill(value or "")
    elif action != StepAction.PRESS:
        raise ValueError(f"Action {action.value} cannot target an element")
    if keys:
        element.press(keys)


class ActionResolver:
    """Translates an Instruction into a concrete action against the live page"""

    def __init__(self, semantic: SemanticResolver, visibility_timeout: float = 5.0):
        self.semantic = semantic
        self.visibility_timeout = visibility_timeout

    def first_match(
        self,
        page: PageHandle,
        candidates: Sequence[StructuralLocator],
        timeout: Optional[float] = None,
    ) -> Optional[Tuple[StructuralLocator, ElementHandle]]:
        """
        Return the first candidate locator that resolves to a visible element

        The first candidate gets the whole bounded visibility wait; by then the
        page has had its chance to render, so later candidates are checked once.

        Args:
            page: Page to search
            candidates: Structural locators in priority order
            timeout: Visibility wait for the first candidate, defaults to visibility_timeout

        Returns:
            Tuple of (matching locator, element), or None if nothing matched
        """
        wait = self.visibility_timeout if timeout is None else timeout
        for position, locator in enumerate(candidates):
            element = page.find(locator, wait if position == 0 else 0)
            if element is not None:
                return locator, element
            logger.debug(f"No visible element for {locator}")
        return None

    def resolve(
        self,
        page: PageHandle,
        instruction: Instruction,
        action: StepAction = StepAction.CLICK,
        value: Optional[str] = None,
        keys: Sequence[str] = (),
        semantic_text: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ActionResult:
        """
        Resolve and perform one instruction

        Args:
            page: Page to act on
            instruction: Structural candidates and semantic fallback
            action: What to do with a structurally resolved element
            value: Text for fill actions
            keys: Key combinations pressed after the action
            semantic_text: Rendered semantic instruction, defaults to instruction.semantic
            timeout: Visibility wait for the structural check

        Returns:
            ActionResult describing which path succeeded

        Raises:
            ActionNotFound: If both the structural and the semantic path failed
        """
        failures = []
        match = None
        if instruction.structural:
            try:
                match = self.first_match(page, instruction.structural, timeout)
            except Exception as e:
                logger.warning(f"Structural lookup failed: {e}")
                failures.append(f"structural lookup failed: {e}")
        if match is not None:
            locator, element = match
            try:
                perform(element, action, value, keys)
                logger.info(f"Resolved {action.value} via structural locator {locator}")
                return ActionResult(success=True, method="structural", target=str(locator))
            except Exception as e:
                logger.warning(f"Structural {action.value} on {locator} failed: {e}")
                failures.append(f"structural {locator}: {e}")
        elif instruction.structural and not failures:
            failures.append("no structural locator matched")

        text = semantic_text or instruction.semantic
        if text:
            logger.info(f"Falling back to semantic instruction: {text}")
            result = self.semantic.act(page, text)
            if result.success:
                # Keys go to whatever the semantic action left focused
                if keys:
                    page.press(keys)
                return result
            failures.append(f"semantic instruction not resolved: {text}" + (f" ({result.detail})" if result.detail else ""))

        raise ActionNotFound("; ".join(failures))
