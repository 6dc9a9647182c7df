"""Semantic resolver backed by an OpenAI-compatible chat completion endpoint."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .config import Settings
from .engine import PageHandle
from .errors import ConfigError
from .models import ActionResult, StepAction
from .resolver import SemanticResolver, perform

logger = logging.getLogger("recorder_scraper")

SYSTEM_PROMPT = (
    "You operate a web browser. You receive an instruction and a numbered list of the "
    "visible interactive elements on the current page. Choose the single element that "
    "carries out the instruction. Reply with JSON only: "
    '{"index": <element index or null>, "action": "click" | "fill" | "press", '
    '"value": <text to type or key combination, or null>}. '
    "Use null for index when no element matches."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _describe(element: Dict[str, Any]) -> str:
    fields = [f"<{element.get('tag', '?')}>"]
    for key in ("id", "name", "type", "label", "placeholder"):
        if element.get(key):
            fields.append(f'{key}="{element[key]}"')
    if element.get("text"):
        fields.append(f'text="{element["text"]}"')
    return f"[{element['index']}] " + " ".join(fields)


def parse_choice(content: str) -> Dict[str, Any]:
    """Extract the JSON object from a model reply, tolerating code fences"""
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise ValueError(f"No JSON object in model reply: {content!r}")
    choice = json.loads(match.group(0))
    if not isinstance(choice, dict):
        raise ValueError(f"Model reply is not an object: {content!r}")
    return choice


class LLMSemanticResolver(SemanticResolver):
    """Asks a language model which element on the page an instruction refers to"""

    def __init__(
        self,
        client: Any,
        model: str,
        max_elements: int = 150,
        temperature: float = 0.1,
        max_tokens: int = 256,
    ):
        self.client = client
        self.model = model
        self.max_elements = max_elements
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMSemanticResolver":
        if not settings.llm_api_key:
            raise ConfigError("LLM_API_KEY (or DEEPSEEK_API_KEY) is required for semantic actions")
        client = OpenAI(api_key=settings.llm_api_key, base_url=settings.llm_base_url)
        return cls(client, settings.llm_model)

    def _ask(self, instruction: str, elements: List[Dict[str, Any]]) -> Dict[str, Any]:
        listing = "\n".join(_describe(element) for element in elements)
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Instruction: {instruction}\n\nElements:\n{listing}"},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return parse_choice(response.choices[0].message.content)

    def act(self, page: PageHandle, instruction: str) -> ActionResult:
        try:
            elements = page.interactive_elements(self.max_elements)
            if not elements:
                return ActionResult(False, "semantic", instruction, "page has no interactive elements")

            choice = self._ask(instruction, elements)
            index = choice.get("index")
            if index is None:
                return ActionResult(False, "semantic", instruction, "model found no matching element")

            element = page.element_at(int(index))
            if element is None:
                return ActionResult(False, "semantic", instruction, f"element {index} no longer on page")

            action = StepAction(choice.get("action") or "click")
            value: Optional[str] = choice.get("value")
            if action == StepAction.PRESS and not value:
                return ActionResult(False, "semantic", instruction, "model chose press without keys")
            if action == StepAction.FILL and value is None:
                return ActionResult(False, "semantic", instruction, "model chose fill without a value")
            if action == StepAction.PRESS:
                perform(element, action, None, [value] if value else [])
            else:
                perform(element, action, value, ())
            logger.info(f"Semantic action {action.value} on element {index} for: {instruction}")
            return ActionResult(True, "semantic", instruction, f"{action.value} element {index}")
        except Exception as e:
            logger.warning(f"Semantic instruction failed ({instruction}): {e}")
            return ActionResult(False, "semantic", instruction, str(e))
