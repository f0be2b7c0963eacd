import asyncio
import logging
import re
import string
from typing import Any, Dict, Optional
from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser
from pydantic import BaseModel, Field, ValidationError, field_validator
from wfchat.core.errors import UpstreamClassifierError
from wfchat.core.intents import Intent, Confidence, WORKFLOW_NAME, STEP_NAME, WORKFLOW_TARGET
from wfchat.core.observability import TraceManager
from wfchat.core.prompts import STRUCTURED_INTENT_PROMPT
from wfchat.core.settings import settings
from wfchat.graph.state import GraphState, IntentResult
from wfchat.llm.classifier import UpstreamClassifier

logger = logging.getLogger(__name__)

# --- Heuristic classifier ---

HELP_COMMANDS = {"help", "menu", "options", "examples", "what can you do", "what you can do"}
HELP_PHRASES = ["what can you do", "how can you help", "capabilities", "show me examples"]
# Request shapes, whole words only
_CREATE_SHAPE = re.compile(r"\b(?:create|make|build)\b.*\bworkflow\b", re.IGNORECASE)
_ADD_STEP_SHAPE = re.compile(r"\badd\b.*\bstep\b", re.IGNORECASE)

_WORKFLOW_NAME = re.compile(r"\b(?:called|named)\s+([^,.!?]+)", re.IGNORECASE)
_WORKFLOW_FOR = re.compile(r"\bfor\s+([^,.!?]+)", re.IGNORECASE)
_STEP_NAMED = re.compile(r"\bstep\s+(?:called|named)\s+(.+?)(?=\s+(?:to|into|in)\s|[,.!?]|$)", re.IGNORECASE)
_STEP_DESCRIBED = re.compile(r"\badd\s+(.+?)\s+step\b", re.IGNORECASE)
_STEP_KEYWORD = re.compile(r"\bstep\b", re.IGNORECASE)
_STEP_TARGET = re.compile(
    r"\b(?:to|into|in)\s+(?:the\s+|my\s+)?(?:workflow\s+(?:called\s+|named\s+)?)?([^,.!?]+)",
    re.IGNORECASE
)
_TRAILING_WORKFLOW = re.compile(r"\s+workflow$", re.IGNORECASE)
_FILLER_WORDS = {"a", "an", "the", "new", "another", "one", "my"}


def _normalize(text: str) -> str:
    return text.lower().strip().strip(string.punctuation).strip()


def _clean(raw: Optional[str]) -> str:
    return (raw or "").strip().strip("\"'").strip()


def _drop_fillers(raw: str) -> str:
    words = raw.split()
    while words and words[0].lower() in _FILLER_WORDS:
        words.pop(0)
    return " ".join(words)


def is_help_command(utterance: str) -> bool:
    return _normalize(utterance or "") in HELP_COMMANDS


def _extract_workflow_name(text: str) -> str:
    match = _WORKFLOW_NAME.search(text) or _WORKFLOW_FOR.search(text)
    return _clean(match.group(1)) if match else ""


def _extract_step(text: str) -> Dict[str, str]:
    entities = {}
    step_end = None

    named = _STEP_NAMED.search(text)
    if named:
        entities[STEP_NAME] = _clean(named.group(1))
        step_end = named.end()
    else:
        described = _STEP_DESCRIBED.search(text)
        if described:
            name = _drop_fillers(_clean(described.group(1)))
            if name:
                entities[STEP_NAME] = name
            step_end = described.end()

    if step_end is None:
        keyword = _STEP_KEYWORD.search(text)
        step_end = keyword.end() if keyword else 0

    target = _STEP_TARGET.search(text, step_end)
    if target:
        name = _TRAILING_WORKFLOW.sub("", _clean(target.group(1)))
        if name:
            entities[WORKFLOW_TARGET] = name

    return {k: v for k, v in entities.items() if v}


def classify_heuristically(utterance: str) -> IntentResult:
    """
    Deterministic keyword classifier used whenever the upstream model is absent or fails.
    Best effort: only the intent/confidence classes are relied upon, not exact name boundaries.
    """
    text = (utterance or "").strip()
    lower_input = _normalize(text)

    create = _CREATE_SHAPE.search(lower_input)
    add_step = _ADD_STEP_SHAPE.search(lower_input)

    # The request verb that comes first wins ("add a step called Build X", "create a workflow called Add Data Step")
    if add_step and (create is None or add_step.start() <= create.start()):
        entities = _extract_step(text)
        if STEP_NAME in entities and WORKFLOW_TARGET in entities:
            confidence = Confidence.HIGH
        elif STEP_NAME in entities:
            confidence = Confidence.MEDIUM
        else:
            confidence = Confidence.LOW
        return IntentResult(intent=Intent.ADD_STEP, entities=entities, confidence=confidence)

    if create:
        name = _extract_workflow_name(text)
        if name:
            return IntentResult(
                intent=Intent.CREATE_WORKFLOW,
                entities={WORKFLOW_NAME: name},
                confidence=Confidence.HIGH
            )
        return IntentResult(intent=Intent.CREATE_WORKFLOW, confidence=Confidence.LOW)

    if lower_input in HELP_COMMANDS or any(phrase in lower_input for phrase in HELP_PHRASES):
        return IntentResult(intent=Intent.HELP, confidence=Confidence.HIGH)

    return IntentResult(intent=Intent.UNKNOWN, confidence=Confidence.LOW)


# --- Upstream classification ---

class IntentPayload(BaseModel):
    intent: Intent = Field(..., description="One of CREATE_WORKFLOW, ADD_STEP, HELP, UNKNOWN.")
    entities: Dict[str, Any] = Field(..., description="Extracted entities for the intent.")
    confidence: Confidence = Field(..., description="One of high, medium, low.")

    @field_validator("intent", mode="before")
    @classmethod
    def _upper_intent(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _lower_confidence(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    def to_result(self) -> IntentResult:
        entities = {}
        for key, value in self.entities.items():
            if value is None:
                continue
            text = str(value).strip()
            if text:
                entities[key] = text
        return IntentResult(intent=self.intent, entities=entities, confidence=self.confidence)


class IntentExtractor:
    """
    Maps an utterance to an IntentResult. Never raises: any upstream trouble
    (timeout, transport error, malformed JSON) degrades to classify_heuristically.
    """

    def __init__(self, classifier: Optional[UpstreamClassifier] = None, timeout: Optional[float] = None):
        self.classifier = classifier
        self.timeout = timeout if timeout is not None else settings.dialogue.classifier_timeout_seconds
        self.parser = JsonOutputParser(pydantic_object=IntentPayload)

    async def extract(self, utterance: str) -> IntentResult:
        if self.classifier is None:
            return classify_heuristically(utterance)

        # Priority command; no upstream round trip needed
        if is_help_command(utterance):
            logger.info("Heuristic: Help command detected.")
            return IntentResult(intent=Intent.HELP, confidence=Confidence.HIGH)

        try:
            return await self._extract_upstream(utterance)
        except UpstreamClassifierError as e:
            logger.warning(f"Upstream classification failed, using heuristics: {e.message}")
        except Exception as e:
            logger.error(f"Error in IntentExtractor: {e}", exc_info=True)

        return classify_heuristically(utterance)

    async def _extract_upstream(self, utterance: str) -> IntentResult:
        prompt = STRUCTURED_INTENT_PROMPT.format(utterance=utterance)

        try:
            raw = await asyncio.wait_for(self.classifier.classify(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamClassifierError(f"classifier timed out after {self.timeout}s") from e
        except Exception as e:
            raise UpstreamClassifierError(f"classifier call failed: {e}") from e

        try:
            payload = IntentPayload.model_validate(self.parser.parse(raw))
        except (OutputParserException, ValidationError) as e:
            raise UpstreamClassifierError(
                f"malformed classifier response: {raw!r}",
                details={"raw": raw}
            ) from e

        result = payload.to_result()
        logger.info(
            f"Parsed upstream intent: intent='{result.intent.value}', "
            f"entities={result.entities}, confidence='{result.confidence.value}'"
        )
        return result


class UnderstandingNode:
    def __init__(self, extractor: IntentExtractor):
        self.extractor = extractor

    async def __call__(self, state: GraphState) -> GraphState:
        result = await self.extractor.extract(state["utterance"])

        # [MONITORING] Structured feature logging
        TraceManager.info(
            f"Intent Detected: {result.intent.value}",
            feature="understanding",
            intent=result.intent.value,
            confidence=result.confidence.value,
            user_id=state.get("actor_id")
        )
        return {"intent_result": result}
