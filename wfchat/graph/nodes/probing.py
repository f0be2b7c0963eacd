import asyncio
import logging
from typing import Optional
from wfchat.core.intents import Intent, Confidence, REQUIRED_ENTITY, STEP_NAME
from wfchat.core.prompts import PROBING_QUESTION_PROMPT
from wfchat.core.settings import settings
from wfchat.graph.state import GraphState, IntentResult, ProbingOutcome
from wfchat.llm.classifier import UpstreamClassifier

logger = logging.getLogger(__name__)

ASK_WORKFLOW_NAME = "What would you like to name your new workflow?"
ASK_STEP_TARGET = "Which workflow would you like to add this step to?"
ASK_STEP_KIND = "What kind of step would you like to add to your workflow?"
ASK_GENERAL = "How can I help you with workflows today?"


def needs_probing(result: IntentResult) -> bool:
    if result.intent == Intent.UNKNOWN or result.confidence == Confidence.LOW:
        return True
    required = REQUIRED_ENTITY[result.intent]
    return bool(required) and not result.entity(required)


def template_question(result: IntentResult) -> str:
    """The canonical clarifying question for an intent; used verbatim whenever no generator answers."""
    if result.intent == Intent.CREATE_WORKFLOW:
        return ASK_WORKFLOW_NAME
    if result.intent == Intent.ADD_STEP:
        return ASK_STEP_TARGET if result.entity(STEP_NAME) else ASK_STEP_KIND
    return ASK_GENERAL


def decide(result: IntentResult) -> ProbingOutcome:
    if needs_probing(result):
        return ProbingOutcome(needs_probing=True, question=template_question(result), intent=result)
    return ProbingOutcome(needs_probing=False, intent=result)


class QuestionGenerator:
    """
    Asks the upstream model for a richer clarifying question.
    Returns None instead of raising so the template question can stand in.
    """

    def __init__(self, classifier: UpstreamClassifier, timeout: Optional[float] = None):
        self.classifier = classifier
        self.timeout = timeout if timeout is not None else settings.dialogue.classifier_timeout_seconds

    async def generate(self, utterance: str) -> Optional[str]:
        prompt = PROBING_QUESTION_PROMPT.format(utterance=utterance)
        try:
            raw = await asyncio.wait_for(self.classifier.classify(prompt), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Probing question generation timed out after {self.timeout}s")
            return None
        except Exception as e:
            logger.error(f"Error getting probing question: {e}", exc_info=True)
            return None

        question = (raw or "").strip()
        return question or None


class ProbingNode:
    async def __call__(self, state: GraphState) -> GraphState:
        outcome = decide(state["intent_result"])
        logger.info(
            f"Needs Probing? {outcome.needs_probing}. Intent: {outcome.intent.intent.value}, "
            f"Confidence: {outcome.intent.confidence.value}, Entities: {outcome.intent.entities}"
        )
        return {"probing": outcome}
