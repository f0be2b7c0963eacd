import logging
from typing import Optional
from wfchat.graph.nodes.probing import QuestionGenerator
from wfchat.graph.state import GraphState, ActionResponse, ResponseStatus
from wfchat.services.audit import AuditSink, AuditStatus, record_audit
from wfchat.services.session_store import SessionStore

logger = logging.getLogger(__name__)

PROBING_ACTION = "PROBING"

RECOVERY_MESSAGE = (
    "I'm still having trouble understanding. You could try:\n"
    "1. Rephrasing your request\n"
    "2. Type 'help' to see what I can do\n"
    "3. Start with a simple command like 'Create a workflow'"
)

class ClarifyNode:
    """
    Asks one clarifying question per turn, at most `max_probing_attempts` times
    in a row. Once saturated, answers with recovery hints and leaves the count alone.
    """

    def __init__(
        self,
        store: SessionStore,
        question_generator: Optional[QuestionGenerator] = None,
        audit: Optional[AuditSink] = None
    ):
        self.store = store
        self.question_generator = question_generator
        self.audit = audit

    async def __call__(self, state: GraphState) -> GraphState:
        session_id = state["session_id"]
        actor_id = state.get("actor_id")
        outcome = state["probing"]
        parameters = {
            "session_id": session_id,
            "intent": outcome.intent.intent.value,
            "confidence": outcome.intent.confidence.value,
            "entities": dict(outcome.intent.entities),
        }

        attempts = await self.store.try_increment_probing_attempts(session_id)
        if attempts is None:
            logger.info(f"Max probing attempts reached for session {session_id}")
            current = (await self.store.get(session_id)).probing_attempt_count
            record_audit(
                self.audit, "system", PROBING_ACTION,
                {**parameters, "attempt": current}, actor_id, AuditStatus.MAX_ATTEMPTS_REACHED
            )
            return {"response": ActionResponse.info(RECOVERY_MESSAGE), "probing_attempts": current}

        # The attempt counts even when the generator fails and the template question is used
        question = outcome.question
        if self.question_generator is not None:
            generated = await self.question_generator.generate(state["utterance"])
            if generated:
                question = generated

        record_audit(
            self.audit, "system", PROBING_ACTION,
            {**parameters, "attempt": attempts, "question": question}, actor_id, AuditStatus.CLARIFICATION_NEEDED
        )
        logger.info(f"Sending clarification_needed response (attempt {attempts}) for session {session_id}")

        return {
            "response": ActionResponse(status=ResponseStatus.CLARIFICATION_NEEDED, message_for_user=question),
            "probing_attempts": attempts
        }
