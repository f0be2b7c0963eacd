import logging
from wfchat.core.intents import Intent
from wfchat.graph.state import ActionResponse, IntentResult
from wfchat.services.audit import AuditStatus
from wfchat.workflow.base import IntentHandler

logger = logging.getLogger(__name__)

class UnknownIntentHandler(IntentHandler):
    """UNKNOWN always goes to clarification first; this only answers if one is dispatched anyway."""

    @property
    def intent(self) -> Intent:
        return Intent.UNKNOWN

    async def handle(self, result: IntentResult, session_id: str, actor_id: str) -> ActionResponse:
        logger.warning(f"UNKNOWN intent reached dispatch for session {session_id}")
        self.record({"session_id": session_id, "entities": dict(result.entities)}, actor_id, AuditStatus.ERROR)
        return ActionResponse.error(
            f"I understood you wanted to '{result.intent.value}', but I don't know how to do that yet."
        )
