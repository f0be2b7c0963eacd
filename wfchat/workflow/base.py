from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from wfchat.core.intents import Intent
from wfchat.graph.state import ActionResponse, IntentResult
from wfchat.services.audit import AuditSink, AuditStatus, record_audit
from wfchat.services.executor import ActionExecutor

ACTOR_ROLE = "system"

class IntentHandler(ABC):
    def __init__(self, executor: ActionExecutor, audit: Optional[AuditSink] = None):
        self.executor = executor
        self.audit_sink = audit

    @property
    @abstractmethod
    def intent(self) -> Intent:
        """The intent this handler acts on; each Intent has exactly one handler."""
        pass

    @abstractmethod
    async def handle(
        self,
        result: IntentResult,
        session_id: str,
        actor_id: str
    ) -> ActionResponse:
        """
        Acts on a resolved intent and returns the response for the user.
        Must not raise for validation or executor failures.
        """
        pass

    def record(self, parameters: Dict[str, Any], actor_id: str, status: AuditStatus):
        record_audit(self.audit_sink, ACTOR_ROLE, self.intent.value, parameters, actor_id, status)


def describe_executor_failure(error: Exception, duplicate: str, missing: str, generic: str) -> str:
    """Picks the user-facing message for an executor failure; the raw error is never shown."""
    text = str(error).lower()
    if "already exists" in text:
        return duplicate
    if "not found" in text:
        return missing
    return generic
