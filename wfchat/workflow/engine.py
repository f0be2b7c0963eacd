import logging
from typing import Iterable, Optional
from wfchat.core.intents import Intent
from wfchat.graph.state import ActionResponse, IntentResult
from wfchat.services.audit import AuditSink
from wfchat.services.executor import ActionExecutor
from wfchat.workflow.base import IntentHandler
from wfchat.workflow.flows import available_handlers

logger = logging.getLogger(__name__)

class ActionDispatcher:
    """
    Routes a resolved intent to its handler. The registry must cover every
    Intent member; a gap is a programming error reported at construction.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        audit: Optional[AuditSink] = None,
        handlers: Optional[Iterable[IntentHandler]] = None
    ):
        handlers = list(handlers) if handlers is not None else available_handlers(executor, audit)

        self.registry = {}
        for handler in handlers:
            if handler.intent in self.registry:
                raise ValueError(f"Duplicate handler for intent {handler.intent.value}")
            self.registry[handler.intent] = handler

        missing = [i.value for i in Intent if i not in self.registry]
        if missing:
            raise ValueError(f"No handler registered for intents: {missing}")

        logger.info(f"Action Dispatcher initialized with: {[i.value for i in self.registry]}")

    async def dispatch(self, result: IntentResult, session_id: str, actor_id: str) -> ActionResponse:
        logger.info(
            f"Dispatching intent '{result.intent.value}' with entities {result.entities} "
            f"(session: {session_id})"
        )
        handler = self.registry[result.intent]
        return await handler.handle(result, session_id, actor_id)
