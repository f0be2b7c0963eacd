import logging
from wfchat.core.observability import TraceManager
from wfchat.graph.state import GraphState
from wfchat.services.session_store import SessionStore
from wfchat.workflow.engine import ActionDispatcher

logger = logging.getLogger(__name__)

class DispatchNode:
    def __init__(self, store: SessionStore, dispatcher: ActionDispatcher):
        self.store = store
        self.dispatcher = dispatcher

    async def __call__(self, state: GraphState) -> GraphState:
        session_id = state["session_id"]
        actor_id = state.get("actor_id")
        result = state["probing"].intent

        # Intent resolved: the clarification loop starts over
        await self.store.reset_probing_attempts(session_id)
        await self.store.update(session_id, last_intent=result.intent, last_entities=result.entities)

        response = await self.dispatcher.dispatch(result, session_id, actor_id)

        # [MONITORING] Structured dispatch logging
        TraceManager.info(
            f"Intent Dispatched: {result.intent.value}",
            feature="dispatch",
            intent=result.intent.value,
            status=response.status.value,
            user_id=actor_id
        )
        return {"response": response, "probing_attempts": 0}
