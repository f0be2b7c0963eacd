import logging
from typing import Literal, Optional
from langgraph.graph import StateGraph, END
from wfchat.core.observability import TraceManager
from wfchat.core.settings import settings
from wfchat.db.session import build_engine, build_session_factory
from wfchat.graph.state import GraphState, ActionResponse
from wfchat.graph.nodes.understanding import UnderstandingNode, IntentExtractor
from wfchat.graph.nodes.probing import ProbingNode, QuestionGenerator
from wfchat.graph.nodes.clarify import ClarifyNode
from wfchat.graph.nodes.dispatch import DispatchNode
from wfchat.llm.classifier import LLMClassifier
from wfchat.services.audit import AuditSink, LoggingAuditSink, SqlAuditSink
from wfchat.services.executor import ActionExecutor, InMemoryActionExecutor
from wfchat.services.session_store import SessionStore
from wfchat.workflow.engine import ActionDispatcher

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."

# Conditional Logic
def route_probing(state: GraphState) -> Literal["clarify", "dispatch"]:
    if state["probing"].needs_probing:
        return "clarify"
    return "dispatch"

def build_dialogue_graph(
    extractor: IntentExtractor,
    store: SessionStore,
    dispatcher: ActionDispatcher,
    question_generator: Optional[QuestionGenerator] = None,
    audit: Optional[AuditSink] = None
):
    workflow = StateGraph(GraphState)

    workflow.add_node("understanding", UnderstandingNode(extractor))
    workflow.add_node("probing", ProbingNode())
    workflow.add_node("clarify", ClarifyNode(store, question_generator, audit))
    workflow.add_node("dispatch", DispatchNode(store, dispatcher))

    workflow.set_entry_point("understanding")
    workflow.add_edge("understanding", "probing")
    workflow.add_conditional_edges(
        "probing",
        route_probing,
        {
            "clarify": "clarify",
            "dispatch": "dispatch"
        }
    )
    workflow.add_edge("clarify", END)
    workflow.add_edge("dispatch", END)

    return workflow.compile()


class DialogueEngine:
    """
    One conversational turn: utterance -> intent -> clarify or dispatch -> ActionResponse.
    The session store is injected so separate engines never share state.
    """

    def __init__(
        self,
        store: SessionStore,
        dispatcher: ActionDispatcher,
        extractor: Optional[IntentExtractor] = None,
        question_generator: Optional[QuestionGenerator] = None,
        audit: Optional[AuditSink] = None
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.extractor = extractor or IntentExtractor()
        self.question_generator = question_generator
        self.audit = audit
        self.graph = build_dialogue_graph(self.extractor, store, dispatcher, question_generator, audit)

    async def handle(self, session_id: str, actor_id: str, utterance: str) -> ActionResponse:
        with TraceManager.session(session_id):
            return await self._run_turn(session_id, actor_id, utterance)

    @TraceManager.span("dialogue_turn")
    async def _run_turn(self, session_id: str, actor_id: str, utterance: str) -> ActionResponse:
        logger.info(f"Received message from {actor_id}: {utterance!r}")

        try:
            final_state = await self.graph.ainvoke({
                "session_id": session_id,
                "actor_id": actor_id,
                "utterance": utterance or ""
            })
        except Exception as e:
            logger.error(f"Dialogue turn failed for session {session_id}: {e}", exc_info=True)
            return ActionResponse.error(GENERIC_ERROR_MESSAGE)

        response = final_state.get("response")
        if response is None:
            logger.error(f"Dialogue turn produced no response for session {session_id}")
            return ActionResponse.error(GENERIC_ERROR_MESSAGE)
        return response


def build_audit_sink() -> AuditSink:
    if settings.dialogue.audit_backend == "sql":
        engine = build_engine()
        return SqlAuditSink(build_session_factory(engine), engine=engine)
    return LoggingAuditSink()


def build_default_engine(
    store: Optional[SessionStore] = None,
    executor: Optional[ActionExecutor] = None,
    audit: Optional[AuditSink] = None
) -> DialogueEngine:
    """Wires an engine from settings: LLM classification when enabled, heuristics otherwise."""
    audit = audit or build_audit_sink()
    executor = executor or InMemoryActionExecutor()

    extractor = IntentExtractor()
    question_generator = None
    if settings.dialogue.llm_classifier_enabled:
        extractor = IntentExtractor(LLMClassifier("understanding"))
        question_generator = QuestionGenerator(LLMClassifier("probing"))

    return DialogueEngine(
        store=store or SessionStore(),
        dispatcher=ActionDispatcher(executor, audit),
        extractor=extractor,
        question_generator=question_generator,
        audit=audit
    )
