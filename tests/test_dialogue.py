import asyncio
import pytest
from wfchat.core.intents import Intent
from wfchat.graph.main import DialogueEngine, GENERIC_ERROR_MESSAGE, route_probing
from wfchat.graph.nodes.clarify import RECOVERY_MESSAGE, PROBING_ACTION
from wfchat.graph.nodes.probing import QuestionGenerator, ASK_WORKFLOW_NAME, ASK_STEP_KIND, ASK_GENERAL, decide
from wfchat.graph.nodes.understanding import IntentExtractor
from wfchat.graph.state import IntentResult, ResponseStatus
from wfchat.services.audit import AuditStatus
from wfchat.workflow.engine import ActionDispatcher
from tests.conftest import StubClassifier


@pytest.mark.asyncio
async def test_create_workflow_turn(engine, store, executor):
    response = await engine.handle("s1", "u1", "Create a workflow called Monthly Report")

    assert response.status == ResponseStatus.SUCCESS
    assert response.canvas_command.action == "CREATE_WORKFLOW"
    assert response.canvas_command.payload["name"] == "Monthly Report"
    assert executor.calls == [("create_workflow", "Monthly Report")]

    session = await store.get("s1")
    assert session.probing_attempt_count == 0
    assert session.last_intent == Intent.CREATE_WORKFLOW
    assert session.last_entities == {"workflow_name": "Monthly Report"}


@pytest.mark.asyncio
async def test_create_without_name_asks_for_name(engine, store, executor):
    response = await engine.handle("s1", "u1", "create a workflow")

    assert response.status == ResponseStatus.CLARIFICATION_NEEDED
    assert response.message_for_user == ASK_WORKFLOW_NAME
    assert (await store.get("s1")).probing_attempt_count == 1
    assert executor.calls == []


@pytest.mark.asyncio
async def test_vague_add_step_asks_a_question(engine, store, executor, audit):
    response = await engine.handle("s1", "u1", "Add a step")

    assert response.status == ResponseStatus.CLARIFICATION_NEEDED
    assert response.message_for_user == ASK_STEP_KIND
    assert response.canvas_command is None
    assert (await store.get("s1")).probing_attempt_count == 1
    assert executor.calls == []

    [entry] = audit.find(action=PROBING_ACTION)
    assert entry.status == AuditStatus.CLARIFICATION_NEEDED.value
    assert entry.parameters["attempt"] == 1


@pytest.mark.asyncio
async def test_clarification_keeps_last_resolved_intent(engine, store):
    await engine.handle("s1", "u1", "Create a workflow called A")
    response = await engine.handle("s1", "u1", "asdf")

    assert response.status == ResponseStatus.CLARIFICATION_NEEDED
    session = await store.get("s1")
    assert session.last_intent == Intent.CREATE_WORKFLOW
    assert session.last_entities == {"workflow_name": "A"}
    assert session.probing_attempt_count == 1


@pytest.mark.asyncio
async def test_invalid_name_never_reaches_executor(engine, executor, audit):
    response = await engine.handle("s1", "u1", "Create a workflow called Report/2024")

    assert response.status == ResponseStatus.ERROR
    assert "invalid characters" in response.message_for_user
    assert executor.calls == []
    assert audit.find(status=AuditStatus.SUCCESS.value) == []


@pytest.mark.asyncio
async def test_probing_stops_after_max_attempts_then_resets(engine, store):
    for attempt in range(1, 4):
        response = await engine.handle("s1", "u1", "asdf")
        assert response.status == ResponseStatus.CLARIFICATION_NEEDED
        assert response.message_for_user == ASK_GENERAL
        assert (await store.get("s1")).probing_attempt_count == attempt

    response = await engine.handle("s1", "u1", "asdf")
    assert response.status == ResponseStatus.INFO
    assert response.message_for_user == RECOVERY_MESSAGE
    assert (await store.get("s1")).probing_attempt_count == 3

    response = await engine.handle("s1", "u1", "Create a workflow called Budget")
    assert response.status == ResponseStatus.SUCCESS
    assert (await store.get("s1")).probing_attempt_count == 0


@pytest.mark.asyncio
async def test_max_attempts_is_audited(engine, audit):
    for _ in range(4):
        await engine.handle("s1", "u1", "asdf")
    [entry] = audit.find(action=PROBING_ACTION, status=AuditStatus.MAX_ATTEMPTS_REACHED.value)
    assert entry.parameters["attempt"] == 3


@pytest.mark.asyncio
async def test_help_resets_probing_count(engine, store):
    await engine.handle("s1", "u1", "asdf")
    response = await engine.handle("s1", "u1", "help")
    assert response.status == ResponseStatus.INFO
    assert (await store.get("s1")).probing_attempt_count == 0


@pytest.mark.asyncio
async def test_generated_question_is_used(store, executor, audit):
    engine = DialogueEngine(
        store=store,
        dispatcher=ActionDispatcher(executor, audit),
        question_generator=QuestionGenerator(StubClassifier("Which workflow do you mean?"), timeout=1),
        audit=audit
    )
    response = await engine.handle("s1", "u1", "do something")
    assert response.message_for_user == "Which workflow do you mean?"


@pytest.mark.asyncio
async def test_failed_generator_still_counts_attempt(store, executor, audit):
    engine = DialogueEngine(
        store=store,
        dispatcher=ActionDispatcher(executor, audit),
        question_generator=QuestionGenerator(StubClassifier(error=RuntimeError("quota")), timeout=1),
        audit=audit
    )
    response = await engine.handle("s1", "u1", "do something")

    assert response.status == ResponseStatus.CLARIFICATION_NEEDED
    assert response.message_for_user == ASK_GENERAL
    assert (await store.get("s1")).probing_attempt_count == 1


@pytest.mark.asyncio
async def test_sessions_do_not_share_probing_state(engine, store):
    for _ in range(3):
        await engine.handle("a", "u1", "asdf")
    response = await engine.handle("b", "u2", "asdf")

    assert response.status == ResponseStatus.CLARIFICATION_NEEDED
    assert (await store.get("a")).probing_attempt_count == 3
    assert (await store.get("b")).probing_attempt_count == 1


@pytest.mark.asyncio
async def test_concurrent_turns_never_exceed_max(engine, store):
    responses = await asyncio.gather(*(engine.handle("s1", "u1", "asdf") for _ in range(8)))

    statuses = [r.status for r in responses]
    assert statuses.count(ResponseStatus.CLARIFICATION_NEEDED) == 3
    assert statuses.count(ResponseStatus.INFO) == 5
    assert (await store.get("s1")).probing_attempt_count == 3


@pytest.mark.asyncio
async def test_understanding_failure_yields_generic_error(store, executor):
    class ExplodingExtractor(IntentExtractor):
        async def extract(self, utterance):
            raise RuntimeError("boom")

    engine = DialogueEngine(store=store, dispatcher=ActionDispatcher(executor), extractor=ExplodingExtractor())
    response = await engine.handle("s1", "u1", "Create a workflow called A")

    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == GENERIC_ERROR_MESSAGE
    assert executor.calls == []


@pytest.mark.asyncio
async def test_add_step_after_create(engine, executor):
    await engine.handle("s1", "u1", "Create a workflow called Monthly Report")
    response = await engine.handle("s1", "u1", "Add a step called Validate Input to workflow Monthly Report")

    assert response.status == ResponseStatus.SUCCESS
    assert response.canvas_command.action == "ADD_STEP"
    assert executor.calls[-1][0] == "add_step"


def test_route_probing():
    assert route_probing({"probing": decide(IntentResult(intent=Intent.UNKNOWN))}) == "clarify"
    assert route_probing({"probing": decide(IntentResult(intent=Intent.HELP, confidence="high"))}) == "dispatch"
