import pytest
from wfchat.core.errors import ExecutorError
from wfchat.core.intents import Intent, Confidence
from wfchat.graph.state import IntentResult, ResponseStatus
from wfchat.services.audit import AuditSink, AuditStatus
from wfchat.services.executor import ActionExecutor
from wfchat.workflow.engine import ActionDispatcher
from wfchat.workflow.flows import available_handlers
from wfchat.workflow.flows.help import HELP_MESSAGE


def create(name):
    return IntentResult(intent=Intent.CREATE_WORKFLOW, entities={"workflow_name": name}, confidence=Confidence.HIGH)


def add_step(step=None, target=None):
    entities = {}
    if step is not None:
        entities["step_name"] = step
    if target is not None:
        entities["workflow_target"] = target
    return IntentResult(intent=Intent.ADD_STEP, entities=entities, confidence=Confidence.HIGH)


class FailingExecutor(ActionExecutor):
    def __init__(self, error: Exception):
        self.error = error

    async def create_workflow(self, name):
        raise self.error

    async def add_step(self, workflow_id, step_details):
        raise self.error


@pytest.fixture
def dispatcher(executor, audit):
    return ActionDispatcher(executor, audit)


@pytest.mark.asyncio
async def test_create_workflow_success(dispatcher, executor, audit):
    response = await dispatcher.dispatch(create("  Monthly Report "), "s1", "u1")

    assert response.status == ResponseStatus.SUCCESS
    assert response.message_for_user == (
        'I\'ve created a new workflow called "Monthly Report". What would you like to do next?'
    )
    command = response.canvas_command
    assert command.action == "CREATE_WORKFLOW"
    assert command.payload["name"] == "Monthly Report"
    assert command.payload["workflow_id"].startswith("wf_")
    assert command.payload["created_by"] == "u1"
    assert command.payload["session_id"] == "s1"
    assert executor.calls == [("create_workflow", "Monthly Report")]

    [entry] = audit.find(action="CREATE_WORKFLOW")
    assert entry.status == AuditStatus.SUCCESS.value
    assert entry.actor_id == "u1"
    assert entry.actor_role == "system"
    assert entry.parameters["workflow_id"] == command.payload["workflow_id"]


@pytest.mark.asyncio
@pytest.mark.parametrize("name, fragment, reason", [
    ("", "cannot be empty", "empty"),
    ("   ", "cannot be empty", "empty"),
    (None, "cannot be empty", "empty"),
    ("Report/2024", "invalid characters", "invalid_characters"),
    ("a<b", "invalid characters", "invalid_characters"),
    ("x" * 101, "too long", "too_long"),
])
async def test_create_workflow_rejects_bad_names(dispatcher, executor, audit, name, fragment, reason):
    result = IntentResult(
        intent=Intent.CREATE_WORKFLOW,
        entities={} if name is None else {"workflow_name": name},
        confidence=Confidence.HIGH
    )
    response = await dispatcher.dispatch(result, "s1", "u1")

    assert response.status == ResponseStatus.ERROR
    assert fragment in response.message_for_user
    assert response.canvas_command is None
    assert executor.calls == []
    [entry] = audit.entries
    assert entry.status == AuditStatus.INVALID_INPUT.value
    assert entry.parameters["reason"] == reason


@pytest.mark.asyncio
async def test_name_of_exactly_max_length_is_accepted(dispatcher):
    response = await dispatcher.dispatch(create("x" * 100), "s1", "u1")
    assert response.status == ResponseStatus.SUCCESS


@pytest.mark.asyncio
async def test_duplicate_workflow_maps_to_friendly_message(dispatcher, audit):
    await dispatcher.dispatch(create("Payroll"), "s1", "u1")
    response = await dispatcher.dispatch(create("payroll"), "s1", "u1")

    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == 'A workflow named "payroll" already exists. Please choose a different name.'
    assert audit.find(status=AuditStatus.ERROR.value)[0].parameters["error_code"] == "DUPLICATE_NAME"


@pytest.mark.asyncio
async def test_unexpected_executor_failure_hides_details(audit):
    dispatcher = ActionDispatcher(FailingExecutor(RuntimeError("db password rejected")), audit)
    response = await dispatcher.dispatch(create("Payroll"), "s1", "u1")

    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == "Failed to create the workflow. Please try again."
    assert "password" not in response.message_for_user
    assert audit.entries[0].status == AuditStatus.ERROR.value


@pytest.mark.asyncio
async def test_add_step_success(dispatcher, executor, audit):
    await dispatcher.dispatch(create("Monthly Report"), "s1", "u1")
    response = await dispatcher.dispatch(add_step("Validate Input", "monthly report"), "s1", "u1")

    assert response.status == ResponseStatus.SUCCESS
    assert response.message_for_user == (
        'I\'ve added a step called "Validate Input" to the workflow "monthly report". What should this step do?'
    )
    assert response.canvas_command.action == "ADD_STEP"
    assert response.canvas_command.payload["step_id"].startswith("step_")
    assert response.canvas_command.payload["name"] == "Validate Input"

    _, workflow_ref, details = executor.calls[-1]
    assert workflow_ref == "monthly report"
    assert details["name"] == "Validate Input"
    assert details["type"] == "step"
    assert details["created_by"] == "u1"
    assert len(audit.find(action="ADD_STEP", status=AuditStatus.SUCCESS.value)) == 1


@pytest.mark.asyncio
async def test_add_step_requires_target(dispatcher, executor, audit):
    response = await dispatcher.dispatch(add_step("Validate Input"), "s1", "u1")

    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == "Please specify which workflow to add the step to."
    assert executor.calls == []
    assert audit.entries[0].status == AuditStatus.INVALID_INPUT.value


@pytest.mark.asyncio
async def test_add_step_validates_step_name_first(dispatcher, executor):
    response = await dispatcher.dispatch(add_step("bad|name"), "s1", "u1")
    assert "step name contains invalid characters" in response.message_for_user
    assert executor.calls == []


@pytest.mark.asyncio
async def test_add_step_to_missing_workflow(dispatcher):
    response = await dispatcher.dispatch(add_step("Review", "Ghost"), "s1", "u1")
    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == (
        'The workflow "Ghost" was not found. Please check the workflow name and try again.'
    )


@pytest.mark.asyncio
async def test_add_duplicate_step(dispatcher):
    await dispatcher.dispatch(create("Hiring"), "s1", "u1")
    await dispatcher.dispatch(add_step("Interview", "Hiring"), "s1", "u1")
    response = await dispatcher.dispatch(add_step("Interview", "Hiring"), "s1", "u1")
    assert response.message_for_user.startswith('A step named "Interview" already exists in this workflow.')


@pytest.mark.asyncio
async def test_executor_error_with_not_found_message():
    dispatcher = ActionDispatcher(FailingExecutor(ExecutorError("workflow 'X' not found")))
    response = await dispatcher.dispatch(add_step("Review", "X"), "s1", "u1")
    assert "was not found" in response.message_for_user


@pytest.mark.asyncio
async def test_help_returns_info_without_executor(dispatcher, executor, audit):
    response = await dispatcher.dispatch(IntentResult(intent=Intent.HELP, confidence=Confidence.HIGH), "s1", "u1")

    assert response.status == ResponseStatus.INFO
    assert response.message_for_user == HELP_MESSAGE
    assert response.canvas_command is None
    assert executor.calls == []
    assert audit.entries[0].action == "HELP"
    assert audit.entries[0].status == AuditStatus.INFO.value


@pytest.mark.asyncio
async def test_unknown_handler_answers_with_error(dispatcher):
    response = await dispatcher.dispatch(IntentResult(intent=Intent.UNKNOWN), "s1", "u1")
    assert response.status == ResponseStatus.ERROR
    assert response.message_for_user == "I understood you wanted to 'UNKNOWN', but I don't know how to do that yet."


def test_registry_covers_every_intent(dispatcher):
    assert set(dispatcher.registry) == set(Intent)


def test_missing_handler_is_rejected_at_construction(executor):
    handlers = [h for h in available_handlers(executor) if h.intent != Intent.HELP]
    with pytest.raises(ValueError, match="HELP"):
        ActionDispatcher(executor, handlers=handlers)


def test_duplicate_handler_is_rejected(executor):
    handlers = available_handlers(executor) + available_handlers(executor)[:1]
    with pytest.raises(ValueError, match="Duplicate"):
        ActionDispatcher(executor, handlers=handlers)


class BrokenSink(AuditSink):
    def log(self, actor_role, action_name, parameters, actor_id=None, status=None):
        raise RuntimeError("audit backend down")


@pytest.mark.asyncio
async def test_audit_failure_does_not_break_dispatch(executor):
    dispatcher = ActionDispatcher(executor, BrokenSink())
    response = await dispatcher.dispatch(create("Payroll"), "s1", "u1")
    assert response.status == ResponseStatus.SUCCESS
