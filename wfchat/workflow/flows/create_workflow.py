import logging
from datetime import datetime, timezone
from wfchat.core.errors import InputValidationError
from wfchat.core.guardrails import Guardrails
from wfchat.core.intents import Intent, WORKFLOW_NAME
from wfchat.graph.state import ActionResponse, CanvasCommand, IntentResult, ResponseStatus
from wfchat.services.audit import AuditStatus
from wfchat.workflow.base import IntentHandler, describe_executor_failure

logger = logging.getLogger(__name__)

class CreateWorkflowHandler(IntentHandler):
    @property
    def intent(self) -> Intent:
        return Intent.CREATE_WORKFLOW

    async def handle(self, result: IntentResult, session_id: str, actor_id: str) -> ActionResponse:
        raw_name = result.entities.get(WORKFLOW_NAME)
        logger.info(f"CREATE_WORKFLOW requested for name '{raw_name}' by user {actor_id}")

        try:
            name = Guardrails.validate_name(raw_name, "workflow")
        except InputValidationError as e:
            logger.warning(f"Invalid workflow name '{raw_name}': {e.details.get('reason')}")
            self.record(
                {"workflow_name": raw_name, "session_id": session_id, "reason": e.details.get("reason")},
                actor_id,
                AuditStatus.INVALID_INPUT
            )
            return ActionResponse.error(e.message)

        try:
            created = await self.executor.create_workflow(name)
        except Exception as e:
            logger.error(f"Error creating workflow '{name}': {e}", exc_info=True)
            self.record(
                {"workflow_name": name, "session_id": session_id, "error_code": getattr(e, "code", None)},
                actor_id,
                AuditStatus.ERROR
            )
            return ActionResponse.error(describe_executor_failure(
                e,
                duplicate=f'A workflow named "{name}" already exists. Please choose a different name.',
                missing=f'The workflow "{name}" could not be found. Please try again.',
                generic="Failed to create the workflow. Please try again."
            ))

        logger.info(f"Created workflow '{name}' with ID '{created.workflow_id}'")
        self.record(
            {"workflow_id": created.workflow_id, "workflow_name": name, "session_id": session_id},
            actor_id,
            AuditStatus.SUCCESS
        )

        return ActionResponse(
            status=ResponseStatus.SUCCESS,
            message_for_user=f'I\'ve created a new workflow called "{name}". What would you like to do next?',
            canvas_command=CanvasCommand(
                action=self.intent.value,
                payload={
                    "workflow_id": created.workflow_id,
                    "name": name,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    "created_by": actor_id,
                    "session_id": session_id
                }
            )
        )
