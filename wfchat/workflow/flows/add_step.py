import logging
from datetime import datetime, timezone
from wfchat.core.errors import InputValidationError
from wfchat.core.guardrails import Guardrails
from wfchat.core.intents import Intent, STEP_NAME, WORKFLOW_TARGET
from wfchat.graph.state import ActionResponse, CanvasCommand, IntentResult, ResponseStatus
from wfchat.services.audit import AuditStatus
from wfchat.workflow.base import IntentHandler, describe_executor_failure

logger = logging.getLogger(__name__)

class AddStepHandler(IntentHandler):
    @property
    def intent(self) -> Intent:
        return Intent.ADD_STEP

    async def handle(self, result: IntentResult, session_id: str, actor_id: str) -> ActionResponse:
        raw_step = result.entities.get(STEP_NAME)
        raw_target = result.entities.get(WORKFLOW_TARGET)
        logger.info(f"ADD_STEP requested for step '{raw_step}' in workflow '{raw_target}' by user {actor_id}")

        try:
            step_name = Guardrails.validate_name(raw_step, "step")
            target = Guardrails.require_target(raw_target)
        except InputValidationError as e:
            logger.warning(f"Invalid ADD_STEP input: {e.details}")
            self.record(
                {
                    "step_name": raw_step,
                    "workflow_target": raw_target,
                    "session_id": session_id,
                    "reason": e.details.get("reason"),
                },
                actor_id,
                AuditStatus.INVALID_INPUT
            )
            return ActionResponse.error(e.message)

        created_at = datetime.now(timezone.utc).isoformat()
        try:
            added = await self.executor.add_step(target, {
                "name": step_name,
                "type": "step",
                "created_by": actor_id,
                "created_at": created_at
            })
        except Exception as e:
            logger.error(f"Error adding step '{step_name}' to workflow '{target}': {e}", exc_info=True)
            self.record(
                {
                    "step_name": step_name,
                    "workflow_target": target,
                    "session_id": session_id,
                    "error_code": getattr(e, "code", None),
                },
                actor_id,
                AuditStatus.ERROR
            )
            return ActionResponse.error(describe_executor_failure(
                e,
                duplicate=f'A step named "{step_name}" already exists in this workflow. Please choose a different name.',
                missing=f'The workflow "{target}" was not found. Please check the workflow name and try again.',
                generic="Failed to add the step. Please try again."
            ))

        logger.info(f"Added step '{step_name}' to workflow '{target}' with ID '{added.step_id}'")
        self.record(
            {"step_id": added.step_id, "step_name": step_name, "workflow_id": target, "session_id": session_id},
            actor_id,
            AuditStatus.SUCCESS
        )

        return ActionResponse(
            status=ResponseStatus.SUCCESS,
            message_for_user=(
                f'I\'ve added a step called "{step_name}" to the workflow "{target}". '
                "What should this step do?"
            ),
            canvas_command=CanvasCommand(
                action=self.intent.value,
                payload={
                    "step_id": added.step_id,
                    "workflow_id": target,
                    "name": step_name,
                    "created_at": created_at,
                    "created_by": actor_id,
                    "session_id": session_id
                }
            )
        )
