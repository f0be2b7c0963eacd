import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from wfchat.core.errors import ExecutorError, ERROR_CODES

logger = logging.getLogger(__name__)


class WorkflowCreated(BaseModel):
    workflow_id: str
    status: str = "created"


class StepAdded(BaseModel):
    step_id: str
    status: str = "added"


class ActionExecutor(ABC):
    """
    The workflow builder the dialogue engine drives. Failures are raised as
    exceptions whose message the dispatcher inspects ("already exists", "not found").
    """

    @abstractmethod
    async def create_workflow(self, name: str) -> WorkflowCreated:
        pass

    @abstractmethod
    async def add_step(self, workflow_id: str, step_details: Dict[str, Any]) -> StepAdded:
        pass


class _WorkflowRecord(BaseModel):
    workflow_id: str
    name: str
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class InMemoryActionExecutor(ActionExecutor):
    """Keeps workflows in a dict; enough for local runs and tests."""

    def __init__(self):
        self.workflows: Dict[str, _WorkflowRecord] = {}

    def _resolve(self, workflow_ref: str) -> Optional[_WorkflowRecord]:
        if workflow_ref in self.workflows:
            return self.workflows[workflow_ref]
        wanted = workflow_ref.strip().lower()
        for record in self.workflows.values():
            if record.name.lower() == wanted:
                return record
        return None

    async def create_workflow(self, name: str) -> WorkflowCreated:
        if any(r.name.lower() == name.strip().lower() for r in self.workflows.values()):
            raise ExecutorError(
                f"workflow '{name}' already exists",
                code=ERROR_CODES["DUPLICATE_NAME"],
                details={"name": name}
            )

        workflow_id = f"wf_{uuid.uuid4().hex[:12]}"
        self.workflows[workflow_id] = _WorkflowRecord(workflow_id=workflow_id, name=name)
        logger.info(f"Created workflow '{name}' ({workflow_id})")
        return WorkflowCreated(workflow_id=workflow_id)

    async def add_step(self, workflow_id: str, step_details: Dict[str, Any]) -> StepAdded:
        record = self._resolve(workflow_id)
        if record is None:
            raise ExecutorError(
                f"workflow '{workflow_id}' not found",
                code=ERROR_CODES["WORKFLOW_NOT_FOUND"],
                details={"workflow_id": workflow_id}
            )

        step_name = str(step_details.get("name", ""))
        if any(s["name"].lower() == step_name.lower() for s in record.steps):
            raise ExecutorError(
                f"step '{step_name}' already exists in workflow '{record.name}'",
                code=ERROR_CODES["DUPLICATE_NAME"],
                details={"workflow_id": record.workflow_id, "step_name": step_name}
            )

        step_id = f"step_{uuid.uuid4().hex[:12]}"
        record.steps.append({"step_id": step_id, **step_details})
        logger.info(f"Added step '{step_name}' ({step_id}) to workflow '{record.name}'")
        return StepAdded(step_id=step_id)
