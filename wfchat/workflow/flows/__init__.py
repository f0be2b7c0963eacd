from typing import List, Optional
from wfchat.services.audit import AuditSink
from wfchat.services.executor import ActionExecutor
from wfchat.workflow.base import IntentHandler
from .create_workflow import CreateWorkflowHandler
from .add_step import AddStepHandler
from .help import HelpHandler
from .unknown import UnknownIntentHandler

# Registry of all intent handlers
# A new Intent member needs its handler added here
HANDLER_CLASSES = [
    CreateWorkflowHandler,
    AddStepHandler,
    HelpHandler,
    UnknownIntentHandler
]

def available_handlers(executor: ActionExecutor, audit: Optional[AuditSink] = None) -> List[IntentHandler]:
    return [cls(executor, audit) for cls in HANDLER_CLASSES]
