from wfchat.core.intents import Intent
from wfchat.graph.state import ActionResponse, IntentResult
from wfchat.services.audit import AuditStatus
from wfchat.workflow.base import IntentHandler

HELP_MESSAGE = (
    "I can help you with the following:\n\n"
    "1. Create workflows:\n"
    "   - 'Create a workflow called Monthly Report'\n"
    "   - 'Make a new workflow for Data Processing'\n\n"
    "2. Add steps to workflows:\n"
    "   - 'Add a data input step to Monthly Report'\n"
    "   - 'Add a step called Validate Input to workflow Monthly Report'\n\n"
    "3. Get help:\n"
    "   - Type 'help' anytime to see this message\n\n"
    "What would you like to do?"
)

class HelpHandler(IntentHandler):
    @property
    def intent(self) -> Intent:
        return Intent.HELP

    async def handle(self, result: IntentResult, session_id: str, actor_id: str) -> ActionResponse:
        self.record({"session_id": session_id}, actor_id, AuditStatus.INFO)
        return ActionResponse.info(HELP_MESSAGE)
