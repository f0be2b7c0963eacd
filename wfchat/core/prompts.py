from langchain_core.prompts import PromptTemplate
from wfchat.core.intents import INTENT_DESCRIPTIONS, INTENT_ENTITIES

# Dynamic parts for the Structured Intent Prompt
def _describe_intents() -> str:
    lines = []
    for idx, (intent, description) in enumerate(INTENT_DESCRIPTIONS.items(), start=1):
        lines.append(f"{idx}. {intent.value}: {description}")
        # Braces are doubled because the result is itself a template
        entities = ", ".join(f'"{k}": "{v}"' for k, v in INTENT_ENTITIES[intent].items())
        lines.append(f"    - Entities: {{{{{entities}}}}}")
    return "\n".join(lines)

STRUCTURED_INTENT_PROMPT = PromptTemplate.from_template(f"""You are an AI assistant for WF-Builder, a tool that creates business workflows.
Your primary task is to understand user requests and identify their intent and any relevant details (entities) for predefined actions.
Supported actions and their required entities are:
{_describe_intents()}

Respond ONLY with a single JSON object containing "intent", "entities", and "confidence" ("high", "medium", "low").
Do not include markdown formatting or explanations.
Example for creating a workflow: {{{{"intent": "CREATE_WORKFLOW", "entities": {{{{"workflow_name": "My New Report"}}}}, "confidence": "high"}}}}
Example for unknown: {{{{"intent": "UNKNOWN", "entities": {{{{}}}}, "confidence": "low"}}}}

User request: {{utterance}}
""")

PROBING_QUESTION_PROMPT = PromptTemplate.from_template("""You are an AI assistant for WF-Builder. The user's previous request was not fully understood.
Their original message was: "{utterance}"

WF-Builder can help users:
- Create new workflows (e.g., "Create a financial report workflow")
- Add steps to existing workflows (e.g., "Add a data validation step to my report")
- Define parameters for these steps
- Connect steps in a sequence
- And generally manage their automated business processes.

Your task is to generate a SINGLE, clear, and helpful question to ask the user to clarify their intention or provide missing information relevant to these workflow capabilities.
Focus on understanding what the user wants to *do* with a workflow.
Do not try to complete the task yourself, only ask one clarifying question.
If the user's request seems completely unrelated to workflow building, you can ask a more general clarifying question like 'How can I help you with workflows today?'
Respond ONLY with the question.
""")
