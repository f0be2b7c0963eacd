from enum import Enum
from typing import Dict, Optional


class Intent(str, Enum):
    CREATE_WORKFLOW = "CREATE_WORKFLOW"
    ADD_STEP = "ADD_STEP"
    HELP = "HELP"
    UNKNOWN = "UNKNOWN"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Entity keys shared by the classifier prompt, the heuristics and the handlers
WORKFLOW_NAME = "workflow_name"
STEP_NAME = "step_name"
WORKFLOW_TARGET = "workflow_target"

# Intent Metadata for LLM System Prompt
INTENT_DESCRIPTIONS = {
    Intent.CREATE_WORKFLOW: "User wants to make a new workflow.",
    Intent.ADD_STEP: "User wants to add a step to a workflow.",
    Intent.HELP: "User wants to get help or see what the assistant can do.",
    Intent.UNKNOWN: "The intent is unclear or not one of the supported actions.",
}

# Entities each intent can carry, with their description for the prompt
INTENT_ENTITIES: Dict[Intent, Dict[str, str]] = {
    Intent.CREATE_WORKFLOW: {WORKFLOW_NAME: "The name of the new workflow"},
    Intent.ADD_STEP: {
        STEP_NAME: "Name of the step",
        WORKFLOW_TARGET: "Optional: Name of workflow to add to",
    },
    Intent.HELP: {},
    Intent.UNKNOWN: {},
}

# The one entity without which an intent cannot be acted on
REQUIRED_ENTITY: Dict[Intent, Optional[str]] = {
    Intent.CREATE_WORKFLOW: WORKFLOW_NAME,
    Intent.ADD_STEP: STEP_NAME,
    Intent.HELP: None,
    Intent.UNKNOWN: None,
}
