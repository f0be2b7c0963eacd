import re
from typing import Optional
from wfchat.core.errors import InputValidationError
from wfchat.core.observability import TraceManager

MAX_NAME_LENGTH = 100

class Guardrails:
    """
    Checks applied to user-supplied names before anything reaches the workflow builder.
    """

    INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')

    @staticmethod
    def validate_name(value: Optional[str], label: str) -> str:
        """
        Returns the trimmed name or raises InputValidationError.
        `label` is the human word for the field, e.g. "workflow" or "step".
        """
        name = (value or "").strip()

        if not name:
            raise InputValidationError(
                f"The {label} name cannot be empty. Please try again.",
                details={"field": label, "reason": "empty"}
            )

        if Guardrails.INVALID_NAME_CHARS.search(name):
            TraceManager.info("Guardrail rejected name", field=label, reason="invalid_characters")
            raise InputValidationError(
                f"The {label} name contains invalid characters. "
                "Please use only letters, numbers, spaces, and basic punctuation.",
                details={"field": label, "reason": "invalid_characters", "value": name}
            )

        if len(name) > MAX_NAME_LENGTH:
            raise InputValidationError(
                f"The {label} name is too long. Please use a name with {MAX_NAME_LENGTH} characters or less.",
                details={"field": label, "reason": "too_long", "length": len(name)}
            )

        return name

    @staticmethod
    def require_target(value: Optional[str]) -> str:
        target = (value or "").strip()
        if not target:
            raise InputValidationError(
                "Please specify which workflow to add the step to.",
                details={"field": "workflow_target", "reason": "empty"}
            )
        return target
