from typing import Any, Dict, Optional

ERROR_CODES = {
    "INVALID_INPUT": "INVALID_INPUT",
    "WORKFLOW_NOT_FOUND": "WORKFLOW_NOT_FOUND",
    "DUPLICATE_NAME": "DUPLICATE_NAME",
    "UPSTREAM_UNAVAILABLE": "UPSTREAM_UNAVAILABLE",
    "EXECUTOR_FAILED": "EXECUTOR_FAILED",
    "INTERNAL_ERROR": "INTERNAL_ERROR",
}


class WorkflowChatError(Exception):
    """Base error of the dialogue engine. `message` is safe to show to the user."""

    code = ERROR_CODES["INTERNAL_ERROR"]

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}


class InputValidationError(WorkflowChatError):
    code = ERROR_CODES["INVALID_INPUT"]


class UpstreamClassifierError(WorkflowChatError):
    code = ERROR_CODES["UPSTREAM_UNAVAILABLE"]


class ExecutorError(WorkflowChatError):
    code = ERROR_CODES["EXECUTOR_FAILED"]
