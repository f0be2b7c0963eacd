from datetime import datetime
from enum import Enum
from typing import TypedDict, Optional, Any, Dict
from pydantic import BaseModel, ConfigDict, Field
from wfchat.core.intents import Intent, Confidence


class IntentResult(BaseModel):
    """What one utterance asked for. Produced once per utterance, never mutated."""
    model_config = ConfigDict(frozen=True)

    intent: Intent
    entities: Dict[str, str] = Field(default_factory=dict)
    confidence: Confidence = Confidence.LOW

    def entity(self, key: str) -> str:
        return (self.entities.get(key) or "").strip()


class ProbingOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    needs_probing: bool
    question: Optional[str] = None
    intent: IntentResult


class Session(BaseModel):
    session_id: str
    probing_attempt_count: int = Field(0, ge=0)
    last_intent: Optional[Intent] = None
    last_entities: Optional[Dict[str, str]] = None
    created_at: datetime
    last_activity: datetime


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CLARIFICATION_NEEDED = "clarification_needed"
    INFO = "info"


class CanvasCommand(BaseModel):
    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class ActionResponse(BaseModel):
    status: ResponseStatus
    message_for_user: str
    canvas_command: Optional[CanvasCommand] = None

    @classmethod
    def error(cls, message: str) -> "ActionResponse":
        return cls(status=ResponseStatus.ERROR, message_for_user=message)

    @classmethod
    def info(cls, message: str) -> "ActionResponse":
        return cls(status=ResponseStatus.INFO, message_for_user=message)


class GraphState(TypedDict, total=False):
    """
    Represents the state of one dialogue turn flowing through the graph.
    """
    session_id: str
    actor_id: str
    utterance: str

    # Understanding
    intent_result: Optional[IntentResult]

    # Probing decision
    probing: Optional[ProbingOutcome]

    # Outcome
    response: Optional[ActionResponse]
    probing_attempts: Optional[int]
