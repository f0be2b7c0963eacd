from pydantic import BaseModel
from typing import Optional
from wfchat.graph.state import CanvasCommand, ResponseStatus

class ChatRequest(BaseModel):
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    message: Optional[str] = None

class ChatResponse(BaseModel):
    session_id: Optional[str] = None
    status: ResponseStatus
    message_for_user: str
    canvas_command: Optional[CanvasCommand] = None
    error: Optional[str] = None
    trace_id: Optional[str] = None
