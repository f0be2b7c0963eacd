from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import time
import uuid
from wfchat.core.settings import settings
from wfchat.core.observability import TraceManager, setup_logging
from wfchat.api.schemas import ChatRequest, ChatResponse
from wfchat.graph.main import DialogueEngine, build_default_engine
from wfchat.graph.state import ResponseStatus
from wfchat.services.audit import SqlAuditSink

# Setup
setup_logging()
logger = logging.getLogger(__name__)

def _bad_request(chat_request: ChatRequest, message: str, code: str, trace_id: str) -> JSONResponse:
    body = ChatResponse(
        session_id=chat_request.session_id,
        status=ResponseStatus.ERROR,
        message_for_user=message,
        error=code,
        trace_id=trace_id
    )
    return JSONResponse(status_code=400, content=body.model_dump(mode="json"))

def create_app(engine: Optional[DialogueEngine] = None) -> FastAPI:
    dialogue_engine = engine or build_default_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        audit = dialogue_engine.audit
        if isinstance(audit, SqlAuditSink):
            await audit.prepare()
        dialogue_engine.store.start()

        yield

        await dialogue_engine.store.stop()
        if isinstance(audit, SqlAuditSink):
            await audit.aclose()

    app = FastAPI(title="Workflow Builder Chat", version="1.0.0", lifespan=lifespan)
    app.state.dialogue_engine = dialogue_engine

    # Middleware for Trace ID
    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4()))
        TraceManager.set_trace_id(trace_id)
        request.state.trace_id = trace_id

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        response.headers["X-Trace-Id"] = trace_id
        TraceManager.info(f"Request: {request.method} {request.url.path}", status=response.status_code, duration_ms=duration*1000)
        return response

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "env": settings.env}

    @app.post("/workflow-chat", response_model=ChatResponse)
    async def workflow_chat(chat_request: ChatRequest, request: Request):
        trace_id = request.state.trace_id

        if not (chat_request.message or "").strip():
            return _bad_request(chat_request, "Message cannot be empty.", "EMPTY_MESSAGE", trace_id)
        if not chat_request.session_id or not chat_request.user_id:
            return _bad_request(
                chat_request, "User ID and Session ID are required.", "MISSING_REQUIRED_FIELDS", trace_id
            )

        engine: DialogueEngine = request.app.state.dialogue_engine
        response = await engine.handle(chat_request.session_id, chat_request.user_id, chat_request.message)

        return ChatResponse(
            session_id=chat_request.session_id,
            status=response.status,
            message_for_user=response.message_for_user,
            canvas_command=response.canvas_command,
            trace_id=trace_id
        )

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
