import os

# Keep tests hermetic: no provider calls unless a test injects a classifier
os.environ.setdefault("LLM_CLASSIFIER_ENABLED", "false")
os.environ.setdefault("AUDIT_BACKEND", "log")

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from wfchat.graph.main import DialogueEngine
from wfchat.graph.nodes.understanding import IntentExtractor
from wfchat.llm.classifier import UpstreamClassifier
from wfchat.services.audit import InMemoryAuditSink
from wfchat.services.executor import InMemoryActionExecutor, WorkflowCreated, StepAdded
from wfchat.services.session_store import SessionStore
from wfchat.workflow.engine import ActionDispatcher


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingExecutor(InMemoryActionExecutor):
    """In-memory executor that remembers every call it received."""

    def __init__(self):
        super().__init__()
        self.calls: List[tuple] = []

    async def create_workflow(self, name: str) -> WorkflowCreated:
        self.calls.append(("create_workflow", name))
        return await super().create_workflow(name)

    async def add_step(self, workflow_id: str, step_details: Dict[str, Any]) -> StepAdded:
        self.calls.append(("add_step", workflow_id, step_details))
        return await super().add_step(workflow_id, step_details)


class StubClassifier(UpstreamClassifier):
    def __init__(self, reply: str = "", delay: float = 0.0, error: Exception = None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.prompts: List[str] = []

    async def classify(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(timeout_seconds=30 * 60, sweep_interval_seconds=5 * 60, max_probing_attempts=3, clock=clock)


@pytest.fixture
def audit():
    return InMemoryAuditSink()


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def engine(store, executor, audit):
    return DialogueEngine(
        store=store,
        dispatcher=ActionDispatcher(executor, audit),
        extractor=IntentExtractor(),
        audit=audit
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(engine):
    from wfchat.api.main import create_app

    transport = ASGITransport(app=create_app(engine))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
