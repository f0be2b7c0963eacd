import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from wfchat.core.observability import TraceManager, current_context
from wfchat.db.models import AuditLog
from wfchat.db.session import init_models

logger = logging.getLogger(__name__)


class AuditStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INVALID_INPUT = "invalid_input"
    INFO = "info"
    CLARIFICATION_NEEDED = "clarification_needed"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"


class AuditEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor_id: str = "system"
    actor_role: str
    action: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: Optional[str] = None
    trace_id: Optional[str] = Field(default_factory=lambda: current_context()["trace_id"])


class AuditSink(ABC):
    """
    Append-only record of dispatched actions and probing attempts.
    `log` must return promptly; slow backends hand the write off.
    """

    @abstractmethod
    def log(
        self,
        actor_role: str,
        action_name: str,
        parameters: Dict[str, Any],
        actor_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> None:
        pass

    @staticmethod
    def build_entry(actor_role, action_name, parameters, actor_id=None, status=None) -> AuditEntry:
        return AuditEntry(
            actor_id=actor_id or "system",
            actor_role=actor_role,
            action=action_name,
            parameters=dict(parameters or {}),
            status=status.value if isinstance(status, Enum) else status
        )


class LoggingAuditSink(AuditSink):
    def log(self, actor_role, action_name, parameters, actor_id=None, status=None) -> None:
        entry = self.build_entry(actor_role, action_name, parameters, actor_id, status)
        TraceManager.info("Audit Log Entry", feature="audit", audit=entry.model_dump(mode="json"))


class InMemoryAuditSink(AuditSink):
    def __init__(self):
        self.entries: List[AuditEntry] = []

    def log(self, actor_role, action_name, parameters, actor_id=None, status=None) -> None:
        self.entries.append(self.build_entry(actor_role, action_name, parameters, actor_id, status))

    def find(self, action: Optional[str] = None, status: Optional[str] = None) -> List[AuditEntry]:
        return [
            e for e in self.entries
            if (action is None or e.action == action) and (status is None or e.status == status)
        ]


class SqlAuditSink(AuditSink):
    """
    Persists entries through SQLAlchemy. Each write runs as a background task
    on the current loop so dispatch never waits on the database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], engine: Optional[AsyncEngine] = None):
        self.session_factory = session_factory
        self.engine = engine
        self._pending: Set[asyncio.Task] = set()

    async def prepare(self) -> None:
        """Creates the audit table when the sink owns its engine."""
        if self.engine is not None:
            await init_models(self.engine)

    def log(self, actor_role, action_name, parameters, actor_id=None, status=None) -> None:
        entry = self.build_entry(actor_role, action_name, parameters, actor_id, status)
        task = asyncio.get_running_loop().create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: AuditEntry) -> None:
        try:
            async with self.session_factory() as session:
                session.add(AuditLog(
                    actor_id=entry.actor_id,
                    actor_role=entry.actor_role,
                    action=entry.action,
                    parameters=entry.model_dump(mode="json")["parameters"],
                    status=entry.status,
                    trace_id=entry.trace_id,
                    created_at=entry.timestamp
                ))
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to record audit entry {entry.action}: {e}")

    async def aclose(self) -> None:
        """Waits for writes still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self.engine is not None:
            await self.engine.dispose()


def record_audit(sink: Optional[AuditSink], *args, **kwargs) -> None:
    """Fire-and-forget wrapper: an audit failure is logged locally and never reaches the caller."""
    if sink is None:
        return
    try:
        sink.log(*args, **kwargs)
    except Exception as e:
        logger.error(f"Audit sink {type(sink).__name__} failed: {e}", exc_info=True)
