import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, Optional
from wfchat.core.intents import Intent
from wfchat.core.settings import settings
from wfchat.graph.state import Session

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Entry:
    """A live session record, its lock, and the number of operations currently holding it."""

    __slots__ = ("session", "lock", "pins")

    def __init__(self, session: Session):
        self.session = session
        self.lock = asyncio.Lock()
        self.pins = 0


class SessionStore:
    """
    Per-conversation dialogue state with idle expiry.

    Records never leave the store; readers get copies. Every operation on one
    session id runs under that session's lock, so read-modify-write sequences
    are indivisible. Creation and eviction go through a single map lock, and a
    session pinned by an in-flight operation is skipped by the sweep.
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        sweep_interval_seconds: Optional[float] = None,
        max_probing_attempts: Optional[int] = None,
        clock: Clock = utcnow,
    ):
        cfg = settings.dialogue
        self.timeout = timedelta(seconds=timeout_seconds if timeout_seconds is not None else cfg.session_timeout_seconds)
        self.sweep_interval = sweep_interval_seconds if sweep_interval_seconds is not None else cfg.sweep_interval_seconds
        self.max_probing_attempts = max_probing_attempts if max_probing_attempts is not None else cfg.max_probing_attempts
        self.clock = clock

        self._entries: Dict[str, _Entry] = {}
        self._map_lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._entries

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[Session]:
        async with self._map_lock:
            entry = self._entries.get(session_id)
            if entry is None:
                now = self.clock()
                entry = _Entry(Session(session_id=session_id, created_at=now, last_activity=now))
                self._entries[session_id] = entry
                logger.debug(f"Created session {session_id}")
            entry.pins += 1

        try:
            async with entry.lock:
                entry.session.last_activity = max(entry.session.last_activity, self.clock())
                yield entry.session
        finally:
            entry.pins -= 1

    async def get(self, session_id: str) -> Session:
        async with self._locked(session_id) as session:
            return session.model_copy(deep=True)

    async def increment_probing_attempts(self, session_id: str) -> int:
        async with self._locked(session_id) as session:
            session.probing_attempt_count += 1
            return session.probing_attempt_count

    async def try_increment_probing_attempts(self, session_id: str) -> Optional[int]:
        """Increments unless the maximum is reached; returns the new count or None when saturated."""
        async with self._locked(session_id) as session:
            if session.probing_attempt_count >= self.max_probing_attempts:
                return None
            session.probing_attempt_count += 1
            return session.probing_attempt_count

    async def reset_probing_attempts(self, session_id: str) -> None:
        async with self._locked(session_id) as session:
            session.probing_attempt_count = 0

    async def has_reached_max(self, session_id: str) -> bool:
        async with self._locked(session_id) as session:
            return session.probing_attempt_count >= self.max_probing_attempts

    async def update(
        self,
        session_id: str,
        last_intent: Optional[Intent] = None,
        last_entities: Optional[Dict[str, str]] = None,
    ) -> None:
        async with self._locked(session_id) as session:
            if last_intent is not None:
                session.last_intent = last_intent
            if last_entities is not None:
                session.last_entities = dict(last_entities)

    # --- Expiry ---

    async def sweep(self) -> int:
        """Removes sessions idle for longer than the timeout. Returns how many were removed."""
        removed = 0
        async with self._map_lock:
            now = self.clock()
            for session_id, entry in list(self._entries.items()):
                if entry.pins:
                    continue
                if now - entry.session.last_activity > self.timeout:
                    del self._entries[session_id]
                    removed += 1
                    logger.info(f"Cleaned up expired session: {session_id}")
        return removed

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Session sweep failed: {e}", exc_info=True)

    def start(self) -> asyncio.Task:
        """Schedules the periodic sweep on the running loop and returns its task."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._run_sweeper())
            logger.info(f"Session sweeper started (every {self.sweep_interval}s, timeout {self.timeout})")
        return self._sweeper

    async def stop(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Session sweeper stopped")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def __aenter__(self) -> "SessionStore":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
