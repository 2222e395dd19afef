"""Per-session conversational context and its in-memory store."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from weakref import WeakValueDictionary

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"
DEFAULT_RETENTION = timedelta(hours=1)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionContext:
    session_id: str
    workspace_slug: Optional[str] = None
    workspace_name: Optional[str] = None
    project_slug: Optional[str] = None
    project_name: Optional[str] = None
    workspace_projects: Optional[List[str]] = None
    last_updated: datetime = field(default_factory=utcnow)

    def clear_project(self) -> None:
        self.project_slug = None
        self.project_name = None

    def copy(self) -> "SessionContext":
        projects = (
            list(self.workspace_projects) if self.workspace_projects is not None else None
        )
        return replace(self, workspace_projects=projects)


class ContextStore:
    """In-memory session registry.

    Reads hand out copies; writes go through ``set`` or ``update``. ``update``
    holds a lock scoped to one session id for the whole read-modify-write, so
    two turns of the same conversation never lose each other's changes while
    unrelated sessions proceed independently.
    """

    def __init__(
        self, retention: timedelta = DEFAULT_RETENTION, clock: Clock = utcnow
    ) -> None:
        self._contexts: Dict[str, SessionContext] = {}
        self._lock = threading.RLock()
        self._key_locks: "WeakValueDictionary[str, threading.Lock]" = WeakValueDictionary()
        self.retention = retention
        self._clock = clock

    def get_or_create(self, session_id: str) -> SessionContext:
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = SessionContext(session_id=session_id, last_updated=self._clock())
                self._contexts[session_id] = context
            return context.copy()

    def get(self, session_id: str) -> Optional[SessionContext]:
        with self._lock:
            context = self._contexts.get(session_id)
            return context.copy() if context is not None else None

    def set(self, session_id: str, context: SessionContext) -> None:
        with self._lock:
            self._contexts[session_id] = context.copy()

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._contexts.pop(session_id, None)

    def update(
        self, session_id: str, mutate: Callable[[SessionContext], bool]
    ) -> SessionContext:
        """Apply ``mutate`` atomically; refresh the timestamp when it reports a change."""

        with self._session_lock(session_id):
            context = self.get_or_create(session_id)
            if mutate(context):
                context.last_updated = self._clock()
            self.set(session_id, context)
            return context.copy()

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop contexts idle for longer than the retention window."""

        cutoff = (now or self._clock()) - self.retention
        with self._lock:
            expired = [
                session_id
                for session_id, context in list(self._contexts.items())
                if context.last_updated < cutoff
            ]
            for session_id in expired:
                del self._contexts[session_id]
        if expired:
            logger.info("Swept %d idle session context(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._contexts

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[session_id] = lock
            return lock


class ContextSweeper:
    """Background task that periodically sweeps a ``ContextStore``."""

    def __init__(self, store: ContextStore, interval_seconds: float) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.store.sweep()
            except Exception:
                logger.exception("Context sweep failed")


__all__ = [
    "ContextStore",
    "ContextSweeper",
    "DEFAULT_RETENTION",
    "DEFAULT_SESSION_ID",
    "SessionContext",
    "utcnow",
]
