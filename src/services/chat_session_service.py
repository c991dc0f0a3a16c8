"""
Chat Session Service
Keeps one isolated workflow engine per conversation, for the editor preview
and for public links.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, List, Tuple
from uuid import uuid4

# Utils
from utils.log_utils import LogUtil

# Models
from models.run_state_data import EngineMode, RunResult, RunSnapshot, RunStatus
from models.workflow_data import utc_now

# Services
from services.workflow_store_service import WorkflowStoreService
from services.workflow_engine_service import WorkflowEngine
from services.pacing_scheduler_service import PacingScheduler

# Exceptions
from exceptions.workflow_exception import SessionNotFoundException


@dataclass
class ChatSession:
    id: str
    mode: EngineMode
    workflow_id: str
    engine: WorkflowEngine
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_activity: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        self.last_activity = utc_now()


class ChatSessionService:
    """
    Sessions never share an engine, a variable environment or a trace.
    Calls on the same session are serialized by the session lock.

    Sessions idle for longer than session_ttl_seconds are dropped, and at
    most max_sessions are held: finished conversations go first, then the
    least recently used ones. Sessions with a step in flight are never dropped.
    """

    def __init__(
        self,
        log_util: LogUtil,
        workflow_store_service: WorkflowStoreService,
        pacing_enabled: bool = True,
        max_delay_ms: int = 60000,
        max_auto_steps: int = 500,
        session_ttl_seconds: int = 1800,
        max_sessions: int = 1000
    ):
        self.log_util = log_util
        self.workflow_store_service = workflow_store_service
        self.pacing_enabled = pacing_enabled
        self.max_delay_ms = max_delay_ms
        self.max_auto_steps = max_auto_steps
        self.session_ttl = timedelta(seconds=session_ttl_seconds)
        self.max_sessions = max(1, max_sessions)
        self.sessions: Dict[str, ChatSession] = {}

    def _drop(self, session_ids: List[str]) -> None:
        for session_id in session_ids:
            session = self.sessions.pop(session_id)
            session.engine.reset()

    def cleanup_expired(self) -> int:
        """
        Drop idle sessions, then make room for one more under the cap.

        Returns:
            Number of sessions dropped
        """
        now = utc_now()
        idle = [
            session for session in self.sessions.values()
            if not session.lock.locked()
        ]
        expired = [session.id for session in idle if now - session.last_activity > self.session_ttl]
        self._drop(expired)
        dropped = len(expired)

        overflow = len(self.sessions) + 1 - self.max_sessions
        if overflow > 0:
            candidates = sorted(
                (session for session in idle if session.id in self.sessions),
                key=lambda session: (session.engine.status != RunStatus.TERMINATED, session.last_activity)
            )
            evicted = [session.id for session in candidates[:overflow]]
            self._drop(evicted)
            dropped += len(evicted)

        if dropped:
            self.log_util.info(
                service_name="ChatSessionService",
                message=f"Dropped {dropped} session(s), {len(self.sessions)} still open"
            )
        return dropped

    def _register(self, session: ChatSession) -> None:
        self.cleanup_expired()
        self.sessions[session.id] = session

    def _new_engine(self, mode: EngineMode) -> WorkflowEngine:
        return WorkflowEngine(
            log_util=self.log_util,
            mode=mode,
            pacing_scheduler=PacingScheduler(log_util=self.log_util, enabled=self.pacing_enabled),
            max_delay_ms=self.max_delay_ms,
            max_auto_steps=self.max_auto_steps
        )

    def get_session(self, session_id: str) -> ChatSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundException(message=f"Session {session_id} not found")
        session.touch()
        return session

    async def start_preview_session(self, workflow_id: str) -> Tuple[ChatSession, RunResult]:
        """
        Start a preview conversation on a workflow of the store
        """
        workflow = self.workflow_store_service.get_workflow(workflow_id)
        session = ChatSession(
            id=str(uuid4()),
            mode=EngineMode.PREVIEW,
            workflow_id=workflow.id,
            engine=self._new_engine(EngineMode.PREVIEW)
        )
        self._register(session)
        self.log_util.info(
            service_name="ChatSessionService",
            message=f"Preview session {session.id} opened on workflow {workflow.id}"
        )
        async with session.lock:
            result = await session.engine.start_run(workflow)
        return session, result

    async def start_public_session(self, published_id: str) -> Optional[Tuple[ChatSession, RunResult]]:
        """
        Start a conversation through a public link.

        Returns:
            None when the published id does not resolve
        """
        workflow = self.workflow_store_service.lookup_by_published_id(published_id)
        if workflow is None:
            self.log_util.warning(
                service_name="ChatSessionService",
                message=f"Published workflow {published_id} not found"
            )
            return None

        session = ChatSession(
            id=str(uuid4()),
            mode=EngineMode.PUBLIC,
            workflow_id=workflow.id,
            engine=self._new_engine(EngineMode.PUBLIC)
        )
        self._register(session)
        self.log_util.info(
            service_name="ChatSessionService",
            message=f"Public session {session.id} opened on workflow {workflow.id} (published id {published_id})"
        )
        async with session.lock:
            result = await session.engine.start_run(workflow)
        return session, result

    async def restart_session(self, session_id: str, workflow_id: Optional[str] = None) -> RunResult:
        """
        Start over, optionally on another workflow. The previous run's state
        is discarded.
        """
        session = self.get_session(session_id)
        workflow = self.workflow_store_service.get_workflow(workflow_id or session.workflow_id)
        # Abandon pending pauses before waiting for the lock
        session.engine.pacing_scheduler.cancel()
        async with session.lock:
            session.workflow_id = workflow.id
            return await session.engine.start_run(workflow)

    async def submit_response(self, session_id: str, response_id: str) -> RunResult:
        session = self.get_session(session_id)
        async with session.lock:
            result = await session.engine.submit_response(response_id)
        if not result.accepted:
            self.log_util.warning(
                service_name="ChatSessionService",
                message=f"Response {response_id} rejected in session {session_id}: {result.detail}"
            )
        return result

    def get_snapshot(self, session_id: str) -> RunSnapshot:
        return self.get_session(session_id).engine.snapshot()

    def end_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        session.engine.reset()
        del self.sessions[session_id]
        self.log_util.info(
            service_name="ChatSessionService",
            message=f"Session {session_id} closed"
        )

    def close(self) -> None:
        for session in self.sessions.values():
            session.engine.reset()
        self.sessions.clear()
