"""
Session reconciliation engine.

Owns the ``user``/``loading`` state the application renders from. It
listens to the identity provider and keeps a local session marker next to
it. When the provider reports "no user" while the marker says a user is
signed in (typically a reload where the provider has not rehydrated yet),
the engine asks the provider again instead of signing the user out.

Notifications are processed one at a time by a single worker task, so a
notification that arrives while a recovery is in flight waits for it.
Ending a session goes through the same queue, behind every notification
received before it.
"""

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from connect_auth.auth.base import IdentityProvider
from connect_auth.schemas.auth import Subject
from connect_auth.storage.session_store import SessionStore
from connect_auth.utils.exceptions import RecoveryError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    RECOVERING = "recovering"


@dataclass(frozen=True)
class EngineState:
    """Snapshot exposed to presentation code."""
    subject: Optional[Subject] = None
    loading: bool = True


StateListener = Callable[[EngineState], None]

# Queue item that ends the session once earlier notifications are handled
_END_SESSION = object()


class SessionEngine:
    """
    Reconciles provider notifications with the local session marker.

    One provider subscription per engine: registered by ``start()``,
    cancelled by ``close()``.
    """

    def __init__(self, provider: IdentityProvider, session_store: SessionStore):
        """
        Initialize SessionEngine.

        Args:
            provider: Identity provider (either variant)
            session_store: This context's session marker
        """
        self._provider = provider
        self._session_store = session_store

        self._state = EngineState()
        self._status = SessionState.INITIALIZING
        self._listeners: List[StateListener] = []

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def status(self) -> SessionState:
        return self._status

    @property
    def user(self) -> Optional[Subject]:
        return self._state.subject

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def started(self) -> bool:
        return self._worker is not None and not self._closed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register for state changes. Returns an idempotent unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Subscribe to the provider and process its initial replay.

        Raises:
            RuntimeError: If the engine was already started or closed
        """
        if self._worker is not None or self._closed:
            raise RuntimeError("SessionEngine can only be started once")

        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())
        try:
            self._unsubscribe = self._provider.subscribe_auth_state(self._enqueue)
            await self.settle()
        except BaseException:
            await self.close()
            raise

    async def close(self) -> None:
        """Cancel the provider subscription and stop the worker. Idempotent."""
        self._closed = True
        try:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
        finally:
            if self._worker is not None and not self._worker.done():
                self._worker.cancel()
                with suppress(asyncio.CancelledError):
                    await self._worker
            self._listeners.clear()

    async def __aenter__(self) -> "SessionEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def settle(self) -> None:
        """Wait until every notification received so far has been processed."""
        if self._queue is None or self._closed:
            return
        await self._queue.join()

    # -------------------------------------------------------------------------
    # Notification processing
    # -------------------------------------------------------------------------

    def _enqueue(self, subject: Optional[Subject]) -> None:
        if self._queue is None or self._closed:
            return
        self._queue.put_nowait(subject)

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _END_SESSION:
                    self._clear_session()
                else:
                    await self._handle_notification(item)
            except Exception:
                logger.exception("Failed to process auth state notification")
            finally:
                self._queue.task_done()

    async def _handle_notification(self, subject: Optional[Subject]) -> None:
        if subject is not None:
            self._session_store.write(subject.subject_id)
            self._commit(subject, SessionState.AUTHENTICATED)
            return

        if not self._session_store.exists():
            self._session_store.clear()
            self._commit(None, SessionState.UNAUTHENTICATED)
            return

        # Marker says signed in, provider says not (yet)
        logger.info("Session found but no auth user, refreshing auth state...")
        self._status = SessionState.RECOVERING
        if self._state.loading:
            self._set_state(EngineState(subject=self._state.subject, loading=False))
        await self.refresh_session()

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def _set_state(self, state: EngineState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session state listener failed")

    def _commit(self, subject: Optional[Subject], status: SessionState) -> None:
        self._status = status
        self._set_state(EngineState(subject=subject, loading=False))

    def _settle_status(self) -> None:
        self._status = (
            SessionState.AUTHENTICATED if self._state.subject else SessionState.UNAUTHENTICATED
        )

    async def refresh_session(self) -> Optional[Subject]:
        """
        Re-read the provider's current subject and commit it.

        Best effort: when the provider has no subject, neither the session
        marker nor the current state is touched. Failures are logged, not
        raised.

        Returns:
            The committed Subject, or None if nothing was committed
        """
        try:
            current = self._provider.current_subject
            if current is None:
                logger.warning("No current user during session refresh; keeping existing state")
                self._settle_status()
                return None

            subject = Subject.model_validate(current.model_dump())
            self._session_store.write(subject.subject_id)
            self._commit(subject, SessionState.AUTHENTICATED)
            return subject
        except Exception as e:
            error = RecoveryError(details={"cause": repr(e)})
            logger.error(f"Error refreshing user session: {error.message}: {e}")
            self._settle_status()
            return None

    def record_session(self, subject: Subject) -> None:
        """Write the session marker after a successful sign-in or sign-up."""
        self._session_store.write(subject.subject_id)

    async def end_session(self) -> None:
        """
        Drop the session marker and the subject after an explicit sign-out.

        Queued behind pending notifications, so a subject that was still in
        flight cannot bring the session back afterwards.
        """
        if self._queue is None or self._closed:
            self._clear_session()
            return
        self._queue.put_nowait(_END_SESSION)
        await self.settle()

    def _clear_session(self) -> None:
        self._session_store.clear()
        self._commit(None, SessionState.UNAUTHENTICATED)
