# orchestrator/service.py

import threading
import weakref
from typing import List, Optional

from agents.persona import resolve_persona
from db.models import ChatMessage, CookingSession
from models.schema import CreateSessionRequest, DEFAULT_ALLERGIES, DEFAULT_DIET
from orchestrator.graph import TurnDependencies, build_turn_graph
from orchestrator.schema import TurnState
from utils.errors import ExternalServiceError, InputValidationError, SessionNotFound
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ChefService:
    """
    Entry point for everything chat related: sessions, turns and history.

    Turns on the same session run one at a time, and history reads wait for
    a running turn, so a reader never sees a USER message without its reply.
    """

    def __init__(self, deps: TurnDependencies):
        self.deps = deps
        self.conversations = deps.conversations
        self.graph = build_turn_graph(deps)
        # Locks live only while a caller holds them
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def create_session(self, request: CreateSessionRequest) -> CookingSession:
        name = (request.session_name or "").strip()
        if not name:
            raise InputValidationError("Session name is required.")
        if not request.chef_personality or not request.chef_personality.strip():
            raise InputValidationError("Chef personality is required.")
        persona = resolve_persona(request.chef_personality)
        if persona is None:
            raise InputValidationError(f"Unknown chef personality: {request.chef_personality}")

        diet = (request.diet_type or "").strip() or DEFAULT_DIET
        allergies = (request.allergies or "").strip() or DEFAULT_ALLERGIES
        user_id = (request.user_id or "").strip() or None

        return self.conversations.create_session(
            name=name,
            diet_type=diet,
            allergies=allergies,
            chef_personality=persona.value,
            user_id=user_id,
        )

    def get_session(self, session_id: int) -> CookingSession:
        session = self.conversations.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_sessions(self, user_id: Optional[str] = None) -> List[CookingSession]:
        return self.conversations.list_sessions(user_id)

    def get_messages(self, session_id: int) -> List[ChatMessage]:
        self.get_session(session_id)
        with self._session_lock(session_id):
            return self.conversations.get_messages(session_id)

    def handle_turn(self, session_id: int, user_text: str) -> None:
        if not user_text or not user_text.strip():
            raise InputValidationError("Message must not be empty.")
        with self._session_lock(session_id):
            # A delete may have finished while this turn waited for the lock
            session = self.get_session(session_id)
            logger.info("Session %s: new turn", session_id)
            result = self.graph.invoke(TurnState(
                session_id=session_id,
                user_text=user_text.strip(),
                user_id=session.user_id,
            ))
        if result.get("model_failed"):
            logger.warning("Session %s: turn completed with the fallback reply", session_id)

    def delete_session(self, session_id: int, user_id: Optional[str] = None) -> bool:
        """
        Delete a session, its messages and its memory vectors.

        Returns False without deleting anything when the session belongs to
        another user.
        """
        session = self.get_session(session_id)
        if session.user_id is not None and session.user_id != user_id:
            logger.warning("Refused to delete session %s for user %s", session_id, user_id)
            return False

        with self._session_lock(session_id):
            try:
                self.deps.memory_writer.purge(session_id)
            except ExternalServiceError as e:
                logger.warning("Session %s: could not purge memory vectors: %s", session_id, e)
            return self.conversations.delete_session(session_id)
