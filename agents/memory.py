# agents/memory.py

"""
Long-term conversation memory in the vector store.

Each session's transcript is stored as overlapping chunks tagged with the
session id (and owning user when known). Every turn replaces the session's
chunks, so the store only holds the latest snapshot.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from db.vector_store import VectorDocument, VectorStore
from utils.errors import ExternalServiceError
from utils.logging_config import get_logger
from utils.text import chunk_text
from agents.prompts import MEMORY_HEADER

logger = get_logger(__name__)

MEMORY_DOC_TYPE = "conversation-memory"
MEMORY_SEPARATOR = "\n---\n"


def format_memory(excerpts: Sequence[str]) -> str:
    if not excerpts:
        return ""
    return f"\n{MEMORY_HEADER}\n{MEMORY_SEPARATOR.join(excerpts)}\n"


def render_transcript(messages) -> str:
    lines = []
    for msg in messages:
        sender = getattr(msg.sender, "value", msg.sender)
        lines.append(f"{sender}: {msg.content}")
    return "\n".join(lines)


class MemoryRetriever:
    def __init__(self, vector_store: VectorStore, similarity_threshold: float = 0.5):
        self.vector_store = vector_store
        self.similarity_threshold = similarity_threshold

    def search(self, query: str, top_k: int = 2, user_id: Optional[str] = None,
               session_id: Optional[int] = None) -> List[str]:
        """
        Past-conversation excerpts similar to the query.

        Scoped to the user when one is known, otherwise to the session itself,
        so one user never sees another user's memory. Returns [] when the
        store fails.
        """
        filters = {"type": MEMORY_DOC_TYPE}
        if user_id is not None:
            filters["user_id"] = str(user_id)
        elif session_id is not None:
            filters["session_id"] = str(session_id)
        else:
            return []

        try:
            documents = self.vector_store.similarity_search(
                query, top_k=top_k, filters=filters, score_threshold=self.similarity_threshold
            )
        except ExternalServiceError as e:
            logger.warning("Memory search failed, continuing without memory: %s", e)
            return []
        return [doc.text for doc in documents if doc.text]


class MemoryWriter:
    def __init__(self, vector_store: VectorStore, chunk_size: int = 1200, chunk_overlap: int = 200):
        self.vector_store = vector_store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def replace(self, session, messages) -> int:
        """
        Delete the session's chunks, then insert chunks of the current transcript.

        The two steps are not atomic. If the insert fails the session has no
        memory until its next turn. Raises ExternalServiceError; callers treat
        memory refresh as best-effort.
        """
        session_key = str(session.id)
        self.vector_store.delete_by_filter({"type": MEMORY_DOC_TYPE, "session_id": session_key})

        transcript = render_transcript(messages)
        chunks = chunk_text(transcript, self.chunk_size, self.chunk_overlap)
        if not chunks:
            return 0

        timestamp = datetime.now(timezone.utc).isoformat()
        metadata = {
            "type": MEMORY_DOC_TYPE,
            "session_id": session_key,
            "session_name": session.name,
            "user_id": str(session.user_id) if session.user_id is not None else None,
            "persona": session.chef_personality,
            "diet": session.diet_type,
            "timestamp": timestamp,
        }
        self.vector_store.add([VectorDocument(text=chunk, metadata=dict(metadata)) for chunk in chunks])
        logger.debug("Stored %d memory chunks for session %s", len(chunks), session_key)
        return len(chunks)

    def purge(self, session_id: int) -> int:
        return self.vector_store.delete_by_filter({"type": MEMORY_DOC_TYPE, "session_id": str(session_id)})
