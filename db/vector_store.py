# db/vector_store.py

"""
Vector store boundary used by memory, local recipe search and ingestion.

Documents carry their text in metadata under "text". Filters are flat
equality dicts ({"type": "web-recipe", "url": ...}); the Pinecone adapter
turns them into $eq clauses.
"""

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pinecone import Pinecone
from utils.config import PineconeConfig
from utils.errors import VectorStoreError
from utils.logging_config import get_logger

logger = get_logger(__name__)

Embedder = Callable[[List[str]], List[List[float]]]


@dataclass
class VectorDocument:
    text: str
    metadata: Dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    score: Optional[float] = None


class VectorStore:
    """Operations the chat and ingestion paths need from a similarity index."""

    def add(self, documents: List[VectorDocument]) -> None:
        raise NotImplementedError

    def similarity_search(self, query: str, top_k: int, filters: Optional[Dict] = None,
                          score_threshold: Optional[float] = None) -> List[VectorDocument]:
        raise NotImplementedError

    def delete_by_filter(self, filters: Dict) -> int:
        """Delete every document whose metadata matches all filters. Returns the number deleted."""
        raise NotImplementedError


def to_pinecone_filter(filters: Optional[Dict]) -> Optional[Dict]:
    if not filters:
        return None
    return {key: {"$eq": value} for key, value in filters.items()}


def clean_metadata(metadata: Dict) -> Dict:
    # Pinecone rejects null metadata values
    return {key: value for key, value in metadata.items() if value is not None}


class PineconeVectorStore(VectorStore):
    UPSERT_BATCH_SIZE = 100
    MAX_DELETE_ROUNDS = 20

    def __init__(self, index, embedder: Embedder, namespace: str = "", delete_scan_top_k: int = 1000):
        self.index = index
        self.embedder = embedder
        self.namespace = namespace
        self.delete_scan_top_k = delete_scan_top_k

    @classmethod
    def from_config(cls, pinecone_config: PineconeConfig, embedder: Embedder) -> "PineconeVectorStore":
        pc = Pinecone(api_key=pinecone_config.api_key)
        index = pc.Index(pinecone_config.index_name)
        return cls(index, embedder, namespace=pinecone_config.namespace,
                   delete_scan_top_k=pinecone_config.delete_scan_top_k)

    def add(self, documents: List[VectorDocument]) -> None:
        if not documents:
            return
        vectors = self.embedder([doc.text for doc in documents])
        records = [
            {
                "id": doc.id,
                "values": values,
                "metadata": clean_metadata({**doc.metadata, "text": doc.text}),
            }
            for doc, values in zip(documents, vectors)
        ]
        try:
            for start in range(0, len(records), self.UPSERT_BATCH_SIZE):
                self.index.upsert(vectors=records[start:start + self.UPSERT_BATCH_SIZE], namespace=self.namespace)
        except Exception as e:
            raise VectorStoreError(f"Pinecone upsert failed: {e}") from e
        logger.debug("Upserted %d vectors", len(records))

    def similarity_search(self, query: str, top_k: int, filters: Optional[Dict] = None,
                          score_threshold: Optional[float] = None) -> List[VectorDocument]:
        query_vector = self.embedder([query])[0]
        try:
            response = self.index.query(
                vector=query_vector,
                top_k=top_k,
                filter=to_pinecone_filter(filters),
                include_metadata=True,
                namespace=self.namespace,
            )
        except Exception as e:
            raise VectorStoreError(f"Pinecone query failed: {e}") from e

        documents = []
        for match in response.matches:
            if score_threshold is not None and match.score is not None and match.score < score_threshold:
                continue
            metadata = dict(match.metadata or {})
            text = metadata.pop("text", "")
            documents.append(VectorDocument(text=text, metadata=metadata, id=match.id, score=match.score))
        return documents

    def delete_by_filter(self, filters: Dict) -> int:
        # Serverless indexes cannot delete by metadata, so find the ids with a
        # filtered query and delete them by id until nothing new comes back.
        probe = self.embedder([" ".join(str(value) for value in filters.values()) or "probe"])[0]
        deleted = set()
        try:
            for _ in range(self.MAX_DELETE_ROUNDS):
                response = self.index.query(
                    vector=probe,
                    top_k=self.delete_scan_top_k,
                    filter=to_pinecone_filter(filters),
                    include_metadata=False,
                    namespace=self.namespace,
                )
                ids = [match.id for match in response.matches if match.id not in deleted]
                if not ids:
                    break
                self.index.delete(ids=ids, namespace=self.namespace)
                deleted.update(ids)
        except Exception as e:
            raise VectorStoreError(f"Pinecone delete failed: {e}") from e

        logger.debug("Deleted %d vectors matching %s", len(deleted), filters)
        return len(deleted)
