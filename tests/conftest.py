import re
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from agents.context_assembler import ContextAssembler
from agents.llm_client import ChatModel
from agents.memory import MemoryRetriever, MemoryWriter
from agents.recipe_extractor import RecipeExtractor
from agents.tools import ToolRegistry, make_search_recipes_tool
from db.database import Base, make_session_factory
from db.services import ConversationStore, RecipeStore
from db.vector_store import VectorDocument, VectorStore
from ingestion.pipeline import KnowledgeBaseService
from orchestrator.graph import TurnDependencies
from orchestrator.service import ChefService
from utils.errors import PageFetchError, VectorStoreError
import db.models  # noqa: F401


def _tokens(text: str) -> set:
    return {word for word in re.findall(r"[a-z0-9]+", text.lower()) if len(word) > 2}


class FakeVectorStore(VectorStore):
    """In-memory store; the score is the share of query words found in the document."""

    def __init__(self):
        self.documents: List[VectorDocument] = []
        self.fail = False
        self.calls: List[str] = []

    def _check(self, operation: str):
        self.calls.append(operation)
        if self.fail:
            raise VectorStoreError(f"{operation} unavailable")

    @staticmethod
    def _matches(doc: VectorDocument, filters: Optional[Dict]) -> bool:
        return all(doc.metadata.get(key) == value for key, value in (filters or {}).items())

    def add(self, documents):
        self._check("add")
        self.documents.extend(documents)

    def similarity_search(self, query, top_k, filters=None, score_threshold=None):
        self._check("search")
        query_tokens = _tokens(query)
        results = []
        for doc in self.documents:
            if not self._matches(doc, filters):
                continue
            score = len(query_tokens & _tokens(doc.text)) / len(query_tokens) if query_tokens else 0.0
            if score_threshold is not None and score < score_threshold:
                continue
            results.append(VectorDocument(text=doc.text, metadata=dict(doc.metadata), id=doc.id, score=score))
        results.sort(key=lambda d: d.score, reverse=True)
        return results[:top_k]

    def delete_by_filter(self, filters):
        self._check("delete")
        before = len(self.documents)
        self.documents = [doc for doc in self.documents if not self._matches(doc, filters)]
        return before - len(self.documents)

    def find(self, **filters) -> List[VectorDocument]:
        return [doc for doc in self.documents if self._matches(doc, filters)]


class FakeChatModel(ChatModel):
    def __init__(self, reply: str = "Here is your recipe!", completion: str = ""):
        self.reply = reply
        self.completion = completion
        self.error: Optional[Exception] = None
        self.invocations: List[Dict] = []
        self.prompts: List[str] = []

    def invoke(self, messages, tools=()):
        self.invocations.append({"messages": list(messages), "tools": [t.name for t in tools]})
        if self.error is not None:
            raise self.error
        return self.reply

    def complete(self, prompt, system=None, temperature=0.0):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.completion

    def embed(self, texts):
        return [[float(len(text))] for text in texts]


class FakePageFetcher:
    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages = pages or {}
        self.fetched: List[str] = []

    def fetch_text(self, url):
        self.fetched.append(url)
        if url not in self.pages:
            raise PageFetchError(f"Could not fetch {url}: 404")
        return self.pages[url]


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, text):
        self.sent.append((to, subject, text))
        return f"Email sent to {to} (id: test-1)"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def conversations(session_factory):
    return ConversationStore(session_factory)


@pytest.fixture
def recipes(session_factory):
    return RecipeStore(session_factory)


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def registry(vector_store, mailer):
    return ToolRegistry(tools=[make_search_recipes_tool(vector_store)], mailer=mailer)


@pytest.fixture
def chef_service(conversations, vector_store, chat_model, registry):
    return ChefService(TurnDependencies(
        conversations=conversations,
        memory_retriever=MemoryRetriever(vector_store, similarity_threshold=0.5),
        memory_writer=MemoryWriter(vector_store, chunk_size=200, chunk_overlap=20),
        assembler=ContextAssembler(history_window=20),
        registry=registry,
        model=chat_model,
        memory_top_k=2,
    ))


@pytest.fixture
def page_fetcher():
    return FakePageFetcher()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def knowledge_base(recipes, vector_store, page_fetcher, chat_model, sleeps):
    return KnowledgeBaseService(
        recipes=recipes,
        vector_store=vector_store,
        extractor=RecipeExtractor(page_fetcher, chat_model),
        rate_delay_seconds=2.0,
        chunk_size=300,
        chunk_overlap=50,
        sleep=sleeps.append,
    )
