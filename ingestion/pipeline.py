# ingestion/pipeline.py

import threading
import time
from typing import Callable, List, Sequence

from langgraph.graph import StateGraph, END

from agents.recipe_extractor import RecipeExtractor
from agents.tools import RECIPE_DOC_TYPE
from db.models import StoredRecipe
from db.services import RecipeStore
from db.vector_store import VectorDocument, VectorStore
from ingestion.schema import IngestionStatus, UrlIngestionState
from utils.errors import ExternalServiceError, RecipeNotFound
from utils.logging_config import get_logger
from utils.text import chunk_text

logger = get_logger(__name__)


class KnowledgeBaseService:
    """
    Turns recipe URLs into stored, embedded recipes.

    URLs are handled one after another. Per URL:

        check_duplicate -> extract -> store (embed + save)

    A URL that is already stored is skipped, a page without a recipe is
    aborted, and an error on one URL is logged without stopping the batch.
    After each stored recipe the pipeline waits `rate_delay_seconds` so the
    source site is not hammered.

    The duplicate check and the insert are not one atomic step. Two batches
    racing on the same URL can both pass the check; the unique url column
    then fails the second insert, which ends up as FAILED.
    """

    def __init__(self, recipes: RecipeStore, vector_store: VectorStore, extractor: RecipeExtractor,
                 rate_delay_seconds: float = 2.0, chunk_size: int = 1200, chunk_overlap: int = 200,
                 sleep: Callable[[float], None] = time.sleep):
        self.recipes = recipes
        self.vector_store = vector_store
        self.extractor = extractor
        self.rate_delay_seconds = rate_delay_seconds
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.sleep = sleep
        self._writer_lock = threading.Lock()
        self.graph = self._build_graph()

    def check_duplicate_node(self, state: UrlIngestionState) -> dict:
        if self.recipes.exists_by_url(state.url):
            logger.info("Skipping %s, already in the knowledge base", state.url)
            return {"status": IngestionStatus.SKIPPED}
        return {"status": IngestionStatus.EXTRACTING}

    def extract_node(self, state: UrlIngestionState) -> dict:
        recipe = self.extractor.extract(state.url)
        if recipe is None:
            logger.warning("No recipe found at %s", state.url)
            return {"status": IngestionStatus.ABORTED}
        return {"status": IngestionStatus.EMBEDDING, "recipe": recipe}

    def store_node(self, state: UrlIngestionState) -> dict:
        recipe = state.recipe
        metadata = {"type": RECIPE_DOC_TYPE, "url": state.url, "title": recipe.title, "diet": recipe.diet}
        documents = [
            VectorDocument(text=chunk, metadata=dict(metadata))
            for chunk in chunk_text(recipe.to_document(), self.chunk_size, self.chunk_overlap)
        ]

        with self._writer_lock:
            # Replace leftovers from an earlier partial run of the same url
            self.vector_store.delete_by_filter({"type": RECIPE_DOC_TYPE, "url": state.url})
            self.vector_store.add(documents)
            stored = self.recipes.save(title=recipe.title, diet=recipe.diet, url=state.url)

        logger.info("Stored '%s' from %s (%d chunks)", recipe.title, state.url, len(documents))
        return {"status": IngestionStatus.PERSISTED, "recipe_id": stored.id, "chunk_count": len(documents)}

    @staticmethod
    def route_after_duplicate_check(state: UrlIngestionState) -> str:
        return "skip" if state.status == IngestionStatus.SKIPPED else "extract"

    @staticmethod
    def route_after_extract(state: UrlIngestionState) -> str:
        return "abort" if state.status == IngestionStatus.ABORTED else "store"

    def _build_graph(self):
        builder = StateGraph(UrlIngestionState)

        builder.add_node("check_duplicate", self.check_duplicate_node)
        builder.add_node("extract", self.extract_node)
        builder.add_node("store", self.store_node)

        builder.set_entry_point("check_duplicate")

        builder.add_conditional_edges(
            "check_duplicate",
            self.route_after_duplicate_check,
            {"skip": END, "extract": "extract"},
        )
        builder.add_conditional_edges(
            "extract",
            self.route_after_extract,
            {"abort": END, "store": "store"},
        )
        builder.add_edge("store", END)

        return builder.compile()

    def process_url(self, url: str) -> UrlIngestionState:
        try:
            result = self.graph.invoke(UrlIngestionState(url=url))
        except Exception as e:
            logger.exception("Ingestion failed for %s", url)
            return UrlIngestionState(url=url, status=IngestionStatus.FAILED, error=str(e))
        return UrlIngestionState(**result)

    def process_urls(self, urls: Sequence[str]) -> List[UrlIngestionState]:
        cleaned = [url.strip() for url in urls if url and url.strip()]
        logger.info("Starting ingestion of %d urls", len(cleaned))

        results = []
        for url in cleaned:
            result = self.process_url(url)
            results.append(result)
            if result.status == IngestionStatus.PERSISTED:
                self.sleep(self.rate_delay_seconds)

        summary = {status.value: sum(1 for r in results if r.status == status) for status in IngestionStatus}
        logger.info("Ingestion finished: %s", {k: v for k, v in summary.items() if v})
        return results

    def list_recipes(self) -> List[StoredRecipe]:
        return self.recipes.list_recipes()

    def delete_recipe(self, recipe_id: int) -> None:
        """
        Delete a recipe row and its vector chunks.

        Chunks go first. If that fails the row is still deleted and the
        chunks are left orphaned, which is logged.
        """
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)

        try:
            removed = self.vector_store.delete_by_filter({"url": recipe.url})
            logger.info("Deleted %d chunks for %s", removed, recipe.url)
        except ExternalServiceError as e:
            logger.error("Could not delete chunks for %s, they are now orphaned: %s", recipe.url, e)

        self.recipes.delete(recipe_id)
