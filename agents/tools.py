# agents/tools.py

"""
Tools the chat model can call during a turn.

Each tool is built by a factory so its collaborators (vector store, page
fetcher, mailer) are injected instead of read from module globals. Tools
return plain strings; failures come back as error text for the model,
never as exceptions.
"""

from typing import Iterable, List, Optional

from ddgs import DDGS
from langchain_core.tools import BaseTool, tool

from agents.page_fetcher import PageFetcher
from db.vector_store import VectorStore
from utils.errors import ExternalServiceError, MailDeliveryError
from utils.logging_config import get_logger

logger = get_logger(__name__)

SEARCH_RECIPES_TOOL = "search_recipes"
WEB_SEARCH_TOOL = "web_search"
FETCH_CONTENT_TOOL = "fetch_content"
SEND_EMAIL_TOOL = "send_email"

RECIPE_DOC_TYPE = "web-recipe"
RECIPE_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "... [content truncated]"


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def make_search_recipes_tool(vector_store: VectorStore, top_k: int = 5, similarity_threshold: float = 0.45) -> BaseTool:
    @tool(SEARCH_RECIPES_TOOL)
    def search_recipes(query: str) -> str:
        """
        Search the local recipe database for recipes matching the query
        (dish name, ingredients, cuisine). Always try this before searching the web.
        """
        if not query or not query.strip():
            return "Error: search query is empty."
        try:
            documents = vector_store.similarity_search(
                query,
                top_k=top_k,
                filters={"type": RECIPE_DOC_TYPE},
                score_threshold=similarity_threshold,
            )
        except ExternalServiceError as e:
            logger.warning("Local recipe search failed: %s", e)
            return f"Error searching recipes: {e}"

        if not documents:
            return f"No recipes found in local database for: {query}. Try searching the web instead."
        logger.info("Local recipe search for %r returned %d documents", query, len(documents))
        return RECIPE_SEPARATOR.join(doc.text for doc in documents)

    return search_recipes


def make_web_search_tool(max_results: int = 5) -> BaseTool:
    @tool(WEB_SEARCH_TOOL)
    def web_search(query: str) -> str:
        """Search the web for recipes. Returns titles, links and snippets; use fetch_content to read a page."""
        if not query or not query.strip():
            return "Error: search query is empty."
        try:
            lines = []
            with DDGS() as ddgs:
                for position, hit in enumerate(ddgs.text(query, max_results=max_results), start=1):
                    lines.append(f"{position}. {hit.get('title', '')}\n"
                                 f"   URL: {hit.get('href', '')}\n"
                                 f"   {hit.get('body', '')}")
        except Exception as e:
            logger.error("Web search failed for %r: %s", query, e)
            return f"Error searching the web: {e}"

        if not lines:
            return "No web results found."
        return "\n\n".join(lines)

    return web_search


def make_fetch_content_tool(fetcher: PageFetcher, max_chars: int = 5000) -> BaseTool:
    @tool(FETCH_CONTENT_TOOL)
    def fetch_content(url: str) -> str:
        """Download a web page and return its text, so the recipe on it can be read."""
        if not url or not url.strip():
            return "Error: url is empty."
        try:
            text = fetcher.fetch_text(url.strip())
        except ExternalServiceError as e:
            logger.warning("fetch_content failed: %s", e)
            return f"Error fetching content: {e}"
        return truncate(text, max_chars)

    return fetch_content


def make_send_email_tool(mailer, allowed_recipients: Iterable[str]) -> BaseTool:
    allowed = {address.strip().lower() for address in allowed_recipients}

    @tool(SEND_EMAIL_TOOL)
    def send_email(to: str, subject: str, text: str) -> str:
        """
        Send an email (for example a recipe or a shopping list). Only use the
        address the user wrote in their latest message.
        """
        recipient = (to or "").strip()
        if recipient.lower() not in allowed:
            logger.warning("Refused email to %s, allowed: %s", recipient, sorted(allowed))
            return f"Error: {recipient or 'empty address'} is not the address the user gave in this message. Email not sent."
        try:
            return mailer.send(recipient, subject, text)
        except MailDeliveryError as e:
            logger.error("Email delivery failed: %s", e)
            return f"Error sending email: {e}"

    return send_email


class ToolRegistry:
    """
    The tools available to the orchestrator.

    Static tools are shared by every turn. The email tool is rebuilt per turn
    so it only accepts the recipients found in that turn's message.
    """

    def __init__(self, tools: Optional[List[BaseTool]] = None, mailer=None):
        self._tools = {t.name: t for t in (tools or [])}
        self.mailer = mailer

    def register(self, new_tool: BaseTool) -> None:
        self._tools[new_tool.name] = new_tool

    def catalog(self) -> List[str]:
        names = list(self._tools)
        if self.mailer is not None:
            names.append(SEND_EMAIL_TOOL)
        return names

    def build(self, names: Iterable[str], allowed_recipients: Iterable[str] = ()) -> List[BaseTool]:
        selected = []
        for name in names:
            if name == SEND_EMAIL_TOOL:
                if self.mailer is not None:
                    selected.append(make_send_email_tool(self.mailer, allowed_recipients))
            elif name in self._tools:
                selected.append(self._tools[name])
        return selected


def build_default_registry(vector_store: VectorStore, fetcher: PageFetcher, tool_config, mailer=None) -> ToolRegistry:
    return ToolRegistry(
        tools=[
            make_search_recipes_tool(vector_store, tool_config.recipe_search_top_k,
                                     tool_config.recipe_similarity_threshold),
            make_web_search_tool(tool_config.web_search_max_results),
            make_fetch_content_tool(fetcher, tool_config.fetch_max_chars),
        ],
        mailer=mailer,
    )
