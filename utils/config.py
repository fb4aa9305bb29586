# utils/config.py

"""
Configuration for the chef assistant, loaded from environment variables (and a
local .env file) with defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class OpenAIConfig:
    """Chat and embedding model settings."""
    api_key: Optional[str]
    chat_model: str
    embedding_model: str
    temperature: float
    request_timeout: float
    max_tool_rounds: int


@dataclass
class PineconeConfig:
    api_key: Optional[str]
    index_name: str
    namespace: str
    delete_scan_top_k: int


@dataclass
class DatabaseConfig:
    url: str
    echo: bool


@dataclass
class ChatConfig:
    """Turn orchestration settings."""
    history_window: int
    memory_top_k: int
    memory_similarity_threshold: float
    memory_chunk_size: int
    memory_chunk_overlap: int
    provenance_policy: str


@dataclass
class IngestionConfig:
    """Knowledge-base ingestion settings."""
    rate_delay_seconds: float
    page_fetch_timeout: float
    chunk_size: int
    chunk_overlap: int
    user_agent: str
    fetch_mode: str = "browser"
    settle_seconds: float = 2.0


@dataclass
class ToolConfig:
    recipe_search_top_k: int
    recipe_similarity_threshold: float
    web_search_max_results: int
    fetch_max_chars: int
    resend_api_key: Optional[str]
    mail_from: str


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    openai: OpenAIConfig
    pinecone: PineconeConfig
    database: DatabaseConfig
    chat: ChatConfig
    ingestion: IngestionConfig
    tools: ToolConfig


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    openai_config = OpenAIConfig(api_key=os.getenv('OPENAI_API_KEY'),
                                 chat_model=os.getenv('OPENAI_CHAT_MODEL', 'gpt-4o'),
                                 embedding_model=os.getenv('OPENAI_EMBEDDING_MODEL', 'text-embedding-3-small'),
                                 temperature=float(os.getenv('OPENAI_TEMPERATURE', '0.85')),
                                 request_timeout=float(os.getenv('OPENAI_REQUEST_TIMEOUT', '120')),
                                 max_tool_rounds=int(os.getenv('OPENAI_MAX_TOOL_ROUNDS', '5')))

    pinecone_config = PineconeConfig(api_key=os.getenv('PINECONE_API_KEY'),
                                     index_name=os.getenv('PINECONE_INDEX', 'chefbot'),
                                     namespace=os.getenv('PINECONE_NAMESPACE', ''),
                                     delete_scan_top_k=int(os.getenv('PINECONE_DELETE_SCAN_TOP_K', '1000')))

    database_config = DatabaseConfig(url=os.getenv('DATABASE_URL', 'sqlite:///chefbot.db'),
                                     echo=_env_bool('DATABASE_ECHO', 'false'))

    chat_config = ChatConfig(history_window=int(os.getenv('CHAT_HISTORY_WINDOW', '20')),
                             memory_top_k=int(os.getenv('MEMORY_TOP_K', '2')),
                             memory_similarity_threshold=float(os.getenv('MEMORY_SIMILARITY_THRESHOLD', '0.5')),
                             memory_chunk_size=int(os.getenv('MEMORY_CHUNK_SIZE', '1200')),
                             memory_chunk_overlap=int(os.getenv('MEMORY_CHUNK_OVERLAP', '200')),
                             provenance_policy=os.getenv('PROVENANCE_POLICY', 'fallback'))

    ingestion_config = IngestionConfig(rate_delay_seconds=float(os.getenv('INGESTION_RATE_DELAY', '2.0')),
                                       page_fetch_timeout=float(os.getenv('PAGE_FETCH_TIMEOUT', '30')),
                                       chunk_size=int(os.getenv('RECIPE_CHUNK_SIZE', '1200')),
                                       chunk_overlap=int(os.getenv('RECIPE_CHUNK_OVERLAP', '200')),
                                       user_agent=os.getenv('SCRAPER_USER_AGENT',
                                                            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) '
                                                            'AppleWebKit/537.36 (KHTML, like Gecko) '
                                                            'Chrome/120.0.0.0 Safari/537.36'),
                                       fetch_mode=os.getenv('PAGE_FETCH_MODE', 'browser'),
                                       settle_seconds=float(os.getenv('PAGE_SETTLE_SECONDS', '2.0')))

    tool_config = ToolConfig(recipe_search_top_k=int(os.getenv('RECIPE_SEARCH_TOP_K', '5')),
                             recipe_similarity_threshold=float(os.getenv('RECIPE_SIMILARITY_THRESHOLD', '0.45')),
                             web_search_max_results=int(os.getenv('WEB_SEARCH_MAX_RESULTS', '5')),
                             fetch_max_chars=int(os.getenv('FETCH_MAX_CHARS', '5000')),
                             resend_api_key=os.getenv('RESEND_API_KEY'),
                             mail_from=os.getenv('MAIL_FROM', 'ChefBot <onboarding@resend.dev>'))

    return AppConfig(environment=os.getenv('ENVIRONMENT', 'development'),
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     openai=openai_config,
                     pinecone=pinecone_config,
                     database=database_config,
                     chat=chat_config,
                     ingestion=ingestion_config,
                     tools=tool_config)


# Global config instance
config = load_config()
