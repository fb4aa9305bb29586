# ingestion/schema.py

from enum import Enum
from typing import Optional
from pydantic import BaseModel

from models.schema import ExtractedRecipe


class IngestionStatus(str, Enum):
    PENDING = "PENDING"
    SKIPPED = "SKIPPED"        # url already stored
    EXTRACTING = "EXTRACTING"
    ABORTED = "ABORTED"        # extractor found no recipe
    EMBEDDING = "EMBEDDING"
    PERSISTED = "PERSISTED"
    FAILED = "FAILED"


class UrlIngestionState(BaseModel):
    url: str
    status: IngestionStatus = IngestionStatus.PENDING
    recipe: Optional[ExtractedRecipe] = None
    recipe_id: Optional[int] = None
    chunk_count: int = 0
    error: Optional[str] = None
