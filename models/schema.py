# models/schema.py

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional

DEFAULT_DIET = "Omnivore"
DEFAULT_ALLERGIES = "No restrictions"
DIET_CHOICES = ("Vegetarian", "Vegan", "Keto", "Omnivore")


class SenderRole(str, Enum):
    USER = "USER"
    AI = "AI"


class Message(BaseModel):
    sender: SenderRole
    content: str
    timestamp: Optional[datetime] = None


class MessageRequest(BaseModel):
    message: str


class CreateSessionRequest(BaseModel):
    """Form data for a new cooking session. Blank diet and allergies fall back to defaults."""
    session_name: Optional[str] = None
    chef_personality: Optional[str] = None
    diet_type: Optional[str] = None
    allergies: Optional[str] = None
    user_id: Optional[str] = None


class SessionResponse(BaseModel):
    id: int
    session_name: str
    diet_type: str
    allergies: str
    chef_personality: str
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ChatResponse(BaseModel):
    session_id: int
    messages: List[Message]


class ScrapeResponse(BaseModel):
    message: str
    url_count: int


class RecipeResponse(BaseModel):
    id: int
    title: str
    diet: str
    url: str
    scanned_at: Optional[datetime] = None


class ExtractedRecipe(BaseModel):
    """Structured recipe produced by the extractor, before it is stored and embedded."""
    title: str
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    diet: str = DEFAULT_DIET

    def to_document(self) -> str:
        ingredients = "\n".join(f"- {item}" for item in self.ingredients)
        instructions = "\n".join(f"- {step}" for step in self.instructions)
        return (
            f"TITLE: {self.title}\n"
            f"DIET: {self.diet}\n"
            f"INGREDIENTS:\n{ingredients}\n"
            f"INSTRUCTIONS:\n{instructions}"
        )
