# orchestrator/schema.py

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class TurnState(BaseModel):
    session_id: int
    user_text: str
    user_id: Optional[str] = None
    user_message_id: Optional[int] = None
    memory: str = ""
    context: List[Dict] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    allowed_recipients: List[str] = Field(default_factory=list)
    reply: Optional[str] = None
    model_failed: bool = False
    ai_message_id: Optional[int] = None
    memory_refreshed: bool = False
