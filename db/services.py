# db/services.py

from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.orm import Session
from db.database import SessionLocal
from db.models import CookingSession, ChatMessage, StoredRecipe
from utils.logging_config import get_logger

logger = get_logger(__name__)


@contextmanager
def session_scope(session_factory):
    session: Session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class ConversationStore:
    """Relational persistence for cooking sessions and their messages."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def create_session(self, name: str, diet_type: str, allergies: str,
                       chef_personality: str, user_id: Optional[str] = None) -> CookingSession:
        with session_scope(self.session_factory) as session:
            cooking_session = CookingSession(
                name=name,
                diet_type=diet_type,
                allergies=allergies,
                chef_personality=chef_personality,
                user_id=user_id,
            )
            session.add(cooking_session)
            session.flush()
            logger.info("Created session %s (%s, %s)", cooking_session.id, chef_personality, diet_type)
            return cooking_session

    def get_session(self, session_id: int) -> Optional[CookingSession]:
        with session_scope(self.session_factory) as session:
            return session.get(CookingSession, session_id)

    def list_sessions(self, user_id: Optional[str] = None) -> List[CookingSession]:
        with session_scope(self.session_factory) as session:
            query = session.query(CookingSession)
            if user_id is not None:
                query = query.filter(CookingSession.user_id == user_id)
            return query.order_by(CookingSession.created_at.desc(), CookingSession.id.desc()).all()

    def delete_session(self, session_id: int) -> bool:
        with session_scope(self.session_factory) as session:
            cooking_session = session.get(CookingSession, session_id)
            if cooking_session is None:
                return False
            session.delete(cooking_session)
            return True

    def append_message(self, session_id: int, sender: str, content: str) -> ChatMessage:
        with session_scope(self.session_factory) as session:
            message = ChatMessage(session_id=session_id, sender=sender, content=content)
            session.add(message)
            session.flush()
            return message

    def get_messages(self, session_id: int) -> List[ChatMessage]:
        with session_scope(self.session_factory) as session:
            return (
                session.query(ChatMessage)
                .filter(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.timestamp.asc(), ChatMessage.id.asc())
                .all()
            )


class RecipeStore:
    """Relational persistence for ingested recipes, keyed by source URL."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def exists_by_url(self, url: str) -> bool:
        with session_scope(self.session_factory) as session:
            return session.query(StoredRecipe.id).filter(StoredRecipe.url == url).first() is not None

    def save(self, title: str, diet: str, url: str) -> StoredRecipe:
        with session_scope(self.session_factory) as session:
            recipe = StoredRecipe(title=title, diet=diet, url=url)
            session.add(recipe)
            session.flush()
            return recipe

    def get(self, recipe_id: int) -> Optional[StoredRecipe]:
        with session_scope(self.session_factory) as session:
            return session.get(StoredRecipe, recipe_id)

    def list_recipes(self) -> List[StoredRecipe]:
        with session_scope(self.session_factory) as session:
            return session.query(StoredRecipe).order_by(StoredRecipe.scanned_at.desc(), StoredRecipe.id.desc()).all()

    def delete(self, recipe_id: int) -> bool:
        with session_scope(self.session_factory) as session:
            recipe = session.get(StoredRecipe, recipe_id)
            if recipe is None:
                return False
            session.delete(recipe)
            return True
