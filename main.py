# main.py

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from db.models import ChatMessage, CookingSession, StoredRecipe
from ingestion.pipeline import KnowledgeBaseService
from models.schema import (
    ChatResponse,
    CreateSessionRequest,
    Message,
    MessageRequest,
    RecipeResponse,
    ScrapeResponse,
    SessionResponse,
)
from orchestrator.service import ChefService
from utils.config import AppConfig, config
from utils.errors import InputValidationError, NotFoundError
from utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def build_services(app_config: AppConfig):
    """Wire the production collaborators (SQL database, Pinecone, OpenAI, web, Resend)."""
    from agents.context_assembler import ContextAssembler
    from agents.llm_client import OpenAIChatModel
    from agents.mailer import ResendMailer
    from agents.memory import MemoryRetriever, MemoryWriter
    from agents.page_fetcher import make_page_fetcher
    from agents.prompts import ProvenancePolicy
    from agents.recipe_extractor import RecipeExtractor
    from agents.tools import build_default_registry
    from db.database import init_db
    from db.services import ConversationStore, RecipeStore
    from db.vector_store import PineconeVectorStore
    from orchestrator.graph import TurnDependencies

    init_db()

    model = OpenAIChatModel.from_config(app_config.openai)
    vector_store = PineconeVectorStore.from_config(app_config.pinecone, model.embed)
    fetcher = make_page_fetcher(app_config.ingestion)

    mailer = None
    if app_config.tools.resend_api_key:
        mailer = ResendMailer(app_config.tools.resend_api_key, app_config.tools.mail_from)
    else:
        logger.info("RESEND_API_KEY not set, the email tool is disabled")

    chat = app_config.chat
    chef_service = ChefService(TurnDependencies(
        conversations=ConversationStore(),
        memory_retriever=MemoryRetriever(vector_store, chat.memory_similarity_threshold),
        memory_writer=MemoryWriter(vector_store, chat.memory_chunk_size, chat.memory_chunk_overlap),
        assembler=ContextAssembler(chat.history_window, ProvenancePolicy.from_setting(chat.provenance_policy)),
        registry=build_default_registry(vector_store, fetcher, app_config.tools, mailer),
        model=model,
        memory_top_k=chat.memory_top_k,
    ))

    knowledge_base = KnowledgeBaseService(
        recipes=RecipeStore(),
        vector_store=vector_store,
        extractor=RecipeExtractor(fetcher, model),
        rate_delay_seconds=app_config.ingestion.rate_delay_seconds,
        chunk_size=app_config.ingestion.chunk_size,
        chunk_overlap=app_config.ingestion.chunk_overlap,
    )
    return chef_service, knowledge_base


def to_session_response(session: CookingSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        session_name=session.name,
        diet_type=session.diet_type,
        allergies=session.allergies,
        chef_personality=session.chef_personality,
        user_id=session.user_id,
        created_at=session.created_at,
    )


def to_chat_response(session_id: int, messages: List[ChatMessage]) -> ChatResponse:
    return ChatResponse(
        session_id=session_id,
        messages=[Message(sender=m.sender, content=m.content, timestamp=m.timestamp) for m in messages],
    )


def to_recipe_response(recipe: StoredRecipe) -> RecipeResponse:
    return RecipeResponse(id=recipe.id, title=recipe.title, diet=recipe.diet, url=recipe.url,
                          scanned_at=recipe.scanned_at)


def create_app(chef_service: Optional[ChefService] = None,
               knowledge_base: Optional[KnowledgeBaseService] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.chef_service is None or app.state.knowledge_base is None:
            setup_logging()
            app.state.chef_service, app.state.knowledge_base = build_services(config)
        yield

    app = FastAPI(title="ChefBot API", version="0.1", lifespan=lifespan)
    app.state.chef_service = chef_service
    app.state.knowledge_base = knowledge_base

    @app.exception_handler(InputValidationError)
    async def validation_error_handler(request: Request, exc: InputValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.post("/sessions", response_model=SessionResponse, status_code=201)
    def create_session(request: CreateSessionRequest):
        session = app.state.chef_service.create_session(request)
        return to_session_response(session)

    @app.get("/sessions", response_model=List[SessionResponse])
    def list_sessions(user_id: Optional[str] = None):
        return [to_session_response(s) for s in app.state.chef_service.list_sessions(user_id)]

    @app.get("/sessions/{session_id}", response_model=SessionResponse)
    def get_session(session_id: int):
        return to_session_response(app.state.chef_service.get_session(session_id))

    @app.delete("/sessions/{session_id}")
    def delete_session(session_id: int, user_id: Optional[str] = None):
        if not app.state.chef_service.delete_session(session_id, user_id):
            raise HTTPException(status_code=403, detail="You can only delete your own sessions.")
        return {"message": f"Session {session_id} deleted"}

    @app.post("/sessions/{session_id}/messages", response_model=ChatResponse)
    def send_message(session_id: int, request: MessageRequest):
        """Run one chat turn and return the updated transcript."""
        service = app.state.chef_service
        service.handle_turn(session_id, request.message)
        return to_chat_response(session_id, service.get_messages(session_id))

    @app.get("/sessions/{session_id}/messages", response_model=ChatResponse)
    def get_messages(session_id: int):
        return to_chat_response(session_id, app.state.chef_service.get_messages(session_id))

    @app.post("/etl/scrape", response_model=ScrapeResponse, status_code=202)
    def start_scraping(urls: List[str], background_tasks: BackgroundTasks):
        urls = [url.strip() for url in urls if url and url.strip()]
        if not urls:
            raise HTTPException(status_code=400, detail="URL list is empty.")
        background_tasks.add_task(app.state.knowledge_base.process_urls, urls)
        return ScrapeResponse(message=f"Process started in background for {len(urls)} URLs.", url_count=len(urls))

    @app.get("/recipes", response_model=List[RecipeResponse])
    def list_recipes():
        return [to_recipe_response(r) for r in app.state.knowledge_base.list_recipes()]

    @app.delete("/recipes/{recipe_id}")
    def delete_recipe(recipe_id: int):
        app.state.knowledge_base.delete_recipe(recipe_id)
        return {"message": f"Recipe {recipe_id} deleted"}

    return app


app = create_app()
