# orchestrator/graph.py

from dataclasses import dataclass

from langgraph.graph import StateGraph, END

from agents.context_assembler import ContextAssembler
from agents.llm_client import ChatModel
from agents.memory import MemoryRetriever, MemoryWriter, format_memory
from agents.prompts import FALLBACK_REPLY
from agents.tool_policy import select_tools
from agents.tools import ToolRegistry
from db.services import ConversationStore
from models.schema import SenderRole
from orchestrator.schema import TurnState
from utils.errors import ExternalServiceError, SessionNotFound
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class TurnDependencies:
    conversations: ConversationStore
    memory_retriever: MemoryRetriever
    memory_writer: MemoryWriter
    assembler: ContextAssembler
    registry: ToolRegistry
    model: ChatModel
    memory_top_k: int = 2


def build_turn_graph(deps: TurnDependencies):
    """
    One chat turn as a fixed pipeline:

        persist_user -> retrieve_memory -> assemble_context -> dispatch_tools
        -> invoke_model -> persist_reply -> refresh_memory

    Every node runs on every turn. Failures of the model or the vector
    store, whatever their type, are absorbed inside their nodes, so a USER
    message is always followed by an AI message.
    """

    def load_session(session_id: int):
        session = deps.conversations.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def persist_user_node(state: TurnState) -> dict:
        message = deps.conversations.append_message(state.session_id, SenderRole.USER.value, state.user_text)
        return {"user_message_id": message.id}

    def retrieve_memory_node(state: TurnState) -> dict:
        try:
            excerpts = deps.memory_retriever.search(
                state.user_text,
                top_k=deps.memory_top_k,
                user_id=state.user_id,
                session_id=state.session_id,
            )
        except Exception:
            logger.exception("Session %s: memory lookup failed, continuing without memory", state.session_id)
            return {"memory": ""}
        logger.info("Session %s: %d memory excerpts", state.session_id, len(excerpts))
        return {"memory": format_memory(excerpts)}

    def assemble_context_node(state: TurnState) -> dict:
        session = load_session(state.session_id)
        history = [
            msg for msg in deps.conversations.get_messages(state.session_id)
            if msg.id != state.user_message_id
        ]
        context = deps.assembler.assemble(session, history, state.memory, state.user_text)
        return {"context": context}

    def dispatch_tools_node(state: TurnState) -> dict:
        selection = select_tools(state.user_text, deps.registry.catalog())
        logger.info("Session %s: tools for this turn: %s", state.session_id, ", ".join(selection.tools) or "none")
        return {"tools": selection.tools, "allowed_recipients": selection.allowed_recipients}

    def invoke_model_node(state: TurnState) -> dict:
        tools = deps.registry.build(state.tools, state.allowed_recipients)
        try:
            reply = deps.model.invoke(state.context, tools)
        except ExternalServiceError as e:
            logger.error("Session %s: model call failed, sending fallback reply: %s", state.session_id, e)
            return {"reply": FALLBACK_REPLY, "model_failed": True}
        except Exception:
            logger.exception("Session %s: model adapter raised, sending fallback reply", state.session_id)
            return {"reply": FALLBACK_REPLY, "model_failed": True}

        if not reply:
            logger.warning("Session %s: model returned an empty reply", state.session_id)
            return {"reply": FALLBACK_REPLY, "model_failed": True}
        return {"reply": reply}

    def persist_reply_node(state: TurnState) -> dict:
        message = deps.conversations.append_message(state.session_id, SenderRole.AI.value, state.reply)
        return {"ai_message_id": message.id}

    def refresh_memory_node(state: TurnState) -> dict:
        try:
            session = load_session(state.session_id)
            deps.memory_writer.replace(session, deps.conversations.get_messages(state.session_id))
        except ExternalServiceError as e:
            logger.warning("Session %s: memory refresh failed: %s", state.session_id, e)
            return {"memory_refreshed": False}
        except Exception:
            logger.exception("Session %s: memory refresh failed", state.session_id)
            return {"memory_refreshed": False}
        return {"memory_refreshed": True}

    builder = StateGraph(TurnState)

    builder.add_node("persist_user", persist_user_node)
    builder.add_node("retrieve_memory", retrieve_memory_node)
    builder.add_node("assemble_context", assemble_context_node)
    builder.add_node("dispatch_tools", dispatch_tools_node)
    builder.add_node("invoke_model", invoke_model_node)
    builder.add_node("persist_reply", persist_reply_node)
    builder.add_node("refresh_memory", refresh_memory_node)

    builder.set_entry_point("persist_user")

    builder.add_edge("persist_user", "retrieve_memory")
    builder.add_edge("retrieve_memory", "assemble_context")
    builder.add_edge("assemble_context", "dispatch_tools")
    builder.add_edge("dispatch_tools", "invoke_model")
    builder.add_edge("invoke_model", "persist_reply")
    builder.add_edge("persist_reply", "refresh_memory")
    builder.add_edge("refresh_memory", END)

    return builder.compile()
