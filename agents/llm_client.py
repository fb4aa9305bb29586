# agents/llm_client.py

import json
from typing import Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from openai import OpenAI, OpenAIError

from utils.config import OpenAIConfig
from utils.errors import ModelInvocationError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ChatModel:
    """What the orchestrator, extractor and vector store need from a model backend."""

    def invoke(self, messages: List[Dict], tools: Sequence[BaseTool] = ()) -> str:
        raise NotImplementedError

    def complete(self, prompt: str, system: Optional[str] = None, temperature: float = 0.0) -> str:
        raise NotImplementedError

    def embed(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError


class OpenAIChatModel(ChatModel):
    """
    Chat completions with a bounded tool-call loop, plus embeddings.

    Any OpenAI client error (timeout, connection, API status) is raised as
    ModelInvocationError. Errors inside a tool are returned to the model as
    the tool's output so it can try something else.
    """

    def __init__(self, client: OpenAI, chat_model: str = "gpt-4o",
                 embedding_model: str = "text-embedding-3-small", temperature: float = 0.85,
                 timeout: float = 120.0, max_tool_rounds: int = 5):
        self.client = client
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.temperature = temperature
        self.timeout = timeout
        self.max_tool_rounds = max_tool_rounds

    @classmethod
    def from_config(cls, openai_config: OpenAIConfig) -> "OpenAIChatModel":
        client = OpenAI(api_key=openai_config.api_key, timeout=openai_config.request_timeout)
        return cls(
            client,
            chat_model=openai_config.chat_model,
            embedding_model=openai_config.embedding_model,
            temperature=openai_config.temperature,
            timeout=openai_config.request_timeout,
            max_tool_rounds=openai_config.max_tool_rounds,
        )

    def _create(self, **kwargs):
        try:
            return self.client.chat.completions.create(timeout=self.timeout, **kwargs)
        except OpenAIError as e:
            raise ModelInvocationError(f"OpenAI chat completion failed: {e}") from e

    def invoke(self, messages: List[Dict], tools: Sequence[BaseTool] = ()) -> str:
        conversation = list(messages)
        tool_map = {t.name: t for t in tools}
        tool_specs = [convert_to_openai_tool(t) for t in tools]
        logger.info("Invoking %s with tools: %s", self.chat_model, ", ".join(tool_map) or "none")

        for round_number in range(self.max_tool_rounds + 1):
            kwargs = {
                "model": self.chat_model,
                "messages": conversation,
                "temperature": self.temperature,
            }
            if tool_specs:
                kwargs["tools"] = tool_specs
                # The last round forbids tool calls so the model has to answer
                if round_number == self.max_tool_rounds:
                    kwargs["tool_choice"] = "none"

            response = self._create(**kwargs)
            message = response.choices[0].message
            if not message.tool_calls:
                return (message.content or "").strip()

            conversation.append({
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in message.tool_calls
                ],
            })
            for call in message.tool_calls:
                conversation.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": self._run_tool(tool_map, call.function.name, call.function.arguments),
                })

        raise ModelInvocationError(f"Model kept calling tools after {self.max_tool_rounds} rounds")

    def _run_tool(self, tool_map: Dict[str, BaseTool], name: str, arguments: str) -> str:
        selected = tool_map.get(name)
        if selected is None:
            logger.warning("Model asked for unavailable tool %s", name)
            return f"Error: tool {name} is not available for this message."
        try:
            args = json.loads(arguments or "{}")
        except json.JSONDecodeError:
            return f"Error: could not parse arguments for {name}."

        logger.info("Calling tool %s", name)
        try:
            return str(selected.invoke(args))
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return f"Error running {name}: {e}"

    def complete(self, prompt: str, system: Optional[str] = None, temperature: float = 0.0) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._create(model=self.chat_model, messages=messages, temperature=temperature)
        return (response.choices[0].message.content or "").strip()

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            response = self.client.embeddings.create(model=self.embedding_model, input=texts, timeout=self.timeout)
        except OpenAIError as e:
            raise ModelInvocationError(f"OpenAI embedding failed: {e}") from e
        return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]
