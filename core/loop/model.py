"""Model collaborator contract and its LangChain implementation.

The turn loop only ever talks to a ModelCollaborator: it sends the
conversation plus the tool schema and gets back tool invocations and/or
final text. Anything that satisfies the protocol works, including scripted
stubs in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from langchain.chat_models import init_chat_model
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import AIMessage, BaseMessage

from core.tools.types import ToolInvocation

if TYPE_CHECKING:
    from config.schema import BuilderSettings

logger = logging.getLogger(__name__)


class CollaboratorError(RuntimeError):
    """The model call failed in a way the run cannot recover from."""


class MalformedResponseError(CollaboratorError):
    """A single model turn could not be understood; the loop may continue."""


@dataclass(frozen=True)
class CompletionRequest:
    conversation: list[BaseMessage]
    tool_schema: list[dict]
    strategy_hints: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletionResponse:
    """One model turn.

    message is the assistant message to append to the conversation; when a
    collaborator leaves it out, the loop synthesizes one from the invocations.
    """

    tool_invocations: list[ToolInvocation] = field(default_factory=list)
    final_text: str | None = None
    stop_reason: str | None = None
    message: AIMessage | None = None


class ModelCollaborator(Protocol):
    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...


def extract_text_content(raw_content: Any) -> str:
    """Extract text content from various message content formats."""
    if isinstance(raw_content, str):
        return raw_content
    if isinstance(raw_content, list):
        parts: list[str] = []
        for block in raw_content:
            if isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
            elif isinstance(block, str):
                parts.append(block)
        return "".join(parts)
    return str(raw_content)


def parse_ai_message(message: Any) -> CompletionResponse:
    """Convert a LangChain chat model reply into a CompletionResponse."""
    if not isinstance(message, AIMessage):
        raise MalformedResponseError(f"Expected AIMessage, got {type(message).__name__}")

    invocations = [
        ToolInvocation(name=tc["name"], arguments=tc.get("args") or {}, id=tc.get("id") or "")
        for tc in message.tool_calls
    ]
    # Arguments that failed to decode are kept raw; the dispatcher repairs or rejects them
    for tc in message.invalid_tool_calls:
        logger.warning("Model produced unparsable arguments for %s: %s", tc.get("name"), tc.get("error"))
        invocations.append(ToolInvocation(name=tc.get("name") or "", arguments=tc.get("args"), id=tc.get("id") or ""))

    text = extract_text_content(message.content).strip()
    metadata = message.response_metadata or {}
    return CompletionResponse(
        tool_invocations=invocations,
        final_text=text or None,
        stop_reason=metadata.get("finish_reason") or metadata.get("stop_reason"),
        message=message,
    )


class LangChainCollaborator:
    """ModelCollaborator backed by any LangChain chat model that supports bind_tools."""

    def __init__(self, model: Any):
        self.model = model

    @classmethod
    def from_settings(cls, settings: BuilderSettings) -> LangChainCollaborator:
        model_name, virtual_kwargs = settings.resolve_model(settings.api.model)

        kwargs: dict[str, Any] = dict(settings.api.model_kwargs)
        if settings.api.model_provider:
            kwargs["model_provider"] = settings.api.model_provider
        if settings.api.base_url:
            kwargs["base_url"] = settings.api.base_url
        if settings.api.max_tokens:
            kwargs["max_tokens"] = settings.api.max_tokens
        if settings.api.temperature is not None:
            kwargs["temperature"] = settings.api.temperature
        kwargs.update(virtual_kwargs)

        # temperature stays configurable so each strategy can pick its own per call
        model = init_chat_model(
            model_name,
            api_key=settings.require_api_key(),
            configurable_fields=("temperature",),
            **kwargs,
        )
        logger.info("Model collaborator ready: %s", model_name)
        return cls(model)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        hints = request.strategy_hints
        tool_choice = "any" if hints.get("force_tool_choice") else "auto"
        runnable = self.model.bind_tools(request.tool_schema, tool_choice=tool_choice)

        config: dict[str, Any] = {}
        if hints.get("temperature") is not None:
            config["configurable"] = {"temperature": hints["temperature"]}

        try:
            reply = await runnable.ainvoke(request.conversation, config=config or None)
        except OutputParserException as e:
            raise MalformedResponseError(str(e)) from e

        return parse_ai_message(reply)
