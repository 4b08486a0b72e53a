"""Tests for the LangChain-backed model collaborator (no network)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import AIMessage, HumanMessage

from config.schema import API_KEY_ENV_VARS, BuilderSettings
from core.loop import CompletionRequest, LangChainCollaborator, MalformedResponseError
from core.loop.model import extract_text_content, parse_ai_message


class TestParseAIMessage:
    def test_tool_calls_become_invocations(self):
        message = AIMessage(
            content="",
            tool_calls=[{"name": "write_file", "args": {"file_path": "a.txt", "content": "A"}, "id": "t1"}],
        )
        response = parse_ai_message(message)

        assert len(response.tool_invocations) == 1
        invocation = response.tool_invocations[0]
        assert (invocation.name, invocation.id) == ("write_file", "t1")
        assert invocation.arguments == {"file_path": "a.txt", "content": "A"}
        assert response.final_text is None
        assert response.message is message

    def test_invalid_tool_calls_keep_raw_arguments(self):
        message = AIMessage(
            content="",
            invalid_tool_calls=[
                {"name": "edit_file", "args": '{"file_path": "a.js"', "id": "t2", "error": "bad json"}
            ],
        )
        response = parse_ai_message(message)
        assert response.tool_invocations[0].arguments == '{"file_path": "a.js"'

    def test_text_blocks_and_stop_reason(self):
        message = AIMessage(
            content=[{"type": "text", "text": "All "}, {"type": "text", "text": "done. "}],
            response_metadata={"stop_reason": "end_turn"},
        )
        response = parse_ai_message(message)
        assert response.final_text == "All done."
        assert response.stop_reason == "end_turn"
        assert response.tool_invocations == []

    def test_non_ai_message_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_ai_message(HumanMessage(content="hi"))


def test_extract_text_content_variants():
    assert extract_text_content("plain") == "plain"
    assert extract_text_content(["a", {"type": "text", "text": "b"}, {"type": "image"}]) == "ab"
    assert extract_text_content(42) == "42"


def _fake_model(reply=None, error=None):
    runnable = MagicMock()
    runnable.ainvoke = AsyncMock(return_value=reply, side_effect=error)
    model = MagicMock()
    model.bind_tools.return_value = runnable
    return model, runnable


def _request(**hints):
    return CompletionRequest(
        conversation=[HumanMessage(content="build it")],
        tool_schema=[{"type": "function", "function": {"name": "complete", "parameters": {"type": "object"}}}],
        strategy_hints=hints,
    )


@pytest.mark.asyncio
async def test_complete_forces_tools_and_passes_temperature():
    model, runnable = _fake_model(reply=AIMessage(content="ok"))
    collaborator = LangChainCollaborator(model)
    request = _request(force_tool_choice=True, temperature=0.7)

    response = await collaborator.complete(request)

    assert response.final_text == "ok"
    model.bind_tools.assert_called_once_with(request.tool_schema, tool_choice="any")
    runnable.ainvoke.assert_awaited_once_with(request.conversation, config={"configurable": {"temperature": 0.7}})


@pytest.mark.asyncio
async def test_complete_auto_tool_choice_without_temperature():
    model, runnable = _fake_model(reply=AIMessage(content="ok"))
    await LangChainCollaborator(model).complete(_request(force_tool_choice=False))

    model.bind_tools.assert_called_once_with(_request().tool_schema, tool_choice="auto")
    assert runnable.ainvoke.await_args.kwargs["config"] is None


@pytest.mark.asyncio
async def test_output_parser_errors_are_malformed_responses():
    model, _ = _fake_model(error=OutputParserException("could not parse"))
    with pytest.raises(MalformedResponseError):
        await LangChainCollaborator(model).complete(_request())


@pytest.mark.asyncio
async def test_other_errors_propagate():
    model, _ = _fake_model(error=ConnectionError("offline"))
    with pytest.raises(ConnectionError):
        await LangChainCollaborator(model).complete(_request())


def test_from_settings_resolves_virtual_model(monkeypatch):
    captured = {}

    def fake_init_chat_model(model, **kwargs):
        captured["model"] = model
        captured.update(kwargs)
        return MagicMock()

    monkeypatch.setattr("core.loop.model.init_chat_model", fake_init_chat_model)
    settings = BuilderSettings(
        api={"model": "builder:fast", "api_key": "sk-test", "base_url": "https://llm.example.com", "max_tokens": 1000}
    )

    LangChainCollaborator.from_settings(settings)

    assert captured["model"] == "claude-haiku-4-5-20251001"
    assert captured["model_provider"] == "anthropic"
    assert captured["api_key"] == "sk-test"
    assert captured["base_url"] == "https://llm.example.com/v1"
    assert captured["max_tokens"] == 1000
    assert captured["configurable_fields"] == ("temperature",)


def test_from_settings_requires_api_key(monkeypatch):
    for name in API_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("core.loop.model.init_chat_model", MagicMock())

    with pytest.raises(ValueError, match="No API key"):
        LangChainCollaborator.from_settings(BuilderSettings())
