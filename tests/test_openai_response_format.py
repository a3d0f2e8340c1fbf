"""Tests for the standardized provider response format."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from tablewise.adapters.vendor_adapter_gemini import build_gemini_contents
from tablewise.adapters.vendor_adapter_openai import build_openai_tools, call_openai_chat, openai_chat_client
from tablewise.services.agent_tools import get_tools_for


def _openai_response(content="", tool_calls=None):
    response = MagicMock()
    response.model = "gpt-4o-mini"
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls
    response.choices = [MagicMock(message=message)]
    response.usage = MagicMock(prompt_tokens=120, completion_tokens=30, total_tokens=150)
    return response


def _tool_call(call_id, name, arguments):
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = arguments
    return call


class TestOpenAIResponseFormat:
    """Test that Chat Completions answers are normalized."""

    @pytest.mark.asyncio
    async def test_text_response(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response("Hello!"))

        with patch.object(openai_chat_client, "_client", client):
            result = await call_openai_chat("gpt-4o-mini", [{"role": "user", "content": "hi"}], 100, 0.2)

        assert result["content"] == "Hello!"
        assert result["tool_calls"] == []
        assert result["usage"] == {"prompt_tokens": 120, "completion_tokens": 30, "total_tokens": 150}
        kwargs = client.chat.completions.create.await_args.kwargs
        assert "tools" not in kwargs
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_tool_calls_are_parsed(self):
        calls = [
            _tool_call("call_1", "check_availability", '{"date": "2025-08-06", "time": "19:00", "guests": 4}'),
            _tool_call("call_2", "get_restaurant_info", "not json"),
        ]
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response(None, calls))
        tools = get_tools_for(["check_availability", "get_restaurant_info"])

        with patch.object(openai_chat_client, "_client", client):
            result = await call_openai_chat("gpt-4o-mini", [{"role": "user", "content": "hi"}], 100, 0.2, tools=tools)

        assert result["content"] == ""
        assert result["tool_calls"][0] == {
            "id": "call_1",
            "name": "check_availability",
            "arguments": {"date": "2025-08-06", "time": "19:00", "guests": 4},
        }
        assert result["tool_calls"][1]["arguments"] == {}
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["tool_choice"] == "auto"
        assert [tool["function"]["name"] for tool in kwargs["tools"]] == ["check_availability", "get_restaurant_info"]

    @pytest.mark.asyncio
    async def test_json_mode(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response('{"ok": true}'))

        with patch.object(openai_chat_client, "_client", client):
            await call_openai_chat("gpt-4o-mini", [{"role": "user", "content": "hi"}], 100, 0.2, json_mode=True)

        assert client.chat.completions.create.await_args.kwargs["response_format"] == {"type": "json_object"}

    def test_build_openai_tools(self):
        [tool] = build_openai_tools(get_tools_for(["find_alternative_times"]))

        assert tool["type"] == "function"
        assert tool["function"]["name"] == "find_alternative_times"
        assert tool["function"]["parameters"]["required"] == ["date", "preferredTime", "guests"]


class TestGeminiContents:
    """Test chat message conversion for Gemini."""

    def test_system_prompt_is_merged_into_first_user_turn(self):
        contents = build_gemini_contents([
            {"role": "system", "content": "You are Sofia."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "Table for 2"},
        ])

        assert contents == [
            {"role": "user", "parts": [{"text": "You are Sofia.\n\nHi"}]},
            {"role": "model", "parts": [{"text": "Hello!"}]},
            {"role": "user", "parts": [{"text": "Table for 2"}]},
        ]
