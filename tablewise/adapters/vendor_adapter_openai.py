"""OpenAI vendor adapter for chat completions with function tools."""

import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from tablewise.infra.config import config
from tablewise.infra.error_handler import wrap_llm_error
from tablewise.models.tool import ToolDefinition

logger = logging.getLogger(__name__)


class OpenAIChatClient:
    """Holds the lazily created AsyncOpenAI client."""

    def __init__(self):
        self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            if not config.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        return self._client


openai_chat_client = OpenAIChatClient()


def build_openai_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    """
    Convert canonical ToolDefinition objects to OpenAI tool schema.

    Args:
        tools: List of canonical ToolDefinition objects

    Returns:
        List of OpenAI tool dicts in OpenAI format
    """
    openai_tools = []
    for tool in tools:
        openai_tools.append({
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema or {},
            }
        })
    return openai_tools


def _parse_arguments(raw: Optional[str], tool_name: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON", extra={"tool_name": tool_name})
        return {}
    return parsed if isinstance(parsed, dict) else {}


async def call_openai_chat(
    model: str,
    messages: List[Dict[str, Any]],
    max_tokens: int,
    temperature: float,
    tools: Optional[List[ToolDefinition]] = None,
    json_mode: bool = False,
) -> Dict[str, Any]:
    """
    Call OpenAI Chat Completions.

    Args:
        model: OpenAI model name
        messages: List of {"role", "content"} dicts
        max_tokens: Completion token ceiling
        temperature: Sampling temperature
        tools: Optional canonical tool definitions offered to the model
        json_mode: Ask for a JSON object response

    Returns:
        Standardized dict: {"model", "content", "tool_calls": [{"id", "name", "arguments"}], "usage"}
    """
    try:
        request_params: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            request_params["tools"] = build_openai_tools(tools)
            request_params["tool_choice"] = "auto"
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}

        response_obj = await openai_chat_client.client.chat.completions.create(**request_params)
        message = response_obj.choices[0].message

        return {
            "model": response_obj.model,
            "content": message.content or "",
            "tool_calls": [
                {
                    "id": tc.id,
                    "name": tc.function.name,
                    "arguments": _parse_arguments(tc.function.arguments, tc.function.name),
                }
                for tc in (message.tool_calls or [])
            ],
            "usage": {
                "prompt_tokens": response_obj.usage.prompt_tokens,
                "completion_tokens": response_obj.usage.completion_tokens,
                "total_tokens": response_obj.usage.total_tokens,
            } if response_obj.usage else None,
        }
    except ValueError:
        raise
    except Exception as e:
        raise wrap_llm_error(e, "openai")
