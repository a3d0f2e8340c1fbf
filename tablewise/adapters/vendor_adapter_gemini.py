"""Gemini vendor adapter for plain text generation."""

from typing import Any, Dict, List

import google.generativeai as genai

from tablewise.infra.config import config
from tablewise.infra.error_handler import wrap_llm_error

_configured = False


def _ensure_configured() -> None:
    """Configure the SDK once with the API key."""
    global _configured
    if not _configured:
        if not config.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY not configured")
        genai.configure(api_key=config.GEMINI_API_KEY)
        _configured = True


def build_gemini_contents(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert chat messages to Gemini contents.

    System messages are prepended to the first user message since the
    contents list only knows "user" and "model" roles.
    """
    gemini_contents = []
    system_parts = []

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content", "")

        if role == "system":
            system_parts.append(content)
        elif role == "user":
            if system_parts:
                content = "\n\n".join(system_parts) + "\n\n" + content
                system_parts = []
            gemini_contents.append({"role": "user", "parts": [{"text": content}]})
        elif role == "assistant":
            gemini_contents.append({"role": "model", "parts": [{"text": content}]})

    return gemini_contents


async def call_gemini(
    model: str,
    messages: List[Dict[str, Any]],
    max_tokens: int,
    temperature: float,
    json_mode: bool = False,
) -> Dict[str, Any]:
    """
    Call Gemini generate_content.

    Tool calls are not requested from Gemini; it only serves as a text
    fallback, so the returned tool_calls list is always empty.

    Returns:
        Standardized dict: {"model", "content", "tool_calls", "usage"}
    """
    _ensure_configured()

    try:
        generation_config: Dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        gemini_model = genai.GenerativeModel(model)
        response = await gemini_model.generate_content_async(
            build_gemini_contents(messages),
            generation_config=generation_config,
        )

        usage = getattr(response, "usage_metadata", None)
        return {
            "model": model,
            "content": response.text or "",
            "tool_calls": [],
            "usage": {
                "prompt_tokens": usage.prompt_token_count,
                "completion_tokens": usage.candidates_token_count,
                "total_tokens": usage.total_token_count,
            } if usage else None,
        }
    except Exception as e:
        raise wrap_llm_error(e, "gemini")
