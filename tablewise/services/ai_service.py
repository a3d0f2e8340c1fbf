"""LLM service: tenant-aware text, JSON and tool-call generation with provider fallback."""

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from tablewise.adapters.vendor_adapter_gemini import call_gemini
from tablewise.adapters.vendor_adapter_openai import call_openai_chat
from tablewise.infra.circuit_breaker import CircuitBreaker, gemini_circuit_breaker, openai_circuit_breaker
from tablewise.infra.config import config
from tablewise.infra.error_handler import (
    AgentError,
    LLMServiceError,
    LLMTimeoutError,
    MissingTenantContextError,
    RateLimitError,
    RetryableError,
    TenantAccessError,
    retry_with_backoff,
)
from tablewise.infra.metrics import llm_call_duration, llm_calls_total, llm_tokens_total
from tablewise.infra.rate_limiter import check_rate_limit
from tablewise.infra.timeout import with_timeout
from tablewise.models.agent import ToolCall
from tablewise.models.tenant import TenantContext
from tablewise.models.tool import ToolDefinition

logger = logging.getLogger(__name__)

# Short names agents use in their config
MODEL_ALIASES = {
    "haiku": "gpt-4o-mini",
    "sonnet": "gpt-4o",
}

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMOptions(BaseModel):
    """Per-call generation settings."""
    model: Optional[str] = None
    fallback_model: Optional[str] = None
    max_tokens: int = 1000
    temperature: float = 0.2
    timeout: float = Field(default_factory=lambda: config.LLM_CALL_TIMEOUT)
    system_prompt: Optional[str] = None
    tools: List[ToolDefinition] = Field(default_factory=list)


class LLMCompletion(BaseModel):
    """Normalized provider answer."""
    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    model_used: str


def resolve_model(model: str) -> Tuple[str, str]:
    """
    Map a configured model name to (provider, provider model name).

    Raises:
        ValueError: If no provider serves the model
    """
    name = MODEL_ALIASES.get(model, model)
    if name.startswith("gemini"):
        return "gemini", name
    if name.startswith(("gpt-", "o1", "o3", "o4")):
        return "openai", name
    raise ValueError(f"Unknown model: {model}")


def parse_json_response(text: str) -> Any:
    """Strip markdown fences around a JSON answer and parse it."""
    cleaned = _JSON_FENCE.sub("", text.strip()).strip()
    return json.loads(cleaned)


class AIService:
    """
    Single entry point for LLM calls made by agents.

    Every call requires the tenant context: suspended tenants are refused
    and each tenant has a per-minute call quota.
    """

    def __init__(self, calls_per_minute: Optional[int] = None):
        self.calls_per_minute = calls_per_minute or config.TENANT_LLM_CALLS_PER_MINUTE
        self._breakers: Dict[str, CircuitBreaker] = {
            "openai": openai_circuit_breaker,
            "gemini": gemini_circuit_breaker,
        }

    def _check_tenant(self, tenant_context: Optional[TenantContext]) -> None:
        if tenant_context is None:
            raise MissingTenantContextError("LLM call attempted without tenant context")
        if not tenant_context.is_active:
            raise TenantAccessError(
                f"Restaurant {tenant_context.tenant_id} is {tenant_context.restaurant.tenant_status}; "
                "AI features are unavailable",
                tenant_id=tenant_context.tenant_id,
            )
        if not check_rate_limit(tenant_context.tenant_id, self.calls_per_minute):
            raise RateLimitError(
                f"Tenant {tenant_context.tenant_id} exceeded {self.calls_per_minute} LLM calls per minute",
                retry_after=60,
            )

    async def _invoke_provider(
        self,
        provider: str,
        model: str,
        messages: List[Dict[str, Any]],
        options: LLMOptions,
        json_mode: bool,
    ) -> Dict[str, Any]:
        if provider == "openai":
            return await call_openai_chat(
                model, messages, options.max_tokens, options.temperature,
                tools=options.tools or None, json_mode=json_mode,
            )
        return await call_gemini(model, messages, options.max_tokens, options.temperature, json_mode=json_mode)

    async def _call_model(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        options: LLMOptions,
        json_mode: bool,
        tenant_id: int,
    ) -> LLMCompletion:
        provider, provider_model = resolve_model(model)
        breaker = self._breakers[provider]
        start = time.time()

        async def attempt():
            return await breaker.call_async(
                self._invoke_provider, provider, provider_model, messages, options, json_mode
            )

        try:
            result = await with_timeout(
                retry_with_backoff(attempt, max_retries=1),
                options.timeout,
                operation=f"{provider} {provider_model}",
            )
        except Exception:
            llm_calls_total.labels(provider=provider, model=provider_model, status="failure").inc()
            raise
        finally:
            llm_call_duration.labels(provider=provider, model=provider_model).observe(time.time() - start)

        llm_calls_total.labels(provider=provider, model=provider_model, status="success").inc()
        usage = result.get("usage")
        if usage:
            llm_tokens_total.labels(provider=provider, model=provider_model, type="prompt").inc(usage["prompt_tokens"] or 0)
            llm_tokens_total.labels(provider=provider, model=provider_model, type="completion").inc(usage["completion_tokens"] or 0)

        logger.debug(
            "LLM call completed",
            extra={"tenant_id": tenant_id, "provider": provider, "model": provider_model},
        )
        return LLMCompletion(
            text=result.get("content") or "",
            tool_calls=[
                ToolCall(id=tc.get("id"), name=tc["name"], arguments=tc.get("arguments") or {})
                for tc in result.get("tool_calls") or []
            ],
            model_used=provider_model,
        )

    async def generate_completion(
        self,
        prompt: str,
        options: LLMOptions,
        tenant_context: Optional[TenantContext],
        json_mode: bool = False,
    ) -> LLMCompletion:
        """
        Generate a completion, trying the fallback model once if the primary fails.

        Args:
            prompt: User-side prompt
            options: Generation settings; options.system_prompt is sent as the system message
            tenant_context: Owning tenant, required
            json_mode: Ask the provider for a JSON object

        Raises:
            MissingTenantContextError, TenantAccessError, RateLimitError: tenant checks
            LLMTimeoutError: The last attempted model timed out
            LLMServiceError: Every model failed
        """
        self._check_tenant(tenant_context)

        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        models = [options.model or config.PRIMARY_MODEL]
        fallback = options.fallback_model
        if fallback and MODEL_ALIASES.get(fallback, fallback) != MODEL_ALIASES.get(models[0], models[0]):
            models.append(fallback)

        last_error: Optional[Exception] = None
        for model in models:
            try:
                return await self._call_model(model, messages, options, json_mode, tenant_context.tenant_id)
            except (RetryableError, AgentError, ValueError) as e:
                last_error = e
                logger.warning(
                    "LLM model failed",
                    extra={"tenant_id": tenant_context.tenant_id, "model": model, "error": str(e)},
                )

        if isinstance(last_error, LLMTimeoutError):
            raise last_error
        raise LLMServiceError(f"All models failed: {last_error}") from last_error

    async def generate_content(
        self,
        prompt: str,
        options: LLMOptions,
        tenant_context: Optional[TenantContext],
    ) -> str:
        """Generate free text."""
        completion = await self.generate_completion(prompt, options, tenant_context)
        return completion.text

    async def generate_json(
        self,
        prompt: str,
        options: LLMOptions,
        tenant_context: Optional[TenantContext],
        schema: Optional[Type[BaseModel]] = None,
        retry_on_invalid_json: bool = True,
    ) -> Any:
        """
        Generate a JSON answer, optionally validated against a pydantic model.

        Returns:
            An instance of `schema` when given, otherwise the parsed JSON value

        Raises:
            LLMServiceError: The answer was not valid JSON (after the retry, if enabled)
        """
        attempts = 2 if retry_on_invalid_json else 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            completion = await self.generate_completion(prompt, options, tenant_context, json_mode=True)
            try:
                data = parse_json_response(completion.text)
                return schema.model_validate(data) if schema else data
            except (json.JSONDecodeError, SchemaValidationError) as e:
                last_error = e
                logger.warning(
                    "LLM returned invalid JSON",
                    extra={"tenant_id": tenant_context.tenant_id, "attempt": attempt + 1, "error": str(e)},
                )

        raise LLMServiceError(f"LLM returned invalid JSON: {last_error}") from last_error
