"""Abstract base for conversational agents.

BaseAgent owns what every agent shares: LLM calls with per-agent defaults,
translation, reservation-context delegation, uniform error responses,
health probes and performance counters. Subclasses supply the system
prompt, the per-turn logic and the tool set.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from tablewise.infra.error_handler import (
    AgentError,
    AgentErrorKind,
    InvalidAgentConfigError,
    is_recoverable,
)
from tablewise.infra.metrics import agent_messages_total, agent_response_duration
from tablewise.infra.timeout import HEALTH_PROBE_TIMEOUT
from tablewise.models.agent import (
    AgentConfig,
    AgentContext,
    AgentErrorInfo,
    AgentResponse,
    HandoffSignal,
    ResponseMetadata,
    ToolCall,
    validate_agent_config,
)
from tablewise.models.conversation import ConversationState
from tablewise.models.restaurant import RestaurantConfig
from tablewise.models.tenant import TenantContext
from tablewise.models.tool import ToolDefinition
from tablewise.services.agent_tools import validate_tool_call
from tablewise.services.agents.messages import language_name, render
from tablewise.services.ai_service import AIService, LLMCompletion, LLMOptions
from tablewise.services.context_manager import ContextManager, ReservationResolution

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """Foundation for Sofia, Maya, Apollo and the Conductor."""

    agent_type = "base"

    def __init__(
        self,
        config: AgentConfig,
        restaurant_config: RestaurantConfig,
        ai_service: AIService,
        context_manager: Optional[ContextManager] = None,
    ):
        problems = validate_agent_config(config)
        if problems:
            raise InvalidAgentConfigError(f"Invalid config for agent {config.name}: {'; '.join(problems)}")

        self.config = config
        self.restaurant_config = restaurant_config
        self.ai_service = ai_service
        self.context_manager = context_manager or ContextManager()

        self.created_at = time.time()
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0  # milliseconds

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def capabilities(self) -> List[str]:
        return list(self.config.capabilities)

    # Subclass contract

    @abstractmethod
    def generate_system_prompt(self, context: AgentContext) -> str:
        """Build the system prompt for one turn."""

    @abstractmethod
    async def handle_message(self, message: str, context: AgentContext) -> AgentResponse:
        """Handle one guest message. Must never raise."""

    @abstractmethod
    def get_tools(self) -> List[ToolDefinition]:
        """Tools this agent offers to the LLM."""

    def language_instruction(self, language: str) -> str:
        """Prompt block that pins the reply language for the whole conversation."""
        name = language_name(language)
        return (
            "CRITICAL LANGUAGE RULE:\n"
            f"- The guest writes in {name}. Respond ONLY in {name} for the whole conversation.\n"
            "- Never switch language mid-conversation, even if a tool returns English text.\n"
            f"- If unsure of a phrase, use simple, clear {name}."
        )

    # LLM access

    def _llm_options(self, options: Optional[LLMOptions]) -> LLMOptions:
        if options is None:
            options = LLMOptions(max_tokens=self.config.max_tokens, temperature=self.config.temperature)
        return options.model_copy(update={
            "model": options.model or self.config.primary_model,
            "fallback_model": options.fallback_model or self.config.fallback_model,
        })

    async def _timed(self, call, operation: str):
        start = time.time()
        try:
            return await call
        except Exception as e:
            logger.error(
                f"{self.name} {operation} failed: {e}",
                extra={"agent": self.name, "restaurant_id": self.restaurant_config.id},
            )
            raise
        finally:
            elapsed_ms = (time.time() - start) * 1000
            self.request_count += 1
            self.total_processing_time += elapsed_ms
            agent_response_duration.labels(agent_type=self.agent_type).observe(elapsed_ms / 1000)

    async def generate_response(
        self,
        prompt: str,
        context: AgentContext,
        options: Optional[LLMOptions] = None,
    ) -> str:
        """
        Generate free text with this agent's model defaults.

        The tenant context travels with every call so the LLM service can
        enforce tenant quotas. Failures are logged and re-raised.
        """
        llm_options = self._llm_options(options)
        return await self._timed(
            self.ai_service.generate_content(prompt, llm_options, context.tenant_context),
            "generate_response",
        )

    async def generate_json(
        self,
        prompt: str,
        context: AgentContext,
        options: Optional[LLMOptions] = None,
        schema: Optional[Type[BaseModel]] = None,
        retry_on_invalid_json: bool = True,
    ) -> Any:
        """Generate a JSON answer, validated against `schema` when given."""
        llm_options = self._llm_options(options)
        return await self._timed(
            self.ai_service.generate_json(
                prompt, llm_options, context.tenant_context,
                schema=schema, retry_on_invalid_json=retry_on_invalid_json,
            ),
            "generate_json",
        )

    async def generate_turn(
        self,
        message: str,
        context: AgentContext,
        options: Optional[LLMOptions] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMCompletion:
        """
        Run one conversational turn: system prompt, guest message and tools.

        Tool calls that name a tool outside this agent's set, or that miss a
        required argument, are dropped.
        """
        tools = self.get_tools()
        llm_options = self._llm_options(options).model_copy(update={
            "system_prompt": system_prompt or self.generate_system_prompt(context),
            "tools": tools,
        })
        completion: LLMCompletion = await self._timed(
            self.ai_service.generate_completion(message, llm_options, context.tenant_context),
            "generate_turn",
        )

        allowed = [tool.name for tool in tools]
        kept = []
        for call in completion.tool_calls:
            problems = validate_tool_call(call, allowed)
            if problems:
                logger.warning(
                    "Dropping premature tool call",
                    extra={"agent": self.name, "tool_name": call.name, "problems": problems},
                )
                continue
            kept.append(call)
        return completion.model_copy(update={"tool_calls": kept})

    async def translate(
        self,
        text: str,
        target_language: str,
        context: AgentContext,
        message_kind: str = "response",
    ) -> str:
        """
        Translate a guest-facing message.

        Returns the original text when translation is disabled, the target
        is English, or anything goes wrong.
        """
        if not self.config.enable_translation or target_language in ("en", "auto"):
            return text

        prompt = (
            f"Translate this restaurant {message_kind} message to {language_name(target_language)}:\n\n"
            f"\"{text}\"\n\n"
            f"Context: This is a {message_kind} message from a restaurant booking assistant.\n"
            "Keep the same tone, emojis, and professional style.\n"
            "Return only the translation, no explanations."
        )
        options = LLMOptions(max_tokens=min(len(text) * 2 + 100, 500), temperature=0.2)
        try:
            translated = await self.generate_response(prompt, context, options)
        except Exception as e:
            logger.warning(
                "Translation failed, using original text",
                extra={"agent": self.name, "target_language": target_language, "error": str(e)},
            )
            return text
        return translated.strip() or text

    # Context collaborator

    def resolve_reservation_context(
        self,
        user_message: str,
        session: Optional[Dict[str, Any]],
        provided_id: Optional[int] = None,
    ) -> ReservationResolution:
        """Ask the context manager which reservation the guest means."""
        if not self.config.enable_context_resolution:
            return ReservationResolution(
                resolved_id=provided_id,
                confidence="high" if provided_id else "low",
                method="disabled",
                should_ask_for_clarification=not provided_id,
            )
        try:
            return self.context_manager.resolve_reservation_from_context(user_message, session, provided_id)
        except Exception as e:
            logger.warning("Context resolution failed", extra={"agent": self.name, "error": str(e)})
            return ReservationResolution(
                resolved_id=provided_id,
                confidence="low",
                method="fallback",
                should_ask_for_clarification=not provided_id,
            )

    def preserve_context(self, session: Optional[Dict[str, Any]], reservation_id: int, operation_type: str) -> None:
        if not self.config.enable_context_resolution or session is None:
            return
        try:
            self.context_manager.preserve_reservation_context(session, reservation_id, operation_type)
        except Exception as e:
            logger.warning("Context preservation failed", extra={"agent": self.name, "error": str(e)})

    def update_conversation_flags(self, session: Optional[Dict[str, Any]], flags: Dict[str, bool]) -> None:
        if not self.config.enable_context_resolution or session is None:
            return
        try:
            self.context_manager.update_conversation_flags(session, flags)
        except Exception as e:
            logger.warning("Conversation flag update failed", extra={"agent": self.name, "error": str(e)})

    # Responses

    def build_response(
        self,
        content: str,
        started_at: Optional[float] = None,
        tool_calls: Optional[List[ToolCall]] = None,
        handoff_signal: Optional[HandoffSignal] = None,
        action: Optional[str] = None,
        confidence: float = 1.0,
        model_used: Optional[str] = None,
        conversation_state: Optional[ConversationState] = None,
        **details: Any,
    ) -> AgentResponse:
        """Assemble a successful AgentResponse and count it."""
        agent_messages_total.labels(agent_type=self.agent_type, status="success").inc()
        return AgentResponse(
            content=content,
            tool_calls=tool_calls or [],
            handoff_signal=handoff_signal,
            conversation_state=conversation_state,
            metadata=ResponseMetadata(
                agent_type=self.agent_type,
                confidence=confidence,
                processing_time_ms=int((time.time() - started_at) * 1000) if started_at else None,
                model_used=model_used,
                action=action,
                details=details,
            ),
        )

    def handle_agent_error(
        self,
        error: Exception,
        where: str,
        user_message: Optional[str] = None,
        language: str = "en",
    ) -> AgentResponse:
        """Turn any exception into a user-safe apology response."""
        self.error_count += 1
        kind = error.kind if isinstance(error, AgentError) else AgentErrorKind.SYSTEM_ERROR
        recoverable = is_recoverable(error)

        logger.error(
            f"{self.name} error in {where}: {error}",
            extra={
                "agent": self.name,
                "restaurant_id": self.restaurant_config.id,
                "error_type": type(error).__name__,
                "recoverable": recoverable,
                "user_message": (user_message or "")[:100],
            },
            exc_info=True,
        )
        agent_messages_total.labels(agent_type=self.agent_type, status="error").inc()

        return AgentResponse(
            content=render("apology", language),
            metadata=ResponseMetadata(agent_type=self.agent_type, confidence=0.0, action="error", details={"where": where}),
            error=AgentErrorInfo(type=kind, message=str(error), recoverable=recoverable),
        )

    def create_validation_error(self, message: str, field: Optional[str] = None, example: Optional[str] = None) -> AgentResponse:
        """Recoverable response for malformed input, with a corrective example."""
        content = f"{message}\n\nFor example: {example}" if example else message
        return AgentResponse(
            content=content,
            metadata=ResponseMetadata(agent_type=self.agent_type, action="validation_error", details={"field": field}),
            error=AgentErrorInfo(type=AgentErrorKind.VALIDATION_ERROR, message=message, recoverable=True),
        )

    def create_business_rule_error(self, message: str, suggested_action: str) -> AgentResponse:
        """Recoverable response for a violated domain rule, with what to do instead."""
        return AgentResponse(
            content=f"{message} {suggested_action}",
            metadata=ResponseMetadata(
                agent_type=self.agent_type, action="business_rule", details={"suggested_action": suggested_action}
            ),
            error=AgentErrorInfo(type=AgentErrorKind.BUSINESS_RULE, message=message, recoverable=True),
        )

    # Introspection

    def get_metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.config.description,
            "agent_type": self.agent_type,
            "capabilities": self.capabilities,
            "restaurant_id": self.restaurant_config.id,
            "primary_model": self.config.primary_model,
            "fallback_model": self.config.fallback_model,
            "features": {
                "context_resolution": self.config.enable_context_resolution,
                "translation": self.config.enable_translation,
                "personalization": self.config.enable_personalization,
            },
            "created_at": datetime.fromtimestamp(self.created_at, timezone.utc).isoformat(),
        }

    def get_performance_stats(self) -> Dict[str, Any]:
        uptime = time.time() - self.created_at
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "total_processing_time_ms": round(self.total_processing_time),
            "avg_processing_time_ms": round(self.total_processing_time / self.request_count) if self.request_count else 0,
            "uptime_seconds": int(uptime),
            "uptime": self.format_uptime(uptime),
        }

    @staticmethod
    def format_uptime(seconds: float) -> str:
        seconds = int(seconds)
        minutes, secs = divmod(seconds, 60)
        hours, minutes = divmod(minutes, 60)
        days, hours = divmod(hours, 24)
        if days:
            return f"{days}d {hours}h {minutes}m"
        if hours:
            return f"{hours}h {minutes}m"
        if minutes:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    async def health_check(self, tenant_context: TenantContext) -> Dict[str, Any]:
        """
        Probe the LLM, context resolution, translation and tool paths.

        Returns:
            {"healthy": bool, "checks": {name: bool}, "details": [str]}
        """
        probe_context = AgentContext(
            restaurant_id=self.restaurant_config.id,
            timezone=self.restaurant_config.timezone,
            language="en",
            tenant_context=tenant_context,
        )
        checks = {"llm": False, "context_resolution": False, "translation": False, "tools": False}
        details = []

        try:
            answer = await self.generate_response(
                "Say 'OK'", probe_context, LLMOptions(max_tokens=10, temperature=0.0, timeout=HEALTH_PROBE_TIMEOUT)
            )
            checks["llm"] = bool(answer.strip())
            details.append("LLM: OK" if checks["llm"] else "LLM: empty answer")
        except Exception as e:
            details.append(f"LLM: {e}")

        try:
            resolution = self.resolve_reservation_context("health check probe", {}, None)
            checks["context_resolution"] = resolution.method != "fallback"
            details.append(f"Context resolution: {resolution.method}")
        except Exception as e:
            details.append(f"Context resolution: {e}")

        translated = await self.translate("Hello", "ru", probe_context, "health_check")
        checks["translation"] = bool(translated)
        details.append("Translation: OK" if checks["translation"] else "Translation: empty")

        tool_count = len(self.get_tools())
        checks["tools"] = tool_count > 0
        details.append(f"Tools: {tool_count} available")

        return {"healthy": all(checks.values()), "checks": checks, "details": details}
