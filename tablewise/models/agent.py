"""Agent configuration, per-message context and response models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tablewise.infra.error_handler import AgentErrorKind
from tablewise.models.conversation import (
    AwaitingNameChoice,
    ConversationState,
    GatheringInfo,
    PendingConfirmation,
)
from tablewise.models.reservation import AvailabilityFailureContext, ExistingReservation
from tablewise.models.tenant import TenantContext

AgentType = Literal["booking", "reservations", "conductor", "availability"]

SUPPORTED_LANGUAGES = ("en", "ru", "sr", "hu", "de", "fr", "es", "it", "pt", "nl", "auto")


class AgentConfig(BaseModel):
    """Per-instance tuning. Read-only after construction."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    capabilities: List[str]
    max_tokens: int = 1000
    temperature: float = 0.2
    primary_model: str = "haiku"
    fallback_model: str = "gpt-4o-mini"
    enable_context_resolution: bool = True
    enable_translation: bool = True
    enable_personalization: bool = True


def create_default_agent_config(name: str, description: str, capabilities: List[str], **overrides: Any) -> AgentConfig:
    """Build an AgentConfig with the standard defaults, applying overrides."""
    values: Dict[str, Any] = {
        "name": name,
        "description": description,
        "capabilities": list(capabilities),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return AgentConfig(**values)


def validate_agent_config(config: AgentConfig) -> List[str]:
    """
    Check an agent configuration.

    Returns:
        List of problems, empty when the config is valid
    """
    errors = []
    if not config.name:
        errors.append("Agent name is required")
    if not config.description:
        errors.append("Agent description is required")
    if not config.capabilities:
        errors.append("Agent must have at least one capability")
    if config.max_tokens < 1 or config.max_tokens > 4000:
        errors.append("maxTokens must be between 1 and 4000")
    if config.temperature < 0 or config.temperature > 2:
        errors.append("temperature must be between 0 and 2")
    return errors


class GuestHistory(BaseModel):
    """Read-only guest reference data."""
    guest_name: str
    guest_phone: Optional[str] = None
    total_bookings: int = 0
    total_cancellations: int = 0
    last_visit_date: Optional[str] = None
    common_party_size: Optional[int] = None
    frequent_special_requests: List[str] = Field(default_factory=list)
    retrieved_at: Optional[datetime] = None

    @property
    def is_returning(self) -> bool:
        return self.total_bookings > 0

    @property
    def is_regular(self) -> bool:
        return self.total_bookings >= 3


class ConversationContext(BaseModel):
    """Flags the caller accumulates across turns of one conversation."""
    has_asked_party_size: bool = False
    has_asked_date: bool = False
    has_asked_time: bool = False
    has_asked_name: bool = False
    has_asked_phone: bool = False
    booking_number: int = 1
    is_subsequent_booking: bool = False
    session_turn_count: int = 1
    last_questions: List[str] = Field(default_factory=list)
    gathering_info: GatheringInfo = Field(default_factory=GatheringInfo)


class AgentContext(BaseModel):
    """Per-message envelope built fresh by the caller for each inbound message."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    restaurant_id: int
    timezone: str
    language: str = "en"
    tenant_context: Optional[TenantContext] = None
    telegram_user_id: Optional[str] = None
    session_id: Optional[str] = None
    guest_history: Optional[GuestHistory] = None
    conversation_context: Optional[ConversationContext] = None
    conversation_state: Optional[ConversationState] = None
    session: Optional[Dict[str, Any]] = None
    availability_failure_context: Optional[AvailabilityFailureContext] = None
    found_reservations: List[ExistingReservation] = Field(default_factory=list)
    current_reservation_id: Optional[int] = None
    alternative_candidates: Optional[List[str]] = None  # None until find_alternative_times has run

    @property
    def pending_confirmation(self) -> Optional[PendingConfirmation]:
        if isinstance(self.conversation_state, AwaitingNameChoice):
            return self.conversation_state.pending
        return None

    @property
    def turn_count(self) -> int:
        if self.conversation_context is None:
            return 1
        return self.conversation_context.session_turn_count


class ToolCall(BaseModel):
    """A backend function the caller should execute on the agent's behalf."""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None


class HandoffSignal(BaseModel):
    """Request to route the conversation to another agent type."""
    to: AgentType
    reason: str
    confidence: float = 0.9


class ResponseMetadata(BaseModel):
    processed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    agent_type: str
    confidence: float = 1.0
    processing_time_ms: Optional[int] = None
    model_used: Optional[str] = None
    action: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AgentErrorInfo(BaseModel):
    type: AgentErrorKind
    message: str
    recoverable: bool = True


class AgentResponse(BaseModel):
    """What every agent returns from handle_message."""
    content: str
    tool_calls: List[ToolCall] = Field(default_factory=list)
    handoff_signal: Optional[HandoffSignal] = None
    metadata: ResponseMetadata
    error: Optional[AgentErrorInfo] = None
    conversation_state: Optional[ConversationState] = None
