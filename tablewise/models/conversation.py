"""Cross-turn conversation state, persisted by the caller between turns.

Every model here is plain data (no references back into sessions or
configs) so the state can be written as JSON and read back on the next turn.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GatheringInfo(BaseModel):
    """Booking slots collected so far."""
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM
    guests: Optional[int] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    comments: Optional[str] = None

    def missing_fields(self) -> List[str]:
        required = ("date", "time", "guests", "name", "phone")
        return [name for name in required if not getattr(self, name)]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class PendingContextSnapshot(BaseModel):
    """The only context fields a pending confirmation may carry."""
    model_config = ConfigDict(extra="forbid")

    restaurant_id: int
    timezone: str
    session_id: Optional[str] = None
    language: str = "en"


class PendingConfirmation(BaseModel):
    """Name-mismatch disambiguation awaiting the guest's choice."""
    type: Literal["name_clarification"] = "name_clarification"
    db_name: str = Field(..., description="Name stored on the guest profile")
    request_name: str = Field(..., description="Name given for this booking")
    original_booking: Dict[str, Any] = Field(..., description="create_reservation arguments")
    original_context: PendingContextSnapshot
    attempts: int = 0
    max_attempts: int = 3
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def is_expired(self, timeout_seconds: float, now: Optional[datetime] = None) -> bool:
        now = now or _utcnow()
        return (now - self.created_at).total_seconds() > timeout_seconds


class IdleState(BaseModel):
    kind: Literal["idle"] = "idle"


class AwaitingNameChoice(BaseModel):
    kind: Literal["awaiting_name_choice"] = "awaiting_name_choice"
    pending: PendingConfirmation


class BookingState(BaseModel):
    kind: Literal["booking"] = "booking"
    slots: GatheringInfo = Field(default_factory=GatheringInfo)


ConversationState = Annotated[
    Union[IdleState, AwaitingNameChoice, BookingState],
    Field(discriminator="kind"),
]
