"""Reservation-side reference data handed to agents by the caller."""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ExistingReservation(BaseModel):
    """A reservation found for the guest by find_existing_reservation."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    date: str  # YYYY-MM-DD
    time: str  # HH:MM or HH:MM:SS
    guests: int
    guest_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("guest_name", "guestName"))
    table_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("table_name", "tableName"))
    status: str = "confirmed"
    special_requests: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("special_requests", "specialRequests")
    )

    @property
    def short_time(self) -> str:
        return self.time[:5]


class AvailabilityFailureContext(BaseModel):
    """A prior failed availability check that the recovery agent works from."""
    original_date: str
    original_time: str
    original_guests: int
    failure_reason: str = "No tables available"
    detected_at: Optional[datetime] = None


class UserTimePreferences(BaseModel):
    """Preferences Apollo reads from the guest's wording."""
    flexibility: str = "flexible"  # "strict" | "flexible" | "very_flexible"
    preferred_time_range: Optional[str] = None  # "morning" | "afternoon" | "evening"
    accepts_earlier: bool = True
    accepts_later: bool = True
    special_requests: List[str] = Field(default_factory=list)


class AlternativeOption(BaseModel):
    """A scored alternative time slot."""
    time: str  # HH:MM
    date: str
    score: float
    reason: str
    table_name: Optional[str] = None
