"""Restaurant configuration model."""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class RestaurantConfig(BaseModel):
    """Operating parameters of one restaurant. Immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Restaurant ID")
    name: str = Field(..., description="Display name")
    timezone: str = Field(..., description="IANA timezone, e.g. Europe/Belgrade")
    opening_time: str = Field(..., description="HH:MM:SS opening time")
    closing_time: str = Field(..., description="HH:MM:SS closing time, may be past midnight")
    max_guests: int = Field(..., description="Largest party accepted online")
    avg_reservation_duration: int = Field(default=120, description="Average table turn in minutes")
    cuisine: Optional[str] = None
    atmosphere: Optional[str] = None
    country: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    address: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
