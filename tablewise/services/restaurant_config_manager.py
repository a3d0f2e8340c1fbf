"""Per-restaurant configuration loading and caching."""

import logging
from datetime import time as dt_time
from typing import Any, Dict, Optional, Protocol

from tablewise.infra.config import config
from tablewise.infra.error_handler import RestaurantNotFoundError
from tablewise.models.restaurant import RestaurantConfig

logger = logging.getLogger(__name__)

DEFAULT_OPENING_TIME = "09:00:00"
DEFAULT_CLOSING_TIME = "23:00:00"
DEFAULT_MAX_GUESTS = 12
DEFAULT_RESERVATION_DURATION = 120


class RestaurantStorage(Protocol):
    async def get_restaurant(self, restaurant_id: int) -> Optional[Dict[str, Any]]:
        ...


def _pick(row: Dict[str, Any], snake: str, camel: str) -> Any:
    value = row.get(snake)
    if value is None:
        value = row.get(camel)
    return value


def _time_str(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, dt_time):
        return value.strftime("%H:%M:%S")
    value = str(value)
    return f"{value}:00" if len(value) == 5 else value


def normalize_restaurant_row(row: Dict[str, Any]) -> RestaurantConfig:
    """Build a RestaurantConfig from a storage row with either naming convention."""
    languages = row.get("languages") or []
    if isinstance(languages, str):
        languages = [lang.strip() for lang in languages.split(",") if lang.strip()]

    return RestaurantConfig(
        id=row["id"],
        name=row.get("name") or f"Restaurant {row['id']}",
        timezone=row.get("timezone") or config.DEFAULT_TIMEZONE,
        opening_time=_time_str(_pick(row, "opening_time", "openingTime"), DEFAULT_OPENING_TIME),
        closing_time=_time_str(_pick(row, "closing_time", "closingTime"), DEFAULT_CLOSING_TIME),
        max_guests=_pick(row, "max_guests", "maxGuests") or DEFAULT_MAX_GUESTS,
        avg_reservation_duration=(
            _pick(row, "avg_reservation_duration", "avgReservationDuration") or DEFAULT_RESERVATION_DURATION
        ),
        cuisine=row.get("cuisine"),
        atmosphere=row.get("atmosphere"),
        country=row.get("country"),
        languages=languages,
        address=row.get("address"),
        phone=row.get("phone"),
        description=row.get("description"),
    )


class RestaurantConfigManager:
    """
    Cache of RestaurantConfig keyed by restaurant id.

    Entries live until clear_config_cache is called for the restaurant.
    """

    def __init__(self, storage: RestaurantStorage):
        self.storage = storage
        self._cache: Dict[int, RestaurantConfig] = {}

    async def get_config(self, restaurant_id: int) -> RestaurantConfig:
        """
        Return the cached config, loading it from storage on first use.

        Raises:
            RestaurantNotFoundError: If storage has no such restaurant
        """
        cached = self._cache.get(restaurant_id)
        if cached is not None:
            return cached

        row = await self.storage.get_restaurant(restaurant_id)
        if not row:
            raise RestaurantNotFoundError(restaurant_id)

        restaurant_config = normalize_restaurant_row(row)
        self._cache[restaurant_id] = restaurant_config
        logger.debug("Restaurant config loaded", extra={"restaurant_id": restaurant_id})
        return restaurant_config

    def clear_config_cache(self, restaurant_id: int) -> None:
        """Evict one restaurant's cached config."""
        if self._cache.pop(restaurant_id, None) is not None:
            logger.info("Restaurant config cache cleared", extra={"restaurant_id": restaurant_id})

    def cached_restaurant_ids(self):
        return list(self._cache)
