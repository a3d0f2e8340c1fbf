"""Restaurant storage backed by SQL."""

from typing import Any, Dict, Optional

from sqlalchemy import text

from tablewise.infra.database import get_db_session


class SqlRestaurantStorage:
    """Reads restaurant rows for the configuration manager."""

    async def get_restaurant(self, restaurant_id: int) -> Optional[Dict[str, Any]]:
        """
        Load one restaurant row.

        Returns:
            Column mapping, or None if the restaurant does not exist
        """
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT id, name, timezone, opening_time, closing_time, max_guests,
                           avg_reservation_duration, cuisine, atmosphere, country,
                           languages, address, phone, description
                    FROM restaurants
                    WHERE id = :restaurant_id
                """),
                {"restaurant_id": restaurant_id}
            ).fetchone()

        if not row:
            return None
        return dict(row._mapping)
