"""Business event logging."""

import logging
from typing import Any

from tablewise.infra.logging import app_logger
from tablewise.infra.metrics import business_events_total

event_logger = app_logger.getChild("business_events")


def log_business_event(event: str, **fields: Any) -> None:
    """
    Emit a business event as a structured log record and a counter bump.

    Args:
        event: Event name (e.g. 'agent_created', 'agent_cache_hit')
        **fields: Event payload, written as JSON fields of the record
    """
    try:
        business_events_total.labels(event=event).inc()
        event_logger.info(event, extra={"event": event, **fields})
    except Exception as e:
        # The sink must never change control flow
        logging.getLogger(__name__).debug("Business event dropped: %s", e)
