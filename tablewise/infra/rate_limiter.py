"""Per-tenant sliding-window rate limiting for LLM usage."""

from typing import Dict, List
from datetime import datetime, timedelta
from collections import defaultdict

_rate_limit_store: Dict[str, List[datetime]] = defaultdict(list)


def check_rate_limit(tenant_id: int, per_minute_limit: int) -> bool:
    """
    Check and record one request against the tenant's per-minute window.

    Args:
        tenant_id: Tenant (restaurant) ID
        per_minute_limit: Requests allowed per rolling minute

    Returns:
        True if within limits, False if rate limited
    """
    now = datetime.utcnow()
    minute_ago = now - timedelta(minutes=1)

    tenant_requests = _rate_limit_store[f"tenant:{tenant_id}"]
    tenant_requests[:] = [ts for ts in tenant_requests if ts > minute_ago]

    if len(tenant_requests) >= per_minute_limit:
        return False

    tenant_requests.append(now)
    return True


def reset_rate_limits() -> None:
    """Forget all recorded requests."""
    _rate_limit_store.clear()
