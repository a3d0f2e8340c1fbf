"""Tenant context model supplied by the caller on every agent operation."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Tenant statuses allowed to use agents
ACTIVE_TENANT_STATUSES = ("active", "trial")


@dataclass
class TenantRestaurant:
    """Restaurant account with its subscription state."""
    id: int
    name: str
    tenant_status: str = "active"  # "active" | "trial" | "suspended"
    tenant_plan: str = "starter"  # "starter" | "professional" | "enterprise"
    timezone: Optional[str] = None


@dataclass
class TenantContext:
    """Runtime context for a tenant: the restaurant plus its feature flags."""
    restaurant: TenantRestaurant
    features: Dict[str, bool] = field(default_factory=dict)

    @property
    def tenant_id(self) -> int:
        return self.restaurant.id

    @property
    def is_active(self) -> bool:
        return self.restaurant.tenant_status in ACTIVE_TENANT_STATUSES

    def has_feature(self, feature: str) -> bool:
        return bool(self.features.get(feature))

    def enabled_features(self) -> List[str]:
        return sorted(name for name, enabled in self.features.items() if enabled)
