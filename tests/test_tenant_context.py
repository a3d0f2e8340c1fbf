"""Tests for tenant context."""

import pytest

from tablewise.models.tenant import TenantContext, TenantRestaurant


class TestTenantContext:
    """Test tenant status and feature flags."""

    @pytest.mark.parametrize("status,active", [
        ("active", True),
        ("trial", True),
        ("suspended", False),
    ])
    def test_is_active(self, status, active):
        tenant = TenantContext(restaurant=TenantRestaurant(id=1, name="Demo", tenant_status=status))
        assert tenant.is_active is active

    def test_features(self):
        tenant = TenantContext(
            restaurant=TenantRestaurant(id=4, name="Demo"),
            features={"aiChat": True, "advancedReporting": False, "guestAnalytics": True},
        )

        assert tenant.tenant_id == 4
        assert tenant.has_feature("aiChat")
        assert not tenant.has_feature("advancedReporting")
        assert not tenant.has_feature("unknown")
        assert tenant.enabled_features() == ["aiChat", "guestAnalytics"]

    def test_defaults(self):
        tenant = TenantContext(restaurant=TenantRestaurant(id=1, name="Demo"))

        assert tenant.restaurant.tenant_plan == "starter"
        assert tenant.features == {}
