"""Pytest configuration and fixtures."""

import pytest
import os
from unittest.mock import AsyncMock, MagicMock
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from tablewise.infra.rate_limiter import reset_rate_limits
from tablewise.models.agent import AgentContext, create_default_agent_config
from tablewise.models.restaurant import RestaurantConfig
from tablewise.models.tenant import TenantContext, TenantRestaurant
from tablewise.services.ai_service import LLMCompletion


@pytest.fixture(autouse=True)
def clear_rate_limits():
    """Each test starts with empty per-tenant LLM call windows."""
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def restaurant_config():
    """A restaurant open 09:00-23:00 with 2 hour reservations."""
    return RestaurantConfig(
        id=1,
        name="Demo Bistro",
        timezone="Europe/Belgrade",
        opening_time="09:00:00",
        closing_time="23:00:00",
        max_guests=10,
        avg_reservation_duration=120,
        cuisine="Mediterranean",
        atmosphere="Cozy",
    )


@pytest.fixture
def tenant_context():
    """Active professional tenant with every feature enabled."""
    return TenantContext(
        restaurant=TenantRestaurant(id=1, name="Demo Bistro", tenant_status="active", tenant_plan="professional"),
        features={"aiChat": True, "advancedReporting": True},
    )


@pytest.fixture
def ai_service():
    """LLM service double; tests set return values per call."""
    service = MagicMock()
    service.generate_content = AsyncMock(return_value="OK")
    service.generate_json = AsyncMock(return_value={})
    service.generate_completion = AsyncMock(return_value=LLMCompletion(text="LLM reply", model_used="gpt-4o-mini"))
    return service


@pytest.fixture
def make_context(tenant_context):
    """Build an AgentContext for restaurant 1 with overrides."""
    def _make(**overrides):
        values = {
            "restaurant_id": 1,
            "timezone": "Europe/Belgrade",
            "language": "en",
            "tenant_context": tenant_context,
        }
        values.update(overrides)
        return AgentContext(**values)
    return _make


@pytest.fixture
def make_agent_config():
    def _make(capabilities, **overrides):
        return create_default_agent_config("Test", "Test agent", capabilities, **overrides)
    return _make
