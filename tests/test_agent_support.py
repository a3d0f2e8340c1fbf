"""Unit tests for agent config validation, message rendering and factory wiring."""

import pytest
from unittest.mock import MagicMock

from tablewise.infra.config import config
from tablewise.models.agent import create_default_agent_config, validate_agent_config
from tablewise.services.agents.agent_factory import AgentFactory, build_agent_factory
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.messages import language_name, render
from tablewise.services.ai_service import AIService


class TestValidateAgentConfig:
    """Test agent configuration checks."""

    def test_default_config_is_valid(self):
        agent_config = create_default_agent_config("Sofia", "Booking specialist", ["check_availability"])

        assert validate_agent_config(agent_config) == []

    def test_reports_every_problem(self):
        agent_config = create_default_agent_config("Sofia", "Booking specialist", ["check_availability"])
        broken = agent_config.model_copy(update={
            "name": "",
            "description": "",
            "capabilities": [],
            "max_tokens": 5000,
            "temperature": 2.5,
        })

        errors = validate_agent_config(broken)

        assert errors == [
            "Agent name is required",
            "Agent description is required",
            "Agent must have at least one capability",
            "maxTokens must be between 1 and 4000",
            "temperature must be between 0 and 2",
        ]


class TestMessages:
    """Test localized message rendering."""

    def test_renders_requested_language(self):
        assert render("apology", "ru").startswith("Извините")

    def test_missing_language_falls_back_to_english(self):
        assert render("apology", "nl") == render("apology", "en")

    def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            render("no_such_message", "en")

    @pytest.mark.parametrize("code,name", [
        ("sr", "Serbian"),
        ("auto", "English"),
        ("xx", "English"),
    ])
    def test_language_name(self, code, name):
        assert language_name(code) == name


class TestPerformanceStats:
    """Test agent counters and uptime formatting."""

    def test_stats_without_requests(self):
        agent = MagicMock(request_count=0, error_count=0, total_processing_time=0.0, created_at=0.0)
        agent.format_uptime = BaseAgent.format_uptime

        stats = BaseAgent.get_performance_stats(agent)

        assert stats["request_count"] == 0
        assert stats["avg_processing_time_ms"] == 0

    def test_average_processing_time(self):
        agent = MagicMock(request_count=4, error_count=1, total_processing_time=1000.0, created_at=0.0)
        agent.format_uptime = BaseAgent.format_uptime

        stats = BaseAgent.get_performance_stats(agent)

        assert stats["avg_processing_time_ms"] == 250
        assert stats["total_processing_time_ms"] == 1000
        assert stats["error_count"] == 1

    @pytest.mark.parametrize("seconds,expected", [
        (3 * 3600 + 120, "3h 2m"),
        (2 * 86400 + 3600, "2d 1h 0m"),
    ])
    def test_format_uptime(self, seconds, expected):
        assert BaseAgent.format_uptime(seconds) == expected


class TestBuildAgentFactory:
    """Test factory wiring from config."""

    def test_uses_given_storage_and_config_limits(self):
        storage = MagicMock()

        factory = build_agent_factory(storage=storage)

        assert isinstance(factory, AgentFactory)
        assert isinstance(factory.ai_service, AIService)
        assert factory.config_manager.storage is storage
        assert factory.max_cache_size == config.AGENT_CACHE_MAX_SIZE
