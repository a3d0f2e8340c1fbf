"""Tests for the agent tool registry and result envelopes."""

import pytest

from tablewise.models.agent import ToolCall
from tablewise.services.agent_tools import (
    AGENT_TOOLS,
    ToolErrorType,
    ToolStatus,
    get_tools_for,
    tool_business_error,
    tool_success,
    tool_system_error,
    tool_validation_error,
    validate_tool_call,
)


class TestToolRegistry:
    """Test tool lookup by capability."""

    def test_tool_names_are_unique(self):
        names = [tool.name for tool in AGENT_TOOLS]
        assert len(names) == len(set(names))

    def test_capability_order_is_kept(self):
        tools = get_tools_for(["modify_reservation", "check_availability"])
        assert [tool.name for tool in tools] == ["modify_reservation", "check_availability"]

    def test_unknown_capability_is_skipped(self):
        assert [tool.name for tool in get_tools_for(["teleport", "get_restaurant_info"])] == ["get_restaurant_info"]

    def test_every_tool_is_an_object_schema(self):
        for tool in AGENT_TOOLS:
            assert tool.parameters_schema["type"] == "object"
            for required in tool.required_parameters:
                assert required in tool.parameters_schema["properties"]


class TestValidateToolCall:
    """Test tool call validation."""

    def test_valid_call(self):
        call = ToolCall(name="check_availability", arguments={"date": "2025-08-06", "time": "19:00", "guests": 2})
        assert validate_tool_call(call) == []

    def test_missing_argument(self):
        call = ToolCall(name="check_availability", arguments={"date": "2025-08-06", "time": ""})
        assert validate_tool_call(call) == [
            "Missing required argument: time",
            "Missing required argument: guests",
        ]

    def test_unknown_tool(self):
        assert validate_tool_call(ToolCall(name="drop_tables")) == ["Unknown tool: drop_tables"]

    def test_tool_outside_allowed_set(self):
        call = ToolCall(name="get_restaurant_info", arguments={"infoType": "hours"})
        problems = validate_tool_call(call, allowed=["check_availability"])
        assert problems == ["Tool get_restaurant_info is not available to this agent"]


class TestToolResults:
    """Test tagged result envelopes."""

    def test_success(self):
        result = tool_success({"available": True}, execution_time_ms=12)

        assert result.succeeded
        assert result.tool_status == ToolStatus.SUCCESS
        assert result.data == {"available": True}
        assert result.metadata == {"execution_time_ms": 12}
        assert result.error is None

    @pytest.mark.parametrize("result,error_type", [
        (tool_validation_error("Bad date", field="date"), ToolErrorType.VALIDATION_ERROR),
        (tool_business_error("Fully booked", code="NO_AVAILABILITY", alternatives=2), ToolErrorType.BUSINESS_RULE),
        (tool_system_error("Database down"), ToolErrorType.SYSTEM_ERROR),
    ])
    def test_failures(self, result, error_type):
        assert not result.succeeded
        assert result.tool_status == ToolStatus.FAILURE
        assert result.error.type == error_type

    def test_failure_details(self):
        assert tool_validation_error("Bad date", field="date").error.details == {"field": "date"}
        business = tool_business_error("Fully booked", code="NO_AVAILABILITY", alternatives=2)
        assert business.error.code == "NO_AVAILABILITY"
        assert business.error.details == {"alternatives": 2}

    def test_serialized_status_is_plain_string(self):
        assert tool_success({}).model_dump(mode="json")["tool_status"] == "SUCCESS"
