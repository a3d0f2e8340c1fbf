"""Declarative registry of booking tools offered to agents, plus result envelopes."""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from tablewise.models.agent import ToolCall
from tablewise.models.tool import ToolDefinition

logger = logging.getLogger(__name__)

_DATE = {"type": "string", "description": "Date in YYYY-MM-DD format"}
_TIME = {"type": "string", "description": "Time in HH:MM format (24-hour)"}
_GUESTS = {"type": "integer", "minimum": 1, "maximum": 50, "description": "Number of guests"}


AGENT_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        name="check_availability",
        description="Check table availability for a specific date, time and party size. "
                    "Only call when the guest has stated all three.",
        parameters_schema={
            "type": "object",
            "properties": {"date": _DATE, "time": _TIME, "guests": _GUESTS},
            "required": ["date", "time", "guests"],
        },
    ),
    ToolDefinition(
        name="find_alternative_times",
        description="Find alternative available times near the preferred time when the requested slot is unavailable.",
        parameters_schema={
            "type": "object",
            "properties": {
                "date": _DATE,
                "preferredTime": {"type": "string", "description": "Preferred time in HH:MM format"},
                "guests": _GUESTS,
            },
            "required": ["date", "preferredTime", "guests"],
        },
    ),
    ToolDefinition(
        name="create_reservation",
        description="Create a reservation once name, phone, date, time and guests are all confirmed.",
        parameters_schema={
            "type": "object",
            "properties": {
                "guestName": {"type": "string", "description": "Guest full name"},
                "guestPhone": {"type": "string", "description": "Guest phone number"},
                "date": _DATE,
                "time": _TIME,
                "guests": _GUESTS,
                "specialRequests": {"type": "string", "description": "Special requests or comments"},
            },
            "required": ["guestName", "guestPhone", "date", "time", "guests"],
        },
    ),
    ToolDefinition(
        name="get_restaurant_info",
        description="Get restaurant information: hours, location, cuisine, contact or features.",
        parameters_schema={
            "type": "object",
            "properties": {
                "infoType": {
                    "type": "string",
                    "enum": ["hours", "location", "cuisine", "contact", "features", "all"],
                    "description": "Which information to return",
                },
            },
            "required": ["infoType"],
        },
    ),
    ToolDefinition(
        name="get_guest_history",
        description="Get the guest's booking history for personalized service.",
        parameters_schema={
            "type": "object",
            "properties": {
                "telegramUserId": {"type": "string", "description": "Telegram user ID of the guest"},
            },
            "required": ["telegramUserId"],
        },
    ),
    ToolDefinition(
        name="find_existing_reservation",
        description="Find the guest's existing reservations by phone, name or confirmation number.",
        parameters_schema={
            "type": "object",
            "properties": {
                "identifier": {"type": "string", "description": "Phone number, guest name or confirmation number"},
                "identifierType": {
                    "type": "string",
                    "enum": ["phone", "telegram", "name", "confirmation", "auto"],
                    "description": "What the identifier is",
                },
                "timeRange": {
                    "type": "string",
                    "enum": ["upcoming", "past", "all"],
                    "description": "Which reservations to search",
                },
            },
            "required": ["identifier"],
        },
    ),
    ToolDefinition(
        name="modify_reservation",
        description="Modify an existing reservation. Only include fields that actually change.",
        parameters_schema={
            "type": "object",
            "properties": {
                "reservationId": {"type": "integer", "description": "Reservation ID"},
                "modifications": {
                    "type": "object",
                    "properties": {
                        "newDate": _DATE,
                        "newTime": _TIME,
                        "newGuests": _GUESTS,
                        "newSpecialRequests": {"type": "string"},
                    },
                },
                "reason": {"type": "string", "description": "Reason for the change"},
            },
            "required": ["reservationId", "modifications"],
        },
    ),
    ToolDefinition(
        name="cancel_reservation",
        description="Cancel an existing reservation after the guest explicitly confirmed the cancellation.",
        parameters_schema={
            "type": "object",
            "properties": {
                "reservationId": {"type": "integer", "description": "Reservation ID"},
                "reason": {"type": "string", "description": "Cancellation reason"},
                "confirmCancellation": {"type": "boolean", "description": "Guest confirmed the cancellation"},
            },
            "required": ["reservationId", "confirmCancellation"],
        },
    ),
]

_TOOLS_BY_NAME: Dict[str, ToolDefinition] = {tool.name: tool for tool in AGENT_TOOLS}


def get_tools_for(capabilities: Iterable[str]) -> List[ToolDefinition]:
    """Return tool definitions for the given capability names, in capability order."""
    tools = []
    for name in capabilities:
        tool = _TOOLS_BY_NAME.get(name)
        if tool is None:
            logger.warning("Capability has no tool definition", extra={"capability": name})
            continue
        tools.append(tool)
    return tools


def validate_tool_call(call: ToolCall, allowed: Optional[Iterable[str]] = None) -> List[str]:
    """
    Check a tool call against the registry.

    Returns:
        List of problems, empty when the call may be executed
    """
    tool = _TOOLS_BY_NAME.get(call.name)
    if tool is None:
        return [f"Unknown tool: {call.name}"]
    if allowed is not None and call.name not in set(allowed):
        return [f"Tool {call.name} is not available to this agent"]
    return [
        f"Missing required argument: {param}"
        for param in tool.required_parameters
        if call.arguments.get(param) in (None, "")
    ]


class ToolStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ToolErrorType(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BUSINESS_RULE = "BUSINESS_RULE"
    SYSTEM_ERROR = "SYSTEM_ERROR"


class ToolError(BaseModel):
    type: ToolErrorType
    message: str
    code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Tagged envelope every tool backend returns."""
    tool_status: ToolStatus
    data: Optional[Dict[str, Any]] = None
    error: Optional[ToolError] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.tool_status == ToolStatus.SUCCESS


def tool_success(data: Dict[str, Any], **metadata: Any) -> ToolResult:
    return ToolResult(tool_status=ToolStatus.SUCCESS, data=data, metadata=metadata)


def tool_validation_error(message: str, field: Optional[str] = None, code: Optional[str] = None) -> ToolResult:
    details = {"field": field} if field else {}
    return ToolResult(
        tool_status=ToolStatus.FAILURE,
        error=ToolError(type=ToolErrorType.VALIDATION_ERROR, message=message, code=code, details=details),
    )


def tool_business_error(message: str, code: Optional[str] = None, **details: Any) -> ToolResult:
    return ToolResult(
        tool_status=ToolStatus.FAILURE,
        error=ToolError(type=ToolErrorType.BUSINESS_RULE, message=message, code=code, details=details),
    )


def tool_system_error(message: str, code: Optional[str] = None) -> ToolResult:
    return ToolResult(
        tool_status=ToolStatus.FAILURE,
        error=ToolError(type=ToolErrorType.SYSTEM_ERROR, message=message, code=code),
    )
