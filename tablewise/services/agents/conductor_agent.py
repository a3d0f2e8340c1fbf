"""Conductor: the neutral state after a task is finished.

Acknowledges thanks, answers simple questions about the restaurant and
notices when the guest starts a new task. It holds no booking tools, so a
new task always becomes a hand-off.
"""

import logging
import re
import time
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from tablewise.models.agent import AgentContext, AgentResponse, AgentType, HandoffSignal
from tablewise.models.tool import ToolDefinition
from tablewise.services.agent_tools import get_tools_for
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.messages import render

logger = logging.getLogger(__name__)

CONDUCTOR_CAPABILITIES = ["get_restaurant_info"]

NEW_BOOKING_PATTERNS: List[Pattern] = [
    re.compile(r"\b(book|reserve|reservation for)\b.*\b(another|new|one more|table)\b", re.I),
    re.compile(r"\b(another|new|one more)\s+(table|booking|reservation)\b", re.I),
    re.compile(r"\b(забронировать|забронируйте|бронь на|ещё один столик|еще один столик|новую бронь)", re.I),
    re.compile(r"\b(rezervisati|rezervišite|novu rezervaciju)\b", re.I),
    re.compile(r"\b(foglalni|új foglalás|foglalnék)\b", re.I),
]
RESERVATION_CHANGE_PATTERNS: List[Pattern] = [
    re.compile(r"\b(change|modify|reschedule|move|cancel|update)\b.*\b(booking|reservation|it|time|date)\b", re.I),
    re.compile(r"(изменить|поменять|перенести|отменить|отмените|перенесите)", re.I),
    re.compile(r"\b(promeniti|otkazati|pomeriti)\b", re.I),
    re.compile(r"\b(módosítani|lemondani|áttenni)\b", re.I),
]
THANKS_PATTERNS: List[Pattern] = [
    re.compile(r"\b(thanks|thank you|thx|perfect|awesome|cheers)\b", re.I),
    re.compile(r"(спасибо|благодарю|отлично|супер)", re.I),
    re.compile(r"\b(hvala|super|odlično)\b", re.I),
    re.compile(r"\b(köszönöm|köszi|szuper)\b", re.I),
    re.compile(r"\b(danke|merci|gracias|grazie|obrigad[oa]|bedankt)\b", re.I),
]


def _matches(patterns: List[Pattern]) -> Callable[[str], bool]:
    return lambda message: any(pattern.search(message) for pattern in patterns)


# First match wins. A new task outranks a thank-you in the same message.
INTENT_CASCADE: List[Tuple[str, Callable[[str], bool]]] = [
    ("new_booking", _matches(NEW_BOOKING_PATTERNS)),
    ("reservation_change", _matches(RESERVATION_CHANGE_PATTERNS)),
    ("thanks", _matches(THANKS_PATTERNS)),
]

_HANDOFF_TARGETS: Dict[str, Tuple[AgentType, str]] = {
    "new_booking": ("booking", "conductor_handoff_booking"),
    "reservation_change": ("reservations", "conductor_handoff_reservations"),
}


def detect_intent(message: str) -> Optional[str]:
    for intent, predicate in INTENT_CASCADE:
        if predicate(message):
            return intent
    return None


class ConductorAgent(BaseAgent):
    """Post-task small talk and routing."""

    agent_type = "conductor"

    def get_tools(self) -> List[ToolDefinition]:
        # Restaurant info only; anything else is a hand-off
        return get_tools_for([name for name in self.capabilities if name in CONDUCTOR_CAPABILITIES])

    def generate_system_prompt(self, context: AgentContext) -> str:
        rc = self.restaurant_config
        return "\n\n".join([
            f"You are the friendly host of {rc.name}. The guest's last task is complete.",
            self.language_instruction(context.language),
            (
                "WHAT YOU DO:\n"
                "1. Thanks or pleasantries: reply warmly and briefly, ask if anything else is needed.\n"
                "2. Questions about the restaurant (hours, address, menu, cuisine): answer, using "
                "get_restaurant_info when you need facts.\n"
                "3. A new booking or a change to a reservation: say you will connect them with the right "
                "specialist. Never try to book or change anything yourself."
            ),
            (
                "RESTAURANT:\n"
                f"- Hours: {rc.opening_time[:5]} - {rc.closing_time[:5]}\n"
                f"- Cuisine: {rc.cuisine or 'n/a'}\n"
                f"- Address: {rc.address or 'n/a'}\n"
                f"- Phone: {rc.phone or 'n/a'}"
            ),
        ])

    async def handle_message(self, message: str, context: AgentContext) -> AgentResponse:
        started_at = time.time()
        try:
            intent = detect_intent(message)

            if intent in _HANDOFF_TARGETS:
                target, message_key = _HANDOFF_TARGETS[intent]
                return self.build_response(
                    render(message_key, context.language),
                    started_at,
                    handoff_signal=HandoffSignal(to=target, reason=f"Guest started a new task: {intent}"),
                    action="handoff",
                    intent=intent,
                )

            if intent == "thanks":
                return self.build_response(
                    render("conductor_thanks", context.language), started_at, action="acknowledge_thanks"
                )

            completion = await self.generate_turn(message, context)
            return self.build_response(
                completion.text,
                started_at,
                tool_calls=completion.tool_calls,
                action="llm_turn",
                model_used=completion.model_used,
            )
        except Exception as e:
            return self.handle_agent_error(e, "handle_message", message, context.language)
