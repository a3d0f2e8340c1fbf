"""Sofia: new-booking specialist."""

import logging
import time
from typing import Any, Dict, List, Optional

from tablewise.logging.event_logger import log_business_event
from tablewise.models.agent import AgentContext, AgentResponse, ConversationContext, GuestHistory, ToolCall
from tablewise.models.conversation import (
    AwaitingNameChoice,
    BookingState,
    GatheringInfo,
    IdleState,
    PendingConfirmation,
    PendingContextSnapshot,
)
from tablewise.models.tool import ToolDefinition
from tablewise.services.agent_tools import ToolResult, get_tools_for
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.messages import render
from tablewise.services.agents.name_resolution import advance_name_choice
from tablewise.services.restaurant_time import date_context, is_overnight_operation, last_bookable_time

logger = logging.getLogger(__name__)

SOFIA_CAPABILITIES = [
    "check_availability",
    "find_alternative_times",
    "create_reservation",
    "get_restaurant_info",
    "get_guest_history",
]

NAME_CLARIFICATION_CODE = "NAME_CLARIFICATION_NEEDED"


class SofiaAgent(BaseAgent):
    """Drives the conversation to a new reservation."""

    agent_type = "booking"

    def get_tools(self) -> List[ToolDefinition]:
        return get_tools_for(self.capabilities)

    # Prompt sections

    def _restaurant_section(self) -> str:
        rc = self.restaurant_config
        overnight = is_overnight_operation(rc.opening_time, rc.closing_time)
        last_booking = last_bookable_time(rc.opening_time, rc.closing_time, rc.avg_reservation_duration)
        lines = [
            "RESTAURANT DETAILS:",
            f"- Name: {rc.name}",
            f"- Restaurant ID: {rc.id}",
            f"- Cuisine: {rc.cuisine or 'Excellent dining'}",
            f"- Atmosphere: {rc.atmosphere or 'Welcoming and comfortable'}",
            f"- Hours: {rc.opening_time[:5]} - {rc.closing_time[:5]}",
            f"- Timezone: {rc.timezone}",
            f"- Maximum party size for online booking: {rc.max_guests}",
            f"- Last bookable time: {last_booking} (closing time minus {rc.avg_reservation_duration} minutes)",
            f"- NEVER accept a booking that starts after {last_booking}.",
        ]
        if overnight:
            lines.append(
                f"- OVERNIGHT OPERATION: the restaurant closes after midnight ({rc.closing_time[:5]}). "
                "Times after midnight belong to the same business day."
            )
        return "\n".join(lines)

    def _date_section(self) -> str:
        dc = date_context(self.restaurant_config.timezone)
        return (
            "CURRENT DATE CONTEXT (CRITICAL):\n"
            f"- TODAY is {dc['today']} ({dc['day_of_week']})\n"
            f"- TOMORROW is {dc['tomorrow']}\n"
            f"- Current time: {dc['current_time']} in {self.restaurant_config.timezone}\n"
            f"- The current year is {dc['current_year']}. Never use dates from any other year.\n"
            "- Always use YYYY-MM-DD for dates and HH:MM for times."
        )

    def _guest_section(self, history: Optional[GuestHistory]) -> str:
        if history is None or not history.is_returning:
            return (
                "GUEST CONTEXT - NEW GUEST:\n"
                "- No booking history. Collect name, phone, date, time and party size."
            )
        status = "REGULAR CUSTOMER" if history.is_regular else "RETURNING GUEST"
        lines = [
            f"GUEST CONTEXT - {status}:",
            f"- Guest: {history.guest_name} ({history.total_bookings} previous bookings)",
            f"- Phone: {history.guest_phone or 'unknown'}",
            f"- Known: name{' and phone' if history.guest_phone else ''}. Do not ask for them again.",
        ]
        if history.common_party_size:
            lines.append(f"- Usual party size: {history.common_party_size}. Ask whether it is the same this time.")
        if history.last_visit_date:
            lines.append(f"- Last visit: {history.last_visit_date}")
        if history.total_cancellations:
            lines.append(f"- Cancellations: {history.total_cancellations}")
        if self.config.enable_personalization and history.frequent_special_requests:
            lines.append(f"- Frequent requests: {', '.join(history.frequent_special_requests)}. Offer them proactively.")
        return "\n".join(lines)

    def _booking_rules_section(self, conversation: Optional[ConversationContext]) -> str:
        gathering = conversation.gathering_info if conversation else GatheringInfo()
        lines = ["CRITICAL BOOKING INSTRUCTIONS:"]
        if gathering.is_complete():
            lines.append("- All booking details are collected. Check availability, then create the reservation.")
        else:
            lines.append(f"- Still missing: {', '.join(gathering.missing_fields())}. Ask only for what is missing.")
        lines.extend([
            "- NEVER call check_availability until the guest has stated the date, the time AND the number of guests.",
            "- NEVER assume a party size. If the guest did not say it, ask.",
            "- NEVER call create_reservation without an explicit name and phone number.",
            "- If the guest gives all details at once, do not ask them to repeat anything.",
        ])
        return "\n".join(lines)

    def _tool_section(self) -> str:
        return (
            "TOOL RESPONSES:\n"
            "- Every tool returns tool_status SUCCESS or FAILURE. Check it before using data.\n"
            "- VALIDATION_ERROR: ask the guest to correct the field, with an example.\n"
            "- BUSINESS_RULE: explain the constraint and offer an alternative.\n"
            "- SYSTEM_ERROR: apologize and offer to try again.\n"
            f"- {NAME_CLARIFICATION_CODE}: the guest profile has a different name (details.dbName vs "
            "details.requestName). Ask which name to use.\n"
            "- After create_reservation succeeds, confirm once with the reservation number."
        )

    def _flags_section(self, conversation: Optional[ConversationContext]) -> str:
        if conversation is None:
            return ""
        asked = [
            label for label, flag in (
                ("party size", conversation.has_asked_party_size),
                ("date", conversation.has_asked_date),
                ("time", conversation.has_asked_time),
                ("name", conversation.has_asked_name),
                ("phone", conversation.has_asked_phone),
            ) if flag
        ]
        lines = ["CONVERSATION STATE:", f"- Turn {conversation.session_turn_count}"]
        if asked:
            lines.append(f"- Already asked for: {', '.join(asked)}. Do not ask again.")
        if conversation.is_subsequent_booking:
            lines.append(f"- This is booking #{conversation.booking_number} in this conversation; start fresh for date and time.")
        return "\n".join(lines)

    def _proactive_confirmation_section(self, history: Optional[GuestHistory]) -> str:
        if history is None or not history.is_returning:
            return ""
        return (
            "PROACTIVE CONFIRMATION:\n"
            "- After availability is confirmed, offer the known details in one question: "
            f"\"Can I use the name {history.guest_name} and phone {history.guest_phone or '[phone]'} for this booking?\""
        )

    def _final_booking_directive(self, conversation: Optional[ConversationContext]) -> str:
        if conversation is None or not conversation.gathering_info.is_complete():
            return ""
        info = conversation.gathering_info
        lines = [
            "FINAL BOOKING DIRECTIVE (NON-NEGOTIABLE):",
            "Use EXACTLY these confirmed values. Do not re-derive, reformat or change any of them:",
            f"- Name: {info.name}",
            f"- Phone: {info.phone}",
            f"- Date: {info.date}",
            f"- Time: {info.time}",
            f"- Guests: {info.guests}",
        ]
        if info.comments:
            lines.append(f"- Special requests: {info.comments}")
        return "\n".join(lines)

    def generate_system_prompt(self, context: AgentContext) -> str:
        history = context.guest_history
        conversation = context.conversation_context
        sections = [
            f"You are Sofia, the friendly booking specialist for {self.restaurant_config.name}.",
            self.language_instruction(context.language),
            self._restaurant_section(),
            self._date_section(),
            self._guest_section(history),
            self._booking_rules_section(conversation),
            self._tool_section(),
            self._flags_section(conversation),
            self._proactive_confirmation_section(history),
            "STYLE: warm and welcoming, like a friendly hostess. Acknowledge what the guest already told you.",
            # Last so it is the freshest instruction in the prompt
            self._final_booking_directive(conversation),
        ]
        return "\n\n".join(section for section in sections if section)

    # Greetings

    def generate_greeting(self, context: AgentContext) -> str:
        language = context.language
        conversation = context.conversation_context
        history = context.guest_history if self.config.enable_personalization else None

        if conversation is not None and conversation.is_subsequent_booking:
            return render("greeting_subsequent", language)
        if history is None or not history.is_returning:
            return render("greeting_new", language)
        if history.is_regular:
            party = render("party_suffix", language, guests=history.common_party_size) if history.common_party_size else ""
            return render("greeting_regular", language, name=history.guest_name, phone=history.guest_phone or "", party=party)
        return render("greeting_returning", language, name=history.guest_name, phone=history.guest_phone or "")

    # Name clarification

    def request_name_choice(
        self,
        context: AgentContext,
        db_name: str,
        request_name: str,
        booking_arguments: Dict[str, Any],
    ) -> AgentResponse:
        """Open a name choice after create_reservation reported a profile name mismatch."""
        pending = PendingConfirmation(
            db_name=db_name,
            request_name=request_name,
            original_booking=dict(booking_arguments),
            original_context=PendingContextSnapshot(
                restaurant_id=context.restaurant_id,
                timezone=context.timezone,
                session_id=context.session_id,
                language=context.language,
            ),
        )
        return self.build_response(
            render("name_choice_1", context.language, db_name=db_name, request_name=request_name),
            action="name_choice_requested",
            conversation_state=AwaitingNameChoice(pending=pending),
        )

    def handle_tool_result(
        self,
        tool_call: ToolCall,
        result: ToolResult,
        context: AgentContext,
    ) -> Optional[AgentResponse]:
        """
        React to a tool result that needs agent-side handling.

        Returns None when the result should simply be passed back to the model.
        """
        error = result.error
        if tool_call.name == "create_reservation" and error is not None and error.code == NAME_CLARIFICATION_CODE:
            return self.request_name_choice(
                context,
                db_name=error.details.get("dbName", ""),
                request_name=error.details.get("requestName") or tool_call.arguments.get("guestName", ""),
                booking_arguments=tool_call.arguments,
            )
        return None

    def _continue_name_choice(
        self,
        message: str,
        context: AgentContext,
        pending: PendingConfirmation,
        started_at: float,
    ) -> AgentResponse:
        outcome = advance_name_choice(pending, message)
        language = context.language

        if outcome.resolved_name is not None:
            if outcome.method == "fallback":
                log_business_event(
                    "name_clarification_fallback",
                    restaurant_id=context.restaurant_id,
                    session_id=context.session_id,
                    attempts=outcome.attempts,
                )
            booking = {**pending.original_booking, "guestName": outcome.resolved_name}
            return self.build_response(
                render("name_choice_resolved", language, name=outcome.resolved_name),
                started_at,
                tool_calls=[ToolCall(name="create_reservation", arguments=booking)],
                action="name_choice_resolved",
                conversation_state=outcome.next_state,
                resolution_method=outcome.method,
            )

        key = "name_choice_2" if outcome.attempts <= 1 else "name_choice_3"
        return self.build_response(
            render(key, language, db_name=pending.db_name, request_name=pending.request_name),
            started_at,
            action="name_choice_clarification",
            conversation_state=outcome.next_state,
            attempts=outcome.attempts,
        )

    # Turn handling

    async def handle_message(self, message: str, context: AgentContext) -> AgentResponse:
        started_at = time.time()
        try:
            pending = context.pending_confirmation
            if pending is not None:
                return self._continue_name_choice(message, context, pending, started_at)

            conversation = context.conversation_context
            if context.turn_count == 1:
                return self.build_response(self.generate_greeting(context), started_at, action="greeting")

            gathering = conversation.gathering_info if conversation else GatheringInfo()
            if gathering.guests is not None and gathering.guests < 1:
                return self.create_validation_error(
                    "The number of guests must be at least 1.", field="guests", example="a table for 2 people"
                )
            if gathering.guests is not None and gathering.guests > self.restaurant_config.max_guests:
                return self.create_business_rule_error(
                    f"Online booking is available for up to {self.restaurant_config.max_guests} guests.",
                    "Please call the restaurant for larger groups, or book for fewer guests.",
                )

            completion = await self.generate_turn(message, context)
            state = IdleState() if any(c.name == "create_reservation" for c in completion.tool_calls) else BookingState(slots=gathering)
            return self.build_response(
                completion.text,
                started_at,
                tool_calls=completion.tool_calls,
                action="llm_turn",
                model_used=completion.model_used,
                conversation_state=state,
            )
        except Exception as e:
            return self.handle_agent_error(e, "handle_message", message, context.language)
