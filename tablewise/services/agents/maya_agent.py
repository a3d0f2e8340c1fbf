"""Maya: changes to existing reservations.

Every turn is first classified as a cancellation, an inquiry ("what time
is my booking?"), a specific command ("move it to 8pm"), a general
question ("can I change my booking?") or unclear. Only specific commands
lead to a modification, and they are compared with the current
reservation before anything is changed. Cancellations are confirmed
with the guest first.
"""

import logging
import re
import time
from datetime import date
from typing import Any, Callable, Dict, List, Literal, Optional, Pattern, Tuple

from pydantic import BaseModel, Field

from tablewise.models.agent import AgentContext, AgentResponse, GuestHistory, ToolCall
from tablewise.models.reservation import ExistingReservation
from tablewise.models.tool import ToolDefinition
from tablewise.services.agent_tools import get_tools_for
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.messages import render
from tablewise.services.restaurant_time import resolve_relative_date, restaurant_now

logger = logging.getLogger(__name__)

MAYA_CAPABILITIES = [
    "find_existing_reservation",
    "modify_reservation",
    "cancel_reservation",
    "check_availability",
    "get_restaurant_info",
]

MessageType = Literal["cancellation", "inquiry", "general_question", "specific_command", "unclear"]

_NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}
_MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6, "july": 7,
    "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "января": 1, "февраля": 2, "марта": 3, "апреля": 4, "мая": 5, "июня": 6, "июля": 7,
    "августа": 8, "сентября": 9, "октября": 10, "ноября": 11, "декабря": 12,
}
_MONTH_ALTERNATION = "|".join(_MONTHS)

# Concrete new values. Any hit makes the message a specific command.
TIME_PATTERNS: List[Pattern] = [
    re.compile(r"\b(\d{1,2}):(\d{2})\b"),
    re.compile(r"\b(\d{1,2})\s*(am|pm)\b", re.I),
    re.compile(r"\b(\d{1,2})\s*(часов|часа|вечера|утра|дня)\b", re.I),
    re.compile(r"\b(" + "|".join(_NUMBER_WORDS) + r")\s*(am|pm|o'clock)\b", re.I),
]
DATE_PATTERNS: List[Pattern] = [
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(r"\b(today|tonight|tomorrow|сегодня|завтра)\b", re.I),
    re.compile(r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.I),
    re.compile(r"(?<!\w)(понедельник|вторник|среду|среда|четверг|пятницу|пятница|субботу|суббота|воскресенье)(?!\w)", re.I),
    re.compile(r"\b(\d{1,2})\s*(?:st|nd|rd|th)?\s+(" + _MONTH_ALTERNATION + r")\b", re.I),
    re.compile(r"\b(\d{1,2})/(\d{1,2})\b"),
]
GUEST_PATTERNS: List[Pattern] = [
    re.compile(r"\b(\d{1,2})\s*(people|persons?|guests|человек|людей|гостей|osoba|fő|personen|personnes|personas|persone|pessoas)\b", re.I),
    re.compile(r"\bfor\s+(\d{1,2})(?![\d:]|\s*(?:am|pm|o'clock|th|st|nd|rd))\b", re.I),
    re.compile(r"(?<!\w)на\s+(\d{1,2})(?![\d:]|\s*(?:часов|часа|вечера|утра|дня))\b", re.I),
]

# "I want to change something" phrasing, per language
GENERAL_MODIFICATION_PATTERNS: Dict[str, List[Pattern]] = {
    "en": [
        re.compile(r"\b(can|could|may)\s+i\s+(change|modify|update|reschedule|move)\b", re.I),
        re.compile(r"\b(change|modify|update|reschedule|move)\s+(my|the)\s+(booking|reservation)\b", re.I),
        re.compile(r"\bhow\s+(can|do)\s+i\s+(change|modify)\b", re.I),
        re.compile(r"\b(change|modify)\s+(time|date|booking|reservation)\s*\?", re.I),
    ],
    "ru": [
        re.compile(r"(могу|можно|возможно).*(поменять|изменить|перенести)", re.I),
        re.compile(r"(поменять|изменить|перенести).*(бронь|резерв|столик|время|дату)", re.I),
        re.compile(r"(поменяйте|измените|перенесите).*(мою|нашу)\s+(бронь|резерв)", re.I),
    ],
    "es": [
        re.compile(r"\b(puedo|podría|es\s+posible)\b.*\b(cambiar|modificar)\b", re.I),
        re.compile(r"\b(cambiar|modificar)\b.*\b(mi|la)\s+(reserva|reservación)\b", re.I),
    ],
    "fr": [
        re.compile(r"(puis-je|pourrais-je|est-ce\s+possible).*\b(changer|modifier)\b", re.I),
        re.compile(r"\b(changer|modifier)\b.*\b(ma|la)\s+réservation\b", re.I),
    ],
    "de": [
        re.compile(r"\b(kann|könnte)\s+ich\b.*\b(ändern|wechseln|verschieben)\b", re.I),
        re.compile(r"\b(ändern|wechseln|verschieben)\b.*\b(meine|die)\s+(reservierung|buchung)\b", re.I),
    ],
    "it": [
        re.compile(r"\b(posso|potrei)\b.*\b(cambiare|modificare)\b", re.I),
        re.compile(r"\b(cambiare|modificare)\b.*\b(la\s+mia|la)\s+prenotazione\b", re.I),
    ],
    "pt": [
        re.compile(r"\b(posso|poderia)\b.*\b(alterar|mudar|modificar)\b", re.I),
        re.compile(r"\b(alterar|mudar|modificar)\b.*\b(minha|a)\s+reserva\b", re.I),
    ],
    "nl": [
        re.compile(r"\b(kan|zou)\s+ik\b.*\b(veranderen|wijzigen)\b", re.I),
        re.compile(r"\b(veranderen|wijzigen)\b.*\b(mijn|de)\s+(reservering|boeking)\b", re.I),
    ],
    "hu": [
        re.compile(r"\b(tudok|tudnék|lehet)\b.*\b(változtatni|módosítani)\b", re.I),
        re.compile(r"\b(változtatni|módosítani)\b.*\bfoglalás", re.I),
        re.compile(r"\bmegváltoztathatom\b", re.I),
    ],
    "sr": [
        re.compile(r"\b(mogu|mogao|moguće)\b.*\b(promeniti|izmeniti|pomeriti|promenim)\b", re.I),
        re.compile(r"\b(promeniti|izmeniti|promena)\b.*\brezervacij", re.I),
    ],
}

# Cancel wording in every supported language; checked regardless of the guest's language
CANCEL_PATTERNS: List[Pattern] = [
    re.compile(r"\b(cancel|call\s+off)", re.I),
    re.compile(r"(?<!\w)(отмен|отказаться\s+от\s+брон)", re.I),
    re.compile(r"\b(otkaz|poništi)", re.I),
    re.compile(r"\b(lemond|töröl)", re.I),
    re.compile(r"\b(stornier|absagen)", re.I),
    re.compile(r"\b(annul|anular|disdir|afzeggen)", re.I),
]
# Questions about the cancellation rules, not a request to cancel
_CANCEL_POLICY = re.compile(r"\b(policy|policies|fee|fees|charge|deadline)\b|(?<!\w)(правил|штраф)", re.I)

# Change wording beyond the "can I change" phrasing above
CHANGE_INTENT_PATTERNS: List[Pattern] = [
    re.compile(r"\b(change|modify|update|reschedule|move|switch|make\s+it|instead)\b", re.I),
    re.compile(r"(?<!\w)(помен|измен|перенес|перенест|сдела)", re.I),
    re.compile(r"\b(promen|izmen|pomer)", re.I),
    re.compile(r"\b(módosít|változtat|tedd\s+át)", re.I),
    re.compile(r"\b(änder|verschieb|wechsel|changer|modifier|déplacer|cambi|modific|spostar|alterar|mudar|wijzig|verander)", re.I),
]

QUESTION_PATTERNS: List[Pattern] = [
    re.compile(r"\?\s*$"),
    re.compile(r"^(what|when|which|is|are|do\s+(?:i|we|you)|does|did|how\s+many)\b", re.I),
    re.compile(r"^(когда|какое|какая|во\s+сколько|на\s+какое|на\s+сколько|есть\s+ли)(?!\w)", re.I),
    re.compile(r"^(kada|koje|koliko|da\s+li)\b", re.I),
    re.compile(r"^(mikor|hány|melyik)\b", re.I),
    re.compile(r"^(wann|welche|wie\s+viele|habe\s+ich)\b", re.I),
]

_RESERVATION_ID = re.compile(r"#\s*(\d+)")


class RequestedChanges(BaseModel):
    """Normalized new values found in a guest message."""
    new_date: Optional[str] = None
    new_time: Optional[str] = None
    new_guests: Optional[int] = None

    def is_empty(self) -> bool:
        return self.new_date is None and self.new_time is None and self.new_guests is None

    def differences(self, reservation: ExistingReservation) -> Dict[str, Any]:
        """modify_reservation arguments for the fields that actually change."""
        changes: Dict[str, Any] = {}
        if self.new_date is not None and self.new_date != reservation.date[:10]:
            changes["newDate"] = self.new_date
        if self.new_time is not None and self.new_time != reservation.short_time:
            changes["newTime"] = self.new_time
        if self.new_guests is not None and self.new_guests != reservation.guests:
            changes["newGuests"] = self.new_guests
        return changes

    def unchanged_fields(self, reservation: ExistingReservation) -> List[str]:
        unchanged = []
        if self.new_time is not None and self.new_time == reservation.short_time:
            unchanged.append("time")
        if self.new_date is not None and self.new_date == reservation.date[:10]:
            unchanged.append("date")
        if self.new_guests is not None and self.new_guests == reservation.guests:
            unchanged.append("guests")
        return unchanged


class MessageAnalysis(BaseModel):
    type: MessageType
    specific_details: List[str] = Field(default_factory=list)
    detected_patterns: List[str] = Field(default_factory=list)
    requested: RequestedChanges = Field(default_factory=RequestedChanges)

    @property
    def has_specific_details(self) -> bool:
        return bool(self.specific_details)


def find_specific_details(message: str) -> List[str]:
    """Every concrete time, date or party-size mention in the message."""
    details = []
    for pattern in TIME_PATTERNS + DATE_PATTERNS + GUEST_PATTERNS:
        details.extend(match.group(0).strip() for match in pattern.finditer(message))
    return details


def find_general_patterns(message: str, language: str) -> List[str]:
    """Change-intent phrasing for the guest's language, plus English."""
    languages = [language] if language == "en" else [language, "en"]
    hits = []
    for lang in languages:
        for pattern in GENERAL_MODIFICATION_PATTERNS.get(lang, []):
            if pattern.search(message):
                hits.append(pattern.pattern)
    return hits


def extract_time(message: str) -> Optional[str]:
    """First time mentioned, as HH:MM on a 24 hour clock."""
    for pattern in TIME_PATTERNS:
        match = pattern.search(message)
        if match is None:
            continue
        raw_hour, second = match.group(1).lower(), match.group(2).lower()
        hour = _NUMBER_WORDS.get(raw_hour) or int(raw_hour)
        minute = int(second) if second.isdigit() else 0
        if second in ("pm", "вечера", "дня") and hour < 12:
            hour += 12
        elif second == "am" and hour == 12:
            hour = 0
        if hour > 23 or minute > 59:
            continue
        return f"{hour:02d}:{minute:02d}"
    return None


def extract_date(message: str, tz_name: str) -> Optional[str]:
    """First date mentioned, as YYYY-MM-DD in the restaurant's timezone."""
    iso = DATE_PATTERNS[0].search(message)
    if iso:
        return iso.group(1)
    for pattern in DATE_PATTERNS[1:4]:
        match = pattern.search(message)
        if match:
            return resolve_relative_date(match.group(1), tz_name)
    day_month = DATE_PATTERNS[4].search(message)
    if day_month:
        today = restaurant_now(tz_name).date()
        day, month = int(day_month.group(1)), _MONTHS[day_month.group(2).lower()]
        try:
            candidate = date(today.year, month, day)
            if candidate < today:
                candidate = date(today.year + 1, month, day)
        except ValueError:
            return None
        return candidate.isoformat()
    # d/m vs m/d is ambiguous, left to the model
    return None


def extract_guests(message: str) -> Optional[int]:
    for pattern in GUEST_PATTERNS:
        match = pattern.search(message)
        if match:
            guests = int(match.group(1))
            if guests > 0:
                return guests
    return None


def extract_requested_changes(message: str, tz_name: str) -> RequestedChanges:
    return RequestedChanges(
        new_date=extract_date(message, tz_name),
        new_time=extract_time(message),
        new_guests=extract_guests(message),
    )


class MessageSignals(BaseModel):
    details: List[str] = Field(default_factory=list)
    general: List[str] = Field(default_factory=list)
    cancel: bool = False
    question: bool = False
    change_intent: bool = False


def is_cancellation(message: str) -> bool:
    if _CANCEL_POLICY.search(message):
        return False
    return any(pattern.search(message) for pattern in CANCEL_PATTERNS)


def is_question(message: str) -> bool:
    return any(pattern.search(message) for pattern in QUESTION_PATTERNS)


def has_change_intent(message: str, general: List[str]) -> bool:
    return bool(general) or any(pattern.search(message) for pattern in CHANGE_INTENT_PATTERNS)


# Ordered cascade: the first predicate that holds decides the type.
# Cancellation outranks everything; a concrete value is a command only
# when it comes with change wording or as a plain answer, never inside a question.
MESSAGE_CLASSIFIERS: List[Tuple[MessageType, Callable[[MessageSignals], bool]]] = [
    ("cancellation", lambda s: s.cancel),
    ("inquiry", lambda s: s.question and not s.change_intent),
    ("specific_command", lambda s: bool(s.details) and (s.change_intent or not s.question)),
    ("general_question", lambda s: bool(s.general)),
]

# Types whose values are extracted: new values for commands, identifying values for cancellations
_EXTRACTS_VALUES = ("specific_command", "cancellation")


def analyze_user_message(message: str, language: str, tz_name: str = "UTC") -> MessageAnalysis:
    """Classify one guest message as cancellation, inquiry, specific command, general question or unclear."""
    lowered = message.lower().strip()
    general = find_general_patterns(lowered, language)
    signals = MessageSignals(
        details=find_specific_details(lowered),
        general=general,
        cancel=is_cancellation(lowered),
        question=is_question(lowered),
        change_intent=has_change_intent(lowered, general),
    )

    for message_type, predicate in MESSAGE_CLASSIFIERS:
        if predicate(signals):
            requested = extract_requested_changes(lowered, tz_name) if message_type in _EXTRACTS_VALUES else RequestedChanges()
            return MessageAnalysis(
                type=message_type,
                specific_details=signals.details,
                detected_patterns=general,
                requested=requested,
            )
    return MessageAnalysis(type="unclear")


class MayaAgent(BaseAgent):
    """Finds, modifies and cancels existing reservations."""

    agent_type = "reservations"

    def get_tools(self) -> List[ToolDefinition]:
        return get_tools_for(self.capabilities)

    def generate_system_prompt(self, context: AgentContext) -> str:
        rc = self.restaurant_config
        now = restaurant_now(rc.timezone)
        sections = [
            f"You are Maya, the reservation management specialist for {rc.name}. "
            "You help guests with EXISTING reservations.",
            self.language_instruction(context.language),
            self._execution_rules(),
            (
                "RESERVATION DISPLAY RULES:\n"
                "- Show every found reservation with its real ID: \"#12: 2025-07-15 at 19:00, 4 guests\".\n"
                "- Never number options 1, 2, 3. Never show only some of the found reservations."
            ),
            (
                "RESTAURANT INFO:\n"
                f"- Name: {rc.name}\n"
                f"- Hours: {rc.opening_time[:5]} - {rc.closing_time[:5]}\n"
                f"- Current local time: {now.strftime('%Y-%m-%d %H:%M')} ({rc.timezone})"
            ),
            self._conversation_section(context),
            self._guest_section(context.guest_history),
            self._found_reservations_section(context),
        ]
        return "\n\n".join(section for section in sections if section)

    def _execution_rules(self) -> str:
        return (
            "EXECUTION RULES (HIGHEST PRIORITY):\n"
            "1. Decide first: is the guest asking a general question or giving a specific command?\n"
            "2. General question (\"Can I change my booking?\"): find their reservations with "
            "find_existing_reservation, then ask what they want to change. NEVER guess the field.\n"
            "3. Specific command (\"change it to 8pm\", \"for 5 people\"): compare with the current "
            "reservation and call modify_reservation only with values that are different.\n"
            "4. If the requested values equal the current ones, ask whether they meant something else.\n"
            "5. Cancel only after the guest explicitly confirms, with confirmCancellation=true.\n"
            "FORBIDDEN:\n"
            "- modify_reservation for a general question\n"
            "- modify_reservation with the same time, date or party size as now\n"
            "- asking for details before you know which reservation is meant"
        )

    def _conversation_section(self, context: AgentContext) -> str:
        conversation = context.conversation_context
        if conversation is None:
            return ""
        return (
            "CONVERSATION CONTEXT:\n"
            f"- Turn: {conversation.session_turn_count}\n"
            f"- Asked for date: {'YES' if conversation.has_asked_date else 'NO'}, "
            f"time: {'YES' if conversation.has_asked_time else 'NO'}, "
            f"party size: {'YES' if conversation.has_asked_party_size else 'NO'}\n"
            "- Do not ask again for anything already requested."
        )

    def _guest_section(self, history: Optional[GuestHistory]) -> str:
        if history is None or not self.config.enable_personalization:
            return (
                "GUEST: unknown. Ask for the phone number or confirmation number the booking was made with."
            )
        lines = [f"GUEST: {history.guest_name} ({history.total_bookings} previous bookings)"]
        if history.guest_phone:
            lines.append(
                f"- Phone on file: {history.guest_phone}. Use it with find_existing_reservation "
                "(identifierType \"phone\", timeRange \"upcoming\") instead of asking."
            )
        return "\n".join(lines)

    def _found_reservations_section(self, context: AgentContext) -> str:
        if not context.found_reservations:
            return ""
        lines = ["FOUND RESERVATIONS:"]
        lines.extend(f"- {self._reservation_line(r, 'en')}" for r in context.found_reservations)
        if context.current_reservation_id is not None:
            lines.append(f"- The guest is working with #{context.current_reservation_id}.")
        return "\n".join(lines)

    # Helpers

    @staticmethod
    def _reservation_line(reservation: ExistingReservation, language: str) -> str:
        return render(
            "maya_reservation_line", language,
            id=reservation.id, date=reservation.date[:10], time=reservation.short_time, guests=reservation.guests,
        )

    def _choose_reservation(self, context: AgentContext, started_at: float) -> AgentResponse:
        listing = "\n".join(self._reservation_line(r, context.language) for r in context.found_reservations)
        return self.build_response(
            render("maya_choose_reservation", context.language, count=len(context.found_reservations), listing=listing),
            started_at,
            action="choose_reservation",
            reservation_ids=[r.id for r in context.found_reservations],
        )

    def _lookup_or_ask(self, context: AgentContext, started_at: float) -> AgentResponse:
        """Find the guest's reservations by phone, or ask how to find them."""
        history = context.guest_history
        if history is not None and history.guest_phone:
            call = ToolCall(
                name="find_existing_reservation",
                arguments={"identifier": history.guest_phone, "identifierType": "phone", "timeRange": "upcoming"},
            )
            return self.build_response(
                render("maya_looking_up", context.language), started_at,
                tool_calls=[call], action="lookup_reservations",
            )
        return self.build_response(
            render("maya_ask_identifier", context.language), started_at, action="ask_identifier"
        )

    def _session_with_found(self, context: AgentContext) -> Dict[str, Any]:
        """Shallow copy of the caller's session with the found reservations filled in."""
        session = dict(context.session or {})
        if not session.get("found_reservations"):
            session["found_reservations"] = [r.model_dump() for r in context.found_reservations]
        session.setdefault("language", context.language)
        return session

    def current_reservation(self, message: str, context: AgentContext) -> Optional[ExistingReservation]:
        """The reservation this message is about, or None when it is not clear yet."""
        by_id = {r.id: r for r in context.found_reservations}
        if not by_id:
            return None

        explicit = _RESERVATION_ID.search(message)
        provided_id = int(explicit.group(1)) if explicit else context.current_reservation_id
        if provided_id in by_id:
            return by_id[provided_id]
        if len(by_id) == 1:
            return next(iter(by_id.values()))

        scratch = self._session_with_found(context)
        resolution = self.resolve_reservation_context(message, scratch, None)
        if context.session is not None and "clarification_attempts" in scratch:
            context.session["clarification_attempts"] = scratch["clarification_attempts"]
        if resolution.should_ask_for_clarification or resolution.resolved_id not in by_id:
            return None
        return by_id[resolution.resolved_id]

    def _noop_clarification(
        self,
        field: str,
        reservation: ExistingReservation,
        context: AgentContext,
        started_at: float,
    ) -> AgentResponse:
        values = {
            "time": {"time": reservation.short_time},
            "date": {"date": reservation.date[:10]},
            "guests": {"guests": reservation.guests},
        }[field]
        return self.build_response(
            render(f"maya_noop_{field}", context.language, **values),
            started_at,
            action="noop_prevented",
            reservation_id=reservation.id,
            field=field,
        )

    def drop_noop_modifications(self, tool_calls: List[ToolCall], context: AgentContext) -> List[ToolCall]:
        """Strip unchanged values from modify_reservation calls; drop calls left with nothing to change."""
        by_id = {r.id: r for r in context.found_reservations}
        kept = []
        for call in tool_calls:
            reservation = by_id.get(call.arguments.get("reservationId")) if call.name == "modify_reservation" else None
            if reservation is None:
                kept.append(call)
                continue
            modifications = call.arguments.get("modifications") or {}
            requested = RequestedChanges(
                new_date=modifications.get("newDate"),
                new_time=(modifications.get("newTime") or "")[:5] or None,
                new_guests=modifications.get("newGuests"),
            )
            changes = requested.differences(reservation)
            if "newSpecialRequests" in modifications:
                changes["newSpecialRequests"] = modifications["newSpecialRequests"]
            if not changes:
                logger.warning(
                    "Dropping no-op modification",
                    extra={"agent": self.name, "reservation_id": reservation.id},
                )
                continue
            kept.append(call.model_copy(update={"arguments": {**call.arguments, "modifications": changes}}))
        return kept

    # Turn handling

    async def handle_message(self, message: str, context: AgentContext) -> AgentResponse:
        started_at = time.time()
        try:
            analysis = analyze_user_message(message, context.language, self.restaurant_config.timezone)
            logger.info(
                "Maya message analysis",
                extra={
                    "agent": self.name,
                    "message_type": analysis.type,
                    "has_specific_details": analysis.has_specific_details,
                    "found_reservations": len(context.found_reservations),
                },
            )

            if analysis.type == "general_question":
                return self._handle_general_question(message, context, started_at)

            if analysis.type == "cancellation":
                response = self._handle_cancellation(message, context, analysis.requested, started_at)
                if response is not None:
                    return response

            if analysis.type == "specific_command" and not analysis.requested.is_empty():
                response = self._handle_specific_command(message, context, analysis.requested, started_at)
                if response is not None:
                    return response

            completion = await self.generate_turn(message, context)
            tool_calls = self.drop_noop_modifications(completion.tool_calls, context)
            if analysis.type in ("cancellation", "inquiry"):
                tool_calls = [call for call in tool_calls if call.name != "modify_reservation"]
            elif len(tool_calls) < len(completion.tool_calls) and not tool_calls:
                reservation = self.current_reservation(message, context)
                if reservation is not None:
                    field = (analysis.requested.unchanged_fields(reservation) or ["time"])[0]
                    return self._noop_clarification(field, reservation, context, started_at)
            return self.build_response(
                completion.text,
                started_at,
                tool_calls=tool_calls,
                action="llm_turn",
                model_used=completion.model_used,
                message_type=analysis.type,
            )
        except Exception as e:
            return self.handle_agent_error(e, "handle_message", message, context.language)

    def _handle_general_question(self, message: str, context: AgentContext, started_at: float) -> AgentResponse:
        if not context.found_reservations:
            return self._lookup_or_ask(context, started_at)
        reservation = self.current_reservation(message, context)
        if reservation is None:
            return self._choose_reservation(context, started_at)
        return self.build_response(
            render(
                "maya_what_to_change", context.language,
                id=reservation.id, date=reservation.date[:10], time=reservation.short_time, guests=reservation.guests,
            ),
            started_at,
            action="ask_what_to_change",
            reservation_id=reservation.id,
        )

    def _reservation_to_cancel(
        self,
        message: str,
        context: AgentContext,
        mentioned: RequestedChanges,
    ) -> Optional[ExistingReservation]:
        """Values in a cancel request describe the booking itself, so they outrank the active one."""
        if not _RESERVATION_ID.search(message) and not mentioned.is_empty():
            matching = [r for r in context.found_reservations if not mentioned.differences(r)]
            if len(matching) == 1:
                return matching[0]
            if not matching and len(context.found_reservations) > 1:
                return None
        return self.current_reservation(message, context)

    def _handle_cancellation(
        self,
        message: str,
        context: AgentContext,
        mentioned: RequestedChanges,
        started_at: float,
    ) -> Optional[AgentResponse]:
        """Ask for explicit confirmation; the cancel call itself comes from the confirmed LLM turn."""
        if not context.found_reservations:
            return self._lookup_or_ask(context, started_at)
        reservation = self._reservation_to_cancel(message, context, mentioned)
        if reservation is None:
            return None

        return self.build_response(
            render(
                "maya_confirm_cancel", context.language,
                id=reservation.id, date=reservation.date[:10], time=reservation.short_time, guests=reservation.guests,
            ),
            started_at,
            action="confirm_cancellation",
            reservation_id=reservation.id,
        )

    def _handle_specific_command(
        self,
        message: str,
        context: AgentContext,
        requested: RequestedChanges,
        started_at: float,
    ) -> Optional[AgentResponse]:
        if not context.found_reservations:
            return self._lookup_or_ask(context, started_at)
        reservation = self.current_reservation(message, context)
        if reservation is None:
            return self._choose_reservation(context, started_at)

        changes = requested.differences(reservation)
        if not changes:
            field = requested.unchanged_fields(reservation)[0]
            return self._noop_clarification(field, reservation, context, started_at)

        self.preserve_context(context.session, reservation.id, "modification")
        call = ToolCall(
            name="modify_reservation",
            arguments={"reservationId": reservation.id, "modifications": changes, "reason": "Guest request"},
        )
        return self.build_response(
            render("maya_applying_change", context.language, id=reservation.id),
            started_at,
            tool_calls=[call],
            action="modify_reservation",
            reservation_id=reservation.id,
        )
