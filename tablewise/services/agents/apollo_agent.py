"""Apollo: alternative times after a failed availability check."""

import logging
import re
import time
from typing import List, Optional

from tablewise.models.agent import AgentContext, AgentResponse, HandoffSignal, ToolCall
from tablewise.models.conversation import BookingState, GatheringInfo
from tablewise.models.reservation import AlternativeOption, AvailabilityFailureContext, UserTimePreferences
from tablewise.models.tool import ToolDefinition
from tablewise.services.agent_tools import get_tools_for
from tablewise.services.agents.base_agent import BaseAgent
from tablewise.services.agents.maya_agent import extract_time
from tablewise.services.agents.messages import render
from tablewise.services.restaurant_time import parse_minutes

logger = logging.getLogger(__name__)

APOLLO_CAPABILITIES = ["find_alternative_times", "check_availability", "get_restaurant_info"]

MAX_ALTERNATIVES = 3
PRIME_TIME_HOURS = (18, 20)

_STRICT_WORDS = ("exact", "only", "specifically", "precisely", "exactly", "только", "точно")
_VERY_FLEXIBLE_WORDS = ("any", "whatever", "anything", "flexible", "open", "любое", "неважно", "bilo")
_TIME_RANGE_WORDS = [
    ("morning", ("morning", "утром", "утро", "jutro", "reggel")),
    ("afternoon", ("afternoon", "днем", "днём", "popodne", "délután")),
    ("evening", ("evening", "dinner", "tonight", "вечер", "večer", "este")),
]
_EARLIER_WORDS = ("earlier", "раньше", "ranije", "korábban")
_LATER_WORDS = ("later", "позже", "kasnije", "később")
_SPECIAL_REQUEST_WORDS = [
    ("quiet_table", ("quiet", "тихо", "тихий", "tiho", "csendes")),
    ("window_table", ("window", "окно", "окна", "prozor", "ablak")),
]
_ORDINALS = {
    "first": 0, "первый": 0, "первое": 0, "prvi": 0,
    "second": 1, "второй": 1, "второе": 1, "drugi": 1,
    "third": 2, "третий": 2, "третье": 2, "treći": 2,
}
# A digit picks an option only on its own or as "#2", "option 2", "number 2"
_BARE_OPTION_NUMBER = re.compile(r"^\s*#?\s*(\d)\s*[.!)]?\s*$")
_OPTION_NUMBER = re.compile(r"(?:#\s*|\b(?:option|number)\s*|(?<!\w)(?:вариант|номер)\s+)(\d)\b", re.I)
_NEGATION = re.compile(r"(?<!\w)(not|can[’']?t|cannot|don[’']?t|won[’']?t|doesn[’']?t|isn[’']?t|не|ne|nem|nicht|pas)(?!\w)", re.I)
_CLAUSE_BREAK = re.compile(r"[,.;!?]|\bbut\b|(?<!\w)но(?!\w)|(?<!\w)ali(?!\w)", re.I)


def analyze_user_preferences(message: str) -> UserTimePreferences:
    """Read flexibility, time-of-day, direction and table wishes from the guest's wording."""
    lowered = message.lower()
    preferences = UserTimePreferences()

    if any(word in lowered for word in _STRICT_WORDS):
        preferences.flexibility = "strict"
    elif any(word in lowered for word in _VERY_FLEXIBLE_WORDS):
        preferences.flexibility = "very_flexible"

    for time_range, words in _TIME_RANGE_WORDS:
        if any(word in lowered for word in words):
            preferences.preferred_time_range = time_range
            break

    if any(word in lowered for word in _EARLIER_WORDS):
        preferences.accepts_later = False
    elif any(word in lowered for word in _LATER_WORDS):
        preferences.accepts_earlier = False

    preferences.special_requests = [
        request for request, words in _SPECIAL_REQUEST_WORDS if any(word in lowered for word in words)
    ]
    return preferences


def time_of_day(value: str) -> str:
    hour = parse_minutes(value) // 60
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def alternative_reason(value: str, proximity_minutes: int, language: str = "en") -> str:
    hour = parse_minutes(value) // 60
    if proximity_minutes <= 30:
        key = "apollo_reason_close"
    elif 17 <= hour <= 18:
        key = "apollo_reason_early"
    elif hour >= 21:
        key = "apollo_reason_late"
    elif 12 <= hour <= 14:
        key = "apollo_reason_lunch"
    else:
        key = "apollo_reason_available"
    return render(key, language)


def score_alternative(
    candidate_time: str,
    failure: AvailabilityFailureContext,
    preferences: UserTimePreferences,
    language: str = "en",
) -> AlternativeOption:
    """
    Score one candidate time against the original request.

    100 minus a tenth of the distance in minutes, +20 for the preferred time
    of day, -30 for breaking an earlier-only or later-only wish, +10 inside
    the 18:00-20:59 prime window. Never below zero.
    """
    original = parse_minutes(failure.original_time)
    candidate = parse_minutes(candidate_time)
    proximity = abs(candidate - original)

    score = 100 - proximity / 10
    if preferences.preferred_time_range is not None and preferences.preferred_time_range == time_of_day(candidate_time):
        score += 20
    if not preferences.accepts_earlier and candidate < original:
        score -= 30
    if not preferences.accepts_later and candidate > original:
        score -= 30
    if PRIME_TIME_HOURS[0] <= candidate // 60 <= PRIME_TIME_HOURS[1]:
        score += 10

    return AlternativeOption(
        time=candidate_time[:5],
        date=failure.original_date,
        score=max(0.0, score),
        reason=alternative_reason(candidate_time, proximity, language),
    )


def rank_alternatives(
    candidate_times: List[str],
    failure: AvailabilityFailureContext,
    preferences: UserTimePreferences,
    limit: int = MAX_ALTERNATIVES,
    language: str = "en",
) -> List[AlternativeOption]:
    """Best `limit` candidates, highest score first; ties keep the earlier time first."""
    unique = list(dict.fromkeys(t[:5] for t in candidate_times))
    scored = [score_alternative(t, failure, preferences, language) for t in unique]
    scored.sort(key=lambda option: (-option.score, parse_minutes(option.time)))
    return scored[:limit]


class ApolloAgent(BaseAgent):
    """Recovers a booking after the requested slot turned out to be full."""

    agent_type = "availability"

    def get_tools(self) -> List[ToolDefinition]:
        return get_tools_for(self.capabilities)

    def generate_system_prompt(self, context: AgentContext) -> str:
        failure = context.availability_failure_context
        if failure is None:
            failure_section = (
                "NO FAILURE CONTEXT:\n"
                "- Ask the guest for their original date, time and party size.\n"
                "- Do not call find_alternative_times without them."
            )
        else:
            failure_section = (
                "AVAILABILITY FAILURE CONTEXT:\n"
                f"- Original request: {failure.original_date} at {failure.original_time} for {failure.original_guests} guests\n"
                f"- Failure reason: {failure.failure_reason}\n"
                "PARAMETERS FOR find_alternative_times (use exactly):\n"
                f"- date: \"{failure.original_date}\"\n"
                f"- preferredTime: \"{failure.original_time[:5]}\"\n"
                f"- guests: {failure.original_guests}"
            )
        return "\n\n".join([
            f"You are Apollo, the availability specialist for {self.restaurant_config.name}. "
            "The guest's first choice is fully booked; find the best alternatives.",
            self.language_instruction(context.language),
            failure_section,
            (
                "HOW TO PRESENT ALTERNATIVES:\n"
                f"- At most {MAX_ALTERNATIVES} options, best first, each with a short reason.\n"
                "- Be empathetic about the original time, then positive about the options.\n"
                "- When the guest picks a time, hand over to Sofia to complete the booking.\n"
                "- Early dinner (17:00-18:30) is quieter; prime time is 18:00-20:00."
            ),
        ])

    def picked_alternative(self, message: str, presented: List[AlternativeOption]) -> Optional[AlternativeOption]:
        """The presented option the guest chose, by time or by position.

        Clauses with a negation ("I can't do 19:30") never pick anything.
        """
        bare = _BARE_OPTION_NUMBER.match(message)
        if bare:
            return self._option_at(int(bare.group(1)) - 1, presented)

        for clause in _CLAUSE_BREAK.split(message.lower()):
            if not clause.strip() or _NEGATION.search(clause):
                continue
            mentioned = extract_time(clause)
            if mentioned is not None:
                for option in presented:
                    if option.time == mentioned:
                        return option
            numbered = _OPTION_NUMBER.search(clause)
            if numbered:
                option = self._option_at(int(numbered.group(1)) - 1, presented)
                if option is not None:
                    return option
            for token in re.findall(r"\w+", clause):
                index = _ORDINALS.get(token)
                if index is not None:
                    option = self._option_at(index, presented)
                    if option is not None:
                        return option
        return None

    @staticmethod
    def _option_at(index: int, presented: List[AlternativeOption]) -> Optional[AlternativeOption]:
        return presented[index] if 0 <= index < len(presented) else None

    async def handle_message(self, message: str, context: AgentContext) -> AgentResponse:
        started_at = time.time()
        language = context.language
        try:
            failure = context.availability_failure_context
            if failure is None:
                logger.warning("Apollo activated without failure context", extra={"agent": self.name})
                return self.build_response(
                    render("apollo_need_original", language), started_at,
                    action="clarification_request", reason="no_failure_context",
                )

            preferences = analyze_user_preferences(message)

            if context.alternative_candidates is None:
                call = ToolCall(
                    name="find_alternative_times",
                    arguments={
                        "date": failure.original_date,
                        "preferredTime": failure.original_time[:5],
                        "guests": failure.original_guests,
                    },
                )
                return self.build_response(
                    render(
                        "apollo_searching", language,
                        time=failure.original_time[:5], date=failure.original_date, guests=failure.original_guests,
                    ),
                    started_at,
                    tool_calls=[call],
                    action="search_alternatives",
                    preferences=preferences.model_dump(),
                )

            if not context.alternative_candidates:
                return self.build_response(
                    render("apollo_no_alternatives", language, time=failure.original_time[:5], date=failure.original_date),
                    started_at,
                    action="no_alternatives",
                )

            ranked = rank_alternatives(context.alternative_candidates, failure, preferences, language=language)
            picked = self.picked_alternative(message, ranked)
            if picked is not None:
                slots = GatheringInfo(date=picked.date, time=picked.time, guests=failure.original_guests)
                return self.build_response(
                    render("apollo_selected", language, time=picked.time, date=picked.date),
                    started_at,
                    handoff_signal=HandoffSignal(to="booking", reason=f"Guest selected alternative {picked.time}"),
                    action="alternative_selected",
                    conversation_state=BookingState(slots=slots),
                    selected_time=picked.time,
                )

            listing = "\n".join(
                render("apollo_option_line", language, time=option.time, reason=option.reason) for option in ranked
            )
            return self.build_response(
                render("apollo_alternatives", language, time=failure.original_time[:5], listing=listing),
                started_at,
                action="present_alternatives",
                alternatives=[option.model_dump() for option in ranked],
                preferences=preferences.model_dump(),
            )
        except Exception as e:
            return self.handle_agent_error(e, "handle_message", message, language)
