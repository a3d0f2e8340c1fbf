"""Unit tests for Sofia, the booking agent."""

import pytest

from tablewise.infra.error_handler import AgentErrorKind
from tablewise.models.agent import ConversationContext, GuestHistory, ToolCall, create_default_agent_config
from tablewise.models.conversation import (
    AwaitingNameChoice,
    BookingState,
    GatheringInfo,
    IdleState,
    PendingConfirmation,
    PendingContextSnapshot,
)
from tablewise.models.restaurant import RestaurantConfig
from tablewise.services.agent_tools import tool_business_error, tool_success
from tablewise.services.agents.sofia_agent import SOFIA_CAPABILITIES, SofiaAgent
from tablewise.services.ai_service import LLMCompletion
from tablewise.services.restaurant_time import date_context

BOOKING = {
    "guestName": "Maria Ivanova",
    "guestPhone": "+381601234567",
    "date": "2025-07-15",
    "time": "19:00",
    "guests": 4,
}


@pytest.fixture
def sofia(restaurant_config, ai_service):
    config = create_default_agent_config("Sofia", "Booking specialist", SOFIA_CAPABILITIES)
    return SofiaAgent(config, restaurant_config, ai_service)


@pytest.fixture
def pending():
    return PendingConfirmation(
        db_name="Anna Petrova",
        request_name="Maria Ivanova",
        original_booking=dict(BOOKING),
        original_context=PendingContextSnapshot(restaurant_id=1, timezone="Europe/Belgrade", session_id="s-1"),
    )


def later_turn(**fields):
    return ConversationContext(session_turn_count=3, **fields)


class TestSofiaSystemPrompt:
    """Test prompt sections built from restaurant and guest data."""

    def test_prompt_has_date_and_last_booking_time(self, sofia, make_context):
        prompt = sofia.generate_system_prompt(make_context(conversation_context=later_turn()))
        today = date_context("Europe/Belgrade")

        assert f"TODAY is {today['today']}" in prompt
        assert f"The current year is {today['current_year']}" in prompt
        assert "Last bookable time: 21:00" in prompt
        assert "Respond ONLY in English" in prompt
        assert "OVERNIGHT" not in prompt

    def test_overnight_restaurant(self, ai_service, make_context):
        late_bar = RestaurantConfig(
            id=2, name="Night Owl", timezone="Europe/Belgrade",
            opening_time="18:00:00", closing_time="03:00:00", max_guests=8,
        )
        agent = SofiaAgent(create_default_agent_config("Sofia", "Booking", SOFIA_CAPABILITIES), late_bar, ai_service)

        prompt = agent.generate_system_prompt(make_context())

        assert "OVERNIGHT OPERATION" in prompt
        assert "Last bookable time: 01:00" in prompt

    def test_final_directive_only_when_complete(self, sofia, make_context):
        partial = later_turn(gathering_info=GatheringInfo(date="2025-07-15", time="19:00"))
        complete = later_turn(gathering_info=GatheringInfo(
            date="2025-07-15", time="19:00", guests=4, name="Maria", phone="+38160",
        ))

        assert "FINAL BOOKING DIRECTIVE" not in sofia.generate_system_prompt(make_context(conversation_context=partial))
        prompt = sofia.generate_system_prompt(make_context(conversation_context=complete))
        assert "FINAL BOOKING DIRECTIVE" in prompt
        assert prompt.rstrip().endswith("- Guests: 4")

    def test_returning_guest_section(self, sofia, make_context):
        history = GuestHistory(guest_name="Maria", guest_phone="+38160", total_bookings=5, common_party_size=4)

        prompt = sofia.generate_system_prompt(make_context(guest_history=history))

        assert "REGULAR CUSTOMER" in prompt
        assert "PROACTIVE CONFIRMATION" in prompt
        assert "Usual party size: 4" in prompt


class TestSofiaGreeting:
    """Test the first-turn greeting choice."""

    @pytest.mark.asyncio
    async def test_new_guest_greeting(self, sofia, make_context, ai_service):
        response = await sofia.handle_message("Hi", make_context())

        assert response.metadata.action == "greeting"
        assert "How many guests" in response.content or "how many guests" in response.content
        ai_service.generate_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_regular_guest_greeting(self, sofia, make_context):
        history = GuestHistory(guest_name="Maria", guest_phone="+38160", total_bookings=3, common_party_size=4)

        response = await sofia.handle_message("Hi", make_context(guest_history=history))

        assert "Maria" in response.content
        assert "for 4 people" in response.content

    @pytest.mark.asyncio
    async def test_returning_guest_greeting_in_russian(self, sofia, make_context):
        history = GuestHistory(guest_name="Мария", guest_phone="+38160", total_bookings=1)

        response = await sofia.handle_message("Привет", make_context(guest_history=history, language="ru"))

        assert response.content.startswith("Здравствуйте, Мария!")

    @pytest.mark.asyncio
    async def test_subsequent_booking_greeting(self, sofia, make_context):
        context = make_context(conversation_context=ConversationContext(session_turn_count=1, is_subsequent_booking=True))

        response = await sofia.handle_message("One more please", context)

        assert "another reservation" in response.content


class TestSofiaTurns:
    """Test guard rails and LLM turns after the greeting."""

    @pytest.mark.asyncio
    async def test_party_too_large_is_business_rule(self, sofia, make_context, ai_service):
        context = make_context(conversation_context=later_turn(gathering_info=GatheringInfo(guests=25)))

        response = await sofia.handle_message("We are 25", context)

        assert response.error.type == AgentErrorKind.BUSINESS_RULE
        assert "10" in response.content
        ai_service.generate_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_guests_is_validation_error(self, sofia, make_context):
        context = make_context(conversation_context=later_turn(gathering_info=GatheringInfo(guests=0)))

        response = await sofia.handle_message("zero", context)

        assert response.error.type == AgentErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_llm_turn_keeps_booking_state(self, sofia, make_context, ai_service):
        slots = GatheringInfo(date="2025-07-15", guests=2)
        ai_service.generate_completion.return_value = LLMCompletion(text="What time?", model_used="gpt-4o-mini")

        response = await sofia.handle_message("Tomorrow for 2", make_context(conversation_context=later_turn(gathering_info=slots)))

        assert response.content == "What time?"
        assert isinstance(response.conversation_state, BookingState)
        assert response.conversation_state.slots == slots

    @pytest.mark.asyncio
    async def test_create_reservation_call_ends_booking(self, sofia, make_context, ai_service):
        ai_service.generate_completion.return_value = LLMCompletion(
            text="Booking now",
            model_used="gpt-4o-mini",
            tool_calls=[ToolCall(name="create_reservation", arguments=dict(BOOKING))],
        )

        response = await sofia.handle_message("Yes, book it", make_context(conversation_context=later_turn()))

        assert [call.name for call in response.tool_calls] == ["create_reservation"]
        assert isinstance(response.conversation_state, IdleState)

    @pytest.mark.asyncio
    async def test_llm_failure_becomes_apology(self, sofia, make_context, ai_service):
        ai_service.generate_completion.side_effect = RuntimeError("provider down")

        response = await sofia.handle_message("Table please", make_context(conversation_context=later_turn()))

        assert response.error is not None
        assert response.error.recoverable is True


class TestSofiaNameClarification:
    """Test the name-mismatch conversation."""

    def test_tool_result_opens_name_choice(self, sofia, make_context):
        call = ToolCall(name="create_reservation", arguments=dict(BOOKING))
        result = tool_business_error(
            "Name differs from profile", code="NAME_CLARIFICATION_NEEDED",
            dbName="Anna Petrova", requestName="Maria Ivanova",
        )
        context = make_context(session_id="s-1", session={"huge": object()})

        response = sofia.handle_tool_result(call, result, context)

        assert isinstance(response.conversation_state, AwaitingNameChoice)
        pending = response.conversation_state.pending
        assert pending.db_name == "Anna Petrova"
        assert pending.request_name == "Maria Ivanova"
        assert pending.original_booking == BOOKING
        assert set(pending.original_context.model_dump()) == {"restaurant_id", "timezone", "session_id", "language"}
        assert '1. "Maria Ivanova"' in response.content

    def test_other_tool_results_are_ignored(self, sofia, make_context):
        call = ToolCall(name="check_availability", arguments={"date": "2025-07-15", "time": "19:00", "guests": 2})

        assert sofia.handle_tool_result(call, tool_success({"available": True}), make_context()) is None

    @pytest.mark.asyncio
    async def test_choice_by_number(self, sofia, make_context, pending):
        """'2' picks the profile name and books with it."""
        response = await sofia.handle_message("2", make_context(conversation_state=AwaitingNameChoice(pending=pending)))

        assert isinstance(response.conversation_state, IdleState)
        assert len(response.tool_calls) == 1
        call = response.tool_calls[0]
        assert call.name == "create_reservation"
        assert call.arguments == {**BOOKING, "guestName": "Anna Petrova"}

    @pytest.mark.asyncio
    async def test_choice_by_name(self, sofia, make_context, pending):
        response = await sofia.handle_message(
            "Maria Ivanova please", make_context(conversation_state=AwaitingNameChoice(pending=pending))
        )

        assert response.tool_calls[0].arguments["guestName"] == "Maria Ivanova"

    @pytest.mark.asyncio
    async def test_forward_progress_after_three_unclear_replies(self, sofia, make_context, pending, ai_service):
        """The fourth turn books under the requested name instead of asking again."""
        state = AwaitingNameChoice(pending=pending)
        prompts = []

        for reply in ["hmm", "what?", "I don't know"]:
            response = await sofia.handle_message(reply, make_context(conversation_state=state))
            assert response.tool_calls == []
            assert isinstance(response.conversation_state, AwaitingNameChoice)
            state = response.conversation_state
            prompts.append(response.content)

        assert state.pending.attempts == 3
        assert prompts[-1] != prompts[0]

        response = await sofia.handle_message("whatever works", make_context(conversation_state=state))

        assert isinstance(response.conversation_state, IdleState)
        assert response.metadata.details["resolution_method"] == "fallback"
        assert [call.name for call in response.tool_calls] == ["create_reservation"]
        assert response.tool_calls[0].arguments["guestName"] == "Maria Ivanova"
        ai_service.generate_completion.assert_not_awaited()
