"""Unit tests for Apollo, the alternative-times agent."""

import pytest

from tablewise.models.agent import create_default_agent_config
from tablewise.models.conversation import BookingState
from tablewise.models.reservation import AvailabilityFailureContext, UserTimePreferences
from tablewise.services.agents.apollo_agent import (
    APOLLO_CAPABILITIES,
    ApolloAgent,
    analyze_user_preferences,
    rank_alternatives,
    score_alternative,
)


@pytest.fixture
def failure():
    return AvailabilityFailureContext(
        original_date="2025-08-06",
        original_time="19:00:00",
        original_guests=4,
        failure_reason="No tables available",
    )


@pytest.fixture
def apollo(restaurant_config, ai_service):
    config = create_default_agent_config(
        "Apollo", "Availability specialist", APOLLO_CAPABILITIES, primary_model="sonnet", temperature=0.7
    )
    return ApolloAgent(config, restaurant_config, ai_service)


class TestScoring:
    """Test alternative scoring and ranking."""

    @pytest.mark.parametrize("candidate,expected", [
        ("18:45", 108.5),
        ("19:30", 107.0),
        ("21:00", 88.0),
        ("13:00", 64.0),
    ])
    def test_scores_without_preferences(self, failure, candidate, expected):
        option = score_alternative(candidate, failure, UserTimePreferences())

        assert option.score == pytest.approx(expected)
        assert option.date == "2025-08-06"

    def test_preferred_time_of_day_bonus(self, failure):
        preferences = UserTimePreferences(preferred_time_range="evening")

        assert score_alternative("18:45", failure, preferences).score == pytest.approx(128.5)
        assert score_alternative("13:00", failure, preferences).score == pytest.approx(64.0)

    def test_direction_penalty(self, failure):
        earlier_only = UserTimePreferences(accepts_later=False)

        assert score_alternative("19:30", failure, earlier_only).score == pytest.approx(77.0)
        assert score_alternative("18:45", failure, earlier_only).score == pytest.approx(108.5)

    def test_score_never_negative(self):
        late = AvailabilityFailureContext(original_date="2025-08-06", original_time="23:00", original_guests=2)
        later_only = UserTimePreferences(accepts_earlier=False)

        assert score_alternative("09:00", late, later_only).score == 0.0

    @pytest.mark.parametrize("candidate,reason", [
        ("18:45", "Very close to your preferred time"),
        ("17:30", "Early dinner, quieter and more intimate"),
        ("21:00", "Late dinner, perfect for a relaxed evening"),
        ("13:00", "Lunch time, great for a midday meal"),
        ("10:00", "Available with good service"),
    ])
    def test_reasons(self, failure, candidate, reason):
        assert score_alternative(candidate, failure, UserTimePreferences()).reason == reason

    def test_ranking_order_and_cap(self, failure):
        ranked = rank_alternatives(["21:00", "18:45", "13:00", "19:30", "18:45"], failure, UserTimePreferences())

        assert [option.time for option in ranked] == ["18:45", "19:30", "21:00"]

    def test_ties_keep_earlier_time_first(self, failure):
        ranked = rank_alternatives(["19:30", "18:30"], failure, UserTimePreferences())

        assert [option.time for option in ranked] == ["18:30", "19:30"]

    def test_russian_reasons(self, failure):
        ranked = rank_alternatives(["19:15"], failure, UserTimePreferences(), language="ru")

        assert ranked[0].reason == "Совсем близко к желаемому времени"


class TestPreferences:
    """Test reading preferences from guest wording."""

    def test_defaults(self):
        preferences = analyze_user_preferences("ok")

        assert preferences.flexibility == "flexible"
        assert preferences.preferred_time_range is None
        assert preferences.accepts_earlier and preferences.accepts_later

    def test_strict(self):
        assert analyze_user_preferences("exactly 7 please").flexibility == "strict"

    def test_earlier_and_flexible(self):
        preferences = analyze_user_preferences("anything works, earlier if possible")

        assert preferences.flexibility == "very_flexible"
        assert preferences.accepts_later is False
        assert preferences.accepts_earlier is True

    def test_time_range_and_table_wishes(self):
        preferences = analyze_user_preferences("A quiet table by the window in the evening")

        assert preferences.preferred_time_range == "evening"
        assert preferences.special_requests == ["quiet_table", "window_table"]


class TestApolloAgent:
    """Test Apollo's turn handling."""

    @pytest.mark.asyncio
    async def test_without_failure_context_asks_for_original_request(self, apollo, make_context):
        response = await apollo.handle_message("find me something", make_context())

        assert response.tool_calls == []
        assert response.metadata.action == "clarification_request"
        assert "originally looking for" in response.content

    @pytest.mark.asyncio
    async def test_first_turn_searches(self, apollo, make_context, failure, ai_service):
        response = await apollo.handle_message(
            "what else do you have?", make_context(availability_failure_context=failure)
        )

        assert response.metadata.action == "search_alternatives"
        assert len(response.tool_calls) == 1
        call = response.tool_calls[0]
        assert call.name == "find_alternative_times"
        assert call.arguments == {"date": "2025-08-06", "preferredTime": "19:00", "guests": 4}
        ai_service.generate_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_candidates(self, apollo, make_context, failure):
        context = make_context(availability_failure_context=failure, alternative_candidates=[])

        response = await apollo.handle_message("anything?", context)

        assert response.metadata.action == "no_alternatives"
        assert "no free tables near 19:00" in response.content

    @pytest.mark.asyncio
    async def test_presents_top_three(self, apollo, make_context, failure):
        context = make_context(
            availability_failure_context=failure,
            alternative_candidates=["21:00", "18:45", "13:00", "19:30"],
        )

        response = await apollo.handle_message("what else do you have?", context)

        assert response.metadata.action == "present_alternatives"
        times = [option["time"] for option in response.metadata.details["alternatives"]]
        assert times == ["18:45", "19:30", "21:00"]
        assert "• 18:45 - Very close to your preferred time" in response.content
        assert "13:00" not in response.content
        assert response.handoff_signal is None

    @pytest.mark.asyncio
    async def test_picking_by_time_hands_off_to_booking(self, apollo, make_context, failure):
        context = make_context(availability_failure_context=failure, alternative_candidates=["18:45", "19:30"])

        response = await apollo.handle_message("19:30 please", context)

        assert response.handoff_signal is not None
        assert response.handoff_signal.to == "booking"
        assert isinstance(response.conversation_state, BookingState)
        assert response.conversation_state.slots.time == "19:30"
        assert response.conversation_state.slots.guests == 4
        assert response.conversation_state.slots.date == "2025-08-06"

    @pytest.mark.asyncio
    async def test_picking_by_position(self, apollo, make_context, failure):
        context = make_context(
            availability_failure_context=failure, alternative_candidates=["21:00", "18:45", "19:30"]
        )

        response = await apollo.handle_message("the second one", context)

        assert response.metadata.details["selected_time"] == "19:30"

    @pytest.mark.asyncio
    async def test_unlisted_time_is_not_picked(self, apollo, make_context, failure):
        context = make_context(availability_failure_context=failure, alternative_candidates=["18:45", "19:30"])

        response = await apollo.handle_message("20:15 please", context)

        assert response.handoff_signal is None
        assert response.metadata.action == "present_alternatives"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [
        "Hmm, anything in the evening for the 2 of us?",
        "we are 3 people, what else is there?",
        "I can't do 19:30",
        "не могу в 19:30",
        "not the first one",
    ])
    async def test_non_selection_does_not_hand_off(self, apollo, make_context, failure, message):
        context = make_context(
            availability_failure_context=failure, alternative_candidates=["18:45", "19:30", "21:00"]
        )

        response = await apollo.handle_message(message, context)

        assert response.handoff_signal is None
        assert response.metadata.action == "present_alternatives"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message,expected", [
        ("2", "19:30"),
        ("#3", "21:00"),
        ("option 2 please", "19:30"),
        ("I can't do 19:30, but 21:00 works", "21:00"),
    ])
    async def test_picking_by_number_or_after_negated_clause(self, apollo, make_context, failure, message, expected):
        context = make_context(
            availability_failure_context=failure, alternative_candidates=["18:45", "19:30", "21:00"]
        )

        response = await apollo.handle_message(message, context)

        assert response.handoff_signal is not None
        assert response.metadata.details["selected_time"] == expected

    def test_prompt_carries_exact_search_parameters(self, apollo, make_context, failure):
        prompt = apollo.generate_system_prompt(make_context(availability_failure_context=failure))

        assert 'preferredTime: "19:00"' in prompt
        assert "guests: 4" in prompt
        assert "At most 3 options" in prompt
