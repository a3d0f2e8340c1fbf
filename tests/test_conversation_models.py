"""Tests for persisted conversation state."""

import pytest
from pydantic import TypeAdapter, ValidationError

from tablewise.models.agent import AgentContext
from tablewise.models.conversation import (
    AwaitingNameChoice,
    BookingState,
    ConversationState,
    GatheringInfo,
    IdleState,
    PendingConfirmation,
    PendingContextSnapshot,
)

STATE_ADAPTER = TypeAdapter(ConversationState)


@pytest.fixture
def pending():
    return PendingConfirmation(
        db_name="Maria",
        request_name="Marija",
        original_booking={
            "guestName": "Marija",
            "guestPhone": "+38160111222",
            "date": "2025-08-06",
            "time": "19:00",
            "guests": 4,
        },
        original_context=PendingContextSnapshot(restaurant_id=1, timezone="Europe/Belgrade", session_id="s-1"),
    )


class TestPendingConfirmation:
    """Test the name clarification record."""

    def test_json_round_trip(self, pending):
        restored = PendingConfirmation.model_validate_json(pending.model_dump_json())

        assert restored == pending
        assert restored.original_booking["guests"] == 4
        assert restored.created_at == pending.created_at

    def test_snapshot_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            PendingContextSnapshot(restaurant_id=1, timezone="UTC", session={"huge": "object"})

    def test_exhausted(self, pending):
        assert not pending.exhausted
        assert pending.model_copy(update={"attempts": 3}).exhausted


class TestConversationState:
    """Test the tagged conversation state."""

    def test_state_is_selected_by_kind(self, pending):
        states = [IdleState(), AwaitingNameChoice(pending=pending), BookingState(slots=GatheringInfo(guests=2))]

        for state in states:
            restored = STATE_ADAPTER.validate_json(STATE_ADAPTER.dump_json(state))
            assert type(restored) is type(state)
            assert restored == state

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            STATE_ADAPTER.validate_python({"kind": "dancing"})

    def test_pending_confirmation_on_context(self, pending):
        state = {"kind": "awaiting_name_choice", "pending": pending.model_dump()}
        context = AgentContext(restaurant_id=1, timezone="UTC", conversation_state=state)

        assert isinstance(context.conversation_state, AwaitingNameChoice)
        assert context.pending_confirmation == pending

    def test_no_pending_confirmation_while_booking(self):
        context = AgentContext(restaurant_id=1, timezone="UTC", conversation_state=BookingState())
        assert context.pending_confirmation is None


class TestGatheringInfo:
    def test_missing_fields(self):
        info = GatheringInfo(date="2025-08-06", time="19:00", guests=2)

        assert info.missing_fields() == ["name", "phone"]
        assert not info.is_complete()
        assert info.model_copy(update={"name": "Ana", "phone": "+381"}).is_complete()
