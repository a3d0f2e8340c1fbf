"""Tests for reservation context resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from tablewise.services.context_manager import MAX_RECENT_RESERVATIONS, ContextManager


@pytest.fixture
def manager():
    return ContextManager()


@pytest.fixture
def found():
    return [
        {"id": 12, "date": "2025-08-06", "time": "19:00:00", "guests": 4},
        {"id": 15, "date": "2025-08-20", "time": "21:00:00", "guests": 2},
    ]


class TestResolveReservation:
    """Test the resolution order."""

    def test_explicit_id(self, manager, found):
        result = manager.resolve_reservation_from_context("that one", {"found_reservations": found}, provided_id=15)

        assert result.resolved_id == 15
        assert result.method == "explicit_id"
        assert result.confidence == "high"

    def test_explicit_id_without_found_reservations(self, manager):
        result = manager.resolve_reservation_from_context("change it", {}, provided_id=7)
        assert result.resolved_id == 7

    def test_recent_modification_with_pronoun(self, manager, found):
        session = {"found_reservations": found}
        manager.preserve_reservation_context(session, 15, "modification")

        result = manager.resolve_reservation_from_context("move it to 8pm", session)

        assert result.resolved_id == 15
        assert result.method == "recent_context"

    def test_expired_recent_context_is_ignored(self, manager, found):
        expired = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        session = {
            "found_reservations": found,
            "recently_modified_reservations": [{"reservation_id": 15, "operation": "modification", "expires_at": expired}],
        }

        result = manager.resolve_reservation_from_context("move it", session)

        assert result.method == "clarification_needed"

    def test_active_reservation(self, manager, found):
        session = {"found_reservations": found, "active_reservation_id": 12}

        result = manager.resolve_reservation_from_context("add a birthday cake", session)

        assert result.resolved_id == 12
        assert result.method == "active_session"

    def test_single_reservation(self, manager, found):
        result = manager.resolve_reservation_from_context("change please", {"found_reservations": found[:1]})

        assert result.resolved_id == 12
        assert result.method == "single_reservation"

    @pytest.mark.parametrize("message,expected_id,confidence", [
        ("the one at 9pm", 15, "high"),
        ("the 19:00 booking", 12, "high"),
        ("the one on the 20th", 15, "medium"),
    ])
    def test_natural_language_cues(self, manager, found, message, expected_id, confidence):
        result = manager.resolve_reservation_from_context(message, {"found_reservations": found})

        assert result.resolved_id == expected_id
        assert result.method == "natural_language"
        assert result.confidence == confidence

    def test_russian_cues(self, manager, found):
        session = {"found_reservations": found, "language": "ru"}

        result = manager.resolve_reservation_from_context("бронь на 21:00", session)

        assert result.resolved_id == 15

    def test_tied_cues_ask_for_clarification(self, manager):
        session = {"found_reservations": [
            {"id": 1, "date": "2025-08-06", "time": "19:00", "guests": 2},
            {"id": 2, "date": "2025-08-07", "time": "19:00", "guests": 2},
        ]}

        result = manager.resolve_reservation_from_context("the 19:00 one", session)

        assert result.should_ask_for_clarification
        assert "#1" in result.suggestion and "#2" in result.suggestion

    def test_clarification_gives_up_after_max_attempts(self, manager, found):
        session = {"found_reservations": found}
        for _ in range(3):
            assert manager.resolve_reservation_from_context("hmm", session).should_ask_for_clarification

        result = manager.resolve_reservation_from_context("hmm", session)

        assert result.should_ask_for_clarification is False
        assert result.resolved_id == 12
        assert result.method == "fallback_after_max_attempts"


class TestPreserveContext:
    """Test session bookkeeping."""

    def test_creation_sets_active_reservation(self, manager):
        session = {"clarification_attempts": 2}
        manager.preserve_reservation_context(session, 40, "creation")

        assert session["active_reservation_id"] == 40
        assert session["clarification_attempts"] == 0

    def test_cancellation_does_not_set_active_reservation(self, manager):
        session = {}
        manager.preserve_reservation_context(session, 40, "cancellation")

        assert "active_reservation_id" not in session
        assert session["recently_modified_reservations"][0]["operation"] == "cancellation"

    def test_recent_list_is_deduplicated_and_capped(self, manager):
        session = {}
        for reservation_id in (1, 2, 3, 1, 4):
            manager.preserve_reservation_context(session, reservation_id, "modification")

        recent = [entry["reservation_id"] for entry in session["recently_modified_reservations"]]
        assert recent == [4, 1, 3]
        assert len(recent) == MAX_RECENT_RESERVATIONS

    def test_update_conversation_flags(self, manager):
        session = {"conversation_flags": {"has_asked_date": True}}
        manager.update_conversation_flags(session, {"has_asked_time": True})

        assert session["conversation_flags"] == {"has_asked_date": True, "has_asked_time": True}
