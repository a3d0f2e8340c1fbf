"""Unit tests for the name-choice cascade."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from tablewise.infra.config import config
from tablewise.models.conversation import AwaitingNameChoice, IdleState, PendingConfirmation, PendingContextSnapshot
from tablewise.services.agents.name_resolution import (
    NAME_CHOICE_STAGES,
    advance_name_choice,
    extract_name_choice,
    levenshtein,
    match_fuzzy,
    match_ordinal,
    match_yes_no,
)

DB_NAME = "Anna Petrova"
REQUEST_NAME = "Maria Ivanova"


class TestExtractNameChoice:
    """Test each stage of the cascade and their order."""

    @pytest.mark.parametrize("message,expected,method", [
        ("Maria Ivanova", REQUEST_NAME, "exact"),
        ("anna petrova", DB_NAME, "exact"),
        ("please use Anna Petrova", DB_NAME, "substring"),
        ("keep the old one", DB_NAME, "phrase"),
        ("новое имя", REQUEST_NAME, "phrase"),
        ("yes", REQUEST_NAME, "yes_no"),
        ("нет", DB_NAME, "yes_no"),
        ("Mria Ivanova", REQUEST_NAME, "fuzzy"),
        ("1", REQUEST_NAME, "ordinal"),
        ("the second", DB_NAME, "ordinal"),
        ("второй", DB_NAME, "ordinal"),
    ])
    def test_stages(self, message, expected, method):
        choice = extract_name_choice(message, DB_NAME, REQUEST_NAME)

        assert choice is not None
        assert choice.name == expected
        assert choice.method == method

    @pytest.mark.parametrize("message", ["hmm", "what?", "I don't know", ""])
    def test_no_choice(self, message):
        assert extract_name_choice(message, DB_NAME, REQUEST_NAME) is None

    def test_stage_order(self):
        assert [name for name, _ in NAME_CHOICE_STAGES] == [
            "exact", "substring", "phrase", "yes_no", "fuzzy", "ordinal",
        ]

    def test_contradicting_yes_no_is_undecided(self):
        assert match_yes_no("yes no", DB_NAME, REQUEST_NAME) is None

    def test_fuzzy_requires_unique_best(self):
        assert match_fuzzy("Mara", "Mark", "Marc") is None
        assert match_fuzzy("Mark", "Mark", "Marc") == "Mark"

    def test_fuzzy_distance_limit(self):
        assert match_fuzzy("Mxxxa Ivanova", DB_NAME, REQUEST_NAME) is None

    def test_ordinal_both_is_undecided(self):
        assert match_ordinal("first or second", DB_NAME, REQUEST_NAME) is None

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0


class TestAdvanceNameChoice:
    """Test the pending-choice transition function."""

    @pytest.fixture
    def pending(self):
        return PendingConfirmation(
            db_name=DB_NAME,
            request_name=REQUEST_NAME,
            original_booking={"guestName": REQUEST_NAME},
            original_context=PendingContextSnapshot(restaurant_id=1, timezone="UTC"),
        )

    def test_resolved_goes_idle(self, pending):
        outcome = advance_name_choice(pending, "2")

        assert outcome.resolved_name == DB_NAME
        assert isinstance(outcome.next_state, IdleState)

    def test_unresolved_increments_without_mutating(self, pending):
        outcome = advance_name_choice(pending, "hmm")

        assert outcome.resolved_name is None
        assert isinstance(outcome.next_state, AwaitingNameChoice)
        assert outcome.next_state.pending.attempts == 1
        assert pending.attempts == 0

    def test_exhausted_falls_back_to_requested_name(self, pending):
        exhausted = pending.model_copy(update={"attempts": 3})

        outcome = advance_name_choice(exhausted, "Anna Petrova")

        assert outcome.resolved_name == REQUEST_NAME
        assert outcome.method == "fallback"
        assert isinstance(outcome.next_state, IdleState)

    def test_stale_choice_falls_back_to_requested_name(self, pending):
        later = pending.created_at + timedelta(minutes=6)

        outcome = advance_name_choice(pending, "Anna Petrova", now=later)

        assert outcome.resolved_name == REQUEST_NAME
        assert outcome.method == "fallback"
        assert isinstance(outcome.next_state, IdleState)

    def test_recent_choice_still_uses_the_reply(self, pending):
        later = pending.created_at + timedelta(minutes=4)

        outcome = advance_name_choice(pending, "Anna Petrova", now=later)

        assert outcome.resolved_name == DB_NAME
        assert outcome.method == "exact"

    def test_timeout_comes_from_config(self, pending):
        later = pending.created_at + timedelta(minutes=2)

        with patch.object(config, "NAME_CHOICE_TIMEOUT", 60):
            outcome = advance_name_choice(pending, "Anna Petrova", now=later)

        assert outcome.method == "fallback"
