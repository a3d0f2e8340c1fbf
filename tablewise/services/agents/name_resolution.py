"""Name-mismatch disambiguation as pure functions over PendingConfirmation.

The guest is shown two options: 1 = the newly requested name, 2 = the name
on their profile. `extract_name_choice` runs an ordered cascade of matchers
and stops at the first one that picks a name.
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from pydantic import BaseModel

from tablewise.infra.config import config
from tablewise.models.conversation import AwaitingNameChoice, IdleState, PendingConfirmation

logger = logging.getLogger(__name__)

MAX_FUZZY_DISTANCE = 2

# Words that pick an option, grouped by the option they pick
_NEW_NAME_PHRASES = {
    "new", "the new one", "new name", "use the new", "change it",
    "новое", "новое имя", "новым", "új", "új név", "novo", "novo ime", "neu", "nouveau", "nuevo", "nuovo",
}
_PROFILE_NAME_PHRASES = {
    "old", "keep", "keep the old", "keep it", "the old one", "profile", "as before", "same as before",
    "старое", "старое имя", "как было", "régi", "staro", "staro ime", "alt", "ancien", "viejo", "vecchio",
}
_YES_WORDS = {"yes", "yeah", "yep", "sure", "ok", "да", "ага", "igen", "da", "ja", "oui", "sí", "si", "sim"}
_NO_WORDS = {"no", "nope", "нет", "nem", "ne", "nein", "non", "não", "nee"}
_FIRST_WORDS = {"1", "#1", "first", "first one", "the first", "первое", "первый", "első", "prvo", "prvi", "erste"}
_SECOND_WORDS = {"2", "#2", "second", "second one", "the second", "второе", "второй", "második", "drugo", "drugi", "zweite"}


class NameChoice(BaseModel):
    name: str
    method: str


class NameChoiceOutcome(BaseModel):
    """Result of feeding one guest reply into the pending name choice."""
    resolved_name: Optional[str] = None
    method: Optional[str] = None
    next_state: Union[IdleState, AwaitingNameChoice]
    attempts: int


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s#]", " ", text.casefold())).strip()


def _tokens(text: str) -> List[str]:
    return _normalize(text).split()


def _contains_phrase(message: str, phrases) -> bool:
    normalized = f" {_normalize(message)} "
    return any(f" {phrase} " in normalized for phrase in phrases)


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def match_exact(message: str, db_name: str, request_name: str) -> Optional[str]:
    normalized = _normalize(message)
    for name in (request_name, db_name):
        if normalized == _normalize(name):
            return name
    return None


def match_substring(message: str, db_name: str, request_name: str) -> Optional[str]:
    normalized = f" {_normalize(message)} "
    hits = [name for name in (request_name, db_name) if f" {_normalize(name)} " in normalized]
    if len(hits) == 1:
        return hits[0]
    if len(hits) == 2:
        # One name contains the other ("Anna" vs "Anna Smith"): the longer mention is the choice
        return max(hits, key=lambda name: len(_normalize(name)))
    return None


def match_phrase(message: str, db_name: str, request_name: str) -> Optional[str]:
    picks_new = _contains_phrase(message, _NEW_NAME_PHRASES)
    picks_profile = _contains_phrase(message, _PROFILE_NAME_PHRASES)
    if picks_new != picks_profile:
        return request_name if picks_new else db_name
    return None


def match_yes_no(message: str, db_name: str, request_name: str) -> Optional[str]:
    tokens = set(_tokens(message))
    said_yes = bool(tokens & _YES_WORDS)
    said_no = bool(tokens & _NO_WORDS)
    if said_yes != said_no:
        # "Yes" accepts the name just given; "no" keeps the profile name
        return request_name if said_yes else db_name
    return None


def match_fuzzy(message: str, db_name: str, request_name: str) -> Optional[str]:
    normalized = _normalize(message)
    if len(normalized) < 4:
        return None
    distances: List[Tuple[int, str]] = []
    for name in (request_name, db_name):
        candidates = [normalized] + [t for t in normalized.split() if len(t) >= 4]
        distances.append((min(levenshtein(c, _normalize(name)) for c in candidates), name))
    distances.sort()
    best_distance, best_name = distances[0]
    if best_distance <= MAX_FUZZY_DISTANCE and best_distance < distances[1][0]:
        return best_name
    return None


def match_ordinal(message: str, db_name: str, request_name: str) -> Optional[str]:
    picks_first = _contains_phrase(message, _FIRST_WORDS)
    picks_second = _contains_phrase(message, _SECOND_WORDS)
    if picks_first != picks_second:
        return request_name if picks_first else db_name
    return None


NAME_CHOICE_STAGES: List[Tuple[str, Callable[[str, str, str], Optional[str]]]] = [
    ("exact", match_exact),
    ("substring", match_substring),
    ("phrase", match_phrase),
    ("yes_no", match_yes_no),
    ("fuzzy", match_fuzzy),
    ("ordinal", match_ordinal),
]


def extract_name_choice(message: str, db_name: str, request_name: str) -> Optional[NameChoice]:
    """Run the cascade; None when no stage could tell which name the guest wants."""
    for method, stage in NAME_CHOICE_STAGES:
        name = stage(message, db_name, request_name)
        if name:
            return NameChoice(name=name, method=method)
    return None


def advance_name_choice(
    pending: PendingConfirmation,
    message: str,
    now: Optional[datetime] = None,
) -> NameChoiceOutcome:
    """
    Feed one guest reply into a pending name choice.

    Once `max_attempts` replies failed to pick a name, or the choice has been
    waiting longer than `config.NAME_CHOICE_TIMEOUT`, the requested name is
    used without asking again.
    """
    expired = pending.is_expired(config.NAME_CHOICE_TIMEOUT, now)
    if pending.exhausted or expired:
        logger.info(
            "Name choice fell back to requested name",
            extra={"attempts": pending.attempts, "expired": expired},
        )
        return NameChoiceOutcome(
            resolved_name=pending.request_name,
            method="fallback",
            next_state=IdleState(),
            attempts=pending.attempts,
        )

    choice = extract_name_choice(message, pending.db_name, pending.request_name)
    if choice is not None:
        return NameChoiceOutcome(
            resolved_name=choice.name,
            method=choice.method,
            next_state=IdleState(),
            attempts=pending.attempts,
        )

    updated = pending.model_copy(update={"attempts": pending.attempts + 1})
    return NameChoiceOutcome(next_state=AwaitingNameChoice(pending=updated), attempts=updated.attempts)
