"""Resolves which reservation a guest means and keeps short-lived session context.

Sessions are plain dicts owned by the caller. Keys read or written here:
found_reservations, active_reservation_id, recently_modified_reservations,
clarification_attempts, conversation_flags, language.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional, Pattern

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CONTEXT_TTL = timedelta(minutes=10)
MAX_RECENT_RESERVATIONS = 3
MAX_CLARIFICATION_ATTEMPTS = 3

Confidence = Literal["high", "medium", "low"]


class ReservationResolution(BaseModel):
    resolved_id: Optional[int] = None
    confidence: Confidence
    method: str
    should_ask_for_clarification: bool
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class CuePatterns:
    dates: List[Pattern]
    times: List[Pattern]
    guests: List[Pattern]
    contextual_phrases: List[str] = field(default_factory=list)


_CUES: Dict[str, CuePatterns] = {
    "en": CuePatterns(
        dates=[
            re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b", re.I),
            re.compile(r"\b(\d{1,2})[/-](\d{1,2})\b"),
            re.compile(r"\b(\d{1,2})\s*(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\b", re.I),
        ],
        times=[
            re.compile(r"\b(\d{1,2}):(\d{2})\b"),
            re.compile(r"\b(\d{1,2})\s*(am|pm)\b", re.I),
            re.compile(r"\b(\d{1,2})\s*o'?clock\b", re.I),
        ],
        guests=[
            re.compile(r"\b(\d+)\s*(?:people|guests|persons|pax)\b", re.I),
            re.compile(r"\bfor\s+(\d+)\b", re.I),
            re.compile(r"\bparty\s*of\s*(\d+)\b", re.I),
        ],
        contextual_phrases=[
            "this booking", "this reservation", "it", "this one", "that one",
            "my booking", "my reservation", "the booking", "the reservation",
        ],
    ),
    "ru": CuePatterns(
        dates=[
            re.compile(r"\b(\d{1,2})\s*(?:числа|число)\b", re.I),
            re.compile(r"\b(\d{1,2})[/-](\d{1,2})\b"),
            re.compile(r"\b(\d{1,2})\s*(?:января|февраля|марта|апреля|мая|июня|июля|августа|сентября|октября|ноября|декабря)\b", re.I),
        ],
        times=[
            re.compile(r"\b(\d{1,2}):(\d{2})\b"),
            re.compile(r"\b(\d{1,2})\s*час", re.I),
            re.compile(r"\b(\d{1,2})\s*вечера\b", re.I),
        ],
        guests=[
            re.compile(r"\b(\d+)\s*(?:человек|людей|гостей|персон)\b", re.I),
            re.compile(r"\bна\s+(\d+)\b", re.I),
        ],
        contextual_phrases=["эту бронь", "это бронирование", "ее", "её", "эту", "мою бронь", "бронь"],
    ),
}


def _sanitize(message: str) -> str:
    cleaned = re.sub("[\u200b-\u200d\ufeff]", "", message)
    cleaned = unicodedata.normalize("NFC", cleaned)
    cleaned = re.sub(r"[<>\"']", "", cleaned)[:500]
    cleaned = re.sub(r"(.)\1{4,}", r"\1\1\1", cleaned)
    return cleaned.strip()


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return None


def _hour_from_match(match: "re.Match") -> Optional[int]:
    hour = int(match.group(1))
    suffix = match.group(2).lower() if match.lastindex and match.lastindex >= 2 and not match.group(2).isdigit() else ""
    if suffix == "pm" and hour != 12:
        hour += 12
    elif suffix == "am" and hour == 12:
        hour = 0
    return hour


class ContextManager:
    """Default reservation-context collaborator used by BaseAgent."""

    def resolve_reservation_from_context(
        self,
        user_message: str,
        session: Optional[Dict[str, Any]],
        provided_id: Optional[int] = None,
    ) -> ReservationResolution:
        """
        Infer the reservation the guest refers to.

        Order: explicit id, recent modification plus a pronoun cue, the active
        reservation, a single found reservation, date/time/guest cues, and
        finally a clarification request.
        """
        session = session if session is not None else {}
        message = _sanitize(user_message)
        found = session.get("found_reservations") or []
        found_ids = {r.get("id") for r in found}

        if provided_id is not None and (provided_id in found_ids or not found):
            return ReservationResolution(
                resolved_id=provided_id, confidence="high",
                method="explicit_id", should_ask_for_clarification=False,
            )

        recent = self._check_recent_context(message, session)
        if recent is not None:
            return recent

        active_id = session.get("active_reservation_id")
        if active_id is not None and active_id in found_ids:
            return ReservationResolution(
                resolved_id=active_id, confidence="medium",
                method="active_session", should_ask_for_clarification=False,
            )

        if len(found) == 1:
            return ReservationResolution(
                resolved_id=found[0]["id"], confidence="medium",
                method="single_reservation", should_ask_for_clarification=False,
            )

        if len(found) > 1:
            cue_result = self._resolve_with_cues(message, found, session.get("language") or "en")
            if cue_result is not None:
                return cue_result

        return self._clarification(session, found)

    def _check_recent_context(self, message: str, session: Dict[str, Any]) -> Optional[ReservationResolution]:
        recent = session.get("recently_modified_reservations") or []
        if not recent:
            return None
        latest = recent[0]
        expires_at = _as_datetime(latest.get("expires_at"))
        if expires_at is None or expires_at <= datetime.now(timezone.utc):
            return None

        cues = _CUES.get(session.get("language") or "en", _CUES["en"])
        lowered = message.lower()
        words = set(re.findall(r"\w+", lowered))
        for phrase in cues.contextual_phrases:
            hit = phrase in words if " " not in phrase else phrase in lowered
            if hit:
                return ReservationResolution(
                    resolved_id=latest["reservation_id"], confidence="high",
                    method="recent_context", should_ask_for_clarification=False,
                )
        return None

    def _score(self, message: str, reservation: Dict[str, Any], cues: CuePatterns) -> int:
        score = 0
        try:
            reservation_date = date.fromisoformat(str(reservation["date"])[:10])
        except (KeyError, ValueError):
            reservation_date = None

        if reservation_date is not None:
            for pattern in cues.dates:
                numbers = {int(n) for m in pattern.finditer(message) for n in m.groups() if n and n.isdigit()}
                if reservation_date.day in numbers or reservation_date.month in numbers:
                    score += 3
                    break

        hour, minute = (int(part) for part in str(reservation.get("time", "00:00"))[:5].split(":"))
        for pattern in cues.times:
            for match in pattern.finditer(message):
                match_hour = _hour_from_match(match)
                match_minute = int(match.group(2)) if match.lastindex and match.lastindex >= 2 and match.group(2).isdigit() else None
                if match_hour == hour and (match_minute is None or match_minute == minute):
                    score += 4
                    break

        for pattern in cues.guests:
            if any(int(m.group(1)) == reservation.get("guests") for m in pattern.finditer(message)):
                score += 2
                break

        table_name = reservation.get("table_name")
        if table_name and table_name.lower() in message.lower():
            score += 3

        return score

    def _resolve_with_cues(
        self, message: str, found: List[Dict[str, Any]], language: str
    ) -> Optional[ReservationResolution]:
        cues = _CUES.get(language, _CUES["en"])
        scored = [(self._score(message, r, cues), r) for r in found]
        best = max(score for score, _ in scored)
        if best < 3:
            return None
        winners = [r for score, r in scored if score == best]
        if len(winners) > 1:
            logger.info("Reservation cues are ambiguous", extra={"score": best, "candidates": len(winners)})
            return None
        return ReservationResolution(
            resolved_id=winners[0]["id"], confidence="high" if best >= 4 else "medium",
            method="natural_language", should_ask_for_clarification=False,
        )

    def _clarification(self, session: Dict[str, Any], found: List[Dict[str, Any]]) -> ReservationResolution:
        attempts = session.get("clarification_attempts", 0)
        if attempts >= MAX_CLARIFICATION_ATTEMPTS:
            fallback_id = found[0]["id"] if found else None
            return ReservationResolution(
                resolved_id=fallback_id, confidence="low",
                method="fallback_after_max_attempts", should_ask_for_clarification=False,
                suggestion=(
                    f"Using your first reservation (#{fallback_id})." if fallback_id
                    else "Please start over with a new request."
                ),
            )

        session["clarification_attempts"] = attempts + 1
        if len(found) > 1:
            listing = ", ".join(f"#{r['id']} ({r['date']} at {str(r['time'])[:5]})" for r in found)
            suggestion = f"Please specify which reservation: {listing}"
        else:
            suggestion = "Please find your reservation first or provide a confirmation number"
        return ReservationResolution(
            confidence="low", method="clarification_needed",
            should_ask_for_clarification=True, suggestion=suggestion,
        )

    def preserve_reservation_context(
        self,
        session: Dict[str, Any],
        reservation_id: int,
        operation_type: str,
    ) -> None:
        """Remember a reservation the guest just created, modified or cancelled."""
        now = datetime.now(timezone.utc)
        recent = [r for r in session.get("recently_modified_reservations") or [] if r["reservation_id"] != reservation_id]
        recent.insert(0, {
            "reservation_id": reservation_id,
            "operation": operation_type,
            "at": now.isoformat(),
            "expires_at": (now + CONTEXT_TTL).isoformat(),
        })
        session["recently_modified_reservations"] = recent[:MAX_RECENT_RESERVATIONS]
        session["clarification_attempts"] = 0

        if operation_type in ("creation", "modification"):
            session["active_reservation_id"] = reservation_id

    def update_conversation_flags(self, session: Dict[str, Any], flags: Dict[str, bool]) -> None:
        """Merge boolean conversation flags into the session."""
        current = session.setdefault("conversation_flags", {})
        current.update(flags)
