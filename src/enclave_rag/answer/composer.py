"""Deterministic answer composer.

Every entry point returns the same ``Answer`` shape and runs its text through
``sanitize``. Document extraction is keyword driven: the query words ``when``
and ``where`` and a handful of body substrings select what is shown.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime

from enclave_rag.types import Answer, DocumentResult, EventData, SourceRef

CITATION_MARKER = "§"
NO_EVENTS_HEADLINE = "No events scheduled this week."
DIGEST_LIMIT = 5

_BAD_WORDS = re.compile(r"\b(ass|dumbass|shit|fuck)\b", re.IGNORECASE)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_WEEKDAY_PATTERN = re.compile(
    r"every\s+(?:mon|tuesday?|wednesday?|thursday?|friday?|saturday?|sunday?)",
    re.IGNORECASE,
)
_PM_PATTERN = re.compile(r"\d{1,2}:\d{2}\s*PM", re.IGNORECASE)
_AM_PATTERN = re.compile(r"\d{1,2}:\d{2}\s*AM", re.IGNORECASE)
_PLACE_PATTERN = re.compile(
    r"(?:@|at)\s+[A-Za-z0-9\s]+(?:apartment|hall|lounge|terrace)", re.IGNORECASE
)
_SENTENCE_END = re.compile(r"[.!?]")
_DETAIL_TAIL = re.compile(r"usually.+|alternates.+", re.IGNORECASE)

_FOLLOW_UP_PATTERNS = (
    re.compile(r"^(where|when|what|who|why|how)\s+\?*$", re.IGNORECASE),
    re.compile(r"^(yes|yep|yeah|sure|ok|okay|no|nope)\s*$", re.IGNORECASE),
    re.compile(r"^(tell me more|more info|details)\s*$", re.IGNORECASE),
    re.compile(r"^tell me about (it|that|them)\s*$", re.IGNORECASE),
)


def sanitize(text: str) -> str:
    """Mask denylisted words with an em-dash and cap blank lines at one."""
    return _EXCESS_NEWLINES.sub("\n\n", _BAD_WORDS.sub("—", text))


def format_event_time(value: datetime | str | None) -> str:
    """``Wed 8:00 PM`` style, or ``TBD`` when unknown.

    ISO strings are parsed; any other non-empty string is taken as already
    formatted.
    """
    if value is None:
        return "TBD"
    if isinstance(value, str):
        if not value.strip():
            return "TBD"
        iso = value.strip()
        if iso.endswith(("Z", "z")):
            iso = iso[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(iso)
        except ValueError:
            return value.strip()
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%a} {hour}:{value:%M} {meridiem}"


def _event_line(event: EventData) -> str:
    location = f" @ {event.location}" if event.location else ""
    return f"{event.name}: {format_event_time(event.start_at)}{location}"


def compose_event(event: EventData, *, source_title: str = "Events Calendar") -> Answer:
    headline = sanitize(_event_line(event))
    details = sanitize("Attendance required.") if event.required else None
    return Answer(
        headline=headline,
        details=details,
        sources=[SourceRef(title=source_title, tag=CITATION_MARKER + event.name)],
    )


def compose_digest(events: Sequence[EventData], *, heading: str = "Upcoming") -> Answer:
    """Bulleted list of at most five events; extra events are dropped."""
    if not events:
        return Answer(headline=NO_EVENTS_HEADLINE, sources=[])

    bullets = "\n".join(f"• {_event_line(event)}" for event in events[:DIGEST_LIMIT])
    return Answer(
        headline=sanitize(f"{heading}:\n{bullets}"),
        sources=[SourceRef(title="Events", tag="digest")],
    )


def compose_document(result: DocumentResult, query: str) -> Answer:
    body = result.body or ""
    headline = extract_headline(body, query).strip() or result.title.strip() or "No details found."
    details = extract_details(body)
    return Answer(
        headline=sanitize(headline),
        details=sanitize(details) if details else None,
        sources=[SourceRef(title=result.title, tag=result.source or "doc")],
    )


def extract_headline(body: str, query: str) -> str:
    lowered = query.lower()

    if "when" in lowered:
        if _WEEKDAY_PATTERN.search(body) or _PM_PATTERN.search(body) or _AM_PATTERN.search(body):
            return body[:200]

    if "where" in lowered and _PLACE_PATTERN.search(body):
        return body[:200]

    first_sentence = _SENTENCE_END.split(body, maxsplit=1)[0]
    if len(first_sentence) < 150:
        return first_sentence
    return body[:150] + "..."


def extract_details(body: str) -> str:
    """Second line, only when the body carries a known trigger substring."""
    if "Attendance" in body or "Required" in body:
        return "Attendance required."
    if "alternates" in body or "usually" in body:
        match = _DETAIL_TAIL.search(body)
        return match.group(0) if match else ""
    return ""


def render(answer: Answer) -> str:
    parts = [answer.headline]
    if answer.details:
        parts.append(answer.details)
    if answer.sources and answer.sources[0].tag.startswith(CITATION_MARKER):
        parts.append(f"Source: {answer.sources[0].title}")
    return "\n".join(part for part in parts if part)


def is_follow_up(query: str) -> bool:
    stripped = query.strip()
    return any(pattern.match(stripped) for pattern in _FOLLOW_UP_PATTERNS)
