from datetime import datetime

import pytest

from enclave_rag.answer.composer import (
    NO_EVENTS_HEADLINE,
    compose_digest,
    compose_document,
    compose_event,
    extract_details,
    extract_headline,
    format_event_time,
    is_follow_up,
    render,
    sanitize,
)
from enclave_rag.types import DocumentResult, EventData

# 2025-10-01 is a Wednesday.
ACTIVE_MEETING = EventData(
    name="Active Meeting",
    start_at=datetime(2025, 10, 1, 20, 0),
    location="461B Kelton",
    required=True,
)


def test_required_event_answer() -> None:
    answer = compose_event(ACTIVE_MEETING)
    assert answer.headline == "Active Meeting: Wed 8:00 PM @ 461B Kelton"
    assert answer.details == "Attendance required."
    assert answer.sources[0].title == "Events Calendar"
    assert answer.sources[0].tag == "§Active Meeting"


def test_optional_event_without_time_or_place() -> None:
    answer = compose_event(EventData(name="Game Night"))
    assert answer.headline == "Game Night: TBD"
    assert answer.details is None


@pytest.mark.parametrize(
    "value,expected",
    [
        (datetime(2025, 10, 2, 9, 5), "Thu 9:05 AM"),
        (datetime(2025, 10, 3, 0, 30), "Fri 12:30 AM"),
        ("2025-10-04T12:00:00", "Sat 12:00 PM"),
        ("2025-10-01T20:00:00Z", "Wed 8:00 PM"),
        ("after jazz", "after jazz"),
        ("next Tuesday", "next Tuesday"),
        ("", "TBD"),
        (None, "TBD"),
    ],
)
def test_format_event_time(value, expected) -> None:
    assert format_event_time(value) == expected


def test_digest_caps_at_five_events() -> None:
    events = [EventData(name=f"Event {i}", start_at=datetime(2025, 10, 1, 18, 0)) for i in range(7)]
    answer = compose_digest(events)
    lines = answer.headline.split("\n")
    assert lines[0] == "Upcoming:"
    assert len(lines) == 6
    assert all(line.startswith("• Event ") for line in lines[1:])
    assert "Event 5" not in answer.headline
    assert answer.sources[0].tag == "digest"


def test_empty_digest() -> None:
    answer = compose_digest([])
    assert answer.headline == NO_EVENTS_HEADLINE
    assert answer.sources == []


def test_when_query_returns_schedule_excerpt() -> None:
    body = "Study hall runs every Tuesday at 7:00 PM in the library. Bring your laptop."
    assert extract_headline(body, "When is study hall?") == body


def test_where_query_returns_place_excerpt() -> None:
    body = "Chapter is held at the Kelton apartment. Doors open early."
    assert extract_headline(body, "where is chapter") == body


def test_default_headline_is_first_sentence_or_truncation() -> None:
    assert extract_headline("Dues are 50 dollars. Pay by Friday.", "dues") == "Dues are 50 dollars"
    long_body = "word " * 60
    assert extract_headline(long_body, "dues") == long_body[:150] + "..."


def test_document_headline_falls_back_to_title() -> None:
    answer = compose_document(DocumentResult(title="Bylaws", body=""), "bylaws")
    assert answer.headline == "Bylaws"
    empty = compose_document(DocumentResult(title=" ", body=""), "bylaws")
    assert empty.headline == "No details found."


def test_detail_triggers_are_literal_substrings() -> None:
    assert extract_details("Attendance is tracked weekly.") == "Attendance required."
    assert extract_details("Required for new members.") == "Attendance required."
    assert extract_details("attendance is optional") == ""
    assert extract_details("Rush usually runs two weeks.") == "usually runs two weeks."
    assert extract_details("Nothing special here.") == ""


def test_document_source_tag_defaults_to_doc() -> None:
    answer = compose_document(DocumentResult(title="Dues", body="Dues are due Friday."), "dues")
    assert answer.sources[0].tag == "doc"
    tagged = compose_document(
        DocumentResult(title="Dues", body="Dues are due Friday.", source="treasurer"), "dues"
    )
    assert tagged.sources[0].tag == "treasurer"


def test_sanitize_masks_words_and_is_idempotent() -> None:
    once = sanitize("what the fuck\n\n\n\nclass starts at 8")
    assert once == "what the —\n\nclass starts at 8"
    assert sanitize(once) == once


def test_render_adds_source_line_only_for_cited_answers() -> None:
    assert render(compose_event(ACTIVE_MEETING)) == (
        "Active Meeting: Wed 8:00 PM @ 461B Kelton\nAttendance required.\nSource: Events Calendar"
    )
    document = compose_document(DocumentResult(title="Dues", body="Dues are due Friday."), "dues")
    assert render(document) == "Dues are due Friday"


@pytest.mark.parametrize("text", ["tell me more", "yes", "Okay", "when ?", "tell me about it"])
def test_follow_ups_detected(text) -> None:
    assert is_follow_up(text)


def test_full_questions_are_not_follow_ups() -> None:
    assert not is_follow_up("when is rush week")
