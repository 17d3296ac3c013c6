"""TwiML rendering of outgoing SMS replies."""

from __future__ import annotations

from collections.abc import Sequence
from xml.sax.saxutils import escape

from enclave_rag.sms.segmenter import DEFAULT_MAX_LENGTH, split_message

FALLBACK_MESSAGE = "I couldn't process that request."


def to_twiml(messages: Sequence[str], max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """One ``<Message>`` per carrier-safe segment of every message."""
    parts: list[str] = []
    for message in messages or [FALLBACK_MESSAGE]:
        parts.extend(split_message(message, max_length))

    body = "\n".join(f"  <Message>{escape(part)}</Message>" for part in parts)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<Response>\n{body}\n</Response>'
