"""Carrier-safe message splitting."""

from __future__ import annotations

import re

DEFAULT_MAX_LENGTH = 1600
_SENTENCE_END = ".?!"
_WHITESPACE = re.compile(r"\s+")


def _sentence_cut(window: str, minimum: int) -> int | None:
    """Cut just after the last sentence end or at the last newline."""
    best: int | None = None
    for idx in range(len(window) - 1, minimum - 2, -1):
        if window[idx] in _SENTENCE_END and (idx + 1 == len(window) or window[idx + 1] == " "):
            if idx + 1 >= minimum:
                best = idx + 1
            break
    newline = window.rfind("\n")
    if newline >= minimum and (best is None or newline > best):
        best = newline
    return best


def _word_cut(window: str, minimum: int) -> int | None:
    idx = max(window.rfind(" "), window.rfind("\t"))
    return idx if idx >= minimum else None


def split_message(message: str, max_length: int = DEFAULT_MAX_LENGTH) -> list[str]:
    """Split ``message`` into trimmed segments of at most ``max_length`` chars.

    Cuts prefer the last sentence end, then the last newline, then the last
    space, and only then a hard cut at ``max_length``. No soft cut is taken
    before half the window, so segments never get too short.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")
    if len(message) <= max_length:
        return [message]

    minimum = max(1, int(max_length * 0.5))
    segments: list[str] = []
    remaining = message.strip()
    while len(remaining) > max_length:
        window = remaining[:max_length]
        cut = _sentence_cut(window, minimum) or _word_cut(window, minimum) or max_length
        segment = remaining[:cut].strip()
        if segment:
            segments.append(segment)
        remaining = remaining[cut:].lstrip()
    if remaining:
        segments.append(remaining)
    return segments


def tighten(s: str, max_chars: int = 300) -> str:
    """Collapse to a single line and truncate with an ellipsis."""
    one_line = _WHITESPACE.sub(" ", s).strip()
    if len(one_line) <= max_chars:
        return one_line
    return one_line[: max_chars - 1] + "…"
