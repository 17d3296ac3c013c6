"""Early intent classification for inbound messages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

Intent = Literal["content_query", "enclave_help", "action_request", "smalltalk", "abusive", "keyword"]

_KEYWORD = re.compile(r"^(stop|start|help)$", re.IGNORECASE)
_ABUSIVE = re.compile(r"(retard|retarded|idiot|stupid|dumb|kill yourself)", re.IGNORECASE)
_SMALLTALK = re.compile(
    r"^(yo|hey|hi|hello|sup|what's up|whats up|wassup|wyd|ok|k|bet|fine bro)$", re.IGNORECASE
)
_PRODUCT_HELP = re.compile(
    r"(what do you do|how do you work|what are you|what is enclave|enclave)", re.IGNORECASE
)
_ACTION_REQUEST = re.compile(r"^(vote|record my vote|resend|opt ?in)\b", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_POLL_WORDS = frozenset({"yes", "no", "maybe", "y", "n", "a", "b", "c", "d"})


@dataclass(slots=True)
class EarlyIntent:
    intent: Intent
    is_smalltalk: bool = False
    is_abusive: bool = False
    is_poll_answer_likely: bool = False


def _likely_poll_answer(lower: str) -> bool:
    if not lower or len(lower) > 24 or lower.endswith("?"):
        return False
    if re.fullmatch(r"\d{1,2}", lower):
        return True
    return _NON_ALNUM.sub("", lower).strip() in _POLL_WORDS


def classify_intent(text: str) -> EarlyIntent:
    stripped = (text or "").strip()
    lower = stripped.lower()

    if _KEYWORD.match(stripped):
        return EarlyIntent(intent="keyword")

    abusive = bool(_ABUSIVE.search(lower))
    small = bool(_SMALLTALK.match(lower))
    if abusive:
        return EarlyIntent(intent="abusive", is_smalltalk=small, is_abusive=True)
    if small:
        return EarlyIntent(intent="smalltalk", is_smalltalk=True)
    if _PRODUCT_HELP.search(lower):
        return EarlyIntent(intent="enclave_help")

    likely_poll = _likely_poll_answer(lower)
    if likely_poll or _ACTION_REQUEST.match(lower):
        return EarlyIntent(intent="action_request", is_poll_answer_likely=likely_poll)
    return EarlyIntent(intent="content_query")
