import pytest

from enclave_rag.answer.combiner import CLARIFY_BELOW, calibrate, combine
from enclave_rag.nlp.intent import classify_intent
from enclave_rag.types import ActionProposal, LayerItem


@pytest.mark.parametrize(
    "text,intent",
    [
        ("STOP", "keyword"),
        ("help", "keyword"),
        ("you're an idiot", "abusive"),
        ("hey", "smalltalk"),
        ("what is enclave", "enclave_help"),
        ("yes", "action_request"),
        ("2", "action_request"),
        ("record my vote for B", "action_request"),
        ("when is active meeting", "content_query"),
        ("yes?", "content_query"),
    ],
)
def test_classify_intent(text, intent) -> None:
    assert classify_intent(text).intent == intent


def test_poll_answer_flag() -> None:
    assert classify_intent("Yes!").is_poll_answer_likely
    assert not classify_intent("resend the poll").is_poll_answer_likely


def _item(layer, score, snippet="snippet", proposal=None) -> LayerItem:
    return LayerItem(layer=layer, id=f"{layer}-{score}", snippet=snippet, score=score, proposal=proposal)


def test_calibrate_boosts_agreement() -> None:
    assert calibrate([_item("content", 0.7)], [_item("enclave", 0.5)]) == pytest.approx(0.85)
    assert calibrate([_item("content", 0.7)], [_item("enclave", 0.3)]) == pytest.approx(0.7)
    assert calibrate([_item("content", 0.95)], [_item("enclave", 0.9)]) == 1.0
    assert calibrate([], []) == 0.0


def test_action_request_with_pending_poll_executes() -> None:
    proposal = ActionProposal(kind="record_vote", preview_text="Pending poll: Rush?", payload={"poll_id": "p1"})
    decision = combine(
        "action_request",
        [_item("content", 0.9), _item("action", 0.8, "Pending poll: Rush?", proposal)],
    )
    assert decision.type == "execute_action"
    assert decision.action is proposal
    assert decision.confidence == pytest.approx(0.7)


def test_content_query_answers_from_top_content() -> None:
    decision = combine("content_query", [_item("content", 0.9, "Study hall is Tuesday")])
    assert decision.type == "answer"
    assert decision.message == "Study hall is Tuesday"


def test_content_query_without_hits_clarifies() -> None:
    decision = combine("content_query", [_item("enclave", 0.9)])
    assert decision.type == "clarify"
    assert decision.confidence == pytest.approx(0.2)


def test_low_confidence_clarifies() -> None:
    decision = combine("content_query", [_item("content", CLARIFY_BELOW - 0.05)])
    assert decision.type == "clarify"


def test_help_uses_reference_layer() -> None:
    decision = combine("enclave_help", [_item("enclave", 0.6, "Enclave answers questions")])
    assert decision.type == "answer"
    assert decision.message == "Enclave answers questions"


def test_unhandled_intent_clarifies() -> None:
    assert combine("keyword", []).type == "clarify"
