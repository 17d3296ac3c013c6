from enclave_rag.config import ContextConfig
from enclave_rag.context.builder import ContextWindowBuilder
from enclave_rag.types import Record


def _record(idx: int, body: str = "Body text.") -> Record:
    return Record(id=f"r{idx}", title=f"Doc {idx}", type="doc", body=body)


def test_block_layout_with_url_and_tags() -> None:
    record = Record(
        id="r1",
        title="Active Meeting",
        type="event",
        body="Weekly   meeting\n\nat Kelton.",
        url="https://example.org/active",
        tags=["events", "", "required"],
    )
    block = ContextWindowBuilder().render_block(record)
    assert block == (
        "Title: Active Meeting\n"
        "Type: event\n"
        "URL: https://example.org/active\n"
        "Tags: events, required\n"
        "Content: Weekly meeting at Kelton.\n"
        "---\n"
    )


def test_long_bodies_are_capped_with_ellipsis() -> None:
    builder = ContextWindowBuilder(ContextConfig(snippet_chars=700))
    block = builder.render_block(_record(1, body="x" * 900))
    assert "Content: " + "x" * 700 + "…\n" in block


def test_blocks_are_atomic_and_budget_holds() -> None:
    builder = ContextWindowBuilder()
    records = [_record(i, body="word " * 50) for i in range(10)]
    one_block = len(builder.render_block(records[0]))

    budget = one_block * 3 + 2
    output = builder.build(records, max_chars=budget)

    assert len(output) <= budget
    assert output.count("---\n") == 3
    assert output.endswith("---\n")


def test_budget_never_exceeded_for_any_size() -> None:
    builder = ContextWindowBuilder()
    records = [_record(i, body="alpha beta " * i) for i in range(12)]
    for budget in range(0, 2500, 37):
        assert len(builder.build(records, max_chars=budget)) <= budget


def test_build_is_idempotent() -> None:
    builder = ContextWindowBuilder()
    records = [_record(i) for i in range(5)]
    assert builder.build(records, 400) == builder.build(records, 400)


def test_oversized_first_block_emits_nothing_by_default() -> None:
    builder = ContextWindowBuilder()
    assert builder.build([_record(1, body="y" * 500)], max_chars=50) == ""


def test_oversized_first_block_can_be_truncated() -> None:
    builder = ContextWindowBuilder(ContextConfig(truncate_oversized_first_block=True))
    output = builder.build([_record(1, body="y" * 500), _record(2)], max_chars=50)
    assert len(output) == 50
    assert output.startswith("Title: Doc 1")
    assert output.endswith("…")


def test_default_budget_comes_from_config() -> None:
    builder = ContextWindowBuilder(ContextConfig(max_chars=30))
    assert builder.build([_record(1), _record(2)]) == ""
    assert builder.build([]) == ""
