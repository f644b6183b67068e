from apa_checker.ir import Issue, IssueLocation, Span
from apa_checker.positions import (
    build_position_map,
    enrich_issues_with_positions,
    find_text,
    resolve,
    validate_position,
)
from apa_checker.tree import Node, node_size, text_between


def _doc(middle="very good"):
    return Node.doc(
        Node.heading(1, "Introduction"),
        Node.paragraph("The results were ", middle, " overall."),
    )


def test_position_map_blocks():
    pmap = build_position_map(_doc())
    assert len(pmap) == 2
    assert pmap.block(0).tree_position == 0
    assert pmap.block(1).tree_position == node_size(Node.heading(1, "Introduction"))
    assert pmap.block(1).text_content == "The results were very good overall."
    assert pmap.block(2) is None


def test_literal_resolve_spans_formatting_runs():
    root = _doc()
    span = resolve(None, build_position_map(root), literal_text="were very", tree_root=root)
    assert span.end - span.start == len("were very")
    assert text_between(root, span.start, span.end) == "were very"


def test_literal_found_once():
    root = _doc()
    span = find_text(root, "very good")
    assert span == Span(32, 41)
    assert text_between(root, span.start, span.end) == "very good"


def test_case_insensitive_search():
    root = _doc()
    assert find_text(root, "VERY GOOD") is None
    assert find_text(root, "VERY GOOD", case_sensitive=False) == Span(32, 41)


def test_literal_search_after_hard_break():
    root = Node.doc(Node.paragraph("line one", Node("hard_break"), "line two"))
    span = find_text(root, "line two")
    assert span == Span(10, 18)
    assert text_between(root, span.start, span.end) == "line two"


def test_index_path_without_literal():
    root = _doc()
    span = resolve(IssueLocation(1, 4, 7), build_position_map(root))
    assert text_between(root, span.start, span.end) == "results"


def test_index_out_of_range_returns_none():
    root = _doc()
    pmap = build_position_map(root)
    assert resolve(IssueLocation(5, 0, 3), pmap) is None
    assert resolve(IssueLocation(1, 30, 20), pmap) is None
    assert resolve(None, pmap) is None


def test_literal_miss_is_final():
    root = _doc()
    assert resolve(IssueLocation(1, 0, 3), build_position_map(root), literal_text="absent", tree_root=root) is None


def test_validate_position_detects_edit():
    before = _doc()
    span = find_text(before, "very good")
    assert validate_position(before, span, "very good")

    after = _doc(middle="very fine")
    assert not validate_position(after, span, "very good")
    assert not validate_position(after, Span(30, 500), "very good")


def test_enrich_keeps_unplaced_issues():
    root = _doc()
    issues = [
        Issue(id="a", title="t", description="d", severity="Minor", category="formatting", text="Introduction"),
        Issue(id="b", title="t", description="d", severity="Minor", category="ai-content",
              text="THE RESULTS...", ai_generated=True),
        Issue(id="c", title="t", description="d", severity="Minor", category="formatting", text="nowhere"),
        Issue(id="d", title="t", description="d", severity="Minor", category="content"),
    ]
    out = enrich_issues_with_positions(issues, root)
    assert [i.id for i in out] == ["a", "b", "c", "d"]
    assert text_between(root, out[0].position.start, out[0].position.end) == "Introduction"
    assert text_between(root, out[1].position.start, out[1].position.end) == "The results"
    assert out[2].position is None
    assert out[3].position is None
    assert issues[0].position is None


def test_leaf_block_is_one_position():
    root = Node.doc(Node.paragraph("a"), Node("horizontalRule"), Node.paragraph("b"))
    assert node_size(Node("horizontalRule")) == 1
    assert node_size(Node.paragraph()) == 2
    pmap = build_position_map(root)
    assert [b.text_content for b in pmap.blocks] == ["a", "b"]
    assert pmap.block(1).tree_position == 4
    span = find_text(root, "b")
    assert span == Span(5, 6)
    assert text_between(root, span.start, span.end) == "b"


def test_empty_paragraph_is_still_a_block():
    root = Node.doc(Node.paragraph(), Node.paragraph("after"))
    pmap = build_position_map(root)
    assert [b.text_content for b in pmap.blocks] == ["", "after"]
    assert find_text(root, "after") == Span(3, 8)


def test_hard_break_reads_as_space():
    root = Node.doc(Node.paragraph("line one", Node("hard_break"), "line two"))
    assert build_position_map(root).block(0).text_content == "line one line two"
    span = find_text(root, "one line")
    assert span == Span(6, 14)
    assert text_between(root, span.start, span.end) == "one line"
