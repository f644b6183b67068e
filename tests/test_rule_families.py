import pytest

from apa_checker.adapters.docx_adapter import snapshot_from_tree
from apa_checker.ir import Heading, StructureSummary
from apa_checker.positions import enrich_issues_with_positions
from apa_checker.rules.base import RuleFamily, context_window, location_at, run_rule_families
from apa_checker.rules.families import (
    DataAvailabilityRules,
    FootnoteRules,
    LegalReferenceRules,
    QuotationRules,
    SupplementalMaterialRules,
    default_families,
)
from apa_checker.tree import Node, text_between

SAMPLE = "\n".join([
    "Method",
    "Participants were recruited online [1] and via flyers.",
    "Results",
    "As noted in Brown v. Board of Education, 347 U.S. 483 (1954), access matters.",
    "\"This is the end.... of the line\" (Lee, 2019).",
    "Smith (2020) and (Smith, 2020) agree; see supplementary data for details.",
    "(Smith, Jones, and Lee, 2020) reported it.",
    "(Smith, Jones, et al., 2021) replicated it.",
])

ODD_INPUTS = ["", " ", "(", ")", "((((", "$$", "\"", "…", "....", "v. ", "@", "(, n.d.)", "References\n", " ¹"]


@pytest.mark.parametrize("text", ODD_INPUTS)
def test_families_never_raise(text):
    for family in default_families():
        issues = family.validate(text)
        assert isinstance(issues, list)


def test_empty_text_yields_no_issues():
    for family in default_families():
        assert family.validate("") == []
    assert run_rule_families(default_families(), "") == []


def test_fixable_issues_carry_fix_action():
    issues = run_rule_families(default_families(), SAMPLE)
    assert issues
    for i in issues:
        if i.has_fix:
            assert i.fix_action


def test_failing_family_does_not_suppress_others():
    class Broken(RuleFamily):
        name = "broken"

        def validate(self, text, structure=None):
            raise RuntimeError("boom")

    errors = []
    issues = run_rule_families([Broken(), FootnoteRules()], "See note [1].", errors=errors)
    assert [i.rule_id for i in issues] == ["apa.footnotes.present", "apa.footnotes.bracket_format"]
    assert len(errors) == 1 and "broken" in errors[0]


def test_footnote_issue_has_location():
    text = "Intro line\nSee note [2] here."
    issues = FootnoteRules().validate(text)
    loc = issues[0].location
    assert (loc.paragraph_index, loc.char_offset, loc.length) == (1, 9, 3)
    assert location_at(text, 0, 5).paragraph_index == 0


def test_legal_case_reported_once():
    text = "Roe v. Wade and Brown v. Board were both cited."
    issues = LegalReferenceRules().validate(text)
    assert [i.rule_id for i in issues] == ["apa.legal.case_italics"]


def test_reported_types_are_per_call():
    fam = LegalReferenceRules()
    text = "Roe v. Wade was cited."
    assert len(fam.validate(text)) == 1
    assert len(fam.validate(text)) == 1


def test_data_availability_from_text_sections():
    text = "Method\nWe surveyed students.\nResults\nScores rose."
    issues = DataAvailabilityRules().validate(text)
    assert len(issues) == 1
    assert issues[0].document_level
    assert issues[0].text is None


def test_data_availability_from_structure_and_statement():
    structure = StructureSummary(headings=[Heading(1, "Methods"), Heading(1, "Results")])
    assert len(DataAvailabilityRules().validate("Body text.", structure)) == 1
    assert DataAvailabilityRules().validate("The data are publicly available on OSF.", structure) == []


def test_supplemental_naming():
    issues = SupplementalMaterialRules().validate("Results are available in supplementary data online.")
    assert [i.rule_id for i in issues] == ["apa.supplemental.naming"]
    assert SupplementalMaterialRules().validate("See Supplemental Table S1 for details.") == []


def test_long_quote_needs_block_format():
    quote = " ".join(["word"] * 45)
    issues = QuotationRules().validate(f"He wrote \"{quote}\" and moved on.")
    ids = [i.rule_id for i in issues]
    assert ids == ["apa.quotations.block_quote_marks", "apa.quotations.block_quote_citation"]
    assert issues[0].severity == "Major"
    assert issues[0].fix_action == "convertToBlockQuote"


def test_four_dot_ellipsis():
    issues = QuotationRules().validate("\"This is the end.... of it\" (Lee, 2019)")
    assert [i.fix_action for i in issues] == ["fixFourDots"]


def test_context_window_stays_on_its_line():
    text = "Short intro.\nBrown v. Board was decided.\nNext paragraph."
    start = text.index("v.")
    assert context_window(text, start, 30, 50) == "Brown v. Board was decided."
    assert context_window("abc", 1, 5, 5) == "abc"


def test_legal_anchor_resolves_to_tree_position():
    root = Node.doc(Node.paragraph("Short intro."), Node.paragraph("Brown v. Board was decided."))
    snap = snapshot_from_tree(root)
    issues = LegalReferenceRules().validate(snap.text)
    assert "\n" not in issues[0].text
    placed = enrich_issues_with_positions(issues, root)[0]
    assert placed.position is not None
    assert text_between(root, placed.position.start, placed.position.end) == issues[0].text


def test_snapshot_reads_hard_break_as_space():
    root = Node.doc(Node.paragraph("line one", Node("hard_break"), "Next"))
    assert snapshot_from_tree(root).text == "line one Next"
