import json

from apa_checker.llm.normalize import (
    AnchorPhrases,
    extract_json_object,
    format_issue_title,
    map_severity,
    normalize,
    parse_fix_suggestion,
    strip_code_fences,
)

CONTENT = {
    "overallScore": 80,
    "issues": [{
        "type": "tone",
        "severity": "moderate",
        "description": "Too casual",
        "suggestion": "Use formal wording",
        "highlightText": "a lot of",
    }],
}


def test_fenced_response_parses():
    raw = "```json\n" + json.dumps(CONTENT) + "\n```"
    issues = normalize(raw, "content")
    assert len(issues) == 1
    i = issues[0]
    assert i.title == "AI: Academic Tone Issue"
    assert i.severity == "Major"
    assert i.category == "ai-content"
    assert i.text == "a lot of"
    assert i.ai_generated and not i.has_fix
    assert i.ai_details["overallScore"] == 80


def test_prose_around_json():
    raw = 'Sure! Here is the analysis: {"issues": [{"type": "x", "description": "use {braces} \\"here\\""}]} Hope it helps.'
    issues = normalize(raw, "content")
    assert len(issues) == 1
    assert issues[0].description == 'use {braces} "here"'


def test_unparsable_gives_one_fallback():
    for raw in ["not json at all", "", None, "[1, 2, 3]", "{broken"]:
        issues = normalize(raw, "structure")
        assert len(issues) == 1
        assert issues[0].severity == "Minor"
        assert issues[0].category == "ai-structure"
        assert issues[0].document_level
        assert issues[0].ai_details["type"] == "parsing-error"


def test_severity_mapping():
    assert map_severity("moderate") == "Major"
    assert map_severity("MINOR") == "Minor"
    assert map_severity("major") == "Critical"
    assert map_severity("critical") == "Critical"
    assert map_severity("catastrophic") == "Minor"
    assert map_severity(None) == "Minor"


def test_unknown_issue_type_title():
    assert format_issue_title("novelty") == "Novelty Issue"
    assert format_issue_title("flow") == "Logical Flow Issue"
    assert format_issue_title(None) == "General Issue"


def test_extract_json_object_balanced():
    assert extract_json_object('x {"a": {"b": "}"}} y {"c": 1}') == '{"a": {"b": "}"}}'
    assert extract_json_object("no object") is None


def test_structure_issues_are_minor_and_unanchored():
    raw = json.dumps({
        "structureScore": 70,
        "issues": [{"type": "hierarchy", "description": "Skipped a level", "suggestion": "Add a Level 2 heading"}],
        "missingElements": ["Abstract"],
    })
    issues = normalize(raw, "structure", document_text="Anything at all.")
    assert len(issues) == 1
    assert issues[0].title == "AI: Heading Hierarchy Issue"
    assert issues[0].severity == "Minor"
    assert issues[0].document_level
    assert issues[0].ai_details["missingElements"] == ["Abstract"]


def test_citation_issues():
    raw = json.dumps({
        "citations": [{
            "text": "(Smith, 2023)",
            "issues": ["Missing page number", "Claim overstated"],
            "suggestions": ["Add a page number"],
            "accuracy": "poor",
        }],
        "missingCitations": [{"description": "Statistic needs a source", "highlightText": "75% of students"}, "Another claim"],
    })
    issues = normalize(raw, "citations")
    assert [i.severity for i in issues] == ["Major", "Major", "Major", "Major"]
    assert issues[0].text == "(Smith, 2023)"
    assert issues[0].explanation == "Add a page number"
    assert issues[2].text == "75% of students"
    assert issues[3].description == "Another claim"
    assert issues[3].text is None


def test_anchor_synthesis_for_tone():
    raw = json.dumps({"issues": [{"type": "tone", "severity": "minor", "description": "Informal tone in places"}]})
    issues = normalize(raw, "content", document_text="There are A lot of reasons to care.")
    assert issues[0].text == "A lot of"
    assert not issues[0].document_level


def test_anchor_synthesis_for_missing_citation():
    phrases = AnchorPhrases(statistic_patterns=[r"\d+%[^()\n.]*"])
    raw = json.dumps({"missingCitations": ["Statistic is missing a citation"]})
    text = "Others (Lee, 2020) disagree that 40% of cases (Lee, 2020) matter. Overall, 75% of students improved."
    issues = normalize(raw, "citations", document_text=text, phrases=phrases)
    assert issues[0].text == "75% of students improved"


def test_no_anchor_match_stays_document_level():
    raw = json.dumps({"issues": [{"type": "clarity", "description": "Could be clearer"}]})
    issues = normalize(raw, "content", document_text="Short and plain.", phrases=AnchorPhrases(wordy=["the reason why"]))
    assert issues[0].text is None
    assert issues[0].document_level


def test_parse_fix_suggestion():
    raw = "```json\n" + json.dumps({
        "explanation": "Numbers need sources",
        "steps": ["1. Find the source", "2. Cite it"],
        "examples": {"before": "75% improved", "after": "75% improved (Lee, 2020)"},
    }) + "\n```"
    fix = parse_fix_suggestion(raw)
    assert fix.explanation == "Numbers need sources"
    assert len(fix.steps) == 2
    assert fix.tips == []
    assert fix.examples["after"].endswith("(Lee, 2020)")
    assert parse_fix_suggestion("I cannot help with that") is None


def test_only_wrapping_fence_is_stripped():
    body = {"issues": [{"type": "clarity", "description": "Use ``` for code"}]}
    raw = "```json\n" + json.dumps(body) + "\n```"
    issues = normalize(raw, "content")
    assert issues[0].description == "Use ``` for code"
    assert strip_code_fences("```\n{}\n```") == "{}"
    assert strip_code_fences('{"a": "```"}') == '{"a": "```"}'


def test_non_string_anchors_are_dropped():
    raw = json.dumps({
        "citations": [{"text": {"raw": "(Smith, 2023)"}, "highlightText": 42, "issues": ["Wrong year"]}],
        "missingCitations": [{"description": "Needs a source", "highlightText": ["75%"]}],
    })
    issues = normalize(raw, "citations")
    assert [i.text for i in issues] == [None, None]
    assert all(i.document_level for i in issues)

    raw = json.dumps({"issues": [{"type": "evidence", "description": "x", "highlightText": 42, "examples": ["a lot of"]}]})
    assert normalize(raw, "content")[0].text == "a lot of"
