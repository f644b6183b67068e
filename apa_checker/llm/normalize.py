"""
Turns model responses into Issues.

Model output is semi-structured: usually JSON, sometimes wrapped in markdown
fences or surrounded by prose, occasionally not JSON at all. Everything here
is defensive. A response that cannot be parsed becomes exactly one
diagnostic issue; nothing in this module raises on bad model output.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json
import logging
import re

from apa_checker.ir import Issue, Severity, mk_issue_id

logger = logging.getLogger(__name__)

KINDS = ("content", "structure", "citations")

_LEADING_FENCE = re.compile(r"\A\s*```[A-Za-z]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```\s*\Z")

_SEVERITY_MAP: Dict[str, Severity] = {
    "minor": "Minor",
    "moderate": "Major",
    "major": "Critical",
    "critical": "Critical",
}

_TITLE_MAP = {
    "tone": "Academic Tone Issue",
    "clarity": "Clarity Improvement Needed",
    "structure": "Structure Enhancement",
    "evidence": "Evidence Quality Issue",
    "transitions": "Transition Improvement",
    "hierarchy": "Heading Hierarchy Issue",
    "flow": "Logical Flow Issue",
}

_FALLBACK = {
    "content": (
        "AI: Content Analysis Available",
        "AI detected potential writing improvements but response needs manual review",
        "AI analysis completed but couldn't parse specific recommendations.",
    ),
    "structure": (
        "AI: Structure Analysis Available",
        "AI analyzed document structure but response needs manual review",
        "AI structure analysis completed but the response could not be parsed.",
    ),
    "citations": (
        "AI: Citation Analysis Available",
        "AI analyzed citations but response needs manual review",
        "AI citation analysis completed but the response could not be parsed.",
    ),
}


@dataclass
class AnchorPhrases:
    """Phrase lists used to find an anchor when the model gives none."""
    informal: List[str] = field(default_factory=list)
    wordy: List[str] = field(default_factory=list)
    statistic_patterns: List[str] = field(default_factory=list)


@dataclass
class FixSuggestion:
    explanation: str
    steps: List[str] = field(default_factory=list)
    examples: Dict[str, Any] = field(default_factory=dict)
    tips: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "explanation": self.explanation,
            "steps": list(self.steps),
            "examples": dict(self.examples),
            "tips": list(self.tips),
            "resources": list(self.resources),
        }


def strip_code_fences(raw: str) -> str:
    """Remove one wrapping fence pair; fences inside the payload are left alone."""
    s = _LEADING_FENCE.sub("", raw, count=1)
    s = _TRAILING_FENCE.sub("", s, count=1)
    return s.strip()


def extract_json_object(text: str) -> Optional[str]:
    """
    First balanced ``{...}`` in ``text``.

    Braces inside JSON strings (including escaped quotes) do not count.
    Returns None if no object closes.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from here; try the next opening brace
        start = text.find("{", start + 1)
    return None


def parse_model_json(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parsed JSON object from a model response, or None."""
    if not raw:
        return None
    cleaned = strip_code_fences(raw)
    candidate = extract_json_object(cleaned)
    for attempt in (candidate, cleaned):
        if not attempt:
            continue
        try:
            data = json.loads(attempt)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def map_severity(value: Any) -> Severity:
    if isinstance(value, str):
        return _SEVERITY_MAP.get(value.strip().lower(), "Minor")
    return "Minor"


def format_issue_title(issue_type: Any) -> str:
    t = str(issue_type or "").strip()
    if not t:
        return "General Issue"
    if t.lower() in _TITLE_MAP:
        return _TITLE_MAP[t.lower()]
    return f"{t[0].upper()}{t[1:]} Issue"


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def _text_or_none(value: Any) -> Optional[str]:
    """Model anchors are used only when they are non-empty strings."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _first_phrase(text: str, phrases: List[str]) -> Optional[str]:
    lowered = text.lower()
    for phrase in phrases:
        idx = lowered.find(phrase.lower())
        if idx != -1:
            # Original casing from the document
            return text[idx:idx + len(phrase)]
    return None


_CITED_RE = re.compile(r"\([^)]*\d{4}[^)]*\)")


def _first_uncited_statistic(text: str, patterns: List[str]) -> Optional[str]:
    for pattern in patterns:
        for m in re.finditer(pattern, text, re.IGNORECASE):
            sentence_end = text.find(".", m.end())
            rest = text[m.start():sentence_end if sentence_end != -1 else len(text)]
            if not _CITED_RE.search(rest):
                return m.group(0).strip()
    return None


def synthesize_anchor(issue: Issue, document_text: Optional[str], phrases: AnchorPhrases) -> Optional[str]:
    """Best-effort literal anchor for an issue the model left unanchored."""
    if not document_text:
        return None
    desc = issue.description.lower()
    issue_type = str(issue.ai_details.get("type") or "").lower()

    if issue.category == "ai-content":
        if "formal" in desc or "tone" in desc or issue_type == "tone":
            hit = _first_phrase(document_text, phrases.informal)
            if hit:
                return hit
        if "clarity" in desc or "concise" in desc or issue_type == "clarity":
            hit = _first_phrase(document_text, phrases.wordy)
            if hit:
                return hit

    if issue.category == "ai-citations" and "missing" in desc:
        return _first_uncited_statistic(document_text, phrases.statistic_patterns)
    return None


def fallback_issue(kind: str, raw: Optional[str]) -> Issue:
    title, description, explanation = _FALLBACK.get(kind, _FALLBACK["content"])
    return Issue(
        id=mk_issue_id(f"{kind}|parsing-error|{(raw or '')[:500]}", prefix="llm_"),
        title=title,
        description=description,
        severity="Minor",
        category=f"ai-{kind}",
        rule_id=f"ai.{kind}.unparsed",
        document_level=True,
        explanation=explanation,
        ai_generated=True,
        ai_details={"type": "parsing-error", "rawResponse": (raw or "")[:500]},
    )


def _content_issues(data: Dict[str, Any]) -> List[Issue]:
    issues: List[Issue] = []
    for n, item in enumerate(_as_list(data.get("issues"))):
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object content issue #{n}")
            continue
        examples = [e for e in _as_list(item.get("examples")) if isinstance(e, str)]
        issue_type = item.get("type")
        description = str(item.get("description") or "")
        issues.append(Issue(
            id=mk_issue_id(f"content|{n}|{issue_type}|{description}", prefix="llm_"),
            title=f"AI: {format_issue_title(issue_type)}",
            description=description,
            severity=map_severity(item.get("severity")),
            category="ai-content",
            rule_id=f"ai.content.{str(issue_type or 'general').lower()}",
            text=_text_or_none(item.get("highlightText")) or (examples[0] if examples else None),
            explanation=str(item.get("suggestion") or ""),
            ai_generated=True,
            ai_details={
                "type": issue_type,
                "suggestion": item.get("suggestion"),
                "examples": examples,
                "highlightText": item.get("highlightText"),
                "overallScore": data.get("overallScore"),
            },
        ))
    return issues


def _structure_issues(data: Dict[str, Any]) -> List[Issue]:
    issues: List[Issue] = []
    missing = [str(m) for m in _as_list(data.get("missingElements"))]
    for n, item in enumerate(_as_list(data.get("issues"))):
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object structure issue #{n}")
            continue
        issue_type = item.get("type")
        description = str(item.get("description") or "")
        issues.append(Issue(
            id=mk_issue_id(f"structure|{n}|{issue_type}|{description}", prefix="llm_"),
            title=f"AI: {format_issue_title(issue_type)}",
            description=description,
            severity="Minor",
            category="ai-structure",
            rule_id=f"ai.structure.{str(issue_type or 'general').lower()}",
            explanation=str(item.get("suggestion") or ""),
            ai_generated=True,
            ai_details={
                "type": issue_type,
                "suggestion": item.get("suggestion"),
                "structureScore": data.get("structureScore"),
                "missingElements": missing,
            },
        ))
    return issues


def _citation_issues(data: Dict[str, Any]) -> List[Issue]:
    issues: List[Issue] = []
    for c, citation in enumerate(_as_list(data.get("citations"))):
        if not isinstance(citation, dict):
            continue
        suggestions = [str(s) for s in _as_list(citation.get("suggestions"))]
        accuracy = citation.get("accuracy")
        for n, problem in enumerate(_as_list(citation.get("issues"))):
            issues.append(Issue(
                id=mk_issue_id(f"citations|{c}|{n}|{problem}", prefix="llm_"),
                title="AI: Citation Context Issue",
                description=str(problem),
                severity="Major" if accuracy == "poor" else "Minor",
                category="ai-citations",
                rule_id="ai.citations.context",
                text=_text_or_none(citation.get("highlightText")) or _text_or_none(citation.get("text")),
                explanation=suggestions[0] if suggestions else "Review citation accuracy and context",
                ai_generated=True,
                ai_details={
                    "accuracy": accuracy,
                    "suggestions": suggestions,
                    "highlightText": citation.get("highlightText"),
                },
            ))

    for n, missing in enumerate(_as_list(data.get("missingCitations"))):
        entry = missing if isinstance(missing, dict) else {"description": str(missing)}
        description = str(entry.get("description") or "")
        issues.append(Issue(
            id=mk_issue_id(f"citations|missing|{n}|{description}", prefix="llm_"),
            title="AI: Missing Citation Detected",
            description=description,
            severity="Major",
            category="ai-citations",
            rule_id="ai.citations.missing",
            text=_text_or_none(entry.get("highlightText")),
            explanation="Consider adding a citation to support this claim or statement",
            ai_generated=True,
            ai_details={
                "type": "missing-citation",
                "suggestion": description,
                "highlightText": entry.get("highlightText"),
            },
        ))
    return issues


_BUILDERS = {
    "content": _content_issues,
    "structure": _structure_issues,
    "citations": _citation_issues,
}


def normalize(
    raw: Optional[str],
    kind: str,
    document_text: Optional[str] = None,
    phrases: Optional[AnchorPhrases] = None,
) -> List[Issue]:
    """
    Convert one model response of ``kind`` into Issues.

    Unanchored issues get a synthesized anchor from ``document_text`` when
    one of the smell phrases matches. ``phrases`` defaults to the lists in
    the bundled rule pack.
    """
    if kind not in _BUILDERS:
        raise ValueError(f"Unknown analysis kind {kind!r}; expected one of {KINDS}")

    data = parse_model_json(raw)
    if data is None:
        logger.warning(f"Could not parse {kind} model response: {(raw or '')[:200]!r}")
        return [fallback_issue(kind, raw)]

    try:
        issues = _BUILDERS[kind](data)
    except (TypeError, AttributeError, ValueError) as e:
        logger.warning(f"Malformed {kind} model response: {type(e).__name__}: {e}")
        return [fallback_issue(kind, raw)]

    if document_text:
        if phrases is None:
            from apa_checker.rules.load_rules import default_anchor_phrases
            phrases = default_anchor_phrases()
        for issue in issues:
            if issue.text:
                continue
            anchor = synthesize_anchor(issue, document_text, phrases)
            if anchor:
                issue.text = anchor
                issue.document_level = False

    logger.info(f"Normalized {len(issues)} {kind} issues from model response")
    return issues


def parse_fix_suggestion(raw: Optional[str]) -> Optional[FixSuggestion]:
    data = parse_model_json(raw)
    if data is None:
        logger.warning("Could not parse fix suggestion response")
        return None
    examples = data.get("examples")
    return FixSuggestion(
        explanation=str(data.get("explanation") or ""),
        steps=[str(s) for s in _as_list(data.get("steps"))],
        examples=examples if isinstance(examples, dict) else {},
        tips=[str(t) for t in _as_list(data.get("tips"))],
        resources=[str(r) for r in _as_list(data.get("resources"))],
    )
