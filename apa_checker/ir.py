from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Literal
import hashlib

Severity = Literal["Minor", "Major", "Critical"]
SEVERITIES = ("Minor", "Major", "Critical")


def mk_issue_id(seed: str, prefix: str = "") -> str:
    return prefix + hashlib.sha1(seed.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True)
class IssueLocation:
    paragraph_index: int
    char_offset: int = 0
    length: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "paragraphIndex": self.paragraph_index,
            "charOffset": self.char_offset,
            "length": self.length,
        }


@dataclass(frozen=True)
class Span:
    start: int  # "from" in the serialized form
    end: int

    def to_dict(self) -> Dict[str, int]:
        return {"from": self.start, "to": self.end}


@dataclass
class Issue:
    id: str
    title: str
    description: str
    severity: Severity
    category: str
    rule_id: str = ""
    text: Optional[str] = None
    location: Optional[IssueLocation] = None
    document_level: bool = False
    has_fix: bool = False
    fix_action: Optional[str] = None
    explanation: str = ""
    ai_generated: bool = False
    ai_details: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Span] = None

    def __post_init__(self) -> None:
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity {self.severity!r} for issue {self.id}")
        if self.has_fix and not self.fix_action:
            raise ValueError(f"Issue {self.id} is marked fixable but has no fix_action")
        if not self.text and self.location is None:
            # Nothing to anchor on: the issue describes the document as a whole
            self.document_level = True

    @property
    def anchor_text(self) -> Optional[str]:
        """Literal used to locate the issue, without display truncation."""
        if not isinstance(self.text, str) or not self.text:
            return None
        t = self.text
        if t.endswith("..."):
            t = t[:-3].rstrip()
        return t if len(t) >= 2 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "category": self.category,
            "text": self.text,
            "location": self.location.to_dict() if self.location else None,
            "documentLevel": self.document_level,
            "hasFix": self.has_fix,
            "fixAction": self.fix_action,
            "explanation": self.explanation,
            "aiGenerated": self.ai_generated,
            "aiDetails": self.ai_details or None,
            "position": self.position.to_dict() if self.position else None,
        }


@dataclass
class Heading:
    level: int
    text: str


@dataclass
class StructureSummary:
    headings: List[Heading] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StructureSummary":
        data = data or {}
        headings = [
            Heading(level=int(h.get("level", 1)), text=str(h.get("text", "")))
            for h in (data.get("headings") or [])
            if isinstance(h, dict)
        ]
        paragraphs = [str(p) for p in (data.get("paragraphs") or [])]
        return cls(headings=headings, paragraphs=paragraphs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headings": [{"level": h.level, "text": h.text} for h in self.headings],
            "paragraphs": list(self.paragraphs),
        }
