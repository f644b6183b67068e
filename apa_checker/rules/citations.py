"""
Citation cross-reference validation.

Unlike the single-pattern families, these checks need document-wide
bookkeeping: which author/year pairs appear, in which citation style, and
with which letter suffixes. All of it is built fresh inside validate().
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple
import re

from apa_checker.ir import Issue, StructureSummary
from apa_checker.rules.base import RuleFamily, first_unreported, truncate

_MONTHS = r"(?:January|February|March|April|May|June|July|August|September|October|November|December)"

NARRATIVE = re.compile(r"([A-Z][a-z]+(?:\s+(?:and|&)\s+[A-Z][a-z]+)*)\s+\((\d{4})([a-z])?\)")
PARENTHETICAL = re.compile(r"\(([^()]+,\s*\d{4}[a-z]?)\)")
_PARENTHETICAL_ITEM = re.compile(r"^(.+?),\s*(\d{4})([a-z])?\b")
_MULTI_AUTHOR = re.compile(r"\(((?:[A-Z][a-z]+,\s+){2,})(?:and|&)\s+[A-Z][a-z]+,\s+(\d{4}[a-z]?)\)")
_ET_AL = re.compile(r"\([^()]*et\s+al\.[^()]*\)")
_CAPITALIZED = re.compile(r"[A-Z][a-z]+")
_LONG_PAREN = re.compile(r"\([^()]{200,}\)")
_SECONDARY = re.compile(r"\([^()]*?\bcited\s+in\b[^()]*\)", re.IGNORECASE)
_SECONDARY_FORMAT = re.compile(
    r"\(([^,()]+),\s*(\d{4})[a-z]?,?\s*as\s+cited\s+in\s+([^,()]+),\s*(\d{4})[a-z]?\)", re.IGNORECASE
)
_PERSONAL = re.compile(r"\(([^,)]+),\s*personal\s+communication,?\s*([^)]*)\)", re.IGNORECASE)
_FULL_DATE = re.compile(rf",\s*{_MONTHS}\s+\d{{1,2}},\s*\d{{4}}")
_REFERENCES_HEADING = re.compile(r"^\s*References\s*$", re.MULTILINE)
_CORPORATE = re.compile(
    r"\((?:American\s+Psychological\s+Association|World\s+Health\s+Organization|National\s+Institute"
    r"|Centers\s+for\s+Disease|Department\s+of|Ministry\s+of|University\s+of)[^,)]*[,)]",
    re.IGNORECASE,
)
_NO_DATE = re.compile(r"\(([^,()]+),\s*n\.d\.\)")

RATIO_BOUNDS = (0.2, 5.0)


@dataclass(frozen=True)
class AuthorYearKey:
    authors: str
    year: str
    suffix: str = ""


def normalize_authors(raw: str) -> str:
    """Collapse '&' to 'and' and squeeze whitespace; case is preserved."""
    s = re.sub(r"\s*&\s*", " and ", raw)
    return " ".join(s.split())


def extract_citations(text: str, limit: int = 40) -> List[str]:
    """In-text citations in document order, without duplicates."""
    found = sorted(
        [(m.start(), m.group(0)) for m in NARRATIVE.finditer(text)]
        + [(m.start(), m.group(0)) for m in PARENTHETICAL.finditer(text)]
    )
    out: List[str] = []
    for _, c in found:
        if c not in out:
            out.append(c)
        if len(out) >= limit:
            break
    return out


@dataclass
class _StyleCount:
    narrative: int = 0
    parenthetical: int = 0


class CitationCrossReferenceValidator(RuleFamily):
    name = "citations"

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        if not text:
            return issues
        styles, first_seen = self._collect_citations(text)

        self._check_multiple_authors(issues, text)
        self._check_secondary_sources(issues, text)
        self._check_personal_communications(issues, text)
        self._check_corporate_authors(issues, text)
        self._check_no_date(issues, text)
        self._check_letter_suffixes(issues, styles, first_seen)
        self._check_style_balance(issues, styles)
        return issues

    def _collect_citations(self, text: str) -> Tuple[Dict[AuthorYearKey, _StyleCount], Dict[AuthorYearKey, str]]:
        styles: Dict[AuthorYearKey, _StyleCount] = {}
        first_seen: Dict[AuthorYearKey, str] = {}

        for m in NARRATIVE.finditer(text):
            key = AuthorYearKey(normalize_authors(m.group(1)), m.group(2), m.group(3) or "")
            styles.setdefault(key, _StyleCount()).narrative += 1
            first_seen.setdefault(key, m.group(0))

        for m in PARENTHETICAL.finditer(text):
            for part in m.group(1).split(";"):
                pm = _PARENTHETICAL_ITEM.match(part.strip())
                if not pm:
                    continue
                key = AuthorYearKey(normalize_authors(pm.group(1)), pm.group(2), pm.group(3) or "")
                styles.setdefault(key, _StyleCount()).parenthetical += 1
                first_seen.setdefault(key, m.group(0))
        return styles, first_seen

    def _check_multiple_authors(self, issues: List[Issue], text: str) -> None:
        reported: Set[str] = set()
        for m in _MULTI_AUTHOR.finditer(text):
            lead = m.group(1).split(",")[0].strip()
            year = m.group(2)
            later = re.compile(rf"\({re.escape(lead)},?\s+et\s+al\.")
            if later.search(text, m.end()):
                continue
            if not first_unreported(reported, f"{lead}|{year}"):
                continue
            self.issue(
                issues, "apa.citations.missing_et_al",
                title="Multiple authors citation may need et al.",
                description="Citations with 3+ authors should use 'et al.' after first mention",
                severity="Minor",
                category="citations",
                text=m.group(0),
                explanation=f"After first citation, use: ({lead} et al., {year})",
            )

        for m in _ET_AL.finditer(text):
            citation = m.group(0)
            # Only the citation group that carries the et al. counts, not earlier ';' groups
            before = citation.split("et al.")[0].split(";")[-1]
            if len(_CAPITALIZED.findall(before)) > 1:
                self.issue(
                    issues, "apa.citations.too_many_before_et_al",
                    title="Too many authors before et al.",
                    description="List only first author before 'et al.' for 3+ authors",
                    severity="Minor",
                    category="citations",
                    text=citation,
                    fix_action="simplifyEtAlCitation",
                    explanation="Format: (FirstAuthor et al., year) not (Author1, Author2, et al., year)",
                )

        for m in _LONG_PAREN.finditer(text):
            citation = m.group(0)
            if len(_CAPITALIZED.findall(citation)) <= 20:
                continue
            if "..." in citation or "…" in citation:
                continue
            self.issue(
                issues, "apa.citations.too_many_authors",
                title="Too many authors in citation",
                description="For 21+ authors, cite first 19, then '...', then last author",
                severity="Major",
                category="citations",
                text=truncate(citation, 50),
                explanation="Format: (Author1, Author2, ... Author19, ... LastAuthor, year)",
            )

    def _check_secondary_sources(self, issues: List[Issue], text: str) -> None:
        advised = False
        for m in _SECONDARY.finditer(text):
            citation = m.group(0)
            fm = _SECONDARY_FORMAT.fullmatch(citation)
            if fm is None:
                self.issue(
                    issues, "apa.citations.secondary_format",
                    title="Incorrect secondary source citation format",
                    description="Secondary citations need both original and secondary source years",
                    severity="Major",
                    category="citations",
                    text=citation,
                    explanation="Format: (OriginalAuthor, OriginalYear, as cited in SecondaryAuthor, SecondaryYear)",
                )
                continue
            if int(fm.group(2)) > int(fm.group(4)):
                self.issue(
                    issues, "apa.citations.secondary_order",
                    title="Secondary source citation out of order",
                    description="The original work cannot be newer than the source that cites it",
                    severity="Major",
                    category="citations",
                    text=citation,
                    explanation="Put the original work first and the citing work after 'as cited in'",
                )
                continue
            if not advised:
                advised = True
                self.issue(
                    issues, "apa.citations.secondary_used",
                    title="Secondary source used",
                    description="Consider finding and citing the primary source directly",
                    severity="Minor",
                    category="citations",
                    text=citation,
                    explanation="Only the secondary source should appear in references, not the original",
                )

    def _check_personal_communications(self, issues: List[Issue], text: str) -> None:
        refs = list(_REFERENCES_HEADING.finditer(text))
        reference_list = text[refs[-1].end():] if refs else ""

        for m in _PERSONAL.finditer(text):
            citation = m.group(0)
            if not _FULL_DATE.search(citation):
                self.issue(
                    issues, "apa.citations.personal_communication_date",
                    title="Personal communication missing full date",
                    description="Personal communications need full date (Month Day, Year)",
                    severity="Major",
                    category="citations",
                    text=citation,
                    explanation="Format: (J. Smith, personal communication, January 15, 2024)",
                )
            who = m.group(1).strip()
            if refs and m.start() < refs[-1].start() and who in reference_list \
                    and "personal communication" in reference_list.lower():
                self.issue(
                    issues, "apa.citations.personal_communication_reference",
                    title="Personal communication in references",
                    description="Personal communications should not appear in reference list",
                    severity="Major",
                    category="citations",
                    text=citation,
                    explanation="Personal communications are cited in text only, not in references",
                )

    def _check_corporate_authors(self, issues: List[Issue], text: str) -> None:
        reported: Set[str] = set()
        for m in _CORPORATE.finditer(text):
            full_name = m.group(0)[1:-1].strip()
            if "[" in full_name or len(full_name) <= 20:
                continue
            defined = re.search(rf"{re.escape(full_name)}\s*\[[A-Z]+\]", text[:m.start()])
            if defined or not first_unreported(reported, full_name):
                continue
            self.issue(
                issues, "apa.citations.corporate_abbreviation",
                title="Long corporate author without abbreviation",
                description="Define abbreviation for long organizational names on first use",
                severity="Minor",
                category="citations",
                text=m.group(0)[:-1],
                explanation="First use: (American Psychological Association [APA], 2020), then: (APA, 2020)",
            )

    def _check_no_date(self, issues: List[Issue], text: str) -> None:
        matches = list(_NO_DATE.finditer(text))
        reported: Set[str] = set()
        for m in matches:
            author = m.group(1).strip()
            dated = re.search(rf"\({re.escape(author)},\s*\d{{4}}", text)
            if dated and first_unreported(reported, author):
                self.issue(
                    issues, "apa.citations.mixed_dating",
                    title="Inconsistent dating for same author",
                    description=f"{author} has both dated and undated (n.d.) citations",
                    severity="Major",
                    category="citations",
                    text=m.group(0),
                    explanation="Verify if all works by this author have publication dates",
                )
        if len(matches) > 3:
            self.issue(
                issues, "apa.citations.many_undated",
                title="Multiple undated sources",
                description=f"Document has {len(matches)} n.d. citations - verify if dates can be found",
                severity="Minor",
                category="citations",
                document_level=True,
                explanation="Use (n.d.) only when publication date truly cannot be determined",
            )

    def _check_letter_suffixes(
        self,
        issues: List[Issue],
        styles: Dict[AuthorYearKey, _StyleCount],
        first_seen: Dict[AuthorYearKey, str],
    ) -> None:
        groups: Dict[Tuple[str, str], List[AuthorYearKey]] = {}
        for key in styles:
            if key.suffix:
                groups.setdefault((key.authors, key.year), []).append(key)

        for (author, year), keys in groups.items():
            keys.sort(key=lambda k: k.suffix)
            suffixes = [k.suffix for k in keys]
            if suffixes[0] != "a":
                self.issue(
                    issues, "apa.citations.suffix_start",
                    title="Letter suffix doesn't start with 'a'",
                    description=f"{author} ({year}) citations should start with 'a'",
                    severity="Minor",
                    category="citations",
                    text=first_seen[keys[0]],
                    explanation="Multiple works same year should be labeled: 2024a, 2024b, 2024c...",
                )
            for i in range(1, len(keys)):
                if ord(suffixes[i]) != ord(suffixes[i - 1]) + 1:
                    self.issue(
                        issues, "apa.citations.suffix_gap",
                        title="Gap in letter suffix sequence",
                        description=f"{author} ({year}) has non-consecutive letter suffixes: {', '.join(suffixes)}",
                        severity="Minor",
                        category="citations",
                        text=first_seen[keys[i]],
                        explanation="Use consecutive letters: a, b, c, not a, c, d",
                    )

    def _check_style_balance(self, issues: List[Issue], styles: Dict[AuthorYearKey, _StyleCount]) -> None:
        narrative = sum(s.narrative for s in styles.values())
        parenthetical = sum(s.parenthetical for s in styles.values())
        if narrative == 0 or parenthetical == 0:
            return
        ratio = narrative / parenthetical
        low, high = RATIO_BOUNDS
        if low <= ratio <= high:
            return
        self.issue(
            issues, "apa.citations.style_balance",
            title="Imbalanced citation style usage",
            description=(
                f"Overuse of {'narrative' if ratio > high else 'parenthetical'} citations "
                f"(narrative: {narrative}, parenthetical: {parenthetical})"
            ),
            severity="Minor",
            category="citations",
            document_level=True,
            explanation="Vary citation style for better readability. Use narrative when author is subject, parenthetical for support.",
        )
