"""
Pattern rule families for APA 7th edition checks that sit outside the core
citation rules: footnotes, equations, legal and social media references,
conference papers, data availability, supplemental materials and quotations.
"""
from __future__ import annotations
from typing import List, Optional, Set
import re

from apa_checker.ir import Issue, StructureSummary
from apa_checker.rules.base import RuleFamily, context_window, first_unreported, location_at, truncate


class FootnoteRules(RuleFamily):
    name = "footnotes"

    _FOOTNOTE = re.compile(r"\[\^?\d+\]|\(\*+\)|[¹²³⁴⁵⁶⁷⁸⁹⁰]+")

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        markers = list(self._FOOTNOTE.finditer(text))
        if not markers:
            return issues

        self.issue(
            issues, "apa.footnotes.present",
            title="Footnotes detected",
            description="APA style discourages extensive use of footnotes",
            severity="Minor",
            category="formatting",
            text=markers[0].group(0),
            location=location_at(text, markers[0].start(), len(markers[0].group(0))),
            explanation="Use footnotes sparingly. Consider incorporating content into main text or using parenthetical information.",
        )
        for fm in markers:
            marker = fm.group(0)
            if marker.startswith("[") and marker.endswith("]"):
                self.issue(
                    issues, "apa.footnotes.bracket_format",
                    title="Incorrect footnote format",
                    description="Use superscript numbers for footnotes",
                    severity="Minor",
                    category="formatting",
                    text=marker,
                    location=location_at(text, fm.start(), len(marker)),
                    explanation="Format footnotes as superscript numbers (¹, ², ³) not [1], [2], [3]",
                )
        return issues


class EquationRules(RuleFamily):
    name = "equations"

    _MATH_SYMBOL = re.compile(r"[∑∏∫∂∇±√∞≈≠≤≥]")
    _INLINE = re.compile(r"(?<!\$)\$[^$]+\$(?!\$)")
    _DISPLAY = re.compile(r"\$\$[^$]+\$\$")
    _NUMBER = re.compile(r"\(\d+\)")
    max_inline_length = 50

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        if not self._MATH_SYMBOL.search(text):
            return issues

        for m in self._INLINE.finditer(text):
            eq = m.group(0)
            if len(eq) > self.max_inline_length:
                self.issue(
                    issues, "apa.equations.long_inline",
                    title="Long inline equation",
                    description="Complex equations should be displayed on separate lines",
                    severity="Minor",
                    category="formatting",
                    text=truncate(eq, 30),
                    explanation="Display complex equations on separate lines and number them",
                )

        for m in self._DISPLAY.finditer(text):
            eq = m.group(0)
            nearby = context_window(text, m.start(), 20, len(eq) + 20)
            if not self._NUMBER.search(nearby):
                self.issue(
                    issues, "apa.equations.unnumbered_display",
                    title="Unnumbered display equation",
                    description="Display equations should be numbered",
                    severity="Minor",
                    category="formatting",
                    text=truncate(eq, 30),
                    explanation="Number display equations consecutively: (1), (2), etc.",
                )
        return issues


class LegalReferenceRules(RuleFamily):
    name = "legal_references"

    _CASE = re.compile(r"v\.\s+[A-Z]")
    _REPORTER = re.compile(r"\d+\s+[A-Z]\.\s*[A-Z]\.\s*(?:2d|3d)?\s*\d+")

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        reported: Set[str] = set()

        m = self._CASE.search(text)
        if m and first_unreported(reported, "legal-italics"):
            self.issue(
                issues, "apa.legal.case_italics",
                title="Legal case name formatting",
                description="Legal case names should be italicized",
                severity="Minor",
                category="references",
                text=context_window(text, m.start(), 30, 50),
                explanation="Italicize case names: *Brown v. Board of Education*",
            )

        m = self._REPORTER.search(text)
        if m and first_unreported(reported, "legal-format"):
            self.issue(
                issues, "apa.legal.citation_format",
                title="Legal citation format",
                description="Verify legal citation follows Bluebook format",
                severity="Minor",
                category="references",
                text=m.group(0),
                location=location_at(text, m.start(), len(m.group(0))),
                explanation="Legal citations should follow standard legal citation format",
            )
        return issues


class SocialMediaRules(RuleFamily):
    name = "social_media"

    _HANDLE = re.compile(r"@[A-Za-z0-9_]+")

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        reported: Set[str] = set()
        for m in self._HANDLE.finditer(text):
            ctx = context_window(text, m.start(), 50, 50)
            if ("Twitter" in ctx or "Tweet" in ctx) and first_unreported(reported, "twitter-citation"):
                self.issue(
                    issues, "apa.social_media.citation_format",
                    title="Social media citation format",
                    description="Include full citation information for social media",
                    severity="Minor",
                    category="references",
                    text=ctx,
                    explanation="Format: Author, A. [@username]. (Year, Month Day). Content [Tweet]. Twitter. URL",
                )
        return issues


class ConferencePaperRules(RuleFamily):
    name = "conference_papers"

    _CONFERENCE = re.compile(r"(?:Conference|Symposium|Proceedings|Meeting)\s+(?:on|of)", re.IGNORECASE)
    _LOCATION = re.compile(r",\s+[A-Z][a-z]+(?:,\s+[A-Z]{2})?(?:,\s+[A-Z][a-z]+)?")

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        reported: Set[str] = set()
        for m in self._CONFERENCE.finditer(text):
            ctx = context_window(text, m.start(), 100, 100)
            # Only reference-list style entries carry a location requirement
            if "In " not in ctx and "Paper presented" not in ctx:
                continue
            if self._LOCATION.search(ctx):
                continue
            if first_unreported(reported, "conference-format"):
                self.issue(
                    issues, "apa.conference.missing_location",
                    title="Conference paper missing location",
                    description="Conference presentations need location information",
                    severity="Minor",
                    category="references",
                    text=truncate(ctx, 60),
                    explanation="Include conference location: City, State/Country",
                )
        return issues


class DataAvailabilityRules(RuleFamily):
    name = "data_availability"

    _STATEMENT = [
        re.compile(r"data\s+(?:are|is|were|was)\s+(?:publicly\s+|openly\s+)?available", re.IGNORECASE),
        re.compile(r"open\s+(?:data|science|access)", re.IGNORECASE),
        re.compile(r"data\s+availability", re.IGNORECASE),
    ]
    _METHOD = re.compile(r"^\s*Method(?:s|ology)?\s*$", re.MULTILINE)
    _RESULTS = re.compile(r"^\s*Results?\s*$", re.MULTILINE)

    def _section_titles(self, text: str, structure: Optional[StructureSummary]) -> Set[str]:
        titles = {h.text.strip().lower() for h in (structure.headings if structure else [])}
        if self._METHOD.search(text):
            titles.add("method")
        if self._RESULTS.search(text):
            titles.add("results")
        return titles

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        titles = self._section_titles(text, structure)
        has_method = bool(titles & {"method", "methods", "methodology"})
        has_results = bool(titles & {"result", "results"})
        if not (has_method and has_results):
            return issues
        if any(p.search(text) for p in self._STATEMENT):
            return issues
        self.issue(
            issues, "apa.data_availability.missing",
            title="Missing data availability statement",
            description="Empirical papers should state whether and where the data are available",
            severity="Minor",
            category="content",
            document_level=True,
            explanation="Add a statement such as 'The data that support the findings are available at ...' or explain why data cannot be shared.",
        )
        return issues


class SupplementalMaterialRules(RuleFamily):
    name = "supplemental_materials"

    _SUPPLEMENTAL = re.compile(
        r"supplementa[lr]y?\s+(?:material|data|file|information|table|figure)s?", re.IGNORECASE
    )
    _ACCESS = re.compile(r"see|refer|available|found|included", re.IGNORECASE)
    _NAMED = re.compile(r"Supplement(?:al|ary)\s+(?:Table|Figure)\s+S?\d+")

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        for m in self._SUPPLEMENTAL.finditer(text):
            ref = m.group(0)
            ctx = context_window(text, m.start(), 50, 100)
            if not self._ACCESS.search(ctx):
                self.issue(
                    issues, "apa.supplemental.unclear_access",
                    title="Supplemental material reference unclear",
                    description="Clearly indicate how to access supplemental materials",
                    severity="Minor",
                    category="content",
                    text=ctx,
                    explanation="Specify where supplemental materials can be found (e.g., 'see Supplemental Material online')",
                )
            if not self._NAMED.match(text, m.start()):
                self.issue(
                    issues, "apa.supplemental.naming",
                    title="Supplemental material naming",
                    description="Use consistent naming for supplemental materials",
                    severity="Minor",
                    category="formatting",
                    text=ref,
                    location=location_at(text, m.start(), len(ref)),
                    explanation="Label as 'Supplemental Table S1', 'Supplemental Figure S1', etc.",
                )
        return issues


class QuotationRules(RuleFamily):
    name = "quotations"

    _QUOTE = re.compile(r"[\"“]([^\"“”]+)[\"”]")
    _CITATION_AFTER = re.compile(r"^\s*\([^)]+\)")
    _DOTS = re.compile(r"\.{2,}")
    block_quote_min_words = 40
    long_inline_min_words = 31

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        issues: List[Issue] = []
        for m in self._QUOTE.finditer(text):
            quote = m.group(1)
            words = len(quote.split())
            if words >= self.block_quote_min_words:
                self.issue(
                    issues, "apa.quotations.block_quote_marks",
                    title="Long quote incorrectly formatted with quotation marks",
                    description=f"Quote with {words} words should be a block quote without quotation marks",
                    severity="Major",
                    category="quotations",
                    text=truncate(quote, 50),
                    fix_action="convertToBlockQuote",
                    explanation="Quotes of 40+ words should be in block format: indented 0.5\", no quotation marks",
                )
                after = text[m.end():m.end() + 50]
                if not self._CITATION_AFTER.match(after):
                    self.issue(
                        issues, "apa.quotations.block_quote_citation",
                        title="Block quote missing citation",
                        description="Block quote should be followed immediately by citation",
                        severity="Major",
                        category="quotations",
                        text=truncate(quote, 30),
                        explanation="Place citation after final punctuation of block quote: ...end of quote. (Author, Year, p. #)",
                    )
            elif words >= self.long_inline_min_words:
                self.issue(
                    issues, "apa.quotations.long_inline",
                    title="Long inline quote",
                    description=f"Quote with {words} words is long for inline format",
                    severity="Minor",
                    category="quotations",
                    text=truncate(quote, 50),
                    explanation="Consider paraphrasing or using block quote format for lengthy quotes",
                )
            self._check_ellipses(issues, m.group(0))
        return issues

    def _check_ellipses(self, issues: List[Issue], quote: str) -> None:
        if ".." not in quote:
            return
        for d in self._DOTS.finditer(quote):
            snippet = quote[max(0, d.start() - 10):d.end() + 10]
            if len(d.group(0)) == 4:
                self.issue(
                    issues, "apa.quotations.four_dots",
                    title="Four dots in quote",
                    description="Use three dots for ellipsis, even at sentence end",
                    severity="Minor",
                    category="quotations",
                    text=snippet,
                    fix_action="fixFourDots",
                    explanation="APA 7th uses three dots only, not four dots for end of sentence",
                )
            elif len(d.group(0)) != 3:
                self.issue(
                    issues, "apa.quotations.ellipsis_format",
                    title="Incorrect ellipsis format",
                    description="Use three dots for ellipsis (...) or spaced (. . .)",
                    severity="Minor",
                    category="quotations",
                    text=snippet,
                    fix_action="fixEllipsisFormat",
                    explanation="Ellipsis should be exactly three dots, with or without spaces",
                )
        if re.match(r"[\"“]\s*\.\.\.", quote):
            self.issue(
                issues, "apa.quotations.leading_ellipsis",
                title="Ellipsis at quote beginning",
                description="Ellipsis at start of quote usually unnecessary",
                severity="Minor",
                category="quotations",
                text=quote[:30],
                explanation="Begin quotes at natural starting point without ellipsis unless showing continuation",
            )


def default_families() -> List[RuleFamily]:
    from apa_checker.rules.citations import CitationCrossReferenceValidator
    return [
        FootnoteRules(),
        EquationRules(),
        LegalReferenceRules(),
        SocialMediaRules(),
        ConferencePaperRules(),
        DataAvailabilityRules(),
        SupplementalMaterialRules(),
        QuotationRules(),
        CitationCrossReferenceValidator(),
    ]
