"""
Rule family contract and the fail-open runner that executes families.

A family scans the flattened document text (plus an optional structure
summary) and returns Issues. Families keep no state between calls; anything a
family needs to remember while scanning one document lives in locals.
"""
from __future__ import annotations
from typing import List, Optional, Sequence, Set
import logging

from apa_checker.ir import Issue, IssueLocation, Severity, StructureSummary, mk_issue_id

logger = logging.getLogger(__name__)


class RuleFamily:
    """Base class for pattern-based rule families."""

    name = "base"

    def validate(self, text: str, structure: Optional[StructureSummary] = None) -> List[Issue]:
        raise NotImplementedError("Rule families must implement validate()")

    def issue(
        self,
        issues: List[Issue],
        rule_id: str,
        *,
        title: str,
        description: str,
        severity: Severity,
        category: str,
        text: Optional[str] = None,
        location: Optional[IssueLocation] = None,
        document_level: bool = False,
        fix_action: Optional[str] = None,
        explanation: str = "",
    ) -> Issue:
        """Build an Issue, append it to ``issues`` and return it.

        The id is derived from the rule, the issue's ordinal within this call
        and its anchor text, so repeated runs over the same text produce the
        same ids.
        """
        seed = f"{self.name}|{rule_id}|{len(issues)}|{text or ''}"
        new = Issue(
            id=mk_issue_id(seed),
            rule_id=rule_id,
            title=title,
            description=description,
            severity=severity,
            category=category,
            text=text,
            location=location,
            document_level=document_level,
            has_fix=fix_action is not None,
            fix_action=fix_action,
            explanation=explanation,
        )
        issues.append(new)
        return new


def context_window(text: str, start: int, before: int, after: int) -> str:
    """Slice of ``text`` around ``start``, clamped to the line that holds ``start``."""
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", start)
    if line_end == -1:
        line_end = len(text)
    return text[max(line_start, start - before):min(line_end, start + after)]


def location_at(text: str, start: int, length: int) -> IssueLocation:
    """Line index and offset of ``start`` in newline-joined block text."""
    line_start = text.rfind("\n", 0, start) + 1
    return IssueLocation(
        paragraph_index=text.count("\n", 0, start),
        char_offset=start - line_start,
        length=length,
    )


def truncate(s: str, n: int) -> str:
    return s if len(s) <= n else s[:n] + "..."


def run_rule_families(
    families: Sequence[RuleFamily],
    text: str,
    structure: Optional[StructureSummary] = None,
    errors: Optional[List[str]] = None,
) -> List[Issue]:
    """
    Run every family over the text, collecting their issues in order.

    A family that raises contributes nothing for this pass; the failure is
    logged (and recorded in ``errors`` when a list is given) and the remaining
    families still run.
    """
    issues: List[Issue] = []
    if not text:
        return issues
    for family in families:
        try:
            found = family.validate(text, structure)
        except Exception as e:
            msg = f"{family.name} failed: {type(e).__name__}: {e}"
            logger.warning(msg)
            if errors is not None:
                errors.append(msg)
            continue
        logger.debug(f"{family.name}: {len(found)} issues")
        issues.extend(found)
    return issues


def first_unreported(reported: Set[str], key: str) -> bool:
    """True the first time ``key`` is seen in ``reported``; records it."""
    if key in reported:
        return False
    reported.add(key)
    return True
