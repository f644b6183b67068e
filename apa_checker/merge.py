"""Combining heuristic and model-sourced issue lists."""
from __future__ import annotations
from typing import List, Optional, Sequence
import logging

from apa_checker.ir import Issue

logger = logging.getLogger(__name__)

_FAMILY_ALIASES = {
    "references": "citations",
    "quotations": "citations",
    "formatting": "structure",
}


def merge(heuristic: Sequence[Issue], ai: Sequence[Issue]) -> List[Issue]:
    """Heuristic issues first, then model issues, both in their original order."""
    return [*heuristic, *ai]


def category_family(category: str) -> str:
    c = category[3:] if category.startswith("ai-") else category
    return _FAMILY_ALIASES.get(c, c)


def _anchors_overlap(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    a, b = a.lower(), b.lower()
    return a in b or b in a


def dedupe_overlapping(issues: Sequence[Issue]) -> List[Issue]:
    """
    Drop model issues that repeat a heuristic finding.

    A model issue is dropped when its anchor text overlaps the anchor of a
    heuristic issue in the same category family. Heuristic issues are never
    dropped, and order is otherwise preserved.
    """
    heuristic = [i for i in issues if not i.ai_generated]
    kept: List[Issue] = []
    dropped = 0
    for issue in issues:
        if issue.ai_generated and any(
            category_family(h.category) == category_family(issue.category)
            and _anchors_overlap(h.anchor_text, issue.anchor_text)
            for h in heuristic
        ):
            dropped += 1
            continue
        kept.append(issue)
    if dropped:
        logger.info(f"Dropped {dropped} model issues overlapping heuristic issues")
    return kept
