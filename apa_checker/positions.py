"""
Position Resolver

Converts text-based issue locations into positions inside the live document
tree.

Validators work on a newline-flattened copy of the document and report a
paragraph index plus character offset. The tree numbers its blocks
differently (headings, soft breaks and non-paragraph blocks shift the count),
so the literal anchor text is the reliable way to find an issue. The
paragraph index is only used when an issue has no literal anchor.

A PositionMap describes one snapshot of the tree. Rebuild it for every
resolution request; never carry one across an edit.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence
import logging

from apa_checker.ir import Issue, IssueLocation, Span
from apa_checker.tree import (
    TreeNode,
    content_size,
    is_textblock,
    iter_descendants,
    node_size,
    offset_to_pos,
    text_between,
    text_content,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockEntry:
    index: int
    tree_position: int
    node_length: int
    text_content: str
    node_type: str = ""

    @property
    def content_end(self) -> int:
        return self.tree_position + self.node_length - 1


@dataclass
class PositionMap:
    blocks: List[BlockEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.blocks)

    def block(self, index: int) -> Optional[BlockEntry]:
        if 0 <= index < len(self.blocks):
            return self.blocks[index]
        return None


def build_position_map(root: Optional[TreeNode]) -> PositionMap:
    """One depth-first pass over the text blocks (paragraphs, headings) of ``root``."""
    pmap = PositionMap()
    if root is None:
        return pmap
    for node, pos in iter_descendants(root):
        if not is_textblock(node):
            continue
        pmap.blocks.append(BlockEntry(
            index=len(pmap.blocks),
            tree_position=pos,
            node_length=node_size(node),
            text_content=text_content(node),
            node_type=str(getattr(node, "type", "")),
        ))
    return pmap


def find_text(root: Optional[TreeNode], search: str, case_sensitive: bool = True) -> Optional[Span]:
    """
    First occurrence of ``search`` in the tree, or None.

    Text blocks are searched as a whole so an anchor split across formatting
    runs is still found; loose text nodes outside any block are searched on
    their own. Later duplicates are not located.
    """
    if root is None or not search:
        return None
    needle = search if case_sensitive else search.lower()

    for node, pos in iter_descendants(root):
        if is_textblock(node):
            hay = text_content(node)
            idx = (hay if case_sensitive else hay.lower()).find(needle)
            if idx != -1:
                return Span(
                    offset_to_pos(node, pos, idx),
                    offset_to_pos(node, pos, idx + len(search), end=True),
                )
        elif node.is_text:
            hay = node.text
            idx = (hay if case_sensitive else hay.lower()).find(needle)
            if idx != -1:
                return Span(pos + idx, pos + idx + len(search))
    return None


def resolve(
    location: Optional[IssueLocation],
    position_map: Optional[PositionMap],
    literal_text: Optional[str] = None,
    tree_root: Optional[TreeNode] = None,
    case_sensitive: bool = True,
) -> Optional[Span]:
    """
    Map an issue location to a tree span.

    With a literal anchor and a tree, the tree's text is searched and the
    result is final. Without a literal anchor the paragraph index path is
    used. Returns None whenever the issue cannot be placed.
    """
    try:
        if literal_text and tree_root is not None:
            return find_text(tree_root, literal_text, case_sensitive=case_sensitive)

        if location is None or position_map is None:
            return None

        entry = position_map.block(location.paragraph_index)
        if entry is None:
            return None

        start = entry.tree_position + 1 + (location.char_offset or 0)
        end = start + (location.length or (len(literal_text) if literal_text else 0))
        if location.char_offset < 0 or end > entry.content_end:
            return None
        return Span(start, end)
    except Exception as e:
        logger.warning(f"Position resolution failed: {type(e).__name__}: {e}")
        return None


def validate_position(root: Optional[TreeNode], span: Optional[Span], expected_text: Optional[str]) -> bool:
    """True if the tree still holds ``expected_text`` at ``span``."""
    if root is None or span is None or not expected_text:
        return False
    try:
        if span.start < 0 or span.end > content_size(root) or span.start >= span.end:
            return False
        return text_between(root, span.start, span.end, " ") == expected_text
    except Exception as e:
        logger.warning(f"Position validation failed: {type(e).__name__}: {e}")
        return False


def enrich_issues_with_positions(issues: Sequence[Issue], root: Optional[TreeNode]) -> List[Issue]:
    """
    Return copies of ``issues`` with ``position`` resolved against ``root``.

    The position map is built from the tree as it is now. Model-sourced
    issues are matched case-insensitively because the model may change
    casing. Issues that cannot be placed keep their place in the list with
    no position.
    """
    pmap = build_position_map(root)
    enriched: List[Issue] = []
    placed = 0
    for issue in issues:
        span = resolve(
            issue.location,
            pmap,
            literal_text=issue.anchor_text,
            tree_root=root,
            case_sensitive=not issue.ai_generated,
        )
        if span is not None:
            placed += 1
        else:
            logger.debug(f"No position for issue {issue.id} ({issue.rule_id or issue.title})")
        enriched.append(replace(issue, position=span))
    logger.info(f"Position enrichment: {placed}/{len(enriched)} issues placed")
    return enriched
