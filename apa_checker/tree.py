"""
Document tree interface and position arithmetic.

Positions follow the ProseMirror convention: the root's content starts at 0,
a text node occupies one position per character, every textblock or
other node with children adds one position for its opening and one for its
closing token, and an inline atom such as a hard break or a leaf block such
as a horizontal rule occupies one position. Inline atoms read as a single
space in text content. Any concrete rich-text representation that can answer
``children``, ``is_text``, ``is_block`` and ``text`` can be walked here.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

TEXTBLOCK_TYPES = ("paragraph", "heading", "codeBlock", "code_block")


class TreeNode(Protocol):
    @property
    def children(self) -> Sequence["TreeNode"]: ...

    @property
    def is_text(self) -> bool: ...

    @property
    def is_block(self) -> bool: ...

    @property
    def text(self) -> str: ...


@dataclass
class Node:
    """Plain node model; enough of a rich-text tree for analysis and tests."""
    type: str
    content: List["Node"] = field(default_factory=list)
    value: str = ""
    attrs: Dict[str, Any] = field(default_factory=dict)

    @property
    def children(self) -> Sequence["Node"]:
        return self.content

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def is_block(self) -> bool:
        return self.type not in ("text", "hard_break", "hardBreak", "image", "mention")

    @property
    def text(self) -> str:
        return self.value

    @classmethod
    def doc(cls, *blocks: "Node") -> "Node":
        return cls("doc", list(blocks))

    @classmethod
    def paragraph(cls, *parts: Any) -> "Node":
        return cls("paragraph", _inline(parts))

    @classmethod
    def heading(cls, level: int, *parts: Any) -> "Node":
        return cls("heading", _inline(parts), attrs={"level": level})

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Node":
        """Build from ProseMirror/Tiptap JSON (``{"type", "content", "text", "attrs"}``)."""
        node_type = str(data.get("type", "paragraph"))
        if node_type == "text":
            return cls("text", value=str(data.get("text", "")))
        return cls(
            node_type,
            [cls.from_json(c) for c in (data.get("content") or []) if isinstance(c, dict)],
            attrs=dict(data.get("attrs") or {}),
        )


def _inline(parts: Sequence[Any]) -> List[Node]:
    return [Node("text", value=p) if isinstance(p, str) else p for p in parts if p != ""]


def _node_type(node: TreeNode) -> str:
    return getattr(node, "type", "")


def is_inline_atom(node: TreeNode) -> bool:
    """Inline leaf such as a hard break; one position wide, reads as a space."""
    return not node.is_text and not node.is_block and not node.children


def node_size(node: TreeNode) -> int:
    if node.is_text:
        return len(node.text)
    if node.children or _node_type(node) in TEXTBLOCK_TYPES:
        return 2 + content_size(node)
    # Inline atoms and leaf blocks (horizontal rule, page break)
    return 1


def content_size(node: TreeNode) -> int:
    return sum(node_size(c) for c in node.children)


def text_content(node: TreeNode) -> str:
    if node.is_text:
        return node.text
    if is_inline_atom(node):
        return " "
    return "".join(text_content(c) for c in node.children)


def is_textblock(node: TreeNode) -> bool:
    if not node.is_block or node.is_text:
        return False
    if _node_type(node) in TEXTBLOCK_TYPES:
        return True
    return bool(node.children) and not any(c.is_block for c in node.children)


def iter_descendants(root: TreeNode) -> Iterator[Tuple[TreeNode, int]]:
    """Yield ``(node, pos)`` depth-first, where ``pos`` is the position just before ``node``."""
    stack: List[Tuple[TreeNode, int]] = []
    pos = 0
    for child in root.children:
        stack.append((child, pos))
        pos += node_size(child)
    stack.reverse()
    while stack:
        node, pos = stack.pop()
        yield node, pos
        if node.is_text or not node.children:
            continue
        inner = pos + 1
        pending = []
        for child in node.children:
            pending.append((child, inner))
            inner += node_size(child)
        stack.extend(reversed(pending))


def offset_to_pos(block: TreeNode, block_pos: int, offset: int, end: bool = False) -> int:
    """
    Tree position of ``offset`` in the block's text content.

    With ``end`` the offset is treated as an exclusive end, so it binds to the
    text run it closes rather than the one after an inline atom.
    """
    pos = block_pos + 1
    remaining = offset
    for child in block.children:
        if child.is_text or is_inline_atom(child):
            n = len(child.text) if child.is_text else 1
            if remaining < n or (end and remaining == n):
                return pos + remaining
            remaining -= n
        pos += node_size(child)
    return pos


def text_between(root: TreeNode, start: int, end: int, block_separator: Optional[str] = " ") -> str:
    """Text between two positions; blocks after the first are joined with ``block_separator``."""
    out: List[str] = []
    first = True

    def walk(node: TreeNode, node_start: int) -> None:
        nonlocal first
        pos = node_start
        for child in node.children:
            size = node_size(child)
            child_end = pos + size
            if child_end > start and pos < end:
                if child.is_text:
                    out.append(child.text[max(start, pos) - pos:end - pos])
                else:
                    if is_textblock(child) and block_separator:
                        if first:
                            first = False
                        else:
                            out.append(block_separator)
                    if child.children:
                        walk(child, pos + 1)
                    elif is_inline_atom(child):
                        out.append(" ")
            pos = child_end

    walk(root, 0)
    return "".join(out)
