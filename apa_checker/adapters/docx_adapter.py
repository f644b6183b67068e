from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import json
import logging
import re

from docx import Document

from apa_checker.ir import Heading, StructureSummary
from apa_checker.tree import Node, TreeNode, is_textblock, iter_descendants, text_content

logger = logging.getLogger(__name__)

_HEADING_STYLE = re.compile(r"heading\s*(\d+)", re.IGNORECASE)


@dataclass
class DocumentSnapshot:
    """One immutable view of a document: tree, flattened text and outline."""
    tree: Node
    text: str
    structure: StructureSummary
    title: Optional[str] = None
    source: str = ""
    warnings: List[str] = field(default_factory=list)


def _heading_level(style_name: str) -> Optional[int]:
    if style_name == "Title":
        return 1
    m = _HEADING_STYLE.match(style_name.strip())
    return int(m.group(1)) if m else None


def _run_nodes(text: str) -> List[Node]:
    # Soft line breaks inside a run come through as "\n"
    nodes: List[Node] = []
    for i, piece in enumerate(text.split("\n")):
        if i:
            nodes.append(Node("hard_break"))
        if piece:
            nodes.append(Node("text", value=piece))
    return nodes


def snapshot_from_tree(root: TreeNode, source: str = "") -> DocumentSnapshot:
    """Flatten a tree into newline-joined block text plus a structure summary."""
    lines: List[str] = []
    headings: List[Heading] = []
    paragraphs: List[str] = []
    for node, _ in iter_descendants(root):
        if not is_textblock(node):
            continue
        txt = text_content(node)
        lines.append(txt)
        if getattr(node, "type", "") == "heading":
            level = int((getattr(node, "attrs", None) or {}).get("level", 1))
            headings.append(Heading(level=level, text=txt.strip()))
        elif txt.strip():
            paragraphs.append(txt)
    title = next((h.text for h in headings if h.text), None) or next((p.strip() for p in paragraphs), None)
    return DocumentSnapshot(
        tree=root,  # type: ignore[arg-type]
        text="\n".join(lines),
        structure=StructureSummary(headings=headings, paragraphs=paragraphs),
        title=title,
        source=source,
    )


def load_docx(docx_path: str) -> DocumentSnapshot:
    doc = Document(docx_path)
    blocks: List[Node] = []
    for p in doc.paragraphs:
        style = p.style.name if p.style else ""
        inline: List[Node] = []
        for run in p.runs:
            inline.extend(_run_nodes(run.text))
        level = _heading_level(style)
        if level is not None:
            blocks.append(Node("heading", inline, attrs={"level": level}))
        else:
            blocks.append(Node("paragraph", inline))
    snap = snapshot_from_tree(Node.doc(*blocks), source=docx_path)
    if doc.tables:
        snap.warnings.append(f"{len(doc.tables)} tables not analyzed")
    logger.info(f"Loaded {docx_path}: {len(blocks)} blocks, {len(snap.structure.headings)} headings")
    return snap


def load_tree_json(json_path: str) -> DocumentSnapshot:
    """Load a ProseMirror/Tiptap JSON document."""
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{json_path}: expected a JSON object with a 'type' and 'content'")
    # Editor exports sometimes wrap the document
    if "doc" in data and isinstance(data["doc"], dict):
        data = data["doc"]
    return snapshot_from_tree(Node.from_json(data), source=json_path)


def load_document(path: str) -> DocumentSnapshot:
    lower = path.lower()
    if lower.endswith(".docx"):
        return load_docx(path)
    if lower.endswith(".json"):
        return load_tree_json(path)
    raise ValueError(f"Unsupported input {path!r}; expected .docx or .json")
