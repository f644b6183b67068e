"""
Model-assisted analysis pass.

Builds the content, structure and citation requests, runs them together on
the client's thread pool and normalizes each response on its own. A failed
request only loses its own kind; heuristic results are never held back.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

from apa_checker.ir import Issue, StructureSummary
from apa_checker.llm.client import ClaudeClient, ModelRequest, ModelResponse
from apa_checker.llm.normalize import AnchorPhrases, FixSuggestion, normalize, parse_fix_suggestion
from apa_checker.rules.citations import extract_citations

logger = logging.getLogger(__name__)

DEFAULT_KINDS = ("content", "structure", "citations")


@dataclass
class AIAnalysisResult:
    issues: List[Issue] = field(default_factory=list)
    requested: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def stats(self) -> Dict[str, Any]:
        return {
            "requested": list(self.requested),
            "failed": dict(self.failed),
            "issues": len(self.issues),
        }


def build_requests(
    client: ClaudeClient,
    text: str,
    structure: Optional[StructureSummary] = None,
    kinds: Sequence[str] = DEFAULT_KINDS,
    document_type: str = "academic paper",
) -> List[ModelRequest]:
    requests: List[ModelRequest] = []
    for kind in kinds:
        if kind == "content":
            requests.append(client.content_request(text, document_type=document_type))
        elif kind == "structure":
            requests.append(client.structure_request(text, structure.headings if structure else []))
        elif kind == "citations":
            citations = extract_citations(text)
            if not citations:
                logger.info("No in-text citations found; skipping citation analysis")
                continue
            requests.append(client.citations_request(text, citations))
        else:
            logger.warning(f"Unknown analysis kind {kind!r} ignored")
    return requests


def run_ai_analysis(
    client: ClaudeClient,
    text: str,
    structure: Optional[StructureSummary] = None,
    kinds: Sequence[str] = DEFAULT_KINDS,
    document_type: str = "academic paper",
    phrases: Optional[AnchorPhrases] = None,
) -> AIAnalysisResult:
    result = AIAnalysisResult()
    if not text.strip():
        return result

    requests = build_requests(client, text, structure, kinds=kinds, document_type=document_type)
    result.requested = [r.kind for r in requests]
    responses: List[ModelResponse] = client.complete_batch(requests)

    # Keep issue order stable by kind regardless of completion order
    by_kind = {r.kind: r for r in responses}
    for req in requests:
        resp = by_kind.get(req.kind)
        if resp is None or not resp.success:
            result.failed[req.kind] = (resp.error if resp else None) or "no response"
            continue
        result.issues.extend(normalize(resp.content, req.kind, document_text=text, phrases=phrases))

    if result.failed:
        logger.warning(f"Model analysis unavailable for: {', '.join(sorted(result.failed))}")
    logger.info(f"Model analysis produced {len(result.issues)} issues from {len(requests)} requests")
    return result


def suggest_fix(client: ClaudeClient, issue: Issue, document_text: str) -> Optional[FixSuggestion]:
    """Ask the model how to fix one issue. None when the request or parse fails."""
    response = client.complete(client.fix_request(issue, document_text))
    if not response.success:
        return None
    return parse_fix_suggestion(response.content)
