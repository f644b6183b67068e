from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from pathlib import Path
from datetime import datetime, timezone
import logging

from apa_checker.coverage import assert_rule_coverage
from apa_checker.ir import Issue, StructureSummary
from apa_checker.merge import dedupe_overlapping, merge
from apa_checker.positions import enrich_issues_with_positions
from apa_checker.rules.base import RuleFamily, run_rule_families
from apa_checker.rules.families import default_families
from apa_checker.rules.load_rules import enabled_families, load_anchor_phrases, load_model_settings, load_rule_pack
from apa_checker.tree import TreeNode
from apa_checker.changelog import write_json, write_txt

logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfig:
    rules_path: Optional[str] = None
    # LLM options
    use_llm: bool = False
    anthropic_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    ai_kinds: Tuple[str, ...] = ("content", "structure", "citations")
    document_type: Optional[str] = None
    dedupe: bool = False


def families_for_pack(rule_pack: Dict[str, Any]) -> List[RuleFamily]:
    enabled = enabled_families(rule_pack)
    families = default_families()
    if not enabled:
        return families
    return [f for f in families if f.name in enabled]


def _severity_counts(issues: Sequence[Issue]) -> Dict[str, int]:
    counts = {"Critical": 0, "Major": 0, "Minor": 0}
    for i in issues:
        counts[i.severity] += 1
    return counts


def run_analysis(
    text: str,
    structure: Optional[StructureSummary] = None,
    tree: Optional[TreeNode] = None,
    config: Optional[AnalysisConfig] = None,
    client: Any = None,
) -> Dict[str, Any]:
    """
    One full pass: rule families, optional model pass, merge, positions.

    ``client`` overrides the Claude client built from ``config``; pass one to
    reuse a configured client. Returns the report payload.
    """
    config = config or AnalysisConfig()
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    rule_pack = load_rule_pack(config.rules_path)
    coverage = assert_rule_coverage(rule_pack)
    if not coverage.ok:
        logger.warning(f"Rule pack missing capabilities: {', '.join(coverage.missing)}")

    errors: List[str] = []
    heuristic = run_rule_families(families_for_pack(rule_pack), text, structure, errors=errors)
    logger.info(f"Rule families produced {len(heuristic)} issues")

    # LLM pass (only with an API key or an injected client)
    model_settings = load_model_settings(rule_pack)
    llm_model = config.llm_model or model_settings.get("model") or "claude-sonnet-4-20250514"
    llm_stats: Dict[str, Any] = {"enabled": False, "model": None}
    ai_issues: List[Issue] = []
    if config.use_llm and (client is not None or config.anthropic_api_key):
        from apa_checker.llm.analysis import run_ai_analysis
        if client is None:
            from apa_checker.llm.client import ClaudeClient, LLMConfig
            client = ClaudeClient(LLMConfig(
                api_key=config.anthropic_api_key or "",
                model=llm_model,
                max_tokens=int(model_settings.get("max_tokens", 1500)),
                temperature=float(model_settings.get("temperature", 0.05)),
                max_concurrent=int(model_settings.get("max_concurrent", 3)),
            ))
        result = run_ai_analysis(
            client,
            text,
            structure,
            kinds=config.ai_kinds,
            document_type=config.document_type or model_settings.get("document_type", "academic paper"),
            phrases=load_anchor_phrases(rule_pack),
        )
        ai_issues = result.issues
        llm_stats = {"enabled": True, "model": llm_model, **result.stats()}
    elif config.use_llm:
        logger.warning("LLM analysis requested but no API key provided; skipping")

    issues = merge(heuristic, ai_issues)
    if config.dedupe:
        issues = dedupe_overlapping(issues)
    if tree is not None:
        issues = enrich_issues_with_positions(issues, tree)

    return {
        "timestamp_utc": ts,
        "coverage": coverage.to_dict(),
        "llm": llm_stats,
        "errors": errors,
        "stats": {
            "issues_total": len(issues),
            "issues_heuristic": len(heuristic),
            "issues_ai": sum(1 for i in issues if i.ai_generated),
            "issues_positioned": sum(1 for i in issues if i.position is not None),
            "issues_document_level": sum(1 for i in issues if i.document_level),
            "severity": _severity_counts(issues),
        },
        "issues": [i.to_dict() for i in issues],
    }


def run_pipeline(*, input_path: str, out_dir: str, config: Optional[AnalysisConfig] = None) -> Dict[str, Any]:
    """Analyze one document file and write the JSON and text reports into a bundle directory."""
    from apa_checker.adapters.docx_adapter import load_document

    snap = load_document(input_path)
    payload = run_analysis(snap.text, snap.structure, tree=snap.tree, config=config)

    stem = Path(input_path).stem
    ts = payload["timestamp_utc"]
    bundle = Path(out_dir) / f"{stem}_{ts.replace('-','').replace(':','').replace('T','_')}"
    bundle.mkdir(parents=True, exist_ok=True)
    report_json = str(bundle / f"{stem}.apa_report.json")
    report_txt = str(bundle / f"{stem}.apa_report.txt")

    payload["document"] = {
        "source": input_path,
        "title": snap.title,
        "headings": len(snap.structure.headings),
        "paragraphs": len(snap.structure.paragraphs),
        "warnings": snap.warnings,
    }
    payload["artifacts"] = {"report_json": report_json, "report_txt": report_txt}

    write_json(report_json, payload)
    write_txt(report_txt, payload)
    return payload
