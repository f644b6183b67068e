from __future__ import annotations
from dataclasses import dataclass
from typing import List, Dict, Any

REQUIRED_CAPABILITIES = [
    "apa.footnotes.format",
    "apa.equations.format",
    "apa.legal.references",
    "apa.social_media.citations",
    "apa.conference.references",
    "apa.data_availability.statement",
    "apa.supplemental.materials",
    "apa.quotations.block_and_ellipsis",
    "apa.citations.cross_reference",
    "ai.normalize.defensive_parse",
    "representation.issue_positions",
    "outputs.report.json_txt",
]


@dataclass
class CoverageResult:
    ok: bool
    missing: List[str]
    notes: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "missing": list(self.missing), "notes": list(self.notes)}


def assert_rule_coverage(rule_pack: Dict[str, Any]) -> CoverageResult:
    declared = rule_pack.get("capabilities") or []
    missing = [c for c in REQUIRED_CAPABILITIES if c not in declared]
    notes = []
    if not missing:
        notes.append("All APA rule families, AI normalization and position capabilities present.")
    else:
        notes.append("Missing capabilities should be added to rule pack + tests.")
    if not rule_pack.get("anchor_phrases"):
        notes.append("No anchor_phrases section; model issues without highlight text stay unanchored.")
    return CoverageResult(ok=(len(missing) == 0), missing=missing, notes=notes)
