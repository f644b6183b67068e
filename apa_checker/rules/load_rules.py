from __future__ import annotations
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

from apa_checker.llm.normalize import AnchorPhrases

DEFAULT_RULE_PACK = str(Path(__file__).with_name("apa_rules.yml"))


def load_rule_pack(path: Optional[str] = None) -> Dict[str, Any]:
    with open(path or DEFAULT_RULE_PACK, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _str_list(value: Any) -> List[str]:
    return [str(v) for v in (value or []) if v is not None]


def load_anchor_phrases(rule_pack: Dict[str, Any]) -> AnchorPhrases:
    a = rule_pack.get("anchor_phrases", {}) or {}
    return AnchorPhrases(
        informal=_str_list(a.get("informal")),
        wordy=_str_list(a.get("wordy")),
        statistic_patterns=_str_list(a.get("statistic_patterns")),
    )


def load_model_settings(rule_pack: Dict[str, Any]) -> Dict[str, Any]:
    return dict(rule_pack.get("model", {}) or {})


def enabled_families(rule_pack: Dict[str, Any]) -> List[str]:
    """Names of validator families switched on in the pack; all when unspecified."""
    fams = rule_pack.get("families")
    if not fams:
        return []
    return [name for name, cfg in fams.items() if (cfg or {}).get("enabled", True)]


@lru_cache(maxsize=1)
def default_anchor_phrases() -> AnchorPhrases:
    return load_anchor_phrases(load_rule_pack())
