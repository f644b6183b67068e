from __future__ import annotations

from apa_checker.llm.client import ClaudeClient, LLMConfig
from apa_checker.llm.normalize import normalize, parse_fix_suggestion

__all__ = ["ClaudeClient", "LLMConfig", "normalize", "parse_fix_suggestion"]
