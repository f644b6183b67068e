from __future__ import annotations
from typing import Dict, Any, List
import json


def write_json(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def write_txt(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_txt(payload))


def render_txt(payload: Dict[str, Any], max_issues: int = 80) -> str:
    lines: List[str] = []
    lines.append(f"APA Compliance Report — {payload.get('timestamp_utc')}")
    lines.append("")
    d = payload.get("document")
    if d:
        lines.append("Document")
        lines.append(f"- Source:     {d.get('source')}")
        lines.append(f"- Title:      {d.get('title') or '[untitled]'}")
        lines.append(f"- Headings:   {d.get('headings')}")
        lines.append(f"- Paragraphs: {d.get('paragraphs')}")
        for w in d.get("warnings", []) or []:
            lines.append(f"- Warning: {w}")
        lines.append("")
    c = payload.get("coverage", {})
    lines.append("Rule Pack")
    lines.append(f"- OK: {c.get('ok')}")
    if c.get("missing"):
        lines.append(f"- Missing: {', '.join(c.get('missing'))}")
    for n in c.get("notes", []) or []:
        lines.append(f"- Note: {n}")
    lines.append("")
    llm = payload.get("llm", {})
    lines.append("Model Analysis")
    if llm.get("enabled"):
        lines.append(f"- Model:     {llm.get('model')}")
        lines.append(f"- Requested: {', '.join(llm.get('requested') or []) or 'none'}")
        for kind, err in (llm.get("failed") or {}).items():
            lines.append(f"- Failed {kind}: {err}")
    else:
        lines.append("- Disabled")
    lines.append("")
    errors = payload.get("errors", []) or []
    if errors:
        lines.append("Rule Errors")
        for e in errors:
            lines.append(f"- {e}")
        lines.append("")
    stats = payload.get("stats", {})
    lines.append("Stats")
    for k, v in stats.items():
        if isinstance(v, dict):
            v = ", ".join(f"{sk}={sv}" for sk, sv in v.items())
        lines.append(f"- {k}: {v}")
    lines.append("")
    issues = payload.get("issues", []) or []
    if issues:
        lines.append("Issues")
        for i in issues[:max_issues]:
            where = ""
            if i.get("position"):
                where = f" @ {i['position']['from']}-{i['position']['to']}"
            elif i.get("documentLevel"):
                where = " @ document"
            source = "AI " if i.get("aiGenerated") else ""
            lines.append(f"- [{i['severity'].upper()}] {source}{i['category']} {i.get('ruleId') or ''}: {i['title']}{where}")
            if i.get("text"):
                lines.append(f"    \"{i['text']}\"")
        if len(issues) > max_issues:
            lines.append(f"... plus {len(issues)-max_issues} more.")
    else:
        lines.append("No issues found.")
    return "\n".join(lines)
