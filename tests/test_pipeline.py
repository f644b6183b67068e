import json
import sys
from types import SimpleNamespace

from docx import Document

from apa_checker import cli
from apa_checker.adapters.docx_adapter import load_docx, load_tree_json, snapshot_from_tree
from apa_checker.changelog import render_txt
from apa_checker.llm.client import ClaudeClient, LLMConfig
from apa_checker.pipeline import AnalysisConfig, run_analysis, run_pipeline
from apa_checker.tree import Node, text_between

TREE_JSON = {
    "type": "doc",
    "content": [
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Method"}]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Participants were recruited online "},
            {"type": "text", "text": "[1]", "marks": [{"type": "bold"}]},
            {"type": "text", "text": "."},
        ]},
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Results"}]},
        {"type": "paragraph", "content": [{"type": "text", "text": "Smith (2021a) and Smith (2021c) agree."}]},
    ],
}


def _snapshot():
    return snapshot_from_tree(Node.from_json(TREE_JSON))


def test_snapshot_flattens_blocks():
    snap = _snapshot()
    assert snap.text.split("\n")[0] == "Method"
    assert [h.text for h in snap.structure.headings] == ["Method", "Results"]
    assert len(snap.structure.paragraphs) == 2
    assert snap.title == "Method"


def test_run_analysis_positions_issues():
    snap = _snapshot()
    payload = run_analysis(snap.text, snap.structure, tree=snap.tree)
    json.dumps(payload)
    rule_ids = [i["ruleId"] for i in payload["issues"]]
    assert "apa.footnotes.bracket_format" in rule_ids
    assert "apa.citations.suffix_gap" in rule_ids
    assert "apa.data_availability.missing" in rule_ids
    assert payload["coverage"]["ok"]
    assert payload["llm"]["enabled"] is False

    footnote = next(i for i in payload["issues"] if i["ruleId"] == "apa.footnotes.bracket_format")
    pos = footnote["position"]
    assert text_between(snap.tree, pos["from"], pos["to"]) == "[1]"

    data = next(i for i in payload["issues"] if i["ruleId"] == "apa.data_availability.missing")
    assert data["documentLevel"] and data["position"] is None
    assert payload["stats"]["issues_total"] == len(payload["issues"])


def test_run_analysis_with_model_client():
    body = json.dumps({"issues": [{"type": "evidence", "severity": "critical", "description": "Thin evidence"}]})
    client = ClaudeClient(LLMConfig(api_key="test", min_request_interval=0, max_retries=0))
    client._client = SimpleNamespace(messages=SimpleNamespace(
        create=lambda **kw: SimpleNamespace(content=[SimpleNamespace(text=body)])
    ))
    snap = _snapshot()
    payload = run_analysis(
        snap.text, snap.structure, tree=snap.tree,
        config=AnalysisConfig(use_llm=True, ai_kinds=("content",)), client=client,
    )
    ai = [i for i in payload["issues"] if i["aiGenerated"]]
    assert len(ai) == 1
    assert ai[0]["severity"] == "Critical"
    assert payload["issues"][-1] == ai[0]
    assert payload["llm"]["requested"] == ["content"]


def test_use_llm_without_key_skips_model_pass():
    payload = run_analysis("Plain text.", config=AnalysisConfig(use_llm=True))
    assert payload["llm"]["enabled"] is False


def test_run_pipeline_writes_reports(tmp_path):
    src = tmp_path / "paper.json"
    src.write_text(json.dumps(TREE_JSON), encoding="utf-8")
    payload = run_pipeline(input_path=str(src), out_dir=str(tmp_path / "out"))
    report = json.loads(open(payload["artifacts"]["report_json"], encoding="utf-8").read())
    assert report["document"]["headings"] == 2
    txt = open(payload["artifacts"]["report_txt"], encoding="utf-8").read()
    assert "APA Compliance Report" in txt
    assert "apa.footnotes.bracket_format" in txt


def test_load_tree_json_unwraps_doc(tmp_path):
    src = tmp_path / "wrapped.json"
    src.write_text(json.dumps({"doc": TREE_JSON}), encoding="utf-8")
    assert load_tree_json(str(src)).structure.headings[1].text == "Results"


def test_load_docx(tmp_path):
    doc = Document()
    doc.add_heading("Method", level=1)
    p = doc.add_paragraph("We asked ")
    p.add_run("participants").bold = True
    p.add_run(" questions.")
    path = tmp_path / "paper.docx"
    doc.save(str(path))

    snap = load_docx(str(path))
    assert snap.structure.headings[0].text == "Method"
    assert "We asked participants questions." in snap.text.split("\n")


def test_render_txt_without_issues():
    assert "No issues found." in render_txt({"timestamp_utc": "t", "issues": []})


def test_cli_prints_summary(tmp_path, monkeypatch, capsys):
    src = tmp_path / "paper.json"
    src.write_text(json.dumps(TREE_JSON), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["apa-check", str(src), "--out", str(tmp_path / "out")])
    cli.main()
    out = json.loads(capsys.readouterr().out)
    assert out["issues_total"] > 0
    assert out["rule_pack_ok"] is True


def test_malformed_model_anchor_keeps_rule_issues():
    body = json.dumps({"issues": [{"type": "evidence", "description": "x", "highlightText": ["a lot of"]}]})
    client = ClaudeClient(LLMConfig(api_key="test", min_request_interval=0, max_retries=0))
    client._client = SimpleNamespace(messages=SimpleNamespace(
        create=lambda **kw: SimpleNamespace(content=[SimpleNamespace(text=body)])
    ))
    snap = _snapshot()
    payload = run_analysis(
        snap.text, snap.structure, tree=snap.tree,
        config=AnalysisConfig(use_llm=True, ai_kinds=("content",)), client=client,
    )
    json.dumps(payload)
    rule_ids = [i["ruleId"] for i in payload["issues"]]
    assert "apa.footnotes.bracket_format" in rule_ids
    ai = [i for i in payload["issues"] if i["aiGenerated"]]
    assert len(ai) == 1
    assert ai[0]["text"] is None and ai[0]["documentLevel"]
