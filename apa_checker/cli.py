from __future__ import annotations
import argparse
import json
import logging
import os
from apa_checker.pipeline import AnalysisConfig, run_pipeline


def main():
    ap = argparse.ArgumentParser(
        prog="apa-check",
        description="APA 7th edition compliance checker"
    )

    ap.add_argument("input", help="Path to input .docx or ProseMirror .json document")
    ap.add_argument("--out", default="./apa_out", help="Output directory")
    ap.add_argument("--rules", default=None, help="Path to a rule pack YAML (default: bundled apa_rules.yml)")
    ap.add_argument(
        "--dedupe",
        action="store_true",
        help="Drop model issues that overlap a rule-based issue in the same category"
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")

    # LLM options
    llm_group = ap.add_argument_group("LLM Options")
    llm_group.add_argument(
        "--use-llm",
        action="store_true",
        help="Enable model-assisted content, structure and citation analysis (requires --anthropic-api-key or ANTHROPIC_API_KEY env var)"
    )
    llm_group.add_argument(
        "--anthropic-api-key",
        default=os.environ.get("ANTHROPIC_API_KEY"),
        help="Anthropic API key (or set ANTHROPIC_API_KEY env var)"
    )
    llm_group.add_argument(
        "--llm-model",
        default=None,
        help="Claude model to use (default: the rule pack's model setting)"
    )

    args = ap.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Validate LLM options
    if args.use_llm and not args.anthropic_api_key:
        ap.error("--use-llm requires --anthropic-api-key or ANTHROPIC_API_KEY environment variable")

    config = AnalysisConfig(
        rules_path=args.rules,
        use_llm=args.use_llm,
        anthropic_api_key=args.anthropic_api_key,
        llm_model=args.llm_model,
        dedupe=args.dedupe,
    )
    try:
        payload = run_pipeline(input_path=args.input, out_dir=args.out, config=config)
    except (OSError, ValueError) as e:
        ap.exit(2, f"apa-check: error: {e}\n")

    # Build output summary
    stats = payload["stats"]
    output = {
        "bundle_dir": payload["artifacts"]["report_json"].rsplit("/", 1)[0],
        "issues_total": stats["issues_total"],
        "issues_ai": stats["issues_ai"],
        "issues_positioned": stats["issues_positioned"],
        "severity": stats["severity"],
        "rule_errors": len(payload["errors"]),
        "rule_pack_ok": payload["coverage"]["ok"],
    }
    if payload["llm"].get("failed"):
        output["llm_failed"] = payload["llm"]["failed"]

    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
