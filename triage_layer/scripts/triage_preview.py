from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional

from ..internal_core.config import configure_logging, load_config
from ..internal_core.contracts import Context
from ..pipeline import TriagePipeline


def _format_symptoms(ctx: Context) -> str:
    if not ctx.symptoms:
        return "n/a"
    parts = []
    for s in ctx.symptoms:
        label = f"{s.name}@{s.location}"
        if s.severity:
            label += f"[{s.severity}]"
        if s.duration is not None:
            label += f"({s.duration.raw})"
        if s.negated:
            label = "not " + label
        parts.append(label)
    return ", ".join(parts)


def _format_timings(timings: dict[str, float]) -> str:
    if not timings:
        return "n/a"
    return " ".join(f"{stage}={ms:.2f}ms" for stage, ms in timings.items())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one turn of text through the triage pipeline")
    parser.add_argument("--text", help="User text to interpret (default: read from stdin)")
    parser.add_argument("--age", type=float, default=None, help="Explicit age hint in years")
    parser.add_argument("--sex", choices=("male", "female", "other"), default=None, help="Explicit sex hint")
    parser.add_argument("--region", default=None, help="Emergency contact region (US, UK, EU, AU, CA)")
    parser.add_argument("--json", action="store_true", help="Print the full context as JSON.")
    parser.add_argument("--log-level", default=None, help="Override TRIAGE_LOG_LEVEL")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    text = args.text if args.text is not None else sys.stdin.read()
    demographics: Optional[dict[str, Any]] = None
    if args.age is not None or args.sex is not None:
        demographics = {"age": args.age, "sex": args.sex}

    with TriagePipeline(load_config()) as pipeline:
        ctx = pipeline.run(text, demographics, region=args.region)

    if args.json:
        print(json.dumps(ctx.model_dump(mode="json"), indent=2, sort_keys=True))
        return 0

    triage = ctx.triage
    print(f"triage_level: {triage.level if triage else 'n/a'}")
    print(f"high_risk: {triage.is_high_risk if triage else 'n/a'}")
    print(f"intent: {ctx.intent.type if ctx.intent else 'n/a'} ({ctx.metadata.intent_confidence})")
    print(f"symptoms: {_format_symptoms(ctx)}")
    print(f"conditions: {', '.join(ctx.condition_matches) or 'n/a'}")
    print(f"reasons: {'; '.join(triage.reasons) if triage and triage.reasons else 'n/a'}")
    print(f"risk_multiplier: {ctx.metadata.risk_multiplier}")
    print(f"stage_timings: {_format_timings(ctx.metadata.stage_timings_ms)}")
    if ctx.metadata.errors:
        print(f"errors: {', '.join(ctx.metadata.errors)}")
    print("follow_up:")
    for question in ctx.follow_up_questions:
        print(f"  - {question}")
    print("actions:")
    for action in ctx.recommended_actions:
        print(f"  - {action}")
    if triage is not None and triage.level == "EMERGENCY":
        print("emergency_contacts: " + ", ".join(f"{k}={v}" for k, v in ctx.emergency_contacts.items()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
