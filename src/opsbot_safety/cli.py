"""Command-line entrypoint for classifying commands and previewing plans."""

from __future__ import annotations

import argparse
import json
import sys

from opsbot_safety import __version__
from opsbot_safety.engine import SafetyEngine
from opsbot_safety.logging_utils import get_logger
from opsbot_safety.utils.serialization import json_default


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opsbot-safety",
        description="Classify infrastructure commands and preview approval plans.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="action", required=True)

    classify_parser = subparsers.add_parser("classify", help="Print the classification as JSON")
    classify_parser.add_argument("command", help="Shell command to classify")

    plan_parser = subparsers.add_parser("plan", help="Create a plan and print it")
    plan_parser.add_argument("command", help="Shell command to plan")
    plan_parser.add_argument("--request", default="", help="Original natural-language request")
    plan_parser.add_argument("--context", default=None, help="Execution context key")
    plan_parser.add_argument("--dry-run-output", default=None, help="Captured dry-run output")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    engine = SafetyEngine.from_settings()
    logger = get_logger(__name__)
    logger.debug("Running %s for %r", args.action, args.command)

    if args.action == "classify":
        result = engine.classify(args.command)
        print(json.dumps(result, default=json_default, indent=2))
        return 0

    submission = engine.submit(
        args.command,
        args.request or args.command,
        context=args.context,
        dry_run_output=args.dry_run_output,
    )
    print(engine.format_plan(submission.plan))
    print()
    print(f"Status: {submission.plan.status.value}")
    for reason in submission.policy.reasons:
        print(f"  - {reason}")
    return 0


def run_entrypoint() -> None:
    sys.exit(main())
