"""Command-line entry point for the Kira advisor."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from kira_advisor import api
from kira_advisor.config import configure_logging
from kira_advisor.runtime import get_runtime

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kira-advisor",
        description="Kira carbon and GITA tax advisor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s chat user-1 "How much carbon tax would I pay at RM35/t?"
  %(prog)s chat user-1 "How can I reduce this bill?" --attachment rcpt-1
  %(prog)s scan user-1 ./receipt.jpg
  %(prog)s benchmark user-1
  %(prog)s health
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Ask Kira a question")
    chat.add_argument("user_id", help="User ID")
    chat.add_argument("message", nargs="+", help="Question for Kira")
    chat.add_argument("--attachment", default=None, help="Receipt ID to attach")
    chat.add_argument(
        "--show-tools", action="store_true", help="Include the tools Kira used"
    )

    scan = subparsers.add_parser("scan", help="Extract and classify a receipt image")
    scan.add_argument("user_id", help="User ID")
    scan.add_argument("image", type=Path, help="Path to the receipt image")

    benchmark = subparsers.add_parser(
        "benchmark", help="Compare a user's carbon intensity with their industry"
    )
    benchmark.add_argument("user_id", help="User ID")

    subparsers.add_parser("health", help="Liveness check")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    result: dict[str, Any]

    if args.command == "health":
        result = api.health()
    elif args.command == "chat":
        payload: dict[str, Any] = {"userId": args.user_id, "message": " ".join(args.message)}
        if args.attachment:
            payload["attachmentId"] = args.attachment
        result = await api.chat(payload, include_tools=args.show_tools)
    elif args.command == "scan":
        image_bytes = args.image.read_bytes()
        result = await api.process_receipt({"userId": args.user_id, "imageBytes": image_bytes})
    else:
        result = await get_runtime().registry.execute(
            "getIndustryBenchmark", {"userId": args.user_id}
        )

    print(json.dumps(result, indent=2, default=str))
    return 1 if "error" in result or result.get("success") is False else 0


def run() -> None:
    configure_logging()
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("interrupted")
    except Exception as e:
        logger.exception("command_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    run()
