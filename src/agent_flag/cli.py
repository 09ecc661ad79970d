"""Command-line entrypoint: run sample inquiries, one inquiry, or the API."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict

from agent_flag.bootstrap import Runtime, build_runtime, start_runtime
from agent_flag.config import get_settings
from agent_flag.exceptions import AgentFlagError
from agent_flag.obs.logging import get_logger
from agent_flag.types import Failure, Inquiry

logger = get_logger("agent_flag.cli")

SAMPLE_INQUIRIES = [
    Inquiry(
        id="INQ-001",
        user_id="user-123",
        type="critical",
        message="Our production API is down and returning 500 errors for all requests!",
    ),
    Inquiry(
        id="INQ-002",
        user_id="user-456",
        type="feature",
        message="How do I configure custom authentication in your SDK?",
    ),
    Inquiry(
        id="INQ-003",
        user_id="user-789",
        type="integration",
        message="Getting CORS errors when integrating your API with our React app",
    ),
]


async def run_inquiries(runtime: Runtime, inquiries: list[Inquiry]) -> int:
    """Process inquiries in order and print a one-line summary for each.

    Returns the number of failed inquiries. The flag service is closed even
    when processing raises.
    """
    failures = 0
    try:
        await start_runtime(runtime)
        for inquiry in inquiries:
            outcome = await runtime.executor.execute(inquiry)
            if isinstance(outcome, Failure):
                failures += 1
                print(f"FAILED {inquiry.id}: {outcome.error.message}", file=sys.stderr, flush=True)
                continue
            result = outcome.value
            print(
                f"OK {inquiry.id}: {result.combo} | {result.intent.category} | "
                f"{len(result.retrieval.documents)} docs | {result.response.format} | "
                f"{result.execution_time_ms:.0f}ms",
                flush=True,
            )
    finally:
        await runtime.flag_service.close()
    return failures


async def run_single(runtime: Runtime, inquiry: Inquiry) -> int:
    try:
        await start_runtime(runtime)
        outcome = await runtime.executor.execute(inquiry)
    finally:
        await runtime.flag_service.close()
    if isinstance(outcome, Failure):
        print(json.dumps({"inquiry_id": inquiry.id, "error": asdict(outcome.error)}, indent=2), file=sys.stderr)
        return 1
    print(json.dumps(asdict(outcome.value), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agent-flag", description="Flag-driven customer support workflow.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("demo", help="Run the three sample inquiries")

    run = commands.add_parser("run", help="Process one inquiry and print the JSON result")
    run.add_argument("message", nargs="+", help="Inquiry message")
    run.add_argument("--id", default="INQ-CLI", help="Inquiry id")
    run.add_argument("--user", default="cli-user", help="User id used for flag targeting")
    run.add_argument(
        "--type",
        default="quick",
        choices=["critical", "feature", "integration", "quick"],
        help="Inquiry type",
    )

    serve = commands.add_parser("serve", help="Serve the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("agent_flag.api.main:create_app", factory=True, host=args.host, port=args.port)
        return 0

    try:
        runtime = build_runtime(get_settings())
        if args.command == "demo":
            failures = asyncio.run(run_inquiries(runtime, SAMPLE_INQUIRIES))
            return 1 if failures else 0
        inquiry = Inquiry(id=args.id, user_id=args.user, type=args.type, message=" ".join(args.message))
        return asyncio.run(run_single(runtime, inquiry))
    except AgentFlagError as exc:
        logger.error("Startup failed: %s", exc)
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
