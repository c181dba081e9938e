"""
Block Manipulation Demo - Main Entry Point

Usage:
    # Loop forever: reset → detect → select → pick & place → reset ...
    python -m main

    # Single cycle, then exit
    python -m main --once

    # Stop after N cycles
    python -m main --cycles 3

    # Skip detection and selection, go straight to pick & place
    python -m main --skip-perception

    # Point at a different server host
    python -m main --base-url http://arm-pc:8100

Exit status is 1 when a stage failure halted the pipeline, 0 otherwise.
Handles Ctrl+C by printing a session summary.
"""
import sys
import signal
import atexit
import argparse
from typing import Optional

from config import Config, DemoConfig
from channels import CompletionQueue
from orchestrator import Orchestrator, StageEndpoints, get_session, end_session


BANNER = """
╔══════════════════════════════════════════════════════════════╗
║           BLOCK MANIPULATION DEMO                            ║
║                                                              ║
║   Reset → detect blocks → pick a block → pick & place.       ║
║                                                              ║
║   Press Ctrl+C to stop.                                      ║
╚══════════════════════════════════════════════════════════════╝
"""


# ─────────────────────────────────────────────────────────────
# Shutdown Handler
# ─────────────────────────────────────────────────────────────

_shutdown_in_progress = False


def print_summary() -> None:
    summary = get_session().get_summary()

    print(f"\nSession Status:")
    print(f"  Stage: {summary['stage']}")
    print(f"  Cycles Started: {summary['cycles_started']}")
    print(f"  Cycles Completed: {summary['cycles_completed']}")
    for stage, count in summary["submissions"].items():
        failed = summary["failures"].get(stage, 0)
        print(f"  {stage}: {count} sent, {failed} failed")
    if summary["halt_reason"]:
        print(f"  Halted: {summary['halt_reason']}")


def handle_shutdown(signum: Optional[int] = None, frame=None) -> None:
    """Handle Ctrl+C (SIGINT) and SIGTERM. Outstanding goals are abandoned."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        print("\n\n⚠️  Force quit.")
        sys.exit(1)

    _shutdown_in_progress = True

    print("\n")
    print("=" * 60)
    print("🛑 INTERRUPT RECEIVED")
    print("=" * 60)

    session = get_session()
    session.was_interrupted = True
    print_summary()

    print(f"\n" + "=" * 60)
    print("Goodbye!")
    print("=" * 60 + "\n")

    end_session()
    sys.exit(130 if signum == signal.SIGINT else 0)


def setup_signal_handlers() -> None:
    """Set up signal handlers for graceful shutdown."""
    signal.signal(signal.SIGINT, handle_shutdown)
    if hasattr(signal, 'SIGHUP'):
        signal.signal(signal.SIGHUP, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)
    atexit.register(lambda: end_session())


# ─────────────────────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────────────────────

def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Block manipulation demo: reset, detect, select, pick & place",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", dest="once", action="store_true", default=None,
                      help="Run a single cycle, then exit (env: ONCE)")
    mode.add_argument("--loop", dest="once", action="store_false", default=None,
                      help="Restart after every cycle (default)")
    parser.add_argument("--cycles", type=positive_int, default=None,
                        help="Stop after this many complete cycles")
    parser.add_argument("--skip-perception", dest="skip_perception", action="store_true", default=None,
                        help="Go straight from reset to pick & place (env: SKIP_PERCEPTION)")
    parser.add_argument("--base-url", default=Config.ENDPOINT_BASE_URL,
                        help=f"Stage server base URL (default: {Config.ENDPOINT_BASE_URL})")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = DemoConfig.from_env(once=args.once, skip_perception=args.skip_perception)

    print(BANNER)
    print(f"🔗 Stage servers: {args.base_url}")
    print(f"🔁 Mode: {'single cycle' if config.once else 'loop'}")

    completions = CompletionQueue()
    endpoints = StageEndpoints.over_http(
        args.base_url,
        completions,
        poll_interval=Config.SERVER_POLL_INTERVAL,
    )

    orchestrator = Orchestrator(config, endpoints, completions)
    result = orchestrator.run(max_cycles=args.cycles)

    print_summary()
    if result.fatal:
        print(f"\n❌ Stopped after {result.cycles} cycle(s): {result.reason}", file=sys.stderr)
        return 1

    print(f"\n✅ Done after {result.cycles} cycle(s).")
    return 0


def cli() -> None:
    setup_signal_handlers()
    sys.exit(main())


if __name__ == "__main__":
    cli()
