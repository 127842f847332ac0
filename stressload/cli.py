import argparse
import logging
import signal
import sys

from stressload.config import settings
from stressload.errors import ArgumentError
from stressload.stress import build_plan, print_banner, print_usage_snapshot, run_plan

EXAMPLES = """
Examples:
  stress-load --timeout 60s --cpu 2
  stress-load --timeout 30s --cpu 0          # Use all CPU cores
  stress-load --timeout 5m --memory 1GB
  stress-load --timeout 2m --storage 80%
  stress-load --timeout 30s --cpu 1 --memory 512MB --storage 500MB
"""


class StressArgumentParser(argparse.ArgumentParser):
    """argparse exits 2 on bad input; stress-load exits 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def build_parser():
    parser = StressArgumentParser(
        prog="stress-load",
        description="Apply CPU, memory and storage load for a bounded duration.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--timeout", required=True,
                        help="Duration to apply load (e.g., 30s, 5m, 1h)")
    parser.add_argument("--cpu", type=int, default=-1,
                        help="Number of CPU cores to use (0 = use all cores)")
    parser.add_argument("--memory", help="Memory load (e.g., 1GB, 512MB, 95%%)")
    parser.add_argument("--storage", help="Storage load (e.g., 500MB, 80%%)")
    parser.add_argument("--storage-dir",
                        help="Directory whose volume receives the storage load "
                             "(defaults to the system temp dir)")
    parser.add_argument("--log-level", help=f"Logging level (default: {settings.log_level})")
    return parser


def _interrupt(signum, frame):
    raise KeyboardInterrupt


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.storage_dir:
        overrides["storage_dir"] = args.storage_dir
    if args.log_level:
        overrides["log_level"] = args.log_level
    config = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        plan = build_plan(args.timeout, args.cpu, args.memory, args.storage)
    except ArgumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    print_banner(plan)
    print_usage_snapshot("before", config)

    # SIGTERM takes the same path as Ctrl+C.
    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        run_plan(plan, config=config)
    finally:
        signal.signal(signal.SIGTERM, previous)

    print_usage_snapshot("after", config)
    return 0
