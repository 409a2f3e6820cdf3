"""Command-line interface for the benchmark harness.

Provides the `hvm-bench` command with subcommands for:
- Benchmarking the local working copy against remote revisions
- Listing the registered execution modes
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from hvm_bench.builder import BuildError
from hvm_bench.modes import detect_compiler, select_modes, validate_modes
from hvm_bench.report import format_report
from hvm_bench.runner import (
    BenchConfig,
    BenchmarkProgress,
    BenchmarkRunner,
    load_config,
)


def print_error(error: BaseException) -> None:
    """Print an error and its chain of causes to stderr."""
    print(f"Error: {error}", file=sys.stderr)
    cause = error.__cause__
    while cause is not None:
        print(f"  caused by: {cause}", file=sys.stderr)
        cause = cause.__cause__


def resolve_config(args: argparse.Namespace) -> BenchConfig:
    """Load the configuration file, if any, and apply command-line overrides.

    Raises:
        ValueError: If the configuration is invalid.
    """
    config = load_config(Path(args.config)) if args.config else BenchConfig()

    if args.repo_dir is not None:
        config.repo_dir = Path(args.repo_dir)
    if args.revs:
        config.revs = list(args.revs)
    if args.programs_dir is not None:
        config.programs_dir = Path(args.programs_dir)
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.generate_timeout is not None:
        config.generate_timeout = args.generate_timeout
    if args.modes:
        config.modes = validate_modes(select_modes(config.modes, args.modes.split(",")))

    if config.timeout <= 0 or config.generate_timeout <= 0:
        raise ValueError("Timeouts must be positive")

    return config


def cmd_bench(args: argparse.Namespace) -> int:
    """Build and benchmark all revisions, then print the report."""
    try:
        config = resolve_config(args)
    except (OSError, ValueError) as e:
        print_error(e)
        return 1

    if not config.repo_dir.exists():
        print_error(ValueError(f"{config.repo_dir} does not exist"))
        return 1
    if not config.programs_dir.is_dir():
        print_error(ValueError(f"{config.programs_dir} is not a directory"))
        return 1

    # Progress callback
    def progress(p: BenchmarkProgress) -> None:
        if p.phase == "building":
            print(f"building {p.revision}: {p.step}", file=sys.stderr)
        else:
            print(f"  [{p.revision}] {p.step} ({p.mode})", file=sys.stderr)

    try:
        with BenchmarkRunner(config, progress_callback=None if args.quiet else progress) as runner:
            store = runner.bench()
            revisions = [revision.label for revision in runner.revisions()]
    except (BuildError, OSError, ValueError) as e:
        print_error(e)
        return 1

    print(format_report(store, config.modes, revisions))
    return 0


def cmd_modes(args: argparse.Namespace) -> int:
    """Show registered execution modes."""
    try:
        config = load_config(Path(args.config)) if args.config else BenchConfig()
    except (OSError, ValueError) as e:
        print_error(e)
        return 1

    print("Execution Modes")
    print("=" * 70)
    print(f"{'Mode':<20} {'Argument':<10} {'Compiler':<10} {'Flags':<14} Status")
    print("-" * 70)

    for mode in config.modes:
        if mode.compiled:
            compiler = mode.compiler or "-"
            status = "available" if detect_compiler(mode) else "not found"
        else:
            compiler = "-"
            status = "-"
        flags = " ".join(mode.flags) or "-"
        print(f"{mode.key:<20} {mode.arg:<10} {compiler:<10} {flags:<14} {status}")

    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hvm-bench",
        description="Compare HVM performance across revisions and execution modes",
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # bench command
    bench_parser = subparsers.add_parser("bench", help="Build and benchmark revisions")
    bench_parser.add_argument(
        "--repo-dir",
        help="Path to local hvm repo to benchmark (default: ./hvm)",
    )
    bench_parser.add_argument(
        "-r",
        "--revs",
        nargs="+",
        action="extend",
        help="Revisions of the remote repository to benchmark",
    )
    bench_parser.add_argument(
        "--programs-dir",
        help="Directory of benchmark programs (default: ./programs)",
    )
    bench_parser.add_argument(
        "--timeout",
        type=float,
        help="Timeout per benchmark run in seconds (default: 120)",
    )
    bench_parser.add_argument(
        "--generate-timeout",
        type=float,
        help="Timeout for code generation and native compilation in seconds (default: 600)",
    )
    bench_parser.add_argument(
        "--modes",
        help="Comma-separated list of execution modes (e.g. compiled-c,interpreted-rust)",
    )
    bench_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    bench_parser.set_defaults(func=cmd_bench)

    # modes command
    modes_parser = subparsers.add_parser("modes", help="Show execution modes")
    modes_parser.set_defaults(func=cmd_modes)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
