"""Comparative benchmark harness for the HVM runtime.

This package builds HVM at several revisions and compares them with:
- Interpreted and generate-compile-run execution modes
- Per-run timeouts with failures isolated to a single cell
- Side-by-side text reports across revisions
"""

from __future__ import annotations

from hvm_bench.builder import BuildError, Revision, RevisionBuilder
from hvm_bench.modes import DEFAULT_MODES, ExecutionMode
from hvm_bench.report import format_report
from hvm_bench.results import Failure, Outcome, ResultStore, Timeout, Timing
from hvm_bench.runner import BenchConfig, BenchmarkRunner, load_config
from hvm_bench.timing import TIME_PREFIX, extract_timing

__all__ = [
    "DEFAULT_MODES",
    "TIME_PREFIX",
    "BenchConfig",
    "BenchmarkRunner",
    "BuildError",
    "ExecutionMode",
    "Failure",
    "Outcome",
    "ResultStore",
    "Revision",
    "RevisionBuilder",
    "Timeout",
    "Timing",
    "extract_timing",
    "format_report",
    "load_config",
]
