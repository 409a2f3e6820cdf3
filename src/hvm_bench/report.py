"""Side-by-side comparison tables of benchmark outcomes.

The report has one section for compiled modes and one for interpreted
modes. Each section lists every program with one row per mode and one
column per revision:

    file            runtime         main            (local)
    ==============================================================
    fib             c                        0.01s           0.02s
                    cuda                   timeout           error
    --------------------------------------------------------------
"""

from __future__ import annotations

from collections.abc import Iterable

from hvm_bench.modes import ExecutionMode, split_modes
from hvm_bench.results import ResultStore, render_outcome

COLUMN_WIDTH = 14
COLUMN_PADDING = "  "


def _format_row(cells: Iterable[str], left_aligned: int) -> str:
    """Join cells, left-aligning the first `left_aligned` and right-aligning the rest."""
    return COLUMN_PADDING.join(
        f"{cell:<{COLUMN_WIDTH}}" if i < left_aligned else f"{cell:>{COLUMN_WIDTH}}"
        for i, cell in enumerate(cells)
    )


def format_header(revisions: list[str]) -> str:
    header = _format_row(["file", "runtime", *revisions], left_aligned=2 + len(revisions))
    return f"{header}\n{'=' * len(header)}"


def format_rows(
    store: ResultStore,
    modes: list[ExecutionMode],
    revisions: list[str] | None = None,
) -> list[str]:
    """Format one row per (program, mode), with a separator after each program."""
    if revisions is None:
        revisions = store.revisions()
    lines: list[str] = []

    for program in store.programs():
        row = ""
        for i, mode in enumerate(modes):
            values = [render_outcome(store.lookup(rev, program, mode.key)) for rev in revisions]
            row = _format_row([program if i == 0 else "", mode.name, *values], left_aligned=2)
            lines.append(row)
        lines.append("-" * len(row))

    return lines


def format_section(
    title: str,
    store: ResultStore,
    modes: list[ExecutionMode],
    revisions: list[str],
) -> str:
    lines = [
        title,
        "=" * len(title),
        "",
        format_header(revisions),
        *format_rows(store, modes, revisions),
    ]
    return "\n".join(lines) + "\n"


def format_report(
    store: ResultStore,
    modes: Iterable[ExecutionMode],
    revisions: Iterable[str] | None = None,
) -> str:
    """Format benchmark outcomes as compiled and interpreted tables.

    Args:
        store: Outcomes of the run.
        modes: Registered execution modes, in row order.
        revisions: Revision labels, in column order. Defaults to the
            revisions with recorded outcomes, so pass them explicitly for
            a report that lists every built revision.

    Returns:
        Report text.
    """
    columns = store.revisions() if revisions is None else list(revisions)
    compiled, interpreted = split_modes(modes)
    sections = []
    if compiled:
        sections.append(format_section("compiled", store, compiled, columns))
    if interpreted:
        sections.append(format_section("interpreted", store, interpreted, columns))
    return "\n".join(sections)
