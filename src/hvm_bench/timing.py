"""Extraction of the timing figure from runtime output."""

from __future__ import annotations

from hvm_bench.results import Failure, Timing

# Prefix of the line HVM prints after evaluating a program
TIME_PREFIX = "- TIME: "


def extract_timing(text: str) -> Timing | Failure:
    """Return the timing token of the first line carrying TIME_PREFIX.

    Args:
        text: Captured standard output.

    Returns:
        Timing with the rest of the line (unparsed), or Failure if no line
        carries the marker.
    """
    for line in text.splitlines():
        if line.startswith(TIME_PREFIX):
            return Timing(line[len(TIME_PREFIX) :])
    return Failure("marker not found")
