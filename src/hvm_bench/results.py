"""Cell outcomes and the result matrix.

Every (revision, program, mode) cell of a benchmark run ends in exactly one
outcome:
- Timing: the opaque performance figure printed by the program
- Timeout: the program did not finish within its deadline
- Failure: anything else went wrong (exit status, missing marker, ...)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Timing:
    """A successful measurement.

    Attributes:
        token: Text following the timing marker, never parsed.
    """

    token: str


@dataclass(frozen=True)
class Timeout:
    """The process was killed after exceeding its deadline."""


@dataclass(frozen=True)
class Failure:
    """A cell-local error.

    Attributes:
        reason: Human readable description of what failed.
    """

    reason: str


Outcome = Timing | Timeout | Failure


def render_outcome(outcome: Outcome | None) -> str:
    """Render an outcome as a report cell."""
    if isinstance(outcome, Timing):
        return outcome.token
    if isinstance(outcome, Timeout):
        return "timeout"
    return "error"


class ResultStore:
    """Ordered, write-once mapping of revision -> program -> mode -> outcome.

    Revisions and programs keep the order in which they were first recorded,
    which is the order the runner visited them in.
    """

    def __init__(self) -> None:
        self._results: dict[str, dict[str, dict[str, Outcome]]] = {}

    def record(self, revision: str, program: str, mode: str, outcome: Outcome) -> None:
        """Record the outcome of a cell.

        Raises:
            ValueError: If the cell already has an outcome.
        """
        cells = self._results.setdefault(revision, {}).setdefault(program, {})
        if mode in cells:
            msg = f"Outcome for ({revision!r}, {program!r}, {mode!r}) already recorded"
            raise ValueError(msg)
        cells[mode] = outcome

    def lookup(self, revision: str, program: str, mode: str) -> Outcome | None:
        """Return the outcome of a cell, or None if it was never recorded."""
        return self._results.get(revision, {}).get(program, {}).get(mode)

    def revisions(self) -> list[str]:
        return list(self._results)

    def programs_for(self, revision: str) -> list[str]:
        return list(self._results.get(revision, {}))

    def programs(self) -> list[str]:
        """Sorted union of program names across all revisions."""
        names: set[str] = set()
        for programs in self._results.values():
            names.update(programs)
        return sorted(names)

    def missing(
        self,
        revisions: Iterable[str],
        programs: Iterable[str],
        modes: Iterable[str],
    ) -> list[tuple[str, str, str]]:
        """Return the cells of the cross product that have no outcome."""
        programs = list(programs)
        modes = list(modes)
        return [
            (revision, program, mode)
            for revision in revisions
            for program in programs
            for mode in modes
            if self.lookup(revision, program, mode) is None
        ]

    def __iter__(self) -> Iterator[tuple[str, str, str, Outcome]]:
        for revision, programs in self._results.items():
            for program, cells in programs.items():
                for mode, outcome in cells.items():
                    yield revision, program, mode, outcome

    def __len__(self) -> int:
        return sum(
            len(cells) for programs in self._results.values() for cells in programs.values()
        )
