"""Execution modes of the runtime under test.

A program is either run directly by one of the runtime's interpreters, or
the runtime generates source code for a native toolchain which is then
compiled and run:
- interpreted modes: `hvm <arg> <program>` prints the timing line
- compiled modes: `hvm <arg> <program>` prints source code, which is
  compiled with `<compiler> <source> <flags...> -o <binary>`
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

INTERPRETED = "interpreted"
COMPILED = "compiled"


@dataclass(frozen=True)
class ExecutionMode:
    """A way of running a benchmark program.

    Attributes:
        name: Display name in the report (e.g., "c", "cuda").
        kind: INTERPRETED or COMPILED.
        arg: Runtime sub-command ("run-c" for interpreted modes, the
            generation sub-mode such as "gen-c" for compiled modes).
        compiler: Native compiler executable (compiled modes only).
        suffix: File suffix of the generated source (compiled modes only).
        flags: Compiler flags placed between the source and `-o`.
    """

    name: str
    kind: str
    arg: str
    compiler: str | None = None
    suffix: str | None = None
    flags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind == COMPILED and not (self.compiler and self.suffix):
            msg = f"Compiled mode '{self.key}' needs both 'compiler' and 'suffix'"
            raise ValueError(msg)

    @property
    def key(self) -> str:
        """Unique identifier, e.g. "compiled-c" or "interpreted-rust"."""
        return f"{self.kind}-{self.name}"

    @property
    def compiled(self) -> bool:
        return self.kind == COMPILED


DEFAULT_MODES: tuple[ExecutionMode, ...] = (
    ExecutionMode("c", COMPILED, "gen-c", compiler="gcc", suffix=".c", flags=("-lm", "-O2")),
    ExecutionMode("cuda", COMPILED, "gen-cu", compiler="nvcc", suffix=".cu", flags=("-w", "-O3")),
    ExecutionMode("c", INTERPRETED, "run-c"),
    ExecutionMode("cuda", INTERPRETED, "run-cu"),
    ExecutionMode("rust", INTERPRETED, "run"),
)

_MODE_FIELDS = {"name", "kind", "arg", "compiler", "suffix", "flags"}


def mode_from_dict(data: dict[str, Any]) -> ExecutionMode:
    """Build an execution mode from a configuration mapping.

    Raises:
        ValueError: If the mapping is incomplete or inconsistent.
    """
    if not isinstance(data, dict):
        msg = f"Execution mode must be a mapping, got {data!r}"
        raise ValueError(msg)

    unknown = set(data) - _MODE_FIELDS
    if unknown:
        msg = f"Unknown execution mode keys: {', '.join(sorted(unknown))}"
        raise ValueError(msg)

    for required in ("name", "kind", "arg"):
        if not data.get(required):
            msg = f"Execution mode is missing '{required}': {data}"
            raise ValueError(msg)

    kind = data["kind"]
    if kind not in (INTERPRETED, COMPILED):
        msg = f"Execution mode kind must be '{INTERPRETED}' or '{COMPILED}', got {kind!r}"
        raise ValueError(msg)

    flags = data.get("flags") or []
    if isinstance(flags, str):
        flags = flags.split()
    elif not isinstance(flags, list):
        msg = f"Execution mode flags must be a list or a string, got {flags!r}"
        raise ValueError(msg)

    return ExecutionMode(
        name=str(data["name"]),
        kind=kind,
        arg=str(data["arg"]),
        compiler=data.get("compiler"),
        suffix=data.get("suffix"),
        flags=tuple(str(flag) for flag in flags),
    )


def validate_modes(modes: Iterable[ExecutionMode]) -> tuple[ExecutionMode, ...]:
    """Check that mode keys are unique.

    Raises:
        ValueError: On an empty registry or duplicate keys.
    """
    modes = tuple(modes)
    if not modes:
        raise ValueError("At least one execution mode is required")

    seen: set[str] = set()
    for mode in modes:
        if mode.key in seen:
            msg = f"Duplicate execution mode '{mode.key}'"
            raise ValueError(msg)
        seen.add(mode.key)
    return modes


def select_modes(modes: Iterable[ExecutionMode], keys: Iterable[str]) -> tuple[ExecutionMode, ...]:
    """Select a subset of modes by key, keeping registry order.

    Raises:
        ValueError: If a key does not name a registered mode.
    """
    modes = tuple(modes)
    known = {mode.key for mode in modes}
    wanted = [key.strip() for key in keys if key.strip()]

    unknown = [key for key in wanted if key not in known]
    if unknown:
        msg = (
            f"Unknown execution mode(s): {', '.join(unknown)} "
            f"(available: {', '.join(mode.key for mode in modes)})"
        )
        raise ValueError(msg)

    return tuple(mode for mode in modes if mode.key in wanted)


def split_modes(
    modes: Iterable[ExecutionMode],
) -> tuple[list[ExecutionMode], list[ExecutionMode]]:
    """Split modes into (compiled, interpreted), keeping order."""
    modes = list(modes)
    compiled = [mode for mode in modes if mode.compiled]
    interpreted = [mode for mode in modes if not mode.compiled]
    return compiled, interpreted


def detect_compiler(mode: ExecutionMode) -> str | None:
    """Return the path of a compiled mode's compiler, or None if not found."""
    if not mode.compiler:
        return None
    return shutil.which(mode.compiler)
