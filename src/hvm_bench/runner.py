"""Benchmark orchestration.

Provides the runner that coordinates:
- Loading the run configuration
- Building every revision of the runtime (build phase)
- Running every program under every execution mode against every
  build (run phase)
- Collecting one outcome per cell into a ResultStore
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Any

import yaml

from hvm_bench.builder import DEFAULT_ARTIFACT, DEFAULT_GIT_URL, Revision, RevisionBuilder
from hvm_bench.modes import DEFAULT_MODES, ExecutionMode, mode_from_dict, validate_modes
from hvm_bench.pipeline import run_mode
from hvm_bench.results import Failure, Outcome, ResultStore

DEFAULT_TIMEOUT = 120.0
DEFAULT_GENERATE_TIMEOUT = 600.0


@dataclass
class BenchConfig:
    """Configuration for a benchmark run.

    Attributes:
        repo_dir: Local working copy of the runtime.
        revs: Remote revisions to benchmark, in declaration order.
        programs_dir: Directory holding the benchmark programs.
        timeout: Deadline in seconds for each benchmarked process.
        generate_timeout: Deadline in seconds for code generation and
            native compilation in compiled modes.
        git_url: Repository cloned for remote revisions.
        git: git executable.
        cargo: cargo executable.
        artifact: Binary produced by `cargo build --release`, relative to
            the working copy.
        modes: Registered execution modes.
    """

    repo_dir: Path = Path("./hvm")
    revs: list[str] = field(default_factory=list)
    programs_dir: Path = Path("./programs")
    timeout: float = DEFAULT_TIMEOUT
    generate_timeout: float = DEFAULT_GENERATE_TIMEOUT
    git_url: str = DEFAULT_GIT_URL
    git: str = "git"
    cargo: str = "cargo"
    artifact: str = DEFAULT_ARTIFACT
    modes: tuple[ExecutionMode, ...] = DEFAULT_MODES


_CONFIG_KEYS = {
    "repo_dir",
    "revs",
    "programs_dir",
    "timeout",
    "generate_timeout",
    "git_url",
    "git",
    "cargo",
    "artifact",
    "modes",
}


def config_from_dict(data: dict[str, Any], base_path: Path | None = None) -> BenchConfig:
    """Build a configuration from a mapping.

    Relative paths are resolved against `base_path` when given.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    unknown = set(data) - _CONFIG_KEYS
    if unknown:
        msg = f"Unknown configuration keys: {', '.join(sorted(unknown))}"
        raise ValueError(msg)

    config = BenchConfig()

    for key in ("repo_dir", "programs_dir"):
        if key in data:
            if not isinstance(data[key], str):
                msg = f"'{key}' must be a path, got {data[key]!r}"
                raise ValueError(msg)
            path = Path(data[key])
            if base_path is not None and not path.is_absolute():
                path = base_path / path
            setattr(config, key, path)

    if "revs" in data:
        revs = data["revs"] or []
        if not isinstance(revs, list):
            raise ValueError("'revs' must be a list of revisions")
        config.revs = [str(rev) for rev in revs]

    for key in ("timeout", "generate_timeout"):
        if key in data:
            try:
                value = float(data[key])
            except (TypeError, ValueError):
                msg = f"'{key}' must be a number of seconds, got {data[key]!r}"
                raise ValueError(msg) from None
            if value <= 0:
                msg = f"'{key}' must be positive, got {value}"
                raise ValueError(msg)
            setattr(config, key, value)

    for key in ("git_url", "git", "cargo", "artifact"):
        if key in data:
            setattr(config, key, str(data[key]))

    if "modes" in data:
        modes = data["modes"] or []
        if not isinstance(modes, list):
            raise ValueError("'modes' must be a list of execution modes")
        config.modes = validate_modes(mode_from_dict(mode) for mode in modes)

    return config


def load_config(config_path: Path) -> BenchConfig:
    """Load a run configuration from YAML.

    Args:
        config_path: Path to the YAML file.

    Returns:
        BenchConfig with file values over defaults.
    """
    with Path(config_path).open() as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            msg = f"{config_path}: invalid YAML"
            raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = f"{config_path}: expected a mapping at top level"
        raise ValueError(msg)

    return config_from_dict(data, base_path=Path(config_path).parent)


def enumerate_programs(programs_dir: Path) -> list[Path]:
    """Return the benchmark corpus: every visible file, sorted by name."""
    return sorted(
        path
        for path in Path(programs_dir).iterdir()
        if path.is_file() and not path.name.startswith(".")
    )


def check_program_names(programs: list[Path]) -> None:
    """Programs are identified by file stem, which must be unique.

    Raises:
        ValueError: If two programs share a stem.
    """
    names = [program.stem for program in programs]
    if len(set(names)) != len(names):
        msg = f"Benchmark programs must have distinct names: {', '.join(names)}"
        raise ValueError(msg)


@dataclass
class BenchmarkProgress:
    """Progress callback information.

    Attributes:
        phase: "building" or "running".
        revision: Revision label.
        step: Build step, or the program name while running.
        mode: Execution mode key while running.
    """

    phase: str
    revision: str
    step: str
    mode: str | None = None


# Type for progress callbacks
ProgressCallback = Callable[[BenchmarkProgress], None]


class BenchmarkRunner:
    """Main benchmark runner.

    Owns a private workspace holding the built binaries, the shared remote
    clone and per-cell scratch files; the workspace is removed when the
    runner is closed, on every exit path. Use as a context manager.

    Attributes:
        config: Run configuration.
        progress_callback: Optional callback for progress updates.
    """

    def __init__(
        self,
        config: BenchConfig,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config
        self.progress_callback = progress_callback
        self._tempdir: tempfile.TemporaryDirectory[str] | None = None

        labels = [revision.label for revision in self.revisions()]
        if len(set(labels)) != len(labels):
            msg = f"Duplicate revisions: {', '.join(labels)}"
            raise ValueError(msg)

    def __enter__(self) -> BenchmarkRunner:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        """Create the private workspace."""
        self._tempdir = tempfile.TemporaryDirectory(prefix="hvm-bench-")
        (self.workspace / "bin").mkdir()
        (self.workspace / "scratch").mkdir()

    def close(self) -> None:
        """Remove the workspace and everything in it."""
        if self._tempdir:
            self._tempdir.cleanup()
            self._tempdir = None

    @property
    def workspace(self) -> Path:
        if not self._tempdir:
            raise RuntimeError("Runner not open")
        return Path(self._tempdir.name)

    def revisions(self) -> list[Revision]:
        """Remote revisions in declaration order, then the local one."""
        return [Revision.remote(rev) for rev in self.config.revs] + [Revision.local()]

    def _progress(self, progress: BenchmarkProgress) -> None:
        if self.progress_callback:
            self.progress_callback(progress)

    def build_all(self) -> dict[str, Path]:
        """Build every revision.

        Returns:
            Binary path keyed by revision label, in revision order.

        Raises:
            BuildError: If any revision fails to build.
        """

        def on_step(revision: Revision, step: str) -> None:
            self._progress(BenchmarkProgress("building", revision.label, step))

        builder = RevisionBuilder(
            workspace=self.workspace,
            local_dir=self.config.repo_dir,
            git_url=self.config.git_url,
            git=self.config.git,
            cargo=self.config.cargo,
            artifact=self.config.artifact,
            progress_callback=on_step,
        )
        return builder.build_all(self.revisions())

    def run_cell(self, binary: Path, mode: ExecutionMode, program: Path) -> Outcome:
        """Run one cell, converting any error into a Failure."""
        try:
            return run_mode(
                binary,
                mode,
                program,
                timeout=self.config.timeout,
                generate_timeout=self.config.generate_timeout,
                scratch_dir=self.workspace / "scratch",
            )
        except Exception as e:
            return Failure(str(e) or type(e).__name__)

    def run_all(
        self,
        binaries: dict[str, Path],
        programs: list[Path] | None = None,
    ) -> ResultStore:
        """Run every program under every mode against every binary.

        Args:
            binaries: Binary path keyed by revision label, in column order.
            programs: Corpus; enumerated from the programs directory if None.

        Returns:
            ResultStore with exactly one outcome per cell.
        """
        if programs is None:
            programs = enumerate_programs(self.config.programs_dir)
        check_program_names(programs)
        programs = [program.resolve() for program in programs]

        store = ResultStore()
        for label, binary in binaries.items():
            for program in programs:
                for mode in self.config.modes:
                    self._progress(BenchmarkProgress("running", label, program.stem, mode.key))
                    outcome = self.run_cell(binary, mode, program)
                    store.record(label, program.stem, mode.key, outcome)
        return store

    def bench(self) -> ResultStore:
        """Build every revision, then benchmark them.

        The run phase starts only after every build has succeeded, so a
        build failure leaves no outcome recorded for any revision.

        Raises:
            BuildError: If any revision fails to build.
        """
        programs = enumerate_programs(self.config.programs_dir)
        check_program_names(programs)
        binaries = self.build_all()
        return self.run_all(binaries, programs)
