"""Building the runtime at each revision.

The local working copy is built in place. Remote revisions share a single
clone inside the run's workspace: each one is checked out, built, and its
binary moved out before the next checkout.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from hvm_bench.process import ProcessError, require_success

LOCAL = "local"
REMOTE = "remote"
LOCAL_LABEL = "(local)"
DEFAULT_GIT_URL = "https://github.com/HigherOrderCO/hvm.git"
DEFAULT_ARTIFACT = "target/release/hvm"


class BuildError(Exception):
    """A revision could not be checked out or built. Aborts the run."""


@dataclass(frozen=True)
class Revision:
    """A version of the runtime under test.

    Attributes:
        label: Column label in the report ("(local)" or the remote ref).
        kind: LOCAL or REMOTE.
    """

    label: str
    kind: str

    @classmethod
    def local(cls) -> Revision:
        return cls(LOCAL_LABEL, LOCAL)

    @classmethod
    def remote(cls, ref: str) -> Revision:
        return cls(ref, REMOTE)

    @property
    def is_local(self) -> bool:
        return self.kind == LOCAL


def binary_dir_name(revision: Revision, index: int) -> str:
    """Directory name holding a revision's binary, unique per build index."""
    slug = re.sub(r"[^A-Za-z0-9._-]", "_", revision.label)
    return f"{index:02d}-{slug}"


# Called with (revision, step) before each build step
BuildCallback = Callable[[Revision, str], None]


class RevisionBuilder:
    """Builds runtime binaries into a workspace.

    Attributes:
        workspace: Private directory owned by the run.
        local_dir: Local working copy.
        git_url: Repository cloned for remote revisions.
        git: git executable.
        cargo: cargo executable.
        artifact: Path of the built binary relative to a working copy.
        progress_callback: Optional callback for progress updates.
    """

    def __init__(
        self,
        workspace: Path,
        local_dir: Path,
        git_url: str = DEFAULT_GIT_URL,
        git: str = "git",
        cargo: str = "cargo",
        artifact: str = DEFAULT_ARTIFACT,
        progress_callback: BuildCallback | None = None,
    ) -> None:
        self.workspace = workspace
        self.local_dir = local_dir
        self.git_url = git_url
        self.git = git
        self.cargo = cargo
        self.artifact = artifact
        self.progress_callback = progress_callback
        self._cloned = False

    @property
    def bin_dir(self) -> Path:
        return self.workspace / "bin"

    @property
    def repo_dir(self) -> Path:
        return self.workspace / "repo"

    def _progress(self, revision: Revision, step: str) -> None:
        if self.progress_callback:
            self.progress_callback(revision, step)

    def _cargo_build(self, revision: Revision, directory: Path) -> Path:
        self._progress(revision, "cargo build")
        try:
            require_success([self.cargo, "build", "--release"], cwd=directory)
        except ProcessError as e:
            msg = f"cargo build of {revision.label} failed"
            raise BuildError(msg) from e

        built = directory / self.artifact
        if not built.is_file():
            msg = f"cargo build of {revision.label} did not produce {self.artifact}"
            raise BuildError(msg)
        return built

    def _clone(self, revision: Revision) -> None:
        if self._cloned:
            return

        self._progress(revision, f"clone {self.git_url}")
        self.repo_dir.mkdir(parents=True, exist_ok=True)
        try:
            require_success([self.git, "clone", self.git_url, "."], cwd=self.repo_dir)
        except ProcessError as e:
            msg = f"clone of {self.git_url} failed"
            raise BuildError(msg) from e
        self._cloned = True

    def _checkout(self, revision: Revision) -> None:
        self._clone(revision)
        self._progress(revision, "checkout")
        try:
            require_success([self.git, "checkout", revision.label], cwd=self.repo_dir)
        except ProcessError as e:
            msg = f"checkout of {revision.label} failed"
            raise BuildError(msg) from e

    def build(self, revision: Revision, index: int) -> Path:
        """Build a revision and return the path of its binary.

        Args:
            revision: Revision to build.
            index: Position of the revision in the build order.

        Returns:
            Path of the binary inside the workspace.

        Raises:
            BuildError: If checkout or build fails.
        """
        target_dir = self.bin_dir / binary_dir_name(revision, index)
        binary = target_dir / Path(self.artifact).name

        try:
            target_dir.mkdir(parents=True)
        except OSError as e:
            msg = f"cannot create binary directory for {revision.label}"
            raise BuildError(msg) from e

        if revision.is_local:
            built = self._cargo_build(revision, self.local_dir)
            shutil.copy2(built, binary)
        else:
            self._checkout(revision)
            built = self._cargo_build(revision, self.repo_dir)
            shutil.move(built, binary)

        return binary

    def build_all(self, revisions: Iterable[Revision]) -> dict[str, Path]:
        """Build revisions in order, returning binaries keyed by label.

        Raises:
            BuildError: On the first failure; later revisions are not built.
        """
        binaries: dict[str, Path] = {}
        for index, revision in enumerate(revisions):
            binaries[revision.label] = self.build(revision, index)
        return binaries
