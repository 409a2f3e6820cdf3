"""Fake external tools for integration tests.

The runtime under test, the native compiler, git and cargo are replaced by
small executable Python scripts.

A fake runtime reads its behavior from the benchmark program itself: each
line of a program is `<mode-arg> <action>`, where action is one of
- `time <token>`: print some output and a `- TIME: <token>` line
- `hang`: sleep far longer than any test timeout
- `fail`: exit with status 3
- `silent`: print output without a timing line
- `emit <code>`: print `<code>` as generated source
`{rev}` in an action is replaced by the revision the runtime was built at.

The fake compiler turns generated source (which is Python code) into an
executable script, failing on sources containing COMPILE_ERROR, and logs
each invocation as a JSON line.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from hvm_bench.modes import COMPILED, INTERPRETED, ExecutionMode


def shebang() -> str:
    if len(sys.executable) < 120 and " " not in sys.executable:
        return f"#!{sys.executable}"
    return "#!/usr/bin/env python3"


FAKE_RUNTIME = """
import sys
import time

REVISION = "__REVISION__"

sys.stdout.reconfigure(encoding="utf-8")
mode, program = sys.argv[1], sys.argv[2]
actions = {}
with open(program, encoding="utf-8") as f:
    for line in f:
        key, _, action = line.strip().partition(" ")
        actions[key] = action.replace("{rev}", REVISION)

action = actions.get(mode, "fail")
if action == "hang":
    print("- TIME: too late", flush=True)
    time.sleep(60)
elif action == "fail":
    print("- TIME: 0.00s")
    sys.exit(3)
elif action == "silent":
    print("Result: 42")
elif action.startswith("emit "):
    print(action[len("emit "):])
elif action.startswith("time "):
    print("Result: 42")
    print("- TIME: " + action[len("time "):])
    print("- MIPS: 1.0")
else:
    sys.exit(2)
"""

FAKE_COMPILER = """
import json
import os
import sys

args = sys.argv[1:]
with open("__LOG__", "a") as log:
    log.write(json.dumps(args) + "\\n")

source = args[0]
output = args[args.index("-o") + 1]
with open(source, encoding="utf-8") as f:
    code = f.read()
if "COMPILE_ERROR" in code:
    sys.exit(1)
with open(output, "w", encoding="utf-8") as f:
    f.write("__SHEBANG__\\n" + code + "\\n")
os.chmod(output, 0o755)
"""

FAKE_GIT = """
import sys

command = sys.argv[1]
if command == "clone":
    if "__FAIL_CLONE__" == "yes":
        sys.exit(128)
    open("README", "w").close()
elif command == "checkout":
    ref = sys.argv[2]
    if ref == "missing":
        sys.exit(1)
    with open(".rev", "w") as f:
        f.write(ref)
"""

FAKE_CARGO = """
import os
import sys

assert sys.argv[1:] == ["build", "--release"]
try:
    with open(".rev") as f:
        revision = f.read()
except FileNotFoundError:
    revision = "local"
if revision == "broken":
    sys.exit(101)
os.makedirs(os.path.join("target", "release"), exist_ok=True)
output = os.path.join("target", "release", "hvm")
with open("__TEMPLATE__") as f:
    script = f.read()
with open(output, "w") as f:
    f.write(script.replace("__REVISION__", revision))
os.chmod(output, 0o755)
"""

MakeScript = Callable[[str, str], Path]


@pytest.fixture
def make_script(tmp_path: Path) -> MakeScript:
    """Factory writing an executable Python script into tmp_path/tools."""
    tools = tmp_path / "tools"
    tools.mkdir(exist_ok=True)

    def make(name: str, body: str) -> Path:
        path = tools / name
        path.write_text(shebang() + "\n" + body)
        path.chmod(0o755)
        return path

    return make


@pytest.fixture
def fake_runtime(make_script: MakeScript) -> Path:
    """A runtime binary built at revision "test"."""
    return make_script("hvm", FAKE_RUNTIME.replace("__REVISION__", "test"))


@pytest.fixture
def compiler_log(tmp_path: Path) -> Path:
    return tmp_path / "compiler.log"


@pytest.fixture
def fake_compiler(make_script: MakeScript, compiler_log: Path) -> Path:
    body = FAKE_COMPILER.replace("__LOG__", str(compiler_log)).replace("__SHEBANG__", shebang())
    return make_script("cc", body)


@pytest.fixture
def compiler_calls(compiler_log: Path) -> Callable[[], list[list[str]]]:
    """Return a function listing the fake compiler's invocations so far."""

    def read() -> list[list[str]]:
        if not compiler_log.exists():
            return []
        return [json.loads(line) for line in compiler_log.read_text().splitlines()]

    return read


@pytest.fixture
def test_modes(fake_compiler: Path) -> tuple[ExecutionMode, ...]:
    """Default mode layout, with the fake compiler for both compiled modes."""
    return (
        ExecutionMode("c", COMPILED, "gen-c", str(fake_compiler), ".c", ("-lm", "-O2")),
        ExecutionMode("cuda", COMPILED, "gen-cu", str(fake_compiler), ".cu", ("-w", "-O3")),
        ExecutionMode("c", INTERPRETED, "run-c"),
        ExecutionMode("cuda", INTERPRETED, "run-cu"),
        ExecutionMode("rust", INTERPRETED, "run"),
    )


@pytest.fixture
def write_program(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory writing a benchmark program into tmp_path/programs."""
    programs = tmp_path / "programs"
    programs.mkdir(exist_ok=True)

    def write(name: str, text: str) -> Path:
        path = programs / name
        path.write_text(text)
        return path

    return write


@pytest.fixture
def fake_toolchain(make_script: MakeScript) -> tuple[Path, Path]:
    """(git, cargo) scripts producing fake runtimes tagged with their revision."""
    template = make_script("runtime-template", FAKE_RUNTIME)
    git = make_script("git", FAKE_GIT.replace("__FAIL_CLONE__", "no"))
    cargo = make_script("cargo", FAKE_CARGO.replace("__TEMPLATE__", str(template)))
    return git, cargo


@pytest.fixture
def failing_git(make_script: MakeScript) -> Path:
    """A git script whose clone always fails."""
    return make_script("git-broken", FAKE_GIT.replace("__FAIL_CLONE__", "yes"))


@pytest.fixture
def local_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "hvm"
    repo.mkdir()
    return repo
