"""Running one benchmark cell under an execution mode.

Interpreted modes run the program directly through the runtime binary.
Compiled modes go through two stages:
1. Generate: the runtime emits source code for the native toolchain
2. Compile & run: the source is compiled to a scratch binary, which is
   then run under the benchmark timeout

Every function here returns an Outcome instead of raising for cell-local
problems.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from hvm_bench.modes import ExecutionMode
from hvm_bench.process import run_process
from hvm_bench.results import Failure, Outcome, Timeout
from hvm_bench.timing import extract_timing


def run_interpreted(
    binary: Path,
    mode: ExecutionMode,
    program: Path,
    timeout: float,
) -> Outcome:
    """Run `binary <mode.arg> <program>` and extract its timing."""
    stdout = run_process([binary, mode.arg, program], timeout)
    if isinstance(stdout, (Timeout, Failure)):
        return stdout
    return extract_timing(stdout)


def generate_source(
    binary: Path,
    mode: ExecutionMode,
    program: Path,
    timeout: float,
) -> str | Failure:
    """Have the runtime generate native source code for a program.

    Generation is not what is being measured, so running out of time here
    is reported as a failure rather than a timeout.
    """
    stdout = run_process([binary, mode.arg, program], timeout)
    if isinstance(stdout, Timeout):
        return Failure("generation timed out")
    if isinstance(stdout, Failure):
        return Failure(f"generation failed: {stdout.reason}")
    return stdout


def compile_and_run(
    mode: ExecutionMode,
    source: Path,
    workdir: Path,
    timeout: float,
    compile_timeout: float,
) -> Outcome:
    """Compile a generated source file and run the resulting binary.

    Args:
        mode: Compiled execution mode providing compiler and flags.
        source: Generated source file.
        workdir: Scratch directory receiving the binary.
        timeout: Deadline for the benchmark run.
        compile_timeout: Deadline for the compiler.

    Returns:
        Outcome of the run.
    """
    binary = workdir / "bin"

    compiled = run_process(
        [mode.compiler, source, *mode.flags, "-o", binary],
        compile_timeout,
        cwd=workdir,
    )
    if isinstance(compiled, (Timeout, Failure)):
        return Failure("compile error")

    stdout = run_process([binary], timeout, cwd=workdir)
    if isinstance(stdout, (Timeout, Failure)):
        return stdout
    return extract_timing(stdout)


def run_compiled(
    binary: Path,
    mode: ExecutionMode,
    program: Path,
    timeout: float,
    generate_timeout: float,
    scratch_dir: Path | None = None,
) -> Outcome:
    """Run a program under a compiled execution mode.

    The generated source and the compiled binary live in a per-cell
    scratch directory which is removed whatever the outcome.

    Args:
        binary: Runtime binary of the revision being benchmarked.
        mode: Compiled execution mode.
        program: Benchmark program.
        timeout: Deadline for running the compiled program.
        generate_timeout: Deadline for generation and for compilation.
        scratch_dir: Parent of the per-cell scratch directory.

    Returns:
        Outcome of the cell.
    """
    generated = generate_source(binary, mode, program, generate_timeout)
    if isinstance(generated, Failure):
        return generated

    with tempfile.TemporaryDirectory(prefix="hvm-bench-compile-", dir=scratch_dir) as tmp:
        workdir = Path(tmp)
        source = workdir / f"program{mode.suffix}"
        source.write_text(generated, encoding="utf-8")
        return compile_and_run(mode, source, workdir, timeout, generate_timeout)


def run_mode(
    binary: Path,
    mode: ExecutionMode,
    program: Path,
    timeout: float,
    generate_timeout: float,
    scratch_dir: Path | None = None,
) -> Outcome:
    """Dispatch a cell to the interpreted or compiled pipeline."""
    if mode.compiled:
        return run_compiled(binary, mode, program, timeout, generate_timeout, scratch_dir)
    return run_interpreted(binary, mode, program, timeout)
