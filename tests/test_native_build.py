# =============================================================================
# test_native_build.py - Native Compilation Tests for Generated Code
# =============================================================================
# Builds the Rust and C output with rustc / a C compiler when one is on
# PATH, runs the binary and compares its output with the interpreter.
#
# Test coverage includes:
#   - Constant index writes past the end of an array
#   - Loops that write past the end of an array, then reduce()
#   - Integer and float literals outside their ranges
#   - Integer context indices and string output
#
# Each class is skipped when its compiler is not installed.
# =============================================================================

import io
import shutil
import subprocess

import pytest
from superc.compiler import compile_to_c, compile_to_rust
from superc.engine import ComputeEngine


# =============================================================================
# Toolchain Detection
# =============================================================================

RUSTC = shutil.which("rustc")
CC = shutil.which("cc") or shutil.which("gcc") or shutil.which("clang")

requires_rustc = pytest.mark.skipif(
    RUSTC is None,
    reason="rustc not available"
)

requires_cc = pytest.mark.skipif(
    CC is None,
    reason="No C compiler available"
)


# =============================================================================
# Helper Functions
# =============================================================================

def interpreted(source: str) -> list[str]:
    """Lines printed when the interpreter runs source."""
    stream = io.StringIO()
    ComputeEngine(stdout=stream).execute(source)
    return stream.getvalue().splitlines()


def build_and_run(command: list[str], executable) -> list[str]:
    """Run a compiler command, then the executable, and return its output lines."""
    build = subprocess.run(command, capture_output=True, text=True, timeout=120)
    assert build.returncode == 0, build.stderr
    run = subprocess.run([str(executable)], capture_output=True, text=True, timeout=30)
    assert run.returncode == 0, run.stderr
    return run.stdout.splitlines()


def run_rust(source: str, tmp_path) -> list[str]:
    path = tmp_path / "program.rs"
    path.write_text(compile_to_rust(source))
    executable = tmp_path / "program_rs"
    return build_and_run([RUSTC, "-O", "-o", str(executable), str(path)], executable)


def run_c(source: str, tmp_path) -> list[str]:
    path = tmp_path / "program.c"
    path.write_text(compile_to_c(source))
    executable = tmp_path / "program_c"
    return build_and_run([CC, "-std=c99", "-O2", "-o", str(executable), str(path), "-lm"], executable)


PROGRAMS = {
    "constant_write_past_end": (
        "data a: f32[5]\n"
        "a[10] = 5\n"
        "print(a[0])\n"
    ),
    "loop_write_past_end": (
        "data a: f32[3]\n"
        "for i = 0:6 {\n"
        "    a[i] = i + 1\n"
        "}\n"
        "print(reduce(sum, a))\n"
    ),
    "huge_integer_literal": (
        "data x: f32\n"
        "x = " + "9" * 400 + "\n"
        "print(x)\n"
    ),
    "huge_float_literal": (
        "data x: f32\n"
        "x = " + "9" * 400 + ".0\n"
        "print(x)\n"
    ),
    "integer_context_index": (
        "data a: f32[4]\n"
        "data n: f32\n"
        "n = 7\n"
        "a[n % 4] = n / 2\n"
        "print(a[3])\n"
        "print(\"done\")\n"
    ),
}

EXPECTED = {
    "constant_write_past_end": ["0.000000"],
    "loop_write_past_end": ["6.000000"],
    "huge_integer_literal": ["0.000000"],
    "huge_float_literal": ["inf"],
    "integer_context_index": ["3.500000", "done"],
}


# =============================================================================
# Interpreter Baseline
# =============================================================================

class TestInterpreterBaseline:
    """The interpreter output the native builds are compared against."""

    @pytest.mark.parametrize("name", sorted(PROGRAMS))
    def test_expected_output(self, name):
        assert interpreted(PROGRAMS[name]) == EXPECTED[name]


# =============================================================================
# Rust Build Tests
# =============================================================================

@requires_rustc
class TestRustBuild:
    """Generated Rust compiles without errors and matches the interpreter."""

    @pytest.mark.parametrize("name", sorted(PROGRAMS))
    def test_program(self, name, tmp_path):
        assert run_rust(PROGRAMS[name], tmp_path) == EXPECTED[name]


# =============================================================================
# C Build Tests
# =============================================================================

@requires_cc
class TestCBuild:
    """Generated C compiles as C99 and matches the interpreter."""

    @pytest.mark.parametrize("name", sorted(PROGRAMS))
    def test_program(self, name, tmp_path):
        assert run_c(PROGRAMS[name], tmp_path) == EXPECTED[name]
