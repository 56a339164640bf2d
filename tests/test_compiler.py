# =============================================================================
# test_compiler.py - SuperC Compiler Driver Tests
# =============================================================================
# Tests for SuperCCompiler and the compile_to_* convenience functions.
#
# Test coverage includes:
#   - Results for each output target
#   - Header comments and source names
#   - File compilation and missing files
#   - Error propagation from the parser and generators
# =============================================================================

from pathlib import Path

import pytest
from superc.compiler import (
    CompilerOptions,
    OutputTarget,
    SuperCCompiler,
    compile_to_asm,
    compile_to_c,
    compile_to_rust,
)
from superc.errors import CodeGenError, ParseError


SAXPY = """\
data y: f32[64]
data x: f32[64]
data alpha: f32
alpha = 2
parallel {
    for i = 0:64 {
        y[i] = alpha * x[i] + y[i]
    }
}
print(reduce(+, y))
"""


# =============================================================================
# Compile Result Tests
# =============================================================================

class TestCompileSource:
    """Test SuperCCompiler.compile_source()."""

    @pytest.mark.parametrize("target", list(OutputTarget))
    def test_all_targets(self, target):
        result = SuperCCompiler().compile_source(SAXPY, "saxpy.sc", target)
        assert result.success
        assert result.target == target
        assert result.filename == "saxpy.sc"
        assert result.token_count > 0
        assert result.ast is not None
        assert len(result.ast.statements) == 6
        assert result.output.endswith("\n")

    def test_default_target_is_rust(self):
        result = SuperCCompiler().compile_source("data x: f32")
        assert result.target == OutputTarget.RUST
        assert "fn main() {" in result.output

    def test_header_names_source_file(self):
        result = SuperCCompiler().compile_source("data x: f32", "dir/kernel.sc", OutputTarget.C)
        assert result.output.startswith("/* C generated by superc from kernel.sc */")

    def test_header_for_string_input(self):
        result = SuperCCompiler().compile_source("data x: f32", target=OutputTarget.ASM)
        assert "; x86-64 assembly generated by superc\n" in result.output

    def test_header_disabled(self):
        compiler = SuperCCompiler(CompilerOptions(emit_header_comment=False))
        output = compiler.compile_source("data x: f32", "k.sc").output
        assert "generated by superc" not in output

    def test_parse_error_propagates(self):
        with pytest.raises(ParseError):
            SuperCCompiler().compile_source("data x: f32[", "bad.sc")

    def test_codegen_error_propagates(self):
        with pytest.raises(CodeGenError):
            SuperCCompiler().compile_source("x = 1", target=OutputTarget.C)

    def test_target_specific_error(self):
        """Array parameters compile to Rust and C but not to assembly."""
        source = "fn clear(a: f32[4]) { }"
        compiler = SuperCCompiler()
        assert compiler.compile_source(source, target=OutputTarget.RUST).success
        assert compiler.compile_source(source, target=OutputTarget.C).success
        with pytest.raises(CodeGenError):
            compiler.compile_source(source, target=OutputTarget.ASM)


# =============================================================================
# File Compilation Tests
# =============================================================================

class TestCompileFile:
    """Test SuperCCompiler.compile_file()."""

    def test_compile_file(self, tmp_path):
        path = tmp_path / "saxpy.sc"
        path.write_text(SAXPY, encoding="utf-8")
        result = SuperCCompiler().compile_file(str(path), OutputTarget.C)
        assert result.filename == str(path)
        assert "float y[64];" in result.output

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SuperCCompiler().compile_file(str(tmp_path / "missing.sc"))

    def test_error_location_uses_path(self, tmp_path):
        path = tmp_path / "bad.sc"
        path.write_text("data x: f32\nx = )", encoding="utf-8")
        with pytest.raises(ParseError) as exc_info:
            SuperCCompiler().compile_file(str(path))
        assert str(exc_info.value).startswith(f"{path}:2:5: error:")


# =============================================================================
# Output Target Tests
# =============================================================================

class TestOutputTarget:
    """Test OutputTarget helpers."""

    def test_extensions(self):
        assert OutputTarget.RUST.extension == ".rs"
        assert OutputTarget.C.extension == ".c"
        assert OutputTarget.ASM.extension == ".asm"

    def test_str(self):
        assert str(OutputTarget.ASM) == "asm"
        assert OutputTarget("c") == OutputTarget.C


# =============================================================================
# Convenience Function Tests
# =============================================================================

class TestConvenienceFunctions:
    """Test compile_to_rust/c/asm."""

    def test_compile_to_rust(self):
        assert "let mut x: [f32; 100] = [0.0; 100];" in compile_to_rust("data x: f32[100]")

    def test_compile_to_c(self):
        assert "float x[100];" in compile_to_c("data x: f32[100]")

    def test_compile_to_asm(self):
        output = compile_to_asm("data x: f32[100]")
        assert any(line.split() == ["sc_x", "resd", "100"] for line in output.splitlines())

    def test_filename_reaches_header(self):
        assert compile_to_rust("", "prog.sc").startswith("// Rust generated by superc from prog.sc")


def test_example_programs_compile():
    """Every bundled example compiles to every target."""
    examples = sorted((Path(__file__).parent.parent / "examples").glob("*.sc"))
    assert examples
    compiler = SuperCCompiler()
    for path in examples:
        for target in OutputTarget:
            assert compiler.compile_file(str(path), target).success
