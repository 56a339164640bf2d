# =============================================================================
# test_codegen.py - Rust and C Code Generator Tests
# =============================================================================
# Tests for the Rust and C source generators.
#
# Test coverage includes:
#   - Variable hoisting and zero initialization
#   - Guarded element writes and loop translation
#   - Operators, helpers and reduce() translation
#   - Declared type conversions and reserved name mangling
#   - User functions, array parameters and returns
#   - Programs the generators reject
# =============================================================================

import pytest
from superc.codegen import (
    CodeGenerator,
    CodegenTarget,
    collect_symbols,
    generate_c,
    generate_rust,
)
from superc.errors import CodeGenError
from superc.parser import parse_source
from superc.types import F32, I64, BaseType, DataType


# =============================================================================
# Helper Functions
# =============================================================================

def rust(source: str, header: bool = False) -> str:
    """Generate Rust for source."""
    return CodeGenerator(CodegenTarget.RUST, emit_header=header).generate(parse_source(source))


def c(source: str, header: bool = False) -> str:
    """Generate C for source."""
    return CodeGenerator(CodegenTarget.C, emit_header=header).generate(parse_source(source))


def lines(text: str) -> list[str]:
    """Output lines with indentation removed."""
    return [line.strip() for line in text.splitlines()]


RAMP = """\
data a: f32[4]
for i = 0:4 {
    a[i] = i
}
"""


# =============================================================================
# Program Structure Tests
# =============================================================================

class TestProgramStructure:
    """Test the overall layout of generated programs."""

    def test_rust_array_declaration(self):
        output = rust("data x: f32[100]")
        assert "let mut x: [f32; 100] = [0.0; 100];" in lines(output)
        assert "fn main() {" in lines(output)

    def test_c_array_declaration(self):
        output = c("data x: f32[100]")
        assert "float x[100];" in lines(output)
        assert "int main(void) {" in lines(output)
        assert "return 0;" in lines(output)

    def test_rust_header(self):
        program = parse_source("data x: f32")
        output = generate_rust(program, "kernel.sc")
        assert output.startswith("// Rust generated by superc from kernel.sc\n")

    def test_c_header(self):
        output = generate_c(parse_source("data x: f32"), "kernel.sc")
        assert output.startswith("/* C generated by superc from kernel.sc */\n")

    def test_header_without_source_name(self):
        assert rust("", header=True).startswith("// Rust generated by superc\n")

    def test_no_header(self):
        assert rust("data x: f32").startswith("#![allow(")
        assert c("data x: f32").startswith("#include <stdbool.h>")

    def test_rust_prelude_helpers(self):
        output = rust("")
        assert "const SC_EPSILON: f32 = f32::EPSILON;" in output
        assert "fn sc_eq(l: f32, r: f32) -> f32" in output

    def test_c_prelude_helpers(self):
        output = c("")
        assert "#include <math.h>" in output
        assert "static float sc_eq(float l, float r)" in output
        assert "static void sc_print(float v)" in output

    def test_scalar_declarations_by_type(self):
        source = "data a: i32\ndata b: i64\ndata d: f64\ndata e: bool"
        assert {
            "let mut a: i32 = 0;",
            "let mut b: i64 = 0;",
            "let mut d: f64 = 0.0;",
            "let mut e: bool = false;",
        } <= set(lines(rust(source)))
        assert {"int32_t a;", "int64_t b;", "double d;", "bool e;"} <= set(lines(c(source)))

    def test_nested_declarations_are_hoisted(self):
        output = rust("parallel { data t: f32[2] }")
        assert lines(output).count("let mut t: [f32; 2] = [0.0; 2];") == 1
        assert "t = [0.0; 2];" in lines(output)

    def test_nested_declaration_rezeroes_in_c(self):
        output = c("seq { data t: f32[2]\ndata s: f32 }")
        assert "memset(t, 0, sizeof(float) * 2);" in lines(output)
        assert "s = 0.0f;" in lines(output)

    def test_exec_block_comment(self):
        assert "// @exec(parallel)" in lines(rust("parallel { }"))
        assert "/* @exec(gpu) */" in lines(c("gpu { }"))

    def test_deterministic(self):
        assert rust(RAMP) == rust(RAMP)
        assert c(RAMP) == c(RAMP)


# =============================================================================
# Statement Translation Tests
# =============================================================================

class TestStatements:
    """Test loops, writes, conditionals and print."""

    def test_rust_loop_and_guarded_write(self):
        output = lines(rust(RAMP))
        assert "let mut i: f32 = 0.0;" in output
        assert "for __sc_i1 in (0_i64)..(4_i64) {" in output
        assert "i = (__sc_i1 as f32);" in output
        assert "let __sc_v2: f32 = i;" in output
        assert "let __sc_i3: i64 = (i as i64);" in output
        assert "if __sc_i3 >= 0 {" in output
        assert "if let Some(slot) = a.get_mut(__sc_i3 as usize) {" in output
        assert "*slot = __sc_v2;" in output

    def test_c_loop_and_guarded_write(self):
        output = lines(c(RAMP))
        assert "float i;" in output
        assert "for (int64_t sc_i1 = INT64_C(0), sc_end2 = INT64_C(4); sc_i1 < sc_end2; sc_i1++) {" in output
        assert "i = ((float)sc_i1);" in output
        assert "float sc_v3 = i;" in output
        assert "int64_t sc_i4 = sc_to_i64(i);" in output
        assert "if (sc_i4 >= 0 && sc_i4 < 4) a[sc_i4] = sc_v3;" in output

    def test_if_else(self):
        source = "data x: f32\nif x > 0 { x = 1 } else { x = 2 }"
        assert "if sc_truthy(sc_bool(x > 0.0_f32)) {" in lines(rust(source))
        assert "} else {" in lines(rust(source))
        assert "if (sc_truthy(sc_bool(x > 0.0f))) {" in lines(c(source))

    def test_print_value(self):
        source = "data s: f32\nprint(s)"
        assert 'println!("{:.6}", s);' in lines(rust(source))
        assert "sc_print(s);" in lines(c(source))

    def test_print_string(self):
        source = 'print("done\\n")'
        assert 'println!("{}", "done\\n");' in lines(rust(source))
        assert 'puts("done\\n");' in lines(c(source))

    def test_print_without_argument(self):
        assert "// print() without arguments" in lines(rust("print()"))

    def test_scalar_assignment_with_conversion(self):
        source = "data n: i64\ndata f: bool\nn = 1.5\nf = n"
        rust_lines = lines(rust(source))
        assert "n = (1.5_f32 as i64);" in rust_lines
        assert "f = sc_truthy((n as f32));" in rust_lines
        c_lines = lines(c(source))
        assert "n = sc_to_i64(1.5f);" in c_lines
        assert "f = sc_truthy(((float)n));" in c_lines

    def test_bool_read(self):
        source = "data f: bool\ndata x: f32\nx = f + 1"
        assert "x = (sc_bool(f) + 1.0_f32);" in lines(rust(source))

    def test_element_read(self):
        source = "data a: f32[4]\ndata x: f32\nx = a[2]"
        assert "x = a[(2_i64) as usize];" in lines(rust(source))
        assert "x = a[INT64_C(2)];" in lines(c(source))

    def test_top_level_return_has_no_effect(self):
        assert "// return has no effect at top level" in lines(rust("return"))


# =============================================================================
# Expression Translation Tests
# =============================================================================

class TestExpressions:
    """Test operators, literals, builtins and reduce()."""

    def test_arithmetic(self):
        source = "data x: f32\nx = (x + 2) * x / 4 - 1"
        assert "x = ((((x + 2.0_f32) * x) / 4.0_f32) - 1.0_f32);" in lines(rust(source))
        assert "x = ((((x + 2.0f) * x) / 4.0f) - 1.0f);" in lines(c(source))

    def test_modulo(self):
        source = "data x: f32\nx = x % 3"
        assert "x = (x % 3.0_f32);" in lines(rust(source))
        assert "x = fmodf(x, 3.0f);" in lines(c(source))

    def test_equality_uses_helpers(self):
        source = "data x: f32\nx = x == 1 || x != 2 && !x"
        assert "x = sc_or(sc_eq(x, 1.0_f32), sc_and(sc_ne(x, 2.0_f32), sc_not(x)));" in lines(rust(source))

    def test_negation(self):
        assert "x = (-x);" in lines(c("data x: f32\nx = -x"))

    def test_float_literal_rounded_to_single(self):
        assert "x = 0.10000000149011612_f32;" in lines(rust("data x: f32\nx = 0.1"))

    def test_booleans(self):
        assert "x = 1.0f;" in lines(c("data x: f32\nx = true"))

    def test_builtin_math(self):
        source = "data x: f32\nx = log(sqrt(x))"
        assert "x = f32::ln(f32::sqrt(x));" in lines(rust(source))
        assert "x = logf(sqrtf(x));" in lines(c(source))

    def test_builtin_call_statement_is_discarded(self):
        assert "// sin() result discarded" in lines(rust("sin(1)"))

    def test_rust_reduce(self):
        source = "data a: f32[4]\ndata s: f32\ns = reduce(+, a)\ns = reduce(max, a)"
        output = lines(rust(source))
        assert "s = a.iter().fold(0.0_f32, |acc, &v| acc + v);" in output
        assert "s = a.iter().fold(f32::MIN, |acc, &v| acc.max(v));" in output

    def test_c_reduce_helpers(self):
        source = "data a: f32[4]\ndata n: i64[3]\ndata s: f32\ns = reduce(*, a)\ns = reduce(+, n)"
        output = c(source)
        assert "s = sc_reduce_prod_f32(a, 4);" in lines(output)
        assert "s = sc_reduce_sum_i64(n, 3);" in lines(output)
        assert "static float sc_reduce_prod_f32(const float *v, int64_t n) {" in lines(output)
        assert "for (int64_t k = 0; k < n; k++) acc = acc + ((float)v[k]);" in lines(output)

    def test_c_reduce_helper_emitted_once(self):
        output = c("data a: f32[4]\ndata s: f32\ns = reduce(min, a)\ns = reduce(min, a)")
        assert output.count("static float sc_reduce_min_f32(") == 1

    def test_integer_context(self):
        source = "data a: f32[8]\na[7 / 2 + 1.9] = 1\na[7 % 3] = 1"
        rust_lines = lines(rust(source))
        assert "let __sc_i2: i64 = ((7_i64 / 2_i64) + 1_i64);" in rust_lines
        c_output = c(source)
        assert "sc_idiv(INT64_C(7), INT64_C(2))" in c_output
        assert "sc_imod(INT64_C(7), INT64_C(3))" in c_output


# =============================================================================
# Name Mangling Tests
# =============================================================================

class TestNames:
    """Test renaming of names the target languages reserve."""

    def test_rust_keyword(self):
        output = lines(rust("data type: f32\ntype = 1"))
        assert "let mut sc_type: f32 = 0.0;" in output
        assert "sc_type = 1.0_f32;" in output

    def test_c_keyword_and_libm_name(self):
        output = lines(c("data int: f32\ndata sqrtf: f32"))
        assert "float sc_int;" in output
        assert "float sc_sqrtf;" in output

    def test_reserved_prefix(self):
        assert "let mut sc_sc_x: f32 = 0.0;" in lines(rust("data sc_x: f32"))

    def test_main_is_renamed(self):
        assert "float sc_main;" in lines(c("data main: f32"))

    @pytest.mark.parametrize("name", [
        "fprintf", "stderr", "errno", "NAN", "INFINITY", "FLT_MAX", "INT64_MAX", "SC_EPSILON",
    ])
    def test_c_runtime_names(self, name):
        """Names the C prelude defines or includes are renamed."""
        output = lines(c(f"data {name}: f32\n{name} = 1"))
        assert f"float sc_{name};" in output
        assert f"sc_{name} = 1.0f;" in output

    def test_rust_prelude_constant(self):
        assert "let mut sc_SC_EPSILON: f32 = 0.0;" in lines(rust("data SC_EPSILON: f32"))


# =============================================================================
# Function Tests
# =============================================================================

class TestFunctions:
    """Test user function translation."""

    SCALE = "fn scale(v: f32, k: f32) -> f32 {\n    return v * k\n}\n"

    def test_rust_function(self):
        output = lines(rust(self.SCALE))
        assert "fn scale(mut v: f32, mut k: f32) -> f32 {" in output
        assert "return (v * k);" in output

    def test_c_function_and_prototype(self):
        output = lines(c(self.SCALE))
        assert "float scale(float v, float k);" in output
        assert "float scale(float v, float k) {" in output
        assert "return (v * k);" in output
        assert "return 0.0f;" in output

    def test_call_in_expression(self):
        source = self.SCALE + "data x: f32\nx = scale(x, 2)"
        assert "x = scale(x, 2.0_f32);" in lines(rust(source))
        assert "x = scale(x, 2.0f);" in lines(c(source))

    def test_function_locals(self):
        source = "fn f() -> i64 {\n    data t: f32[2]\n    data n: i64\n    return n\n}"
        rust_lines = lines(rust(source))
        assert "let mut t: [f32; 2] = [0.0; 2];" in rust_lines
        assert "fn f() -> i64 {" in rust_lines
        c_lines = lines(c(source))
        assert "int64_t f(void) {" in c_lines
        assert "float t[2] = {0};" in c_lines
        assert "int64_t n = 0;" in c_lines

    def test_rust_array_parameter_by_reference(self):
        source = "fn clear(a: f32[4]) {\n    data a: f32[4]\n}\ndata b: f32[4]\nclear(b)"
        output = lines(rust(source))
        assert "fn clear(a: &mut [f32; 4]) {" in output
        assert "*a = [0.0; 4];" in output
        assert "clear(&mut b);" in output

    def test_c_array_parameter(self):
        source = "fn clear(a: f32[4]) { }\ndata b: f32[4]\nclear(b)"
        output = lines(c(source))
        assert "void clear(float a[4]) {" in output
        assert "clear(b);" in output

    def test_rust_mixed_arguments(self):
        source = "fn fill(a: f32[4], k: f32) { }\ndata b: f32[4]\nfill(b, 2)"
        assert "{ let __sc_a1 = 2.0_f32; fill(&mut b, __sc_a1) };" in lines(rust(source))

    def test_rust_array_return(self):
        source = "fn make() -> f32[2] {\n    data r: f32[2]\n    return r\n}"
        output = lines(rust(source))
        assert "fn make() -> [f32; 2] {" in output
        assert "return r;" in output

    def test_void_return(self):
        assert "return;" in lines(c("fn stop() { return }"))


# =============================================================================
# Edge Case Tests
# =============================================================================

class TestEdgeCases:
    """Test out-of-range writes and literals at the limits of their types."""

    OUT_OF_RANGE = "data a: f32[5]\na[10] = 5\nprint(a[0])"

    def test_rust_constant_out_of_range_write(self):
        """The write goes through get_mut, so rustc sees no constant out-of-bounds index."""
        output = lines(rust(self.OUT_OF_RANGE))
        assert "let __sc_i2: i64 = 10_i64;" in output
        assert "if __sc_i2 >= 0 {" in output
        assert "if let Some(slot) = a.get_mut(__sc_i2 as usize) {" in output
        assert "*slot = __sc_v1;" in output
        assert not any("a[__sc_i2" in line for line in output)

    def test_rust_allows_constant_index_reads(self):
        """Out-of-range reads compile and panic at run time."""
        assert "#![allow(unconditional_panic)]" in lines(rust(self.OUT_OF_RANGE))

    def test_c_constant_out_of_range_write(self):
        output = lines(c(self.OUT_OF_RANGE))
        assert "int64_t sc_i2 = INT64_C(10);" in output
        assert "if (sc_i2 >= 0 && sc_i2 < 5) a[sc_i2] = sc_v1;" in output

    def test_array_parameter_write(self):
        output = lines(rust("fn clear(v: f32[4]) { v[0] = 0 }"))
        assert "if let Some(slot) = v.get_mut(__sc_i2 as usize) {" in output

    def test_huge_integer_literal(self):
        source = "data x: f32\nx = " + "9" * 400
        assert "x = 0.0_f32;" in lines(rust(source))
        assert "x = 0.0f;" in lines(c(source))

    def test_huge_float_literal(self):
        source = "data x: f32\nx = " + "9" * 400 + ".0"
        assert "x = f32::INFINITY;" in lines(rust(source))
        assert "x = INFINITY;" in lines(c(source))

    def test_huge_float_index(self):
        source = "data a: f32[2]\na[" + "9" * 400 + ".0] = 1"
        assert f"let __sc_i2: i64 = {2 ** 63 - 1}_i64;" in lines(rust(source))

    @pytest.mark.parametrize("target", list(CodegenTarget))
    def test_long_operator_chain(self, target):
        source = "data x: f32\nx = " + " + ".join(["1"] * 5000)
        with pytest.raises(CodeGenError) as exc_info:
            CodeGenerator(target).generate(parse_source(source))
        assert "nested too deeply" in str(exc_info.value)


# =============================================================================
# Rejected Program Tests
# =============================================================================

class TestCodegenErrors:
    """Test programs that cannot be translated."""

    @pytest.mark.parametrize("source,message", [
        ("x = 1", "Undefined variable: x"),
        ("data x: f32\nparallel { data x: f32[2] }", "conflicting declarations of 'x'"),
        ("data a: f32[2]\nfor a = 0:2 { }", "loop variable 'a' is declared as an array"),
        ("data a: f32[2]\ndata x: f32\nx = a", "array 'a' used as a scalar"),
        ("data a: f32[2]\na = 1", "cannot assign a value to array 'a'"),
        ("data x: f32\nx[0] = 1", "'x' is not an array"),
        ('data x: f32\nx = "s"', "string literal used as a value"),
        ("foo(1)", "Unknown function: foo"),
        ("data x: f32\nx = sqrt(1, 2)", "sqrt() takes 1 argument(s), got 2"),
        ("data a: f32[4]\na[a[0] < 1] = 1", "Operator '<' is not allowed in an integer expression"),
        ("data a: f32[4]\na[sqrt(1)] = 1", "Expected integer expression"),
        ("data a: f32[4]\ndata s: f32\ns = reduce(+, a[0])", "Reduce requires array identifier"),
        ("fn f() { }\nfn f() { }", "function 'f' is defined twice"),
        ("fn f() { return 1 }", "has no return type but returns a value"),
        ("fn f() { }\ndata x: f32\nx = f()", "does not return a scalar value"),
        ("fn f(a: f32[2]) { }\ndata b: f32[3]\nf(b)", "parameter 'a' of f() is f32[2]"),
        ("fn f(a: f32[2], b: f32[2]) { }\ndata c: f32[2]\nf(c, c)", "passed twice"),
    ])
    def test_rejected(self, source, message):
        with pytest.raises(CodeGenError) as exc_info:
            rust(source)
        assert message in str(exc_info.value)

    def test_c_rejects_array_return(self):
        with pytest.raises(CodeGenError) as exc_info:
            c("fn make() -> f32[2] {\n    data r: f32[2]\n    return r\n}")
        assert "returns an array" in str(exc_info.value)

    def test_error_has_location(self):
        with pytest.raises(CodeGenError) as exc_info:
            CodeGenerator().generate(parse_source("data a: f32\ny = 1", "k.sc"))
        assert str(exc_info.value).startswith("k.sc:2:1: error:")


# =============================================================================
# Symbol Collection Tests
# =============================================================================

class TestCollectSymbols:
    """Test the flat symbol table shared by the generators."""

    def test_order_and_loop_variables(self):
        program = parse_source("data a: f32[3]\nfor i = 0:3 { data n: i64 }")
        symbols = collect_symbols(program.statements)
        assert list(symbols) == ["a", "n", "i"]
        assert symbols["a"].data_type == DataType(BaseType.F32, 3)
        assert symbols["n"].data_type == I64
        assert symbols["i"].data_type == F32

    def test_declared_loop_variable_keeps_type(self):
        program = parse_source("data i: i64\nfor i = 0:3 { }")
        assert collect_symbols(program.statements)["i"].data_type == I64

    def test_parameters_first(self):
        function = parse_source("fn f(p: f32) { data q: f32 }").functions[0]
        symbols = collect_symbols(function.body, function.parameters)
        assert list(symbols) == ["p", "q"]
        assert symbols["p"].is_parameter
        assert not symbols["q"].is_parameter

    def test_identical_redeclaration_allowed(self):
        program = parse_source("data x: f32\nseq { data x: f32 }")
        assert list(collect_symbols(program.statements)) == ["x"]
