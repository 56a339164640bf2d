"""
Rust and C Code Generator for SuperC
====================================

This module translates a SuperC Program into Rust or C source text that
computes the same results as the compute engine.

Code Generation Strategy
------------------------
Expressions are computed in single precision (f32 / float), exactly like
the engine. Variables keep their declared types; every read converts the
value to f32 and every write converts back:

| Declared | Read (Rust / C)            | Write (Rust / C)            |
|----------|----------------------------|-----------------------------|
| f32      | x                          | v                           |
| f64/int  | (x as f32) / ((float)x)    | (v as T) / saturating cast  |
| bool     | sc_bool(x)                 | sc_truthy(v)                |

Comparison and logical operators go through small helpers (sc_eq, sc_ne,
sc_and, ...) that return 1.0 or 0.0, and == / != use the same epsilon
comparison as the engine. Array indices and loop bounds are 64-bit
integer expressions limited to + - * / %, which truncate toward zero in
both languages.

Variable Layout
---------------
SuperC has one flat namespace per function body. Every variable declared
anywhere in the top-level statements, plus every loop variable, is
hoisted:

- Rust: ``let mut`` bindings at the top of ``fn main``
- C: zero-initialized file-scope definitions (``float x[100];``)

A ``data`` statement nested in a block re-zeroes its variable when
reached. Element writes outside the array bounds are dropped, matching
the engine.

Execution blocks (parallel, seq, gpu, asm) keep their tag as a comment.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import math

from superc.errors import CodeGenError
from superc.numeric import to_f32, to_i64
from superc.types import F32, BaseType, DataType
from superc.ast import (
    BINARY_SYMBOLS,
    COMPARISON_OPERATORS,
    INTEGER_OPERATORS,
    Assignment,
    ASTVisitor,
    BinaryExpression,
    BinaryOperator,
    BoolLiteral,
    CallExpression,
    DataDeclaration,
    ExecBlock,
    Expression,
    ExpressionStatement,
    FloatLiteral,
    ForStatement,
    FunctionDefinition,
    Identifier,
    IfStatement,
    IndexExpression,
    IntLiteral,
    Parameter,
    Program,
    ReduceExpression,
    ReduceOperator,
    ReturnStatement,
    Statement,
    StringLiteral,
    UnaryExpression,
    UnaryOperator,
)


BUILTIN_MATH = ("sqrt", "sin", "cos", "exp", "log")


# =============================================================================
# Symbol Tables
# =============================================================================

@dataclass
class Symbol:
    """
    A variable visible in one function body (or in the top-level program).

    Attributes:
        name: SuperC name
        data_type: Declared type (f32 for undeclared loop variables)
        is_parameter: True for function parameters
    """
    name: str
    data_type: DataType
    is_parameter: bool = False


class DeclarationCollector(ASTVisitor):
    """Collects data declarations and loop statements, at any depth."""

    def __init__(self):
        self.declarations: list[DataDeclaration] = []
        self.loops: list[ForStatement] = []

    def visit_DataDeclaration(self, node: DataDeclaration):
        self.declarations.append(node)

    def visit_ForStatement(self, node: ForStatement):
        self.loops.append(node)
        self.generic_visit(node)


def collect_symbols(
    statements: list[Statement],
    parameters: tuple[Parameter, ...] | list[Parameter] = (),
) -> dict[str, Symbol]:
    """
    Build the flat symbol table for a body of statements.

    Args:
        statements: Top-level statements, or a function body
        parameters: Function parameters, if any

    Returns:
        Symbols in declaration order

    Raises:
        CodeGenError: If a name is declared with two different types, or
            an array is used as a loop variable
    """
    symbols: dict[str, Symbol] = {}
    for param in parameters:
        symbols[param.name] = Symbol(param.name, param.data_type, is_parameter=True)

    collector = DeclarationCollector()
    for statement in statements:
        collector.visit(statement)

    for decl in collector.declarations:
        existing = symbols.get(decl.name)
        if existing is None:
            symbols[decl.name] = Symbol(decl.name, decl.data_type)
        elif existing.data_type != decl.data_type:
            raise CodeGenError(
                f"conflicting declarations of '{decl.name}': "
                f"{existing.data_type} and {decl.data_type}",
                location=decl.location,
                hint="all variables of a program share one namespace",
            )

    for loop in collector.loops:
        existing = symbols.get(loop.variable)
        if existing is None:
            symbols[loop.variable] = Symbol(loop.variable, F32)
        elif existing.data_type.is_array:
            raise CodeGenError(
                f"loop variable '{loop.variable}' is declared as an array",
                location=loop.location,
            )

    return symbols


# =============================================================================
# Target Tables
# =============================================================================

class CodegenTarget(Enum):
    """Source language produced by CodeGenerator."""
    RUST = "rust"
    C = "c"


RUST_TYPES = {
    BaseType.I32: "i32",
    BaseType.I64: "i64",
    BaseType.F32: "f32",
    BaseType.F64: "f64",
    BaseType.BOOL: "bool",
}

C_TYPES = {
    BaseType.I32: "int32_t",
    BaseType.I64: "int64_t",
    BaseType.F32: "float",
    BaseType.F64: "double",
    BaseType.BOOL: "bool",
}

RUST_ZERO = {
    BaseType.I32: "0",
    BaseType.I64: "0",
    BaseType.F32: "0.0",
    BaseType.F64: "0.0",
    BaseType.BOOL: "false",
}

C_ZERO = {
    BaseType.I32: "0",
    BaseType.I64: "0",
    BaseType.F32: "0.0f",
    BaseType.F64: "0.0",
    BaseType.BOOL: "false",
}

RUST_MATH = {"sqrt": "sqrt", "sin": "sin", "cos": "cos", "exp": "exp", "log": "ln"}
C_MATH = {"sqrt": "sqrtf", "sin": "sinf", "cos": "cosf", "exp": "expf", "log": "logf"}

ARITHMETIC_SYMBOLS = {
    BinaryOperator.ADD: "+",
    BinaryOperator.SUBTRACT: "-",
    BinaryOperator.MULTIPLY: "*",
    BinaryOperator.DIVIDE: "/",
}

HELPER_NAMES = {
    BinaryOperator.EQUAL: "sc_eq",
    BinaryOperator.NOT_EQUAL: "sc_ne",
    BinaryOperator.LOGICAL_AND: "sc_and",
    BinaryOperator.LOGICAL_OR: "sc_or",
}

RUST_RESERVED = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "unsafe", "use", "where", "while", "abstract", "become", "box", "do",
    "final", "macro", "override", "priv", "try", "typeof", "unsized",
    "virtual", "yield", "main", "SC_EPSILON",
})

C_RESERVED = frozenset({
    "auto", "break", "case", "char", "const", "continue", "default", "do",
    "double", "else", "enum", "extern", "float", "for", "goto", "if",
    "inline", "int", "long", "register", "restrict", "return", "short",
    "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
    "unsigned", "void", "volatile", "while", "bool", "true", "false",
    "main", "printf", "puts", "memset", "exit", "abs", "time",
    "sqrt", "sqrtf", "sin", "sinf", "cos", "cosf", "exp", "expf", "log",
    "logf", "fmod", "fmodf", "fabs", "fabsf", "pow", "floor", "ceil",
    "round", "trunc", "isnan", "isinf", "y0", "y1", "yn", "j0", "j1", "jn",
    "gamma", "remainder", "tan", "atan", "exp2", "log2", "log10",
    "hypot", "hypotf", "asin", "acos", "atan2", "sinh", "cosh", "tanh",
    "cbrt", "erf", "erfc", "fmax", "fmin", "fmaxf", "fminf", "ldexp",
    "frexp", "modf", "lgamma", "tgamma", "nan", "signbit", "copysign",
    "isfinite", "fprintf", "putchar", "malloc", "calloc", "free", "abort",
    "stdin", "stdout", "stderr", "errno", "FILE", "NULL", "EOF",
    "NAN", "INFINITY", "HUGE_VAL", "FLT_MAX", "FLT_MIN", "FLT_EPSILON",
    "DBL_MAX", "DBL_MIN", "DBL_EPSILON", "INT32_MAX", "INT32_MIN",
    "INT64_MAX", "INT64_MIN", "INT32_C", "INT64_C", "int32_t", "int64_t",
    "size_t", "float_t", "double_t", "SC_EPSILON",
})

RUST_PRELUDE = """\
#![allow(unused_mut, unused_variables, unused_assignments, unused_parens)]
#![allow(dead_code, unreachable_code, non_snake_case)]
#![allow(unconditional_panic)]

const SC_EPSILON: f32 = f32::EPSILON;

fn sc_bool(b: bool) -> f32 { if b { 1.0 } else { 0.0 } }
fn sc_truthy(v: f32) -> bool { v != 0.0 }
fn sc_not(v: f32) -> f32 { sc_bool(v == 0.0) }
fn sc_eq(l: f32, r: f32) -> f32 { sc_bool((l - r).abs() < SC_EPSILON) }
fn sc_ne(l: f32, r: f32) -> f32 { sc_bool((l - r).abs() >= SC_EPSILON) }
fn sc_and(l: f32, r: f32) -> f32 { sc_bool(sc_truthy(l) && sc_truthy(r)) }
fn sc_or(l: f32, r: f32) -> f32 { sc_bool(sc_truthy(l) || sc_truthy(r)) }"""

C_PRELUDE = """\
#include <stdbool.h>
#include <stdint.h>
#include <stdio.h>
#include <stdlib.h>
#include <string.h>
#include <float.h>
#include <math.h>

#define SC_EPSILON FLT_EPSILON

static float sc_bool(bool b) { return b ? 1.0f : 0.0f; }
static bool sc_truthy(float v) { return v != 0.0f; }
static float sc_not(float v) { return sc_bool(v == 0.0f); }
static float sc_eq(float l, float r) { return sc_bool(fabsf(l - r) < SC_EPSILON); }
static float sc_ne(float l, float r) { return sc_bool(fabsf(l - r) >= SC_EPSILON); }
static float sc_and(float l, float r) { return sc_bool(sc_truthy(l) && sc_truthy(r)); }
static float sc_or(float l, float r) { return sc_bool(sc_truthy(l) || sc_truthy(r)); }

static int64_t sc_to_i64(float v) {
    if (isnan(v)) return 0;
    if (v >= 9223372036854775807.0f) return INT64_MAX;
    if (v <= -9223372036854775808.0f) return INT64_MIN;
    return (int64_t)v;
}

static int32_t sc_to_i32(float v) {
    if (isnan(v)) return 0;
    if (v >= 2147483647.0f) return INT32_MAX;
    if (v <= -2147483648.0f) return INT32_MIN;
    return (int32_t)v;
}

static void sc_fail(const char *message) {
    fprintf(stderr, "error: %s\\n", message);
    exit(1);
}

static int64_t sc_idiv(int64_t l, int64_t r) {
    if (r == 0) sc_fail("integer division by zero");
    return l / r;
}

static int64_t sc_imod(int64_t l, int64_t r) {
    if (r == 0) sc_fail("integer division by zero");
    return l % r;
}

static void sc_print(float v) {
    if (isnan(v)) puts("NaN");
    else printf("%.6f\\n", (double)v);
}"""

C_REDUCE_STEPS = {
    ReduceOperator.SUM: ("0.0f", "acc = acc + {v};"),
    ReduceOperator.PROD: ("1.0f", "acc = acc * {v};"),
    ReduceOperator.MAX: ("-FLT_MAX", "acc = fmaxf(acc, {v});"),
    ReduceOperator.MIN: ("FLT_MAX", "acc = fminf(acc, {v});"),
}

RUST_REDUCE_FOLDS = {
    ReduceOperator.SUM: ("0.0_f32", "acc + {v}"),
    ReduceOperator.PROD: ("1.0_f32", "acc * {v}"),
    ReduceOperator.MAX: ("f32::MIN", "acc.max({v})"),
    ReduceOperator.MIN: ("f32::MAX", "acc.min({v})"),
}


def rust_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def c_string(value: str) -> str:
    # The escapes used are valid in both languages
    return rust_string(value)


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates Rust or C source from a SuperC Program.

    Usage:
        generator = CodeGenerator(CodegenTarget.C)
        c_source = generator.generate(program)

    Attributes:
        target: Output language
        source_name: Source file named in the header comment (optional)
        emit_header: Whether to start the output with a header comment
    """

    def __init__(
        self,
        target: CodegenTarget = CodegenTarget.RUST,
        source_name: Optional[str] = None,
        emit_header: bool = True,
    ):
        self.target = target
        self.source_name = source_name
        self.emit_header = emit_header

        self._output: list[str] = []
        self._indent = 0
        self._label_counter = 0
        self._functions: dict[str, FunctionDefinition] = {}
        self._scope: dict[str, Symbol] = {}
        self._in_function: Optional[FunctionDefinition] = None
        self._reduce_helpers: set[tuple[ReduceOperator, BaseType]] = set()

    @property
    def is_rust(self) -> bool:
        return self.target == CodegenTarget.RUST

    def generate(self, program: Program) -> str:
        """
        Generate source code for a whole program.

        Args:
            program: Parsed SuperC program

        Returns:
            Complete Rust or C source text

        Raises:
            CodeGenError: If the program uses a construct the target
                cannot express
        """
        self._output = []
        self._indent = 0
        self._label_counter = 0
        self._reduce_helpers = set()
        self._functions = {}
        for function in program.functions:
            if function.name in self._functions:
                raise CodeGenError(
                    f"function '{function.name}' is defined twice",
                    location=function.location,
                )
            self._functions[function.name] = function

        try:
            main_symbols = collect_symbols(program.statements)

            # Bodies first: reduce helpers are discovered while generating
            for function in program.functions:
                self._generate_function(function)
            self._generate_main(program, main_symbols)
        except RecursionError:
            raise CodeGenError(
                "expression nested too deeply to translate",
                hint="use intermediate variables to shorten long operator chains",
            ) from None
        body = self._output

        self._output = []
        if self.emit_header:
            self._emit_header()
        if self.is_rust:
            self._emit(RUST_PRELUDE)
        else:
            self._emit(C_PRELUDE)
            self._emit_c_reduce_helpers()
            self._emit_c_globals(main_symbols)
            self._emit_c_prototypes(program.functions)
        self._output.extend(body)

        return "\n".join(self._output) + "\n"

    # =========================================================================
    # Output Helpers
    # =========================================================================

    def _emit(self, line: str = "") -> None:
        """Emit a line at the current indentation."""
        if line:
            self._output.append("    " * self._indent + line)
        else:
            self._output.append("")

    def _emit_comment(self, comment: str) -> None:
        if self.is_rust:
            self._emit(f"// {comment}")
        else:
            self._emit(f"/* {comment} */")

    def _new_label(self, prefix: str) -> str:
        """Generate a unique helper variable name."""
        self._label_counter += 1
        if self.is_rust:
            return f"__sc_{prefix}{self._label_counter}"
        return f"sc_{prefix}{self._label_counter}"

    def _emit_header(self) -> None:
        origin = f" from {self.source_name}" if self.source_name else ""
        language = "Rust" if self.is_rust else "C"
        self._emit_comment(f"{language} generated by superc{origin}")
        self._emit()

    # =========================================================================
    # Names and Types
    # =========================================================================

    def _name(self, name: str) -> str:
        """Target identifier for a SuperC name."""
        reserved = RUST_RESERVED if self.is_rust else C_RESERVED
        if name in reserved or name.startswith("sc_") or name.startswith("__sc_"):
            return f"sc_{name}"
        return name

    def _scalar_type(self, base: BaseType) -> str:
        return RUST_TYPES[base] if self.is_rust else C_TYPES[base]

    def _zero(self, base: BaseType) -> str:
        return RUST_ZERO[base] if self.is_rust else C_ZERO[base]

    def _rust_type(self, data_type: DataType) -> str:
        if data_type.is_array:
            return f"[{RUST_TYPES[data_type.base]}; {data_type.array_size}]"
        return RUST_TYPES[data_type.base]

    def _rust_zero(self, data_type: DataType) -> str:
        if data_type.is_array:
            return f"[{RUST_ZERO[data_type.base]}; {data_type.array_size}]"
        return RUST_ZERO[data_type.base]

    def _c_declarator(self, symbol_name: str, data_type: DataType) -> str:
        declarator = f"{C_TYPES[data_type.base]} {self._name(symbol_name)}"
        if data_type.is_array:
            declarator += f"[{data_type.array_size}]"
        return declarator

    def _lookup(self, name: str, node) -> Symbol:
        symbol = self._scope.get(name)
        if symbol is None:
            raise CodeGenError(f"Undefined variable: {name}", location=node.location)
        return symbol

    def _lookup_scalar(self, name: str, node) -> Symbol:
        symbol = self._lookup(name, node)
        if symbol.data_type.is_array:
            raise CodeGenError(
                f"array '{name}' used as a scalar",
                location=node.location,
                hint=f"index it, e.g. {name}[0], or reduce it",
            )
        return symbol

    def _lookup_array(self, name: str, node) -> Symbol:
        symbol = self._lookup(name, node)
        if not symbol.data_type.is_array:
            raise CodeGenError(f"'{name}' is not an array", location=node.location)
        return symbol

    def _is_array_reference(self, symbol: Symbol) -> bool:
        """Rust array parameters are passed as &mut references."""
        return self.is_rust and symbol.is_parameter and symbol.data_type.is_array

    # =========================================================================
    # Value Conversions
    # =========================================================================

    def _to_f32(self, base: BaseType, text: str) -> str:
        """Convert a stored value of the given type to f32."""
        if base == BaseType.F32:
            return text
        if base == BaseType.BOOL:
            return f"sc_bool({text})"
        if self.is_rust:
            return f"({text} as f32)"
        return f"((float){text})"

    def _from_f32(self, base: BaseType, value: str) -> str:
        """Convert an f32 value to the given storage type."""
        if base == BaseType.F32:
            return value
        if base == BaseType.BOOL:
            return f"sc_truthy({value})"
        if self.is_rust:
            return f"({value} as {RUST_TYPES[base]})"
        if base == BaseType.F64:
            return f"((double){value})"
        if base == BaseType.I32:
            return f"sc_to_i32({value})"
        return f"sc_to_i64({value})"

    def _float_literal(self, value: float) -> str:
        value = to_f32(value)
        if math.isnan(value):
            return "f32::NAN" if self.is_rust else "NAN"
        if math.isinf(value):
            text = "f32::INFINITY" if self.is_rust else "INFINITY"
            return text if value > 0 else f"(-{text})"
        text = repr(value)
        if "." not in text and "e" not in text:
            text += ".0"
        return f"{text}_f32" if self.is_rust else f"{text}f"

    # =========================================================================
    # Program Structure
    # =========================================================================

    def _emit_c_globals(self, symbols: dict[str, Symbol]) -> None:
        if not symbols:
            return
        self._emit()
        for symbol in symbols.values():
            self._emit(f"{self._c_declarator(symbol.name, symbol.data_type)};")

    def _emit_c_prototypes(self, functions: list[FunctionDefinition]) -> None:
        if not functions:
            return
        self._emit()
        for function in functions:
            self._emit(f"{self._c_signature(function)};")

    def _emit_c_reduce_helpers(self) -> None:
        for operator, base in sorted(self._reduce_helpers, key=lambda h: (h[0].value, h[1].value)):
            initial, step = C_REDUCE_STEPS[operator]
            value = self._to_f32(base, "v[k]")
            self._emit()
            self._emit(
                f"static float {self._c_reduce_name(operator, base)}"
                f"(const {C_TYPES[base]} *v, int64_t n) {{"
            )
            self._indent += 1
            self._emit(f"float acc = {initial};")
            self._emit(f"for (int64_t k = 0; k < n; k++) {step.format(v=value)}")
            self._emit("return acc;")
            self._indent -= 1
            self._emit("}")

    @staticmethod
    def _c_reduce_name(operator: ReduceOperator, base: BaseType) -> str:
        return f"sc_reduce_{operator.name.lower()}_{base.name.lower()}"

    def _generate_main(self, program: Program, symbols: dict[str, Symbol]) -> None:
        self._scope = symbols
        self._in_function = None

        self._emit()
        if self.is_rust:
            self._emit("fn main() {")
            self._indent += 1
            for symbol in symbols.values():
                self._emit(
                    f"let mut {self._name(symbol.name)}: {self._rust_type(symbol.data_type)}"
                    f" = {self._rust_zero(symbol.data_type)};"
                )
        else:
            self._emit("int main(void) {")
            self._indent += 1

        for statement in program.statements:
            if isinstance(statement, DataDeclaration):
                # Top-level declarations are hoisted and already zero
                continue
            self._generate_statement(statement)

        if not self.is_rust:
            self._emit("return 0;")
        self._indent -= 1
        self._emit("}")

    def _c_signature(self, function: FunctionDefinition) -> str:
        if function.return_type.is_array:
            raise CodeGenError(
                f"function '{function.name}' returns an array, which C cannot express",
                location=function.location,
            )
        params = ", ".join(
            self._c_declarator(p.name, p.data_type) for p in function.parameters
        ) or "void"
        if function.return_type.is_void:
            return_type = "void"
        else:
            return_type = C_TYPES[function.return_type.base]
        return f"{return_type} {self._name(function.name)}({params})"

    def _generate_function(self, function: FunctionDefinition) -> None:
        symbols = collect_symbols(function.body, function.parameters)
        self._scope = symbols
        self._in_function = function
        return_type = function.return_type

        self._emit()
        if self.is_rust:
            params = []
            for param in function.parameters:
                if param.data_type.is_array:
                    params.append(f"{self._name(param.name)}: &mut {self._rust_type(param.data_type)}")
                else:
                    params.append(f"mut {self._name(param.name)}: {self._rust_type(param.data_type)}")
            signature = f"fn {self._name(function.name)}({', '.join(params)})"
            if not return_type.is_void:
                signature += f" -> {self._rust_type(return_type)}"
            self._emit(signature + " {")
            self._indent += 1
            for symbol in symbols.values():
                if not symbol.is_parameter:
                    self._emit(
                        f"let mut {self._name(symbol.name)}: {self._rust_type(symbol.data_type)}"
                        f" = {self._rust_zero(symbol.data_type)};"
                    )
        else:
            self._emit(self._c_signature(function) + " {")
            self._indent += 1
            for symbol in symbols.values():
                if not symbol.is_parameter:
                    declarator = self._c_declarator(symbol.name, symbol.data_type)
                    if symbol.data_type.is_array:
                        self._emit(f"{declarator} = {{0}};")
                    else:
                        self._emit(f"{declarator} = {C_ZERO[symbol.data_type.base]};")

        for statement in function.body:
            self._generate_statement(statement)

        # Falling off the end returns zero
        if not return_type.is_void:
            if self.is_rust:
                self._emit(self._rust_zero(return_type))
            else:
                self._emit(f"return {C_ZERO[return_type.base]};")

        self._indent -= 1
        self._emit("}")

    # =========================================================================
    # Statement Generation
    # =========================================================================

    def _generate_block(self, statements: list[Statement]) -> None:
        self._indent += 1
        for statement in statements:
            self._generate_statement(statement)
        self._indent -= 1

    def _generate_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, DataDeclaration):
            self._generate_redeclaration(stmt)
        elif isinstance(stmt, Assignment):
            self._generate_assignment(stmt)
        elif isinstance(stmt, ExecBlock):
            self._emit_comment(f"@exec({stmt.target})")
            self._emit("{")
            self._generate_block(stmt.body)
            self._emit("}")
        elif isinstance(stmt, IfStatement):
            self._generate_if(stmt)
        elif isinstance(stmt, ForStatement):
            self._generate_for(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._generate_expression_statement(stmt)
        elif isinstance(stmt, ReturnStatement):
            self._generate_return(stmt)
        else:
            raise CodeGenError(f"unsupported statement {type(stmt).__name__}", location=stmt.location)

    def _generate_redeclaration(self, stmt: DataDeclaration) -> None:
        """A data statement inside a block zeroes its variable again."""
        symbol = self._lookup(stmt.name, stmt)
        name = self._name(stmt.name)
        data_type = symbol.data_type

        if self.is_rust:
            target = f"*{name}" if self._is_array_reference(symbol) else name
            self._emit(f"{target} = {self._rust_zero(data_type)};")
        elif data_type.is_array:
            size = f"sizeof({C_TYPES[data_type.base]}) * {data_type.array_size}"
            self._emit(f"memset({name}, 0, {size});")
        else:
            self._emit(f"{name} = {C_ZERO[data_type.base]};")

    def _generate_assignment(self, stmt: Assignment) -> None:
        name = self._name(stmt.target)

        if stmt.index is None:
            symbol = self._lookup(stmt.target, stmt)
            if symbol.data_type.is_array:
                raise CodeGenError(
                    f"cannot assign a value to array '{stmt.target}'",
                    location=stmt.location,
                    hint=f"assign elements instead, e.g. {stmt.target}[i] = ...",
                )
            value = self._expression(stmt.value)
            self._emit(f"{name} = {self._from_f32(symbol.data_type.base, value)};")
            return

        symbol = self._lookup_array(stmt.target, stmt)
        base = symbol.data_type.base
        value_var = self._new_label("v")
        index_var = self._new_label("i")
        value = self._expression(stmt.value)
        index = self._int_expression(stmt.index)
        stored = self._from_f32(base, value_var)

        # Value before index, as in the engine; out-of-range writes are dropped
        self._emit("{")
        self._indent += 1
        if self.is_rust:
            self._emit(f"let {value_var}: f32 = {value};")
            self._emit(f"let {index_var}: i64 = {index};")
            self._emit(f"if {index_var} >= 0 {{")
            self._emit(f"    if let Some(slot) = {name}.get_mut({index_var} as usize) {{")
            self._emit(f"        *slot = {stored};")
            self._emit("    }")
            self._emit("}")
        else:
            self._emit(f"float {value_var} = {value};")
            self._emit(f"int64_t {index_var} = {index};")
            self._emit(
                f"if ({index_var} >= 0 && {index_var} < {symbol.data_type.array_size}) "
                f"{name}[{index_var}] = {stored};"
            )
        self._indent -= 1
        self._emit("}")

    def _generate_if(self, stmt: IfStatement) -> None:
        condition = self._expression(stmt.condition)
        if self.is_rust:
            self._emit(f"if sc_truthy({condition}) {{")
        else:
            self._emit(f"if (sc_truthy({condition})) {{")
        self._generate_block(stmt.then_body)
        if stmt.else_body is not None:
            self._emit("} else {")
            self._generate_block(stmt.else_body)
        self._emit("}")

    def _generate_for(self, stmt: ForStatement) -> None:
        symbol = self._lookup_scalar(stmt.variable, stmt)
        name = self._name(stmt.variable)
        start = self._int_expression(stmt.start)
        end = self._int_expression(stmt.end)
        counter = self._new_label("i")

        if self.is_rust:
            self._emit(f"for {counter} in ({start})..({end}) {{")
            assigned = self._from_f32(symbol.data_type.base, f"({counter} as f32)")
        else:
            limit = self._new_label("end")
            self._emit(
                f"for (int64_t {counter} = {start}, {limit} = {end}; "
                f"{counter} < {limit}; {counter}++) {{"
            )
            assigned = self._from_f32(symbol.data_type.base, f"((float){counter})")

        self._indent += 1
        self._emit(f"{name} = {assigned};")
        self._indent -= 1
        self._generate_block(stmt.body)
        self._emit("}")

    def _generate_expression_statement(self, stmt: ExpressionStatement) -> None:
        expr = stmt.expression
        if not isinstance(expr, CallExpression):
            self._emit_comment("expression has no effect")
            return

        if expr.name == "print":
            self._generate_print(expr)
        elif expr.name in BUILTIN_MATH:
            self._emit_comment(f"{expr.name}() result discarded")
        elif expr.name in self._functions:
            self._emit(f"{self._function_call(expr)};")
        else:
            raise CodeGenError(f"Unknown function: {expr.name}", location=expr.location)

    def _generate_print(self, call: CallExpression) -> None:
        if not call.arguments:
            self._emit_comment("print() without arguments")
            return

        argument = call.arguments[0]
        if isinstance(argument, StringLiteral):
            if self.is_rust:
                self._emit(f'println!("{{}}", {rust_string(argument.value)});')
            else:
                self._emit(f"puts({c_string(argument.value)});")
            return

        value = self._expression(argument)
        if self.is_rust:
            self._emit(f'println!("{{:.6}}", {value});')
        else:
            self._emit(f"sc_print({value});")

    def _generate_return(self, stmt: ReturnStatement) -> None:
        function = self._in_function
        if function is None:
            self._emit_comment("return has no effect at top level")
            return

        return_type = function.return_type
        if return_type.is_void:
            if stmt.value is not None:
                raise CodeGenError(
                    f"function '{function.name}' has no return type but returns a value",
                    location=stmt.location,
                )
            self._emit("return;")
            return

        if stmt.value is None:
            zero = self._rust_zero(return_type) if self.is_rust else C_ZERO[return_type.base]
            self._emit(f"return {zero};")
            return

        if return_type.is_array:
            # Only Rust reaches this point (see _c_signature)
            if not isinstance(stmt.value, Identifier):
                raise CodeGenError("array return value must be an array name", location=stmt.location)
            symbol = self._lookup_array(stmt.value.name, stmt.value)
            if symbol.data_type != return_type:
                raise CodeGenError(
                    f"'{symbol.name}' is {symbol.data_type}, function returns {return_type}",
                    location=stmt.location,
                )
            deref = "*" if self._is_array_reference(symbol) else ""
            self._emit(f"return {deref}{self._name(symbol.name)};")
            return

        value = self._expression(stmt.value)
        self._emit(f"return {self._from_f32(return_type.base, value)};")

    # =========================================================================
    # Float Context Expressions
    # =========================================================================

    def _expression(self, expr: Expression) -> str:
        """Translate an expression to target text producing an f32."""
        if isinstance(expr, (IntLiteral, FloatLiteral)):
            return self._float_literal(expr.value)
        if isinstance(expr, BoolLiteral):
            return self._float_literal(1.0 if expr.value else 0.0)
        if isinstance(expr, StringLiteral):
            raise CodeGenError(
                "string literal used as a value",
                location=expr.location,
                hint="strings can only be printed",
            )
        if isinstance(expr, Identifier):
            symbol = self._lookup_scalar(expr.name, expr)
            return self._to_f32(symbol.data_type.base, self._name(expr.name))
        if isinstance(expr, IndexExpression):
            return self._element_read(expr)
        if isinstance(expr, BinaryExpression):
            return self._binary_expression(expr)
        if isinstance(expr, UnaryExpression):
            operand = self._expression(expr.operand)
            if expr.operator == UnaryOperator.NEGATE:
                return f"(-{operand})"
            return f"sc_not({operand})"
        if isinstance(expr, CallExpression):
            return self._call_expression(expr)
        if isinstance(expr, ReduceExpression):
            return self._reduce_expression(expr)

        raise CodeGenError(f"unsupported expression {type(expr).__name__}", location=expr.location)

    def _element_read(self, expr: IndexExpression) -> str:
        symbol = self._lookup_array(expr.array, expr)
        index = self._int_expression(expr.index)
        name = self._name(expr.array)
        if self.is_rust:
            element = f"{name}[({index}) as usize]"
        else:
            element = f"{name}[{index}]"
        return self._to_f32(symbol.data_type.base, element)

    def _binary_expression(self, expr: BinaryExpression) -> str:
        left = self._expression(expr.left)
        right = self._expression(expr.right)
        operator = expr.operator

        if operator in ARITHMETIC_SYMBOLS:
            return f"({left} {ARITHMETIC_SYMBOLS[operator]} {right})"
        if operator == BinaryOperator.MODULO:
            if self.is_rust:
                return f"({left} % {right})"
            return f"fmodf({left}, {right})"
        if operator in HELPER_NAMES:
            return f"{HELPER_NAMES[operator]}({left}, {right})"
        if operator in COMPARISON_OPERATORS:
            return f"sc_bool({left} {BINARY_SYMBOLS[operator]} {right})"

        raise CodeGenError(f"unsupported operator {operator.name}", location=expr.location)

    def _call_expression(self, call: CallExpression) -> str:
        if call.name in BUILTIN_MATH:
            if len(call.arguments) != 1:
                raise CodeGenError(
                    f"{call.name}() takes 1 argument(s), got {len(call.arguments)}",
                    location=call.location,
                )
            argument = self._expression(call.arguments[0])
            if self.is_rust:
                return f"f32::{RUST_MATH[call.name]}({argument})"
            return f"{C_MATH[call.name]}({argument})"

        function = self._functions.get(call.name)
        if function is None:
            raise CodeGenError(f"Unknown function: {call.name}", location=call.location)
        return_type = function.return_type
        if return_type.is_void or return_type.is_array:
            raise CodeGenError(
                f"function '{call.name}' does not return a scalar value",
                location=call.location,
            )
        return self._to_f32(return_type.base, self._function_call(call))

    def _function_call(self, call: CallExpression) -> str:
        """Call text for a user function, with arguments converted."""
        function = self._functions[call.name]
        parameters = function.parameters
        if len(call.arguments) != len(parameters):
            raise CodeGenError(
                f"{call.name}() takes {len(parameters)} argument(s), got {len(call.arguments)}",
                location=call.location,
            )

        passed_arrays: set[str] = set()
        arrays = {}
        scalars = {}
        for position, (param, argument) in enumerate(zip(parameters, call.arguments)):
            if param.data_type.is_array:
                arrays[position] = self._array_argument(call, param, argument, passed_arrays)
            else:
                value = self._expression(argument)
                scalars[position] = self._from_f32(param.data_type.base, value)

        name = self._name(call.name)
        if not (self.is_rust and arrays and scalars):
            merged = {**arrays, **scalars}
            return f"{name}({', '.join(merged[p] for p in range(len(parameters)))})"

        # Rust: scalar values are computed before arrays are mutably borrowed
        bindings = []
        for position, value in scalars.items():
            temp = self._new_label("a")
            bindings.append(f"let {temp} = {value};")
            scalars[position] = temp
        merged = {**arrays, **scalars}
        arguments = ", ".join(merged[p] for p in range(len(parameters)))
        return f"{{ {' '.join(bindings)} {name}({arguments}) }}"

    def _array_argument(self, call: CallExpression, param: Parameter, argument: Expression, passed: set) -> str:
        if not isinstance(argument, Identifier):
            raise CodeGenError(
                f"argument for array parameter '{param.name}' of {call.name}() must be an array name",
                location=argument.location,
            )
        symbol = self._lookup_array(argument.name, argument)
        if symbol.data_type != param.data_type:
            raise CodeGenError(
                f"'{argument.name}' is {symbol.data_type}, parameter '{param.name}' "
                f"of {call.name}() is {param.data_type}",
                location=argument.location,
            )
        if argument.name in passed:
            raise CodeGenError(
                f"array '{argument.name}' is passed twice to {call.name}()",
                location=argument.location,
            )
        passed.add(argument.name)

        name = self._name(argument.name)
        if not self.is_rust or self._is_array_reference(symbol):
            return name
        return f"&mut {name}"

    def _reduce_expression(self, expr: ReduceExpression) -> str:
        if not isinstance(expr.array, Identifier):
            raise CodeGenError("Reduce requires array identifier", location=expr.location)
        symbol = self._lookup_array(expr.array.name, expr.array)
        base = symbol.data_type.base
        name = self._name(symbol.name)

        if self.is_rust:
            initial, step = RUST_REDUCE_FOLDS[expr.operator]
            value = self._to_f32(base, "v")
            return f"{name}.iter().fold({initial}, |acc, &v| {step.format(v=value)})"

        self._reduce_helpers.add((expr.operator, base))
        helper = self._c_reduce_name(expr.operator, base)
        return f"{helper}({name}, {symbol.data_type.array_size})"

    # =========================================================================
    # Integer Context Expressions
    # =========================================================================

    def _int_expression(self, expr: Expression) -> str:
        """Translate an index or loop bound to a 64-bit integer expression."""
        if isinstance(expr, IntLiteral):
            return f"{expr.value}_i64" if self.is_rust else f"INT64_C({expr.value})"
        if isinstance(expr, (FloatLiteral, BoolLiteral)):
            value = to_i64(float(expr.value))
            return f"{value}_i64" if self.is_rust else f"INT64_C({value})"
        if isinstance(expr, Identifier):
            value = self._expression(expr)
            if self.is_rust:
                return f"({value} as i64)"
            return f"sc_to_i64({value})"
        if isinstance(expr, BinaryExpression):
            if expr.operator not in INTEGER_OPERATORS:
                raise CodeGenError(
                    f"Operator '{BINARY_SYMBOLS[expr.operator]}' is not allowed "
                    f"in an integer expression",
                    location=expr.location,
                )
            left = self._int_expression(expr.left)
            right = self._int_expression(expr.right)
            if not self.is_rust and expr.operator == BinaryOperator.DIVIDE:
                return f"sc_idiv({left}, {right})"
            if not self.is_rust and expr.operator == BinaryOperator.MODULO:
                return f"sc_imod({left}, {right})"
            return f"({left} {BINARY_SYMBOLS[expr.operator]} {right})"

        raise CodeGenError("Expected integer expression", location=expr.location)


# =============================================================================
# Convenience Functions
# =============================================================================

def generate_rust(program: Program, source_name: Optional[str] = None) -> str:
    """Generate Rust source for a program."""
    return CodeGenerator(CodegenTarget.RUST, source_name).generate(program)


def generate_c(program: Program, source_name: Optional[str] = None) -> str:
    """Generate C source for a program."""
    return CodeGenerator(CodegenTarget.C, source_name).generate(program)
