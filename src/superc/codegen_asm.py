"""
x86-64 Assembly Generator for SuperC
====================================

This module translates a SuperC Program into NASM source for x86-64
Windows, linked against the C runtime.

Register Usage
--------------
- xmm0: float accumulator (result of every float expression)
- xmm1-xmm3: second operand, masks and broadcast constants
- rax: integer accumulator (array indices, loop bounds)
- rcx, rdx, r8-r10: scratch (addresses, counters)

Intermediate results are saved in 16-byte stack temporaries, which keeps
rsp 16-byte aligned at every call site. Every call into the C runtime
reserves the 32 bytes of shadow space the Windows x64 convention asks
for.

Data Layout
-----------
Every variable is a single precision slot in .bss, the same
representation the compute engine uses:

    sc_x        resd 1          ; data x: f32
    sc_v        resd 100        ; data v: f32[100]
    sc_f@t      resd 1          ; local t of function f

Float constants are collected in a pool in .data as raw IEEE-754 bit
patterns. Internal labels start with ``__sc_`` and user functions are
``fn_NAME`` procedures, so they never collide with variable slots.

Comparisons produce 1.0 or 0.0 from cmpss masks; == and != use the
epsilon test of the engine. Indexed reads are bounds-checked and jump to
a runtime error handler; indexed writes outside the array are skipped.

Packed Loops
------------
A for loop whose body is a single element-wise statement

    for i = 0:n { c[i] = a[i] + b[i] }

is emitted as a movups/addps loop handling 4 elements per step plus a
scalar remainder, behind a runtime range check that falls back to the
ordinary scalar loop. Operands may be ``arr[i]``, a scalar variable or
a literal; the operator may be + - * or /.
"""

from dataclasses import dataclass
from typing import Optional
import math

from superc.errors import CodeGenError
from superc.numeric import F32_EPSILON, F32_MAX, f32_bits, to_f32, to_i64
from superc.codegen import BUILTIN_MATH, Symbol, collect_symbols
from superc.ast import (
    Assignment,
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
    Program,
    ReduceExpression,
    ReduceOperator,
    ReturnStatement,
    Statement,
    StringLiteral,
    UnaryExpression,
    UnaryOperator,
    BINARY_SYMBOLS,
    INTEGER_OPERATORS,
)


MAX_REGISTER_PARAMS = 4

SCALAR_OPS = {
    BinaryOperator.ADD: "addss",
    BinaryOperator.SUBTRACT: "subss",
    BinaryOperator.MULTIPLY: "mulss",
    BinaryOperator.DIVIDE: "divss",
}

PACKED_OPS = {
    BinaryOperator.ADD: "addps",
    BinaryOperator.SUBTRACT: "subps",
    BinaryOperator.MULTIPLY: "mulps",
    BinaryOperator.DIVIDE: "divps",
}

# C runtime functions for builtins without an SSE instruction
LIBM_FUNCTIONS = {"sin": "sinf", "cos": "cosf", "exp": "expf", "log": "logf"}

EXTERNS = ("printf", "sinf", "cosf", "expf", "logf", "fmodf", "exit")

ERROR_INDEX = "__sc_error_index"
ERROR_DIVIDE = "__sc_error_divide"
TO_I64 = "__sc_f32_to_i64"


def nasm_bytes(text: str) -> str:
    """Render text as a zero-terminated NASM db operand list."""
    parts = []
    run = ""
    for byte in text.encode("utf-8"):
        if 32 <= byte < 127 and byte != ord('"'):
            run += chr(byte)
            continue
        if run:
            parts.append(f'"{run}"')
            run = ""
        parts.append(str(byte))
    if run:
        parts.append(f'"{run}"')
    parts.append("0")
    return ", ".join(parts)


@dataclass
class SimdOperand:
    """One operand of a packed loop: an array element, scalar or constant."""
    array: Optional[str] = None
    scalar: Optional[str] = None
    constant: Optional[float] = None


# =============================================================================
# Assembly Generator
# =============================================================================

class AsmCodeGenerator:
    """
    Generates NASM x86-64 assembly from a SuperC Program.

    Usage:
        generator = AsmCodeGenerator()
        asm_source = generator.generate(program)
    """

    def __init__(self, source_name: Optional[str] = None, emit_header: bool = True):
        self.source_name = source_name
        self.emit_header = emit_header

        self._output: list[str] = []
        self._label_counter = 0
        self._constants: dict[int, str] = {}
        self._strings: dict[str, str] = {}
        self._slots: list[tuple[str, int, str]] = []
        self._functions: dict[str, FunctionDefinition] = {}
        self._scope: dict[str, Symbol] = {}
        self._in_function: Optional[FunctionDefinition] = None
        self._uses_to_i64 = False

    def generate(self, program: Program) -> str:
        """
        Generate assembly source for a whole program.

        Args:
            program: Parsed SuperC program

        Returns:
            NASM source text

        Raises:
            CodeGenError: For constructs this backend cannot express
        """
        self._output = []
        self._label_counter = 0
        self._constants = {}
        self._strings = {}
        self._slots = []
        self._uses_to_i64 = False
        self._functions = {}
        for function in program.functions:
            if function.name in self._functions:
                raise CodeGenError(
                    f"function '{function.name}' is defined twice",
                    location=function.location,
                )
            self._check_signature(function)
            self._functions[function.name] = function

        try:
            main_symbols = collect_symbols(program.statements)
            self._generate_main(program, main_symbols)
            for function in program.functions:
                self._generate_function(function)
        except RecursionError:
            raise CodeGenError(
                "expression nested too deeply to translate",
                hint="use intermediate variables to shorten long operator chains",
            ) from None
        self._emit_runtime()
        text = self._output

        # Sections are known only after the code has been generated
        self._output = []
        if self.emit_header:
            self._emit_header()
        self._emit_data_section()
        self._emit_bss_section()
        self._emit("")
        self._emit("section .text")
        self._output.extend(text)

        return "\n".join(self._output) + "\n"

    # =========================================================================
    # Output Helpers
    # =========================================================================

    def _emit(self, line: str = "") -> None:
        """Emit a line of assembly."""
        self._output.append(line)

    def _emit_comment(self, comment: str) -> None:
        self._emit(f"        ; {comment}")

    def _emit_label(self, label: str) -> None:
        self._emit(f"{label}:")

    def _emit_instruction(self, mnemonic: str, operand: str = "") -> None:
        """Emit an instruction with optional operand."""
        if operand:
            self._emit(f"        {mnemonic:<10}{operand}")
        else:
            self._emit(f"        {mnemonic}")

    def _new_label(self, prefix: str = "L") -> str:
        """Generate a unique label."""
        self._label_counter += 1
        return f"__sc_{prefix}{self._label_counter}"

    def _emit_call(self, function: str) -> None:
        """Call a function with 32 bytes of shadow space."""
        self._emit_instruction("sub", "rsp, 32")
        self._emit_instruction("call", function)
        self._emit_instruction("add", "rsp, 32")

    def _push_xmm0(self) -> None:
        self._emit_instruction("sub", "rsp, 16")
        self._emit_instruction("movss", "[rsp], xmm0")

    def _pop_xmm(self, register: str) -> None:
        self._emit_instruction("movss", f"{register}, [rsp]")
        self._emit_instruction("add", "rsp, 16")

    def _push_rax(self) -> None:
        self._emit_instruction("sub", "rsp, 16")
        self._emit_instruction("mov", "[rsp], rax")

    def _pop_rax(self) -> None:
        self._emit_instruction("mov", "rax, [rsp]")
        self._emit_instruction("add", "rsp, 16")

    def _compare_limit(self, register: str, limit: int) -> None:
        """Compare a register against an unsigned array size."""
        if limit < 2 ** 31:
            self._emit_instruction("cmp", f"{register}, {limit}")
        else:
            self._emit_instruction("mov", f"r11, {limit}")
            self._emit_instruction("cmp", f"{register}, r11")

    # =========================================================================
    # Data Pools
    # =========================================================================

    def _constant(self, value: float) -> str:
        """Label of a pooled single precision constant."""
        bits = f32_bits(value)
        label = self._constants.get(bits)
        if label is None:
            label = f"__sc_c{len(self._constants) + 1}"
            self._constants[bits] = label
        return label

    def _string(self, text: str) -> str:
        label = self._strings.get(text)
        if label is None:
            label = f"__sc_s{len(self._strings) + 1}"
            self._strings[text] = label
        return label

    def _reserve(self, label: str, count: int, directive: str = "resd") -> None:
        self._slots.append((label, count, directive))

    def _emit_header(self) -> None:
        origin = f" from {self.source_name}" if self.source_name else ""
        self._emit("; =============================================================================")
        self._emit(f"; x86-64 assembly generated by superc{origin}")
        self._emit("; NASM syntax, Windows x64 calling convention, C runtime")
        self._emit("; =============================================================================")
        self._emit("")

    def _emit_data_section(self) -> None:
        self._emit("        default rel")
        self._emit("        bits 64")
        self._emit("")
        self._emit("        global  main")
        self._emit(f"        extern  {', '.join(EXTERNS)}")
        self._emit("")
        self._emit("section .data")
        self._emit("        align 16")
        self._emit(f"__sc_one:       dd 0x{f32_bits(1.0):08X}, 0, 0, 0")
        self._emit("        align 16")
        self._emit("__sc_abs_mask:  dd 0x7FFFFFFF, 0, 0, 0")
        self._emit("        align 16")
        self._emit("__sc_sign_mask: dd 0x80000000, 0x80000000, 0x80000000, 0x80000000")
        self._emit(f"__sc_epsilon:   dd 0x{f32_bits(F32_EPSILON):08X}")
        self._emit(f"__sc_fmt_value: db {nasm_bytes('%.6f' + chr(10))}")
        self._emit(f"__sc_fmt_nan:   db {nasm_bytes('NaN' + chr(10))}")
        self._emit(f"__sc_fmt_text:  db {nasm_bytes('%s' + chr(10))}")
        self._emit(f"__sc_msg_index: db {nasm_bytes('error: array index out of range' + chr(10))}")
        self._emit(f"__sc_msg_div:   db {nasm_bytes('error: integer division by zero' + chr(10))}")

        if self._strings:
            self._emit("")
            self._emit("; String literals")
            for text, label in self._strings.items():
                self._emit(f"{label}: db {nasm_bytes(text)}")

        if self._constants:
            self._emit("")
            self._emit("; Float constants")
            self._emit("        align 4")
            for bits, label in self._constants.items():
                self._emit(f"{label}: dd 0x{bits:08X}")

    def _emit_bss_section(self) -> None:
        if not self._slots:
            return
        self._emit("")
        self._emit("section .bss")
        self._emit("        alignb 16")
        for label, count, directive in self._slots:
            self._emit(f"{label:<24}{directive} {count}")

    # =========================================================================
    # Symbols
    # =========================================================================

    def _slot(self, name: str) -> str:
        """Label of a variable slot in the current scope."""
        if self._in_function is not None:
            return f"sc_{self._in_function.name}@{name}"
        return f"sc_{name}"

    def _reserve_symbols(self, symbols: dict[str, Symbol]) -> None:
        for symbol in symbols.values():
            size = symbol.data_type.array_size if symbol.data_type.is_array else 1
            self._reserve(self._slot(symbol.name), size)

    def _lookup(self, name: str, node) -> Symbol:
        symbol = self._scope.get(name)
        if symbol is None:
            raise CodeGenError(f"Undefined variable: {name}", location=node.location)
        return symbol

    def _lookup_scalar(self, name: str, node) -> Symbol:
        symbol = self._lookup(name, node)
        if symbol.data_type.is_array:
            raise CodeGenError(f"array '{name}' used as a scalar", location=node.location)
        return symbol

    def _lookup_array(self, name: str, node) -> Symbol:
        symbol = self._lookup(name, node)
        if not symbol.data_type.is_array:
            raise CodeGenError(f"'{name}' is not an array", location=node.location)
        return symbol

    def _check_signature(self, function: FunctionDefinition) -> None:
        if len(function.parameters) > MAX_REGISTER_PARAMS:
            raise CodeGenError(
                f"function '{function.name}' has {len(function.parameters)} parameters",
                location=function.location,
                hint=f"at most {MAX_REGISTER_PARAMS} parameters are passed in registers",
            )
        for param in function.parameters:
            if param.data_type.is_array:
                raise CodeGenError(
                    f"array parameter '{param.name}' of '{function.name}' is not supported",
                    location=function.location,
                )
        if function.return_type.is_array:
            raise CodeGenError(
                f"function '{function.name}' returns an array, which is not supported",
                location=function.location,
            )

    # =========================================================================
    # Procedures
    # =========================================================================

    def _generate_main(self, program: Program, symbols: dict[str, Symbol]) -> None:
        self._scope = symbols
        self._in_function = None
        self._reserve_symbols(symbols)

        self._emit("")
        self._emit_label("main")
        self._emit_instruction("push", "rbp")
        self._emit_instruction("mov", "rbp, rsp")

        for statement in program.statements:
            if isinstance(statement, DataDeclaration):
                # .bss starts zeroed
                continue
            self._generate_statement(statement)

        self._emit_instruction("xor", "eax, eax")
        self._emit_instruction("mov", "rsp, rbp")
        self._emit_instruction("pop", "rbp")
        self._emit_instruction("ret")

    def _generate_function(self, function: FunctionDefinition) -> None:
        self._in_function = function
        symbols = collect_symbols(function.body, function.parameters)
        self._scope = symbols
        self._reserve_symbols(symbols)

        self._emit("")
        self._emit_label(f"fn_{function.name}")
        self._emit_instruction("push", "rbp")
        self._emit_instruction("mov", "rbp, rsp")
        for position, param in enumerate(function.parameters):
            self._emit_instruction("movss", f"[{self._slot(param.name)}], xmm{position}")
        for symbol in symbols.values():
            if not symbol.is_parameter:
                self._emit_zero(symbol)

        for statement in function.body:
            self._generate_statement(statement)

        self._emit_instruction("xorps", "xmm0, xmm0")
        self._emit_label(f"fn_{function.name}_ret")
        self._emit_instruction("mov", "rsp, rbp")
        self._emit_instruction("pop", "rbp")
        self._emit_instruction("ret")
        self._in_function = None

    def _emit_runtime(self) -> None:
        """Runtime error handlers and the float to integer helper."""
        self._emit("")
        self._emit_label(ERROR_INDEX)
        self._emit_instruction("lea", "rcx, [__sc_msg_index]")
        self._emit_fatal()

        self._emit("")
        self._emit_label(ERROR_DIVIDE)
        self._emit_instruction("lea", "rcx, [__sc_msg_div]")
        self._emit_fatal()

        if self._uses_to_i64:
            # Truncate xmm0 to rax: NaN gives 0, out of range saturates
            self._emit("")
            self._emit_label(TO_I64)
            self._emit_instruction("ucomiss", "xmm0, xmm0")
            self._emit_instruction("jp", ".nan")
            self._emit_instruction("cvttss2si", "rax, xmm0")
            self._emit_instruction("mov", "rcx, 0x8000000000000000")
            self._emit_instruction("cmp", "rax, rcx")
            self._emit_instruction("jne", ".done")
            self._emit_instruction("xorps", "xmm1, xmm1")
            self._emit_instruction("comiss", "xmm0, xmm1")
            self._emit_instruction("jb", ".done")
            self._emit_instruction("mov", "rax, 0x7FFFFFFFFFFFFFFF")
            self._emit_label(".done")
            self._emit_instruction("ret")
            self._emit_label(".nan")
            self._emit_instruction("xor", "eax, eax")
            self._emit_instruction("ret")

    def _emit_fatal(self) -> None:
        self._emit_instruction("and", "rsp, -16")
        self._emit_call("printf")
        self._emit_instruction("mov", "ecx, 1")
        self._emit_call("exit")

    # =========================================================================
    # Statement Generation
    # =========================================================================

    def _generate_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, DataDeclaration):
            self._emit_zero(self._lookup(stmt.name, stmt))
        elif isinstance(stmt, Assignment):
            self._generate_assignment(stmt)
        elif isinstance(stmt, ExecBlock):
            self._emit_comment(f"@exec({stmt.target})")
            for inner in stmt.body:
                self._generate_statement(inner)
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

    def _emit_zero(self, symbol: Symbol) -> None:
        slot = self._slot(symbol.name)
        if not symbol.data_type.is_array:
            self._emit_instruction("mov", f"dword [{slot}], 0")
            return
        if symbol.data_type.array_size == 0:
            return
        loop = self._new_label("zero")
        self._emit_instruction("lea", f"rcx, [{slot}]")
        self._emit_instruction("mov", f"rdx, {symbol.data_type.array_size}")
        self._emit_label(loop)
        self._emit_instruction("mov", "dword [rcx], 0")
        self._emit_instruction("add", "rcx, 4")
        self._emit_instruction("dec", "rdx")
        self._emit_instruction("jnz", loop)

    def _generate_assignment(self, stmt: Assignment) -> None:
        if stmt.index is None:
            symbol = self._lookup_scalar(stmt.target, stmt)
            self._generate_expression(stmt.value)
            self._emit_instruction("movss", f"[{self._slot(symbol.name)}], xmm0")
            return

        symbol = self._lookup_array(stmt.target, stmt)
        skip = self._new_label("skip")
        self._generate_expression(stmt.value)
        self._push_xmm0()
        self._generate_int_expression(stmt.index)
        self._pop_xmm("xmm0")
        self._compare_limit("rax", symbol.data_type.array_size)
        self._emit_instruction("jae", skip)
        self._emit_instruction("lea", f"rcx, [{self._slot(symbol.name)}]")
        self._emit_instruction("movss", "[rcx + rax*4], xmm0")
        self._emit_label(skip)

    def _generate_if(self, stmt: IfStatement) -> None:
        then_label = self._new_label("then")
        else_label = self._new_label("else")
        end_label = self._new_label("endif")

        self._generate_expression(stmt.condition)
        self._emit_instruction("xorps", "xmm1, xmm1")
        self._emit_instruction("ucomiss", "xmm0, xmm1")
        self._emit_instruction("jp", then_label)  # NaN is truthy
        self._emit_instruction("je", else_label)
        self._emit_label(then_label)
        for inner in stmt.then_body:
            self._generate_statement(inner)
        self._emit_instruction("jmp", end_label)
        self._emit_label(else_label)
        for inner in stmt.else_body or []:
            self._generate_statement(inner)
        self._emit_label(end_label)

    def _generate_for(self, stmt: ForStatement) -> None:
        variable = self._lookup_scalar(stmt.variable, stmt)
        loop_id = self._new_label("loop")
        counter = f"{loop_id}_i"
        limit = f"{loop_id}_end"
        self._reserve(counter, 1, "resq")
        self._reserve(limit, 1, "resq")
        end_label = f"{loop_id}_done"

        self._generate_int_expression(stmt.start)
        self._emit_instruction("mov", f"[{counter}], rax")
        self._generate_int_expression(stmt.end)
        self._emit_instruction("mov", f"[{limit}], rax")

        packed = self._match_packed_loop(stmt)
        if packed is not None:
            self._emit_packed_loop(stmt, packed, loop_id)

        top = f"{loop_id}_top"
        self._emit_label(top)
        self._emit_instruction("mov", f"rax, [{counter}]")
        self._emit_instruction("cmp", f"rax, [{limit}]")
        self._emit_instruction("jge", end_label)
        self._emit_instruction("cvtsi2ss", "xmm0, rax")
        self._emit_instruction("movss", f"[{self._slot(variable.name)}], xmm0")
        for inner in stmt.body:
            self._generate_statement(inner)
        self._emit_instruction("inc", f"qword [{counter}]")
        self._emit_instruction("jmp", top)
        self._emit_label(end_label)

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
            self._generate_user_call(expr)
        else:
            raise CodeGenError(f"Unknown function: {expr.name}", location=expr.location)

    def _generate_print(self, call: CallExpression) -> None:
        if not call.arguments:
            self._emit_comment("print() without arguments")
            return

        argument = call.arguments[0]
        if isinstance(argument, StringLiteral):
            self._emit_instruction("lea", "rcx, [__sc_fmt_text]")
            self._emit_instruction("lea", f"rdx, [{self._string(argument.value)}]")
            self._emit_call("printf")
            return

        nan_label = self._new_label("nan")
        done_label = self._new_label("printed")
        self._generate_expression(argument)
        self._emit_instruction("ucomiss", "xmm0, xmm0")
        self._emit_instruction("jp", nan_label)
        # Variadic doubles travel in both xmm1 and rdx
        self._emit_instruction("cvtss2sd", "xmm1, xmm0")
        self._emit_instruction("movq", "rdx, xmm1")
        self._emit_instruction("lea", "rcx, [__sc_fmt_value]")
        self._emit_call("printf")
        self._emit_instruction("jmp", done_label)
        self._emit_label(nan_label)
        self._emit_instruction("lea", "rcx, [__sc_fmt_nan]")
        self._emit_call("printf")
        self._emit_label(done_label)

    def _generate_return(self, stmt: ReturnStatement) -> None:
        function = self._in_function
        if function is None:
            self._emit_comment("return has no effect at top level")
            return

        if stmt.value is None:
            self._emit_instruction("xorps", "xmm0, xmm0")
        elif function.return_type.is_void:
            raise CodeGenError(
                f"function '{function.name}' has no return type but returns a value",
                location=stmt.location,
            )
        else:
            self._generate_expression(stmt.value)
        self._emit_instruction("jmp", f"fn_{function.name}_ret")

    # =========================================================================
    # Packed Loops
    # =========================================================================

    def _match_packed_loop(self, stmt: ForStatement) -> Optional[tuple]:
        """
        Recognise ``dst[i] = a OP b`` loop bodies.

        Returns:
            (destination, operator, left, right) or None
        """
        if len(stmt.body) != 1 or not isinstance(stmt.body[0], Assignment):
            return None
        assign = stmt.body[0]
        if not self._is_loop_index(assign.index, stmt.variable):
            return None
        destination = self._scope.get(assign.target)
        if destination is None or not destination.data_type.is_array:
            return None
        value = assign.value
        if not isinstance(value, BinaryExpression) or value.operator not in PACKED_OPS:
            return None

        left = self._packed_operand(value.left, stmt.variable)
        right = self._packed_operand(value.right, stmt.variable)
        if left is None or right is None:
            return None
        return destination, value.operator, left, right

    @staticmethod
    def _is_loop_index(expr: Optional[Expression], variable: str) -> bool:
        return isinstance(expr, Identifier) and expr.name == variable

    def _packed_operand(self, expr: Expression, variable: str) -> Optional[SimdOperand]:
        if isinstance(expr, IndexExpression) and self._is_loop_index(expr.index, variable):
            symbol = self._scope.get(expr.array)
            if symbol is not None and symbol.data_type.is_array:
                return SimdOperand(array=expr.array)
            return None
        if isinstance(expr, Identifier) and expr.name != variable:
            symbol = self._scope.get(expr.name)
            if symbol is not None and not symbol.data_type.is_array:
                return SimdOperand(scalar=expr.name)
            return None
        if isinstance(expr, (IntLiteral, FloatLiteral)):
            return SimdOperand(constant=to_f32(expr.value))
        return None

    def _emit_packed_loop(self, stmt: ForStatement, packed: tuple, loop_id: str) -> None:
        destination, operator, left, right = packed
        counter = f"{loop_id}_i"
        limit = f"{loop_id}_end"
        vector_label = f"{loop_id}_vec"
        rest_label = f"{loop_id}_rest"
        finish_label = f"{loop_id}_last"
        scalar_label = f"{loop_id}_top"

        sizes = [destination.data_type.array_size]
        for operand in (left, right):
            if operand.array is not None:
                sizes.append(self._scope[operand.array].data_type.array_size)

        self._emit_comment(f"packed loop: {destination.name}[{stmt.variable}] "
                           f"= a {BINARY_SYMBOLS[operator]} b, 4 lanes per step")
        self._emit_instruction("mov", f"rax, [{counter}]")
        self._emit_instruction("mov", f"rcx, [{limit}]")
        self._emit_instruction("cmp", "rax, rcx")
        self._emit_instruction("jge", f"{loop_id}_done")
        self._emit_instruction("test", "rax, rax")
        self._emit_instruction("js", scalar_label)
        self._compare_limit("rcx", min(sizes))
        self._emit_instruction("jg", scalar_label)

        self._emit_instruction("lea", f"r8, [{self._slot(destination.name)}]")
        operand_registers = []
        for position, operand in enumerate((left, right)):
            base = f"r{9 + position}"
            broadcast = f"xmm{2 + position}"
            if operand.array is not None:
                self._emit_instruction("lea", f"{base}, [{self._slot(operand.array)}]")
                operand_registers.append((base, None))
                continue
            if operand.scalar is not None:
                self._emit_instruction("movss", f"{broadcast}, [{self._slot(operand.scalar)}]")
            else:
                self._emit_instruction("movss", f"{broadcast}, [{self._constant(operand.constant)}]")
            self._emit_instruction("shufps", f"{broadcast}, {broadcast}, 0")
            operand_registers.append((None, broadcast))

        def load(position: int, packed_move: bool) -> None:
            target = f"xmm{position}"
            base, broadcast = operand_registers[position]
            if base is not None:
                move = "movups" if packed_move else "movss"
                self._emit_instruction(move, f"{target}, [{base} + rax*4]")
            else:
                self._emit_instruction("movaps", f"{target}, {broadcast}")

        self._emit_label(vector_label)
        self._emit_instruction("mov", f"rax, [{counter}]")
        self._emit_instruction("lea", "rdx, [rax + 4]")
        self._emit_instruction("cmp", f"rdx, [{limit}]")
        self._emit_instruction("jg", rest_label)
        load(0, True)
        load(1, True)
        self._emit_instruction(PACKED_OPS[operator], "xmm0, xmm1")
        self._emit_instruction("movups", "[r8 + rax*4], xmm0")
        self._emit_instruction("mov", f"[{counter}], rdx")
        self._emit_instruction("jmp", vector_label)

        self._emit_label(rest_label)
        self._emit_instruction("mov", f"rax, [{counter}]")
        self._emit_instruction("cmp", f"rax, [{limit}]")
        self._emit_instruction("jge", finish_label)
        load(0, False)
        load(1, False)
        self._emit_instruction(SCALAR_OPS[operator], "xmm0, xmm1")
        self._emit_instruction("movss", "[r8 + rax*4], xmm0")
        self._emit_instruction("inc", f"qword [{counter}]")
        self._emit_instruction("jmp", rest_label)

        # The loop variable ends on the last index, as after the scalar loop
        self._emit_label(finish_label)
        self._emit_instruction("mov", f"rax, [{limit}]")
        self._emit_instruction("dec", "rax")
        self._emit_instruction("cvtsi2ss", "xmm0, rax")
        self._emit_instruction("movss", f"[{self._slot(stmt.variable)}], xmm0")
        self._emit_instruction("jmp", f"{loop_id}_done")

    # =========================================================================
    # Float Context Expressions
    # =========================================================================

    def _generate_expression(self, expr: Expression) -> None:
        """Generate code leaving the value of expr in xmm0."""
        if isinstance(expr, (IntLiteral, FloatLiteral)):
            self._load_constant(to_f32(expr.value))
        elif isinstance(expr, BoolLiteral):
            self._load_constant(1.0 if expr.value else 0.0)
        elif isinstance(expr, StringLiteral):
            raise CodeGenError("string literal used as a value", location=expr.location)
        elif isinstance(expr, Identifier):
            symbol = self._lookup_scalar(expr.name, expr)
            self._emit_instruction("movss", f"xmm0, [{self._slot(symbol.name)}]")
        elif isinstance(expr, IndexExpression):
            self._generate_element_read(expr)
        elif isinstance(expr, BinaryExpression):
            self._generate_binary(expr)
        elif isinstance(expr, UnaryExpression):
            self._generate_expression(expr.operand)
            if expr.operator == UnaryOperator.NEGATE:
                self._emit_instruction("xorps", "xmm0, [__sc_sign_mask]")
            else:
                self._emit_instruction("xorps", "xmm1, xmm1")
                self._emit_instruction("cmpeqss", "xmm0, xmm1")
                self._emit_instruction("andps", "xmm0, [__sc_one]")
        elif isinstance(expr, CallExpression):
            self._generate_call(expr)
        elif isinstance(expr, ReduceExpression):
            self._generate_reduce(expr)
        else:
            raise CodeGenError(f"unsupported expression {type(expr).__name__}", location=expr.location)

    def _load_constant(self, value: float) -> None:
        if value == 0.0 and math.copysign(1.0, value) > 0:
            self._emit_instruction("xorps", "xmm0, xmm0")
        else:
            self._emit_instruction("movss", f"xmm0, [{self._constant(value)}]")

    def _generate_element_read(self, expr: IndexExpression) -> None:
        symbol = self._lookup_array(expr.array, expr)
        self._generate_int_expression(expr.index)
        self._compare_limit("rax", symbol.data_type.array_size)
        self._emit_instruction("jae", ERROR_INDEX)
        self._emit_instruction("lea", f"rcx, [{self._slot(symbol.name)}]")
        self._emit_instruction("movss", "xmm0, [rcx + rax*4]")

    def _generate_binary(self, expr: BinaryExpression) -> None:
        self._generate_expression(expr.left)
        self._push_xmm0()
        self._generate_expression(expr.right)
        self._emit_instruction("movaps", "xmm1, xmm0")
        self._pop_xmm("xmm0")

        operator = expr.operator
        if operator in SCALAR_OPS:
            self._emit_instruction(SCALAR_OPS[operator], "xmm0, xmm1")
        elif operator == BinaryOperator.MODULO:
            self._emit_call("fmodf")
        elif operator == BinaryOperator.LESS:
            self._emit_mask("cmpltss", "xmm0", "xmm1")
        elif operator == BinaryOperator.LESS_EQ:
            self._emit_mask("cmpless", "xmm0", "xmm1")
        elif operator == BinaryOperator.GREATER:
            self._emit_mask("cmpltss", "xmm1", "xmm0")
        elif operator == BinaryOperator.GREATER_EQ:
            self._emit_mask("cmpless", "xmm1", "xmm0")
        elif operator in (BinaryOperator.EQUAL, BinaryOperator.NOT_EQUAL):
            self._emit_instruction("subss", "xmm0, xmm1")
            self._emit_instruction("andps", "xmm0, [__sc_abs_mask]")
            self._emit_instruction("movss", "xmm1, [__sc_epsilon]")
            if operator == BinaryOperator.EQUAL:
                self._emit_mask("cmpltss", "xmm0", "xmm1")
            else:
                self._emit_mask("cmpless", "xmm1", "xmm0")
        elif operator in (BinaryOperator.LOGICAL_AND, BinaryOperator.LOGICAL_OR):
            self._emit_instruction("xorps", "xmm2, xmm2")
            self._emit_instruction("cmpneqss", "xmm0, xmm2")
            self._emit_instruction("cmpneqss", "xmm1, xmm2")
            combine = "andps" if operator == BinaryOperator.LOGICAL_AND else "orps"
            self._emit_instruction(combine, "xmm0, xmm1")
            self._emit_instruction("andps", "xmm0, [__sc_one]")
        else:
            raise CodeGenError(f"unsupported operator {operator.name}", location=expr.location)

    def _emit_mask(self, compare: str, left: str, right: str) -> None:
        """Compare into a lane mask and turn it into 1.0 / 0.0 in xmm0."""
        self._emit_instruction(compare, f"{left}, {right}")
        if left != "xmm0":
            self._emit_instruction("movaps", f"xmm0, {left}")
        self._emit_instruction("andps", "xmm0, [__sc_one]")

    def _generate_call(self, call: CallExpression) -> None:
        if call.name in BUILTIN_MATH:
            if len(call.arguments) != 1:
                raise CodeGenError(
                    f"{call.name}() takes 1 argument(s), got {len(call.arguments)}",
                    location=call.location,
                )
            self._generate_expression(call.arguments[0])
            if call.name == "sqrt":
                self._emit_instruction("sqrtss", "xmm0, xmm0")
            else:
                self._emit_call(LIBM_FUNCTIONS[call.name])
            return

        function = self._functions.get(call.name)
        if function is None:
            raise CodeGenError(f"Unknown function: {call.name}", location=call.location)
        if function.return_type.is_void:
            raise CodeGenError(
                f"function '{call.name}' does not return a value",
                location=call.location,
            )
        self._generate_user_call(call)

    def _generate_user_call(self, call: CallExpression) -> None:
        function = self._functions[call.name]
        count = len(function.parameters)
        if len(call.arguments) != count:
            raise CodeGenError(
                f"{call.name}() takes {count} argument(s), got {len(call.arguments)}",
                location=call.location,
            )

        for argument in call.arguments:
            self._generate_expression(argument)
            self._push_xmm0()
        # Arguments were pushed in order, the last one is on top
        for position in range(count):
            self._emit_instruction("movss", f"xmm{position}, [rsp + {16 * (count - 1 - position)}]")
        if count:
            self._emit_instruction("add", f"rsp, {16 * count}")
        self._emit_call(f"fn_{call.name}")

    def _generate_reduce(self, expr: ReduceExpression) -> None:
        if not isinstance(expr.array, Identifier):
            raise CodeGenError("Reduce requires array identifier", location=expr.location)
        symbol = self._lookup_array(expr.array.name, expr.array)
        operator = expr.operator

        initial = {
            ReduceOperator.SUM: 0.0,
            ReduceOperator.PROD: 1.0,
            ReduceOperator.MAX: -F32_MAX,
            ReduceOperator.MIN: F32_MAX,
        }[operator]
        loop = self._new_label("reduce")
        done = self._new_label("reduced")

        self._emit_comment(f"reduce({operator.name.lower()}, {symbol.name})")
        self._load_constant(initial)
        self._emit_instruction("lea", f"rcx, [{self._slot(symbol.name)}]")
        self._emit_instruction("mov", f"rdx, {symbol.data_type.array_size}")
        self._emit_label(loop)
        self._emit_instruction("test", "rdx, rdx")
        self._emit_instruction("jz", done)
        self._emit_instruction("movss", "xmm1, [rcx]")
        if operator == ReduceOperator.SUM:
            self._emit_instruction("addss", "xmm0, xmm1")
        elif operator == ReduceOperator.PROD:
            self._emit_instruction("mulss", "xmm0, xmm1")
        else:
            # maxss/minss return the second operand on NaN: keep the accumulator
            self._emit_instruction("maxss" if operator == ReduceOperator.MAX else "minss", "xmm1, xmm0")
            self._emit_instruction("movaps", "xmm0, xmm1")
        self._emit_instruction("add", "rcx, 4")
        self._emit_instruction("dec", "rdx")
        self._emit_instruction("jmp", loop)
        self._emit_label(done)

    # =========================================================================
    # Integer Context Expressions
    # =========================================================================

    def _generate_int_expression(self, expr: Expression) -> None:
        """Generate code leaving the 64-bit integer value of expr in rax."""
        if isinstance(expr, IntLiteral):
            self._emit_instruction("mov", f"rax, {expr.value}")
        elif isinstance(expr, (FloatLiteral, BoolLiteral)):
            self._emit_instruction("mov", f"rax, {to_i64(float(expr.value))}")
        elif isinstance(expr, Identifier):
            symbol = self._lookup_scalar(expr.name, expr)
            self._uses_to_i64 = True
            self._emit_instruction("movss", f"xmm0, [{self._slot(symbol.name)}]")
            self._emit_instruction("call", TO_I64)
        elif isinstance(expr, BinaryExpression):
            if expr.operator not in INTEGER_OPERATORS:
                raise CodeGenError(
                    f"Operator '{BINARY_SYMBOLS[expr.operator]}' is not allowed "
                    f"in an integer expression",
                    location=expr.location,
                )
            self._generate_int_expression(expr.left)
            self._push_rax()
            self._generate_int_expression(expr.right)
            self._emit_instruction("mov", "rcx, rax")
            self._pop_rax()
            self._emit_int_operation(expr.operator)
        else:
            raise CodeGenError("Expected integer expression", location=expr.location)

    def _emit_int_operation(self, operator: BinaryOperator) -> None:
        if operator == BinaryOperator.ADD:
            self._emit_instruction("add", "rax, rcx")
        elif operator == BinaryOperator.SUBTRACT:
            self._emit_instruction("sub", "rax, rcx")
        elif operator == BinaryOperator.MULTIPLY:
            self._emit_instruction("imul", "rax, rcx")
        else:
            self._emit_instruction("test", "rcx, rcx")
            self._emit_instruction("jz", ERROR_DIVIDE)
            self._emit_instruction("cqo")
            self._emit_instruction("idiv", "rcx")
            if operator == BinaryOperator.MODULO:
                self._emit_instruction("mov", "rax, rdx")


def generate_asm(program: Program, source_name: Optional[str] = None) -> str:
    """Generate NASM source for a program."""
    return AsmCodeGenerator(source_name).generate(program)
