"""
SuperC Compute Engine
=====================

Tree-walking interpreter for SuperC programs, with heuristic backend
selection.

Execution Steps
---------------
1. Workload size: the largest array among top-level 'data' declarations.
2. Backend selection from the preference and workload size (see
   superc.config for the AUTO thresholds). GPU backends are labels only;
   every program runs on this interpreter.
3. A fresh ExecutionEnvironment is created and every top-level
   declaration is zero-initialized.
4. Top-level statements run in source order.

Value Model
-----------
Every runtime value is an IEEE-754 single precision float, whatever type
it was declared with. Python floats are doubles, so each operation result
is rounded back to single precision; for + - * / and sqrt this gives
exactly the single precision result.

Two evaluation contexts exist:

- float context: all expressions, with epsilon-tolerant == and != and
  comparisons/logical operators producing 1.0 or 0.0
- integer context: array indices and loop bounds, restricted to
  literals, scalar names and + - * / % with C-style truncation

Example Usage
-------------
>>> from superc.engine import ComputeEngine, ComputePreference
>>> engine = ComputeEngine(ComputePreference.AUTO)
>>> result = engine.execute("data a: f32[4]\\nfor i = 0:4 { a[i] = i * 2 }")
>>> result.output
[0.0, 2.0, 4.0, 6.0]
>>> result.backend_used.description
'Pure CPU'
"""

from dataclasses import dataclass, field
from typing import Optional, TextIO
import difflib
import logging
import math
import sys
import time

from superc.backends import Backend, ComputePreference
from superc.config import EngineConfig
from superc.numeric import F32_EPSILON, F32_MAX, format_value, to_f32, to_i64
from superc.errors import (
    ArgumentCountError,
    ArrayAccessError,
    EvaluationError,
    IntegerContextError,
    ReduceTargetError,
    UndefinedVariableError,
    UnknownFunctionError,
    UnsupportedExpressionError,
)
from superc.parser import parse_source
from superc.types import DataType
from superc.ast import (
    BINARY_SYMBOLS,
    INTEGER_OPERATORS,
    ASTNode,
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
)

logger = logging.getLogger(__name__)

# =============================================================================
# Float Helpers
# =============================================================================

def _divide(left: float, right: float) -> float:
    """IEEE division: x/0 is a signed infinity, 0/0 is NaN."""
    if right == 0.0:
        if left == 0.0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _fmod(left: float, right: float) -> float:
    """C fmod: result has the sign of the dividend, NaN for x % 0."""
    if right == 0.0 or math.isinf(left):
        return math.nan
    return math.fmod(left, right)


def _sqrt(value: float) -> float:
    if value < 0.0:
        return math.nan
    return math.sqrt(value)


def _log(value: float) -> float:
    if value == 0.0:
        return -math.inf
    if value < 0.0:
        return math.nan
    return math.log(value)


def _exp(value: float) -> float:
    try:
        return math.exp(value)
    except OverflowError:
        return math.inf


def _periodic(function):
    def wrapped(value: float) -> float:
        if math.isinf(value):
            return math.nan
        return function(value)
    return wrapped


BUILTIN_FUNCTIONS = {
    "sqrt": _sqrt,
    "sin": _periodic(math.sin),
    "cos": _periodic(math.cos),
    "exp": _exp,
    "log": _log,
}


def _truncating_divide(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


# =============================================================================
# Runtime Data Structures
# =============================================================================

@dataclass
class ComputeResult:
    """
    Result of executing a SuperC program.

    Attributes:
        backend_used: Backend label chosen for the run
        execution_time_us: Wall-clock execution time in microseconds
        success: Always True; failures raise instead
        output: Contents of the first declared array
    """
    backend_used: Backend
    execution_time_us: int
    success: bool
    output: list[float] = field(default_factory=list)


class ExecutionEnvironment:
    """
    Flat runtime name tables for one execution.

    Names live in a single namespace without scoping; declaring a name
    again replaces the previous value (and kind).
    """

    def __init__(self):
        self.scalars: dict[str, float] = {}
        self.arrays: dict[str, list[float]] = {}

    def declare(self, name: str, data_type: DataType) -> None:
        """Create a zero scalar or a zero-filled array."""
        if data_type.is_array:
            self.scalars.pop(name, None)
            self.arrays[name] = [0.0] * data_type.array_size
        else:
            self.arrays.pop(name, None)
            self.scalars[name] = 0.0

    def is_declared(self, name: str) -> bool:
        return name in self.scalars or name in self.arrays

    def get_scalar(self, name: str, expr: Optional[Expression] = None) -> float:
        try:
            return self.scalars[name]
        except KeyError:
            raise self._undefined(name, expr) from None

    def set_scalar(self, name: str, value: float, expr: Optional[ASTNode] = None) -> None:
        if name not in self.scalars:
            raise self._undefined(name, expr)
        self.scalars[name] = value

    def bind(self, name: str, value: float) -> None:
        """Bind a loop variable, declaring it if needed."""
        self.scalars[name] = value

    def get_array(self, name: str, expr: Optional[Expression] = None) -> list[float]:
        try:
            return self.arrays[name]
        except KeyError:
            raise self._undefined(name, expr) from None

    def get_element(self, name: str, index: int, expr: Optional[Expression] = None) -> float:
        location = expr.location if expr is not None else None
        array = self.arrays.get(name)
        if array is None:
            raise ArrayAccessError(name, index, location=location)
        if not 0 <= index < len(array):
            raise ArrayAccessError(name, index, len(array), location=location)
        return array[index]

    def set_element(self, name: str, index: int, value: float, stmt: Optional[ASTNode] = None) -> None:
        """Write an element; out-of-range writes are dropped."""
        array = self.arrays.get(name)
        if array is None:
            raise self._undefined(name, stmt)
        if 0 <= index < len(array):
            array[index] = value

    def first_array(self) -> list[float]:
        """Copy of the first array in declaration order (empty if none)."""
        for values in self.arrays.values():
            return list(values)
        return []

    def _undefined(self, name: str, node) -> UndefinedVariableError:
        known = list(self.scalars) + list(self.arrays)
        return UndefinedVariableError(
            name,
            location=node.location if node is not None else None,
            similar_names=difflib.get_close_matches(name, known, n=3),
        )


# =============================================================================
# Compute Engine
# =============================================================================

class ComputeEngine:
    """
    Interprets SuperC programs and labels each run with a backend.

    Usage:
        engine = ComputeEngine(ComputePreference.GPU)
        result = engine.execute(source)
        print(result.backend_used, result.output)

    Attributes:
        preference: Requested execution preference
        config: Thresholds and available backends
        stdout: Stream print() writes to (sys.stdout when None)
    """

    def __init__(
        self,
        preference: ComputePreference = ComputePreference.AUTO,
        config: Optional[EngineConfig] = None,
        stdout: Optional[TextIO] = None,
    ):
        self.preference = preference
        self.config = config or EngineConfig()
        self.stdout = stdout

    @property
    def available_backends(self) -> list[Backend]:
        return list(self.config.available_backends)

    # =========================================================================
    # Public Interface
    # =========================================================================

    def execute(self, source: str, filename: str = "<input>") -> ComputeResult:
        """
        Parse and run SuperC source.

        Args:
            source: SuperC source code
            filename: Name used in error locations

        Returns:
            ComputeResult for the run

        Raises:
            ParseError: If the source does not parse
            EvaluationError: If execution fails
        """
        program = parse_source(source, filename)
        return self.execute_program(program)

    def execute_program(self, program: Program) -> ComputeResult:
        """
        Run a parsed program.

        Raises:
            EvaluationError: If execution fails; no partial result is kept
        """
        workload_size = self.analyze_workload(program)
        backend = self.select_backend(workload_size)
        logger.debug(
            f"Workload size {workload_size}, preference {self.preference.name}: "
            f"selected {backend.description}"
        )

        start = time.perf_counter_ns()
        try:
            output = self._run_program(program, backend)
        except RecursionError:
            raise EvaluationError(
                "Expression nested too deeply to evaluate",
                hint="use intermediate variables to shorten long operator chains",
            ) from None
        elapsed_us = (time.perf_counter_ns() - start) // 1000

        return ComputeResult(
            backend_used=backend,
            execution_time_us=elapsed_us,
            success=True,
            output=output,
        )

    def analyze_workload(self, program: Program) -> int:
        """Largest array size among top-level declarations (0 if none)."""
        sizes = [
            decl.data_type.array_size
            for decl in program.declarations()
            if decl.data_type.is_array
        ]
        return max(sizes, default=0)

    def select_backend(self, workload_size: int) -> Backend:
        """Pick the backend label for a workload of the given size."""
        if self.preference == ComputePreference.GPU:
            return self._best_gpu(fallback=Backend.HIP_CPU)
        if self.preference == ComputePreference.ASM:
            return Backend.ASM_SIMD
        if self.preference in (ComputePreference.CPU, ComputePreference.LOW_POWER):
            return Backend.PURE_CPU

        if workload_size > self.config.gpu_threshold:
            return self._best_gpu(fallback=Backend.ASM_SIMD)
        if workload_size > self.config.simd_threshold:
            return Backend.ASM_SIMD
        return Backend.PURE_CPU

    def _best_gpu(self, fallback: Backend) -> Backend:
        if self.config.has_backend(Backend.CUDA_GPU):
            return Backend.CUDA_GPU
        if self.config.has_backend(Backend.HIP_GPU):
            return Backend.HIP_GPU
        return fallback

    # =========================================================================
    # Statement Execution
    # =========================================================================

    def _run_program(self, program: Program, backend: Backend) -> list[float]:
        env = ExecutionEnvironment()
        for decl in program.declarations():
            env.declare(decl.name, decl.data_type)

        for statement in program.statements:
            # Top-level declarations were applied above
            if isinstance(statement, DataDeclaration):
                continue
            self._execute_statement(env, statement, backend)

        return env.first_array()

    def _execute_block(self, env: ExecutionEnvironment, statements: list[Statement], backend: Backend) -> None:
        for statement in statements:
            self._execute_statement(env, statement, backend)

    def _execute_statement(self, env: ExecutionEnvironment, stmt: Statement, backend: Backend) -> None:
        if isinstance(stmt, DataDeclaration):
            env.declare(stmt.name, stmt.data_type)

        elif isinstance(stmt, Assignment):
            value = self._eval(env, stmt.value)
            if stmt.index is not None:
                index = self._eval_int(env, stmt.index)
                env.set_element(stmt.target, index, value, stmt)
            else:
                env.set_scalar(stmt.target, value, stmt)

        elif isinstance(stmt, ExecBlock):
            self._execute_block(env, stmt.body, backend)

        elif isinstance(stmt, ForStatement):
            self._execute_for(env, stmt, backend)

        elif isinstance(stmt, IfStatement):
            if self._eval(env, stmt.condition) != 0.0:
                self._execute_block(env, stmt.then_body, backend)
            elif stmt.else_body is not None:
                self._execute_block(env, stmt.else_body, backend)

        elif isinstance(stmt, ExpressionStatement):
            if isinstance(stmt.expression, CallExpression):
                self._execute_call(env, stmt.expression)

        elif isinstance(stmt, ReturnStatement):
            pass

    def _execute_for(self, env: ExecutionEnvironment, stmt: ForStatement, backend: Backend) -> None:
        start = self._eval_int(env, stmt.start)
        end = self._eval_int(env, stmt.end)

        body_backend = backend
        if backend == Backend.ASM_SIMD:
            # Vectorization point: the body runs element by element
            body_backend = Backend.PURE_CPU
            logger.debug(f"Loop over '{stmt.variable}' [{start}, {end}) runs scalar under ASM SIMD")

        for i in range(start, end):
            env.bind(stmt.variable, to_f32(i))
            self._execute_block(env, stmt.body, body_backend)

    def _execute_call(self, env: ExecutionEnvironment, call: CallExpression) -> None:
        if call.name != "print":
            logger.debug(f"Ignoring call statement '{call.name}'")
            return
        if not call.arguments:
            return

        argument = call.arguments[0]
        if isinstance(argument, StringLiteral):
            text = argument.value
        else:
            text = format_value(self._eval(env, argument), self.config.print_precision)
        print(text, file=self.stdout or sys.stdout)

    # =========================================================================
    # Float Context
    # =========================================================================

    def evaluate(self, expr: Expression, env: Optional[ExecutionEnvironment] = None) -> float:
        """
        Evaluate an expression in float context.

        Args:
            expr: Expression to evaluate
            env: Environment providing variables (empty when None)
        """
        return self._eval(env or ExecutionEnvironment(), expr)

    def _eval(self, env: ExecutionEnvironment, expr: Expression) -> float:
        if isinstance(expr, IntLiteral):
            return to_f32(expr.value)
        if isinstance(expr, FloatLiteral):
            return to_f32(expr.value)
        if isinstance(expr, BoolLiteral):
            return 1.0 if expr.value else 0.0
        if isinstance(expr, Identifier):
            return env.get_scalar(expr.name, expr)
        if isinstance(expr, IndexExpression):
            index = self._eval_int(env, expr.index)
            return env.get_element(expr.array, index, expr)
        if isinstance(expr, BinaryExpression):
            left = self._eval(env, expr.left)
            right = self._eval(env, expr.right)
            return self._binary(expr.operator, left, right)
        if isinstance(expr, UnaryExpression):
            value = self._eval(env, expr.operand)
            if expr.operator == UnaryOperator.NEGATE:
                return -value
            return 1.0 if value == 0.0 else 0.0
        if isinstance(expr, CallExpression):
            return self._call(env, expr)
        if isinstance(expr, ReduceExpression):
            return self._reduce(env, expr)

        raise UnsupportedExpressionError(
            f"Unsupported expression: {type(expr).__name__}",
            location=expr.location,
        )

    def _binary(self, operator: BinaryOperator, left: float, right: float) -> float:
        if operator == BinaryOperator.ADD:
            return to_f32(left + right)
        if operator == BinaryOperator.SUBTRACT:
            return to_f32(left - right)
        if operator == BinaryOperator.MULTIPLY:
            return to_f32(left * right)
        if operator == BinaryOperator.DIVIDE:
            return to_f32(_divide(left, right))
        if operator == BinaryOperator.MODULO:
            return to_f32(_fmod(left, right))
        if operator == BinaryOperator.EQUAL:
            return 1.0 if abs(to_f32(left - right)) < F32_EPSILON else 0.0
        if operator == BinaryOperator.NOT_EQUAL:
            return 1.0 if abs(to_f32(left - right)) >= F32_EPSILON else 0.0
        if operator == BinaryOperator.LESS:
            return 1.0 if left < right else 0.0
        if operator == BinaryOperator.GREATER:
            return 1.0 if left > right else 0.0
        if operator == BinaryOperator.LESS_EQ:
            return 1.0 if left <= right else 0.0
        if operator == BinaryOperator.GREATER_EQ:
            return 1.0 if left >= right else 0.0
        if operator == BinaryOperator.LOGICAL_AND:
            return 1.0 if left != 0.0 and right != 0.0 else 0.0
        # LOGICAL_OR
        return 1.0 if left != 0.0 or right != 0.0 else 0.0

    def _call(self, env: ExecutionEnvironment, call: CallExpression) -> float:
        function = BUILTIN_FUNCTIONS.get(call.name)
        if function is None:
            hint = None
            if call.name == "print":
                hint = "print() has no value; use it as a statement"
            raise UnknownFunctionError(call.name, location=call.location, hint=hint)
        if len(call.arguments) != 1:
            raise ArgumentCountError(call.name, 1, len(call.arguments), location=call.location)
        return to_f32(function(self._eval(env, call.arguments[0])))

    def _reduce(self, env: ExecutionEnvironment, expr: ReduceExpression) -> float:
        if not isinstance(expr.array, Identifier):
            raise ReduceTargetError(location=expr.location)
        values = env.get_array(expr.array.name, expr.array)

        if expr.operator == ReduceOperator.SUM:
            total = 0.0
            for value in values:
                total = to_f32(total + value)
            return total
        if expr.operator == ReduceOperator.PROD:
            product = 1.0
            for value in values:
                product = to_f32(product * value)
            return product
        if expr.operator == ReduceOperator.MAX:
            result = -F32_MAX
            for value in values:
                if value > result:
                    result = value
            return result
        # MIN
        result = F32_MAX
        for value in values:
            if value < result:
                result = value
        return result

    # =========================================================================
    # Integer Context
    # =========================================================================

    def evaluate_int(self, expr: Expression, env: Optional[ExecutionEnvironment] = None) -> int:
        """Evaluate an expression in integer context (indices, loop bounds)."""
        return self._eval_int(env or ExecutionEnvironment(), expr)

    def _eval_int(self, env: ExecutionEnvironment, expr: Expression) -> int:
        if isinstance(expr, IntLiteral):
            return expr.value
        if isinstance(expr, (FloatLiteral, BoolLiteral)):
            return to_i64(float(expr.value))
        if isinstance(expr, Identifier):
            return to_i64(env.get_scalar(expr.name, expr))
        if isinstance(expr, BinaryExpression):
            if expr.operator not in INTEGER_OPERATORS:
                raise IntegerContextError(
                    f"Operator '{BINARY_SYMBOLS[expr.operator]}' is not allowed "
                    f"in an integer expression",
                    location=expr.location,
                    hint="indices and loop bounds support only + - * / %",
                )
            left = self._eval_int(env, expr.left)
            right = self._eval_int(env, expr.right)
            return self._integer_binary(expr, left, right)

        raise IntegerContextError("Expected integer expression", location=expr.location)

    def _integer_binary(self, expr: BinaryExpression, left: int, right: int) -> int:
        operator = expr.operator
        if operator == BinaryOperator.ADD:
            return left + right
        if operator == BinaryOperator.SUBTRACT:
            return left - right
        if operator == BinaryOperator.MULTIPLY:
            return left * right

        if right == 0:
            raise IntegerContextError("Integer division by zero", location=expr.location)
        quotient = _truncating_divide(left, right)
        if operator == BinaryOperator.DIVIDE:
            return quotient
        # MODULO: sign follows the dividend
        return left - right * quotient
