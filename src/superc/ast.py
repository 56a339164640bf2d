"""
SuperC Abstract Syntax Tree (AST) Definitions
=============================================

This module defines the AST node types produced by the SuperC parser and
consumed by the compute engine and the code generators.

Node Hierarchy
--------------
ASTNode (base)
├── Program - root: function definitions + top-level statements
├── FunctionDefinition / Parameter
├── Statements
│   ├── DataDeclaration - data NAME : TYPE
│   ├── Assignment - NAME[INDEX]? = VALUE
│   ├── ExecBlock - parallel|seq|gpu|asm { ... }
│   ├── IfStatement - if/else
│   ├── ForStatement - for VAR = START : END { ... }
│   ├── ExpressionStatement - call used as a statement, e.g. print(x)
│   └── ReturnStatement - return [VALUE]
└── Expressions
    ├── IntLiteral / FloatLiteral / BoolLiteral / StringLiteral
    ├── Identifier - scalar (or array) reference
    ├── IndexExpression - NAME[INDEX]
    ├── BinaryExpression / UnaryExpression
    ├── CallExpression - NAME(ARGS)
    └── ReduceExpression - reduce(OP, ARRAY)

Design Notes
------------
- All nodes are dataclasses; a Program is never mutated after parsing.
- Each node records its source location, but the location does not take
  part in equality: two parses of the same text compare equal, and so
  does a parse of the SourcePrinter output.
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum, auto
from typing import Any, Optional
import math

from superc.errors import SourceLocation
from superc.types import DataType


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node appears (keyword only,
            ignored by equality)
    """
    location: Optional[SourceLocation] = field(
        default=None, compare=False, repr=False, kw_only=True
    )


@dataclass
class Expression(ASTNode):
    """Base class for nodes that evaluate to a value."""
    pass


@dataclass
class Statement(ASTNode):
    """Base class for statement nodes."""
    pass


# =============================================================================
# Operators
# =============================================================================

class BinaryOperator(Enum):
    """Binary operator types."""
    # Arithmetic
    ADD = auto()          # +
    SUBTRACT = auto()     # -
    MULTIPLY = auto()     # *
    DIVIDE = auto()       # /
    MODULO = auto()       # %

    # Comparison
    EQUAL = auto()        # ==
    NOT_EQUAL = auto()    # !=
    LESS = auto()         # <
    GREATER = auto()      # >
    LESS_EQ = auto()      # <=
    GREATER_EQ = auto()   # >=

    # Logical
    LOGICAL_AND = auto()  # &&
    LOGICAL_OR = auto()   # ||


class UnaryOperator(Enum):
    """Unary operator types."""
    NEGATE = auto()       # -x
    LOGICAL_NOT = auto()  # !x


class ReduceOperator(Enum):
    """Folds available to reduce(op, array)."""
    SUM = auto()          # reduce(+, a)
    PROD = auto()         # reduce(*, a)
    MAX = auto()          # reduce(max, a)
    MIN = auto()          # reduce(min, a)


class ExecTarget(Enum):
    """Execution target tag of an ExecBlock (advisory only)."""
    PARALLEL = auto()
    SEQ = auto()
    GPU = auto()
    ASM = auto()

    def __str__(self) -> str:
        return self.name.lower()


BINARY_SYMBOLS: dict[BinaryOperator, str] = {
    BinaryOperator.ADD: "+",
    BinaryOperator.SUBTRACT: "-",
    BinaryOperator.MULTIPLY: "*",
    BinaryOperator.DIVIDE: "/",
    BinaryOperator.MODULO: "%",
    BinaryOperator.EQUAL: "==",
    BinaryOperator.NOT_EQUAL: "!=",
    BinaryOperator.LESS: "<",
    BinaryOperator.GREATER: ">",
    BinaryOperator.LESS_EQ: "<=",
    BinaryOperator.GREATER_EQ: ">=",
    BinaryOperator.LOGICAL_AND: "&&",
    BinaryOperator.LOGICAL_OR: "||",
}

UNARY_SYMBOLS: dict[UnaryOperator, str] = {
    UnaryOperator.NEGATE: "-",
    UnaryOperator.LOGICAL_NOT: "!",
}

REDUCE_SYMBOLS: dict[ReduceOperator, str] = {
    ReduceOperator.SUM: "+",
    ReduceOperator.PROD: "*",
    ReduceOperator.MAX: "max",
    ReduceOperator.MIN: "min",
}

# Binding strength, lowest first; unary binds tighter than any binary level
BINARY_PRECEDENCE: dict[BinaryOperator, int] = {
    BinaryOperator.LOGICAL_OR: 1,
    BinaryOperator.LOGICAL_AND: 2,
    BinaryOperator.EQUAL: 3,
    BinaryOperator.NOT_EQUAL: 3,
    BinaryOperator.LESS: 4,
    BinaryOperator.GREATER: 4,
    BinaryOperator.LESS_EQ: 4,
    BinaryOperator.GREATER_EQ: 4,
    BinaryOperator.ADD: 5,
    BinaryOperator.SUBTRACT: 5,
    BinaryOperator.MULTIPLY: 6,
    BinaryOperator.DIVIDE: 6,
    BinaryOperator.MODULO: 6,
}
UNARY_PRECEDENCE = 7
PRIMARY_PRECEDENCE = 8

COMPARISON_OPERATORS = frozenset({
    BinaryOperator.EQUAL,
    BinaryOperator.NOT_EQUAL,
    BinaryOperator.LESS,
    BinaryOperator.GREATER,
    BinaryOperator.LESS_EQ,
    BinaryOperator.GREATER_EQ,
})

# Operators allowed where an integer is required (indices, loop bounds)
INTEGER_OPERATORS = frozenset({
    BinaryOperator.ADD,
    BinaryOperator.SUBTRACT,
    BinaryOperator.MULTIPLY,
    BinaryOperator.DIVIDE,
    BinaryOperator.MODULO,
})


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class IntLiteral(Expression):
    value: int


@dataclass
class FloatLiteral(Expression):
    value: float


@dataclass
class BoolLiteral(Expression):
    value: bool


@dataclass
class StringLiteral(Expression):
    """String constant; only meaningful as a print argument."""
    value: str


@dataclass
class Identifier(Expression):
    name: str


@dataclass
class IndexExpression(Expression):
    """
    Array element read (array[index]).

    Attributes:
        array: Name of the array
        index: Index expression, evaluated in integer context
    """
    array: str
    index: Expression


@dataclass
class BinaryExpression(Expression):
    """
    Binary operation expression (left op right).

    Attributes:
        operator: The binary operator
        left: Left operand expression
        right: Right operand expression
    """
    operator: BinaryOperator
    left: Expression
    right: Expression


@dataclass
class UnaryExpression(Expression):
    operator: UnaryOperator
    operand: Expression


@dataclass
class CallExpression(Expression):
    """
    Function call (name(arguments)).

    Builtins are print, sqrt, sin, cos, exp and log.
    """
    name: str
    arguments: list[Expression] = field(default_factory=list)


@dataclass
class ReduceExpression(Expression):
    """
    Fold over an array (reduce(op, array)).

    The parser accepts any expression as the target; evaluation requires a
    bare array identifier.
    """
    operator: ReduceOperator
    array: Expression


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class DataDeclaration(Statement):
    """
    Declaration of a scalar or fixed-size array (data NAME : TYPE).

    Attributes:
        name: Variable name
        data_type: Declared type; arrays have array_size > 0
    """
    name: str
    data_type: DataType


@dataclass
class Assignment(Statement):
    """
    Scalar or element assignment (target[index] = value).

    Attributes:
        target: Name being assigned
        index: Element index for array writes, None for scalars
        value: Value expression
    """
    target: str
    index: Optional[Expression]
    value: Expression


@dataclass
class ExecBlock(Statement):
    """Statements grouped under an execution target tag."""
    target: ExecTarget
    body: list[Statement] = field(default_factory=list)


@dataclass
class IfStatement(Statement):
    condition: Expression
    then_body: list[Statement] = field(default_factory=list)
    else_body: Optional[list[Statement]] = None


@dataclass
class ForStatement(Statement):
    """
    Counted loop over [start, end).

    Attributes:
        variable: Loop variable name
        start: First value (integer context)
        end: Exclusive upper bound (integer context)
        body: Loop body
    """
    variable: str
    start: Expression
    end: Expression
    body: list[Statement] = field(default_factory=list)


@dataclass
class ExpressionStatement(Statement):
    expression: Expression


@dataclass
class ReturnStatement(Statement):
    value: Optional[Expression] = None


# =============================================================================
# Functions and Program
# =============================================================================

@dataclass
class Parameter(ASTNode):
    name: str
    data_type: DataType


@dataclass
class FunctionDefinition(ASTNode):
    """
    Function definition (fn name(params) -> type { body }).

    Attributes:
        name: Function name
        parameters: Typed parameters
        return_type: Declared return type (VOID when omitted)
        body: Function body
    """
    name: str
    parameters: list[Parameter]
    return_type: DataType
    body: list[Statement] = field(default_factory=list)


@dataclass
class Program(ASTNode):
    """
    Root node of a parsed SuperC file.

    Attributes:
        functions: Function definitions, in source order
        statements: Top-level statements, in source order
    """
    functions: list[FunctionDefinition] = field(default_factory=list)
    statements: list[Statement] = field(default_factory=list)

    def declarations(self) -> list[DataDeclaration]:
        """Top-level data declarations in source order."""
        return [s for s in self.statements if isinstance(s, DataDeclaration)]

    def get_function(self, name: str) -> Optional[FunctionDefinition]:
        for function in self.functions:
            if function.name == name:
                return function
        return None


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override visit_<ClassName> methods for the node types they
    care about; everything else falls through to generic_visit, which
    visits all child nodes.

    Usage:
        class CallCollector(ASTVisitor):
            def __init__(self):
                self.names = []

            def visit_CallExpression(self, node):
                self.names.append(node.name)
                self.generic_visit(node)
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        """Visit every child node, in field order."""
        for node_field in fields(node):
            value = getattr(node, node_field.name)
            if isinstance(value, ASTNode):
                self.visit(value)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, ASTNode):
                        self.visit(item)


# =============================================================================
# Source Printer
# =============================================================================

# Decimal literal above the largest double; the lexer reads it as infinity
INFINITY_LITERAL = "1" + "0" * 309 + ".0"


def format_float(value: float) -> str:
    """
    Render a float so that the lexer reads back the same value.

    The lexer has no exponent syntax, so exponents are expanded and a
    decimal point is always present. Infinity is written as a literal too
    large for a double.
    """
    if math.isinf(value) and value > 0:
        return INFINITY_LITERAL
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." not in text:
        text += ".0"
    return text


def format_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


class SourcePrinter(ASTVisitor):
    """
    Canonical SuperC source printer.

    Produces source text that parses back to an equal AST: functions are
    printed first, then top-level statements, with four-space indentation
    and only the parentheses that precedence requires.

    Usage:
        text = SourcePrinter().print(program)
    """

    INDENT = "    "

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: ASTNode) -> str:
        """Print a Program, function, statement or expression."""
        self.output = []
        self.indent_level = 0
        if isinstance(node, Expression):
            return self.expression(node)
        self.visit(node)
        return "\n".join(self.output) + "\n"

    def _emit(self, text: str) -> None:
        self.output.append(f"{self.INDENT * self.indent_level}{text}")

    def _body(self, statements: list[Statement]) -> None:
        self.indent_level += 1
        for statement in statements:
            self.visit(statement)
        self.indent_level -= 1

    # -------------------------------------------------------------------------
    # Program structure
    # -------------------------------------------------------------------------

    def visit_Program(self, node: Program):
        for function in node.functions:
            self.visit(function)
        for statement in node.statements:
            self.visit(statement)

    def visit_FunctionDefinition(self, node: FunctionDefinition):
        params = ", ".join(f"{p.name}: {p.data_type}" for p in node.parameters)
        header = f"fn {node.name}({params})"
        if not node.return_type.is_void:
            header += f" -> {node.return_type}"
        self._emit(header + " {")
        self._body(node.body)
        self._emit("}")

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def visit_DataDeclaration(self, node: DataDeclaration):
        self._emit(f"data {node.name}: {node.data_type}")

    def visit_Assignment(self, node: Assignment):
        target = node.target
        if node.index is not None:
            target += f"[{self.expression(node.index)}]"
        self._emit(f"{target} = {self.expression(node.value)}")

    def visit_ExecBlock(self, node: ExecBlock):
        self._emit(f"{node.target} {{")
        self._body(node.body)
        self._emit("}")

    def visit_IfStatement(self, node: IfStatement):
        self._emit(f"if {self.expression(node.condition)} {{")
        self._body(node.then_body)
        if node.else_body is not None:
            self._emit("} else {")
            self._body(node.else_body)
        self._emit("}")

    def visit_ForStatement(self, node: ForStatement):
        start = self.expression(node.start)
        end = self.expression(node.end)
        self._emit(f"for {node.variable} = {start}:{end} {{")
        self._body(node.body)
        self._emit("}")

    def visit_ExpressionStatement(self, node: ExpressionStatement):
        self._emit(self.expression(node.expression))

    def visit_ReturnStatement(self, node: ReturnStatement):
        if node.value is None:
            self._emit("return")
        else:
            self._emit(f"return {self.expression(node.value)}")

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def expression(self, expr: Expression, min_precedence: int = 0) -> str:
        """
        Render an expression, parenthesized if it binds looser than
        min_precedence.
        """
        text, precedence = self._expression(expr)
        if precedence < min_precedence:
            return f"({text})"
        return text

    def _expression(self, expr: Expression) -> tuple[str, int]:
        if isinstance(expr, BinaryExpression):
            precedence = BINARY_PRECEDENCE[expr.operator]
            left = self.expression(expr.left, precedence)
            # Left-associative: an equal-precedence right operand needs parens
            right = self.expression(expr.right, precedence + 1)
            return f"{left} {BINARY_SYMBOLS[expr.operator]} {right}", precedence

        if isinstance(expr, UnaryExpression):
            operand = self.expression(expr.operand, UNARY_PRECEDENCE)
            return f"{UNARY_SYMBOLS[expr.operator]}{operand}", UNARY_PRECEDENCE

        if isinstance(expr, IntLiteral):
            return str(expr.value), PRIMARY_PRECEDENCE
        if isinstance(expr, FloatLiteral):
            return format_float(expr.value), PRIMARY_PRECEDENCE
        if isinstance(expr, BoolLiteral):
            return ("true" if expr.value else "false"), PRIMARY_PRECEDENCE
        if isinstance(expr, StringLiteral):
            return format_string(expr.value), PRIMARY_PRECEDENCE
        if isinstance(expr, Identifier):
            return expr.name, PRIMARY_PRECEDENCE
        if isinstance(expr, IndexExpression):
            return f"{expr.array}[{self.expression(expr.index)}]", PRIMARY_PRECEDENCE
        if isinstance(expr, CallExpression):
            args = ", ".join(self.expression(arg) for arg in expr.arguments)
            return f"{expr.name}({args})", PRIMARY_PRECEDENCE
        if isinstance(expr, ReduceExpression):
            op = REDUCE_SYMBOLS[expr.operator]
            return f"reduce({op}, {self.expression(expr.array)})", PRIMARY_PRECEDENCE

        raise TypeError(f"cannot print {type(expr).__name__}")
