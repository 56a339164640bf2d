"""
SuperC Error Hierarchy
======================

This module defines the exception hierarchy for the SuperC toolchain.
All exceptions inherit from SuperCError, allowing callers to catch every
parse, evaluation and code generation failure with a single except clause.

Exception Hierarchy
-------------------
SuperCError (base)
├── ParseError - structural errors found by the parser
│   ├── UnexpectedTokenError - token does not start any valid construct
│   ├── MissingTokenError - a required token was not found
│   ├── MissingArraySizeError - array type without a size literal
│   └── NestingDepthError - blocks or expressions nested too deeply
├── EvaluationError - runtime errors raised by the compute engine
│   ├── UndefinedVariableError - name used before its 'data' declaration
│   ├── ArrayAccessError - element read outside the array bounds
│   ├── UnknownFunctionError - call to a name that is not a builtin
│   ├── ArgumentCountError - builtin called with the wrong arity
│   ├── ReduceTargetError - reduce applied to something other than a name
│   ├── IntegerContextError - invalid index or loop bound expression
│   └── UnsupportedExpressionError - expression has no numeric value
└── CodeGenError - construct that an emitter cannot translate

The lexer never raises: unknown characters are dropped and an unterminated
string simply runs to the end of the input.

Error Message Format
--------------------
    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in SuperC source code.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Base Exception
# =============================================================================

class SuperCError(Exception):
    """
    Base exception for all SuperC errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example:

            saxpy.sc:4:9: error: Undefined variable: alpah
                y[i] = alpah * x[i] + y[i]
                    ^
            hint: did you mean 'alpha'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Parse Errors
# =============================================================================

class ParseError(SuperCError):
    """
    Structural error in SuperC source.

    The parser stops at the first error; there is no recovery.
    """
    pass


class UnexpectedTokenError(ParseError):
    """
    A token that cannot start the construct being parsed.

    Raised for malformed primary expressions, bad statement starts and
    unknown reduce operators.
    """

    def __init__(
        self,
        found: str,
        context: str = "expression",
        location: Optional[SourceLocation] = None,
        expected: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.context = context
        self.expected = expected
        super().__init__(
            f"Unexpected token in {context}: {found}",
            location=location,
            hint=f"expected {expected}" if expected else None,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """
    A required token is missing.

    Example:
        data x f32        // missing ':'
    """

    def __init__(
        self,
        expected: str,
        found: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Expected {expected}, got {found}",
            location=location,
            source_line=source_line,
        )


class MissingArraySizeError(ParseError):
    """Array type whose brackets do not hold an integer literal."""

    def __init__(
        self,
        found: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        super().__init__(
            f"Expected array size, got {found}",
            location=location,
            hint="array sizes must be integer literals, e.g. f32[1024]",
            source_line=source_line,
        )


class NestingDepthError(ParseError):
    """Blocks or expressions nested deeper than the parser accepts."""

    def __init__(
        self,
        limit: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.limit = limit
        super().__init__(
            f"Nesting deeper than {limit} levels",
            location=location,
            hint="use intermediate variables to reduce the nesting",
            source_line=source_line,
        )


# =============================================================================
# Evaluation Errors (Compute Engine)
# =============================================================================

class EvaluationError(SuperCError):
    """
    Runtime error raised while the compute engine executes a program.

    Any evaluation error aborts the whole execution; no partial result
    is produced.
    """
    pass


class UndefinedVariableError(EvaluationError):
    """Name used or assigned before it was declared with 'data'."""

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        similar_names: Optional[list[str]] = None,
    ):
        self.name = name
        self.similar_names = similar_names or []

        hint = None
        if self.similar_names:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_names[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(f"Undefined variable: {name}", location=location, hint=hint)


class ArrayAccessError(EvaluationError):
    """Array element read outside the bounds of the array."""

    def __init__(
        self,
        name: str,
        index: int,
        size: Optional[int] = None,
        location: Optional[SourceLocation] = None,
    ):
        self.name = name
        self.index = index
        self.size = size
        hint = None
        if size is not None:
            hint = f"'{name}' has {size} elements (valid indices 0..{size - 1})"
        super().__init__(
            f"Array access error: {name}[{index}]",
            location=location,
            hint=hint,
        )


class UnknownFunctionError(EvaluationError):
    """Call to a function that is not a builtin."""

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.name = name
        super().__init__(f"Unknown function: {name}", location=location, hint=hint)


class ArgumentCountError(EvaluationError):
    """Builtin called with the wrong number of arguments."""

    def __init__(
        self,
        name: str,
        expected: int,
        got: int,
        location: Optional[SourceLocation] = None,
    ):
        self.name = name
        self.expected = expected
        self.got = got
        super().__init__(
            f"{name}() takes {expected} argument(s), got {got}",
            location=location,
        )


class ReduceTargetError(EvaluationError):
    """Reduce applied to something other than a bare array name."""

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__(
            "Reduce requires array identifier",
            location=location,
            hint="write reduce(+, values) rather than reduce(+, <expression>)",
        )


class IntegerContextError(EvaluationError):
    """
    Expression that cannot be evaluated as an integer.

    Array indices and loop bounds only support literals, scalar names
    and the operators + - * / %.
    """
    pass


class UnsupportedExpressionError(EvaluationError):
    """Expression with no numeric value, such as a string literal."""
    pass


# =============================================================================
# Code Generation Errors
# =============================================================================

class CodeGenError(SuperCError):
    """
    Construct that an emitter cannot translate to its target.

    Examples:
        - Reference to an undeclared name
        - String literal used as a value
        - Array return type in the C target
    """
    pass
