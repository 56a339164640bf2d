"""
SuperC Lexer (Tokenizer)
========================

This module converts SuperC source text into a list of tokens for the
parser.

Token Categories
----------------
- Keywords: data, fn, parallel, seq, gpu, asm, reduce, if, else, for, return
- Type keywords: i32, i64, f32, f64, bool
- Literals: integers, floats, true/false, "double quoted strings"
- Operators: + - * / % = == != < > <= >= && || ! ->
- Delimiters: ( ) { } [ ] , : ;
- NEWLINE (significant) and EOF

Lexical Rules
-------------
- Spaces, tabs and carriage returns are skipped; a line feed produces a
  NEWLINE token.
- ``//`` starts a comment that runs to the end of the line.
- A number is an integer until its first '.', which turns it into a float.
  A second '.' ends the number, so ``1.2.3`` lexes as 1.2 followed by 3.
  An integer literal too large for i64 reads as 0; a float literal too
  large for a double reads as infinity.
- Strings support the escapes \\n, \\t, \\\\ and \\"; any other escaped
  character is kept as-is. An unterminated string runs to end of input.
- Characters that start no token (including a lone '&' or '|') are
  skipped. The lexer never raises.

Example Usage
-------------
>>> from superc.lexer import tokenize
>>> for token in tokenize("data x: f32[100]"):
...     print(token)
Token(DATA, 'data', 1:1)
Token(IDENTIFIER, 'x', 1:6)
Token(COLON, ':', 1:7)
Token(F32, 'f32', 1:9)
Token(LBRACKET, '[', 1:12)
Token(INT_LIT, 100, 1:13)
Token(RBRACKET, ']', 1:16)
Token(EOF, 1:17)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from superc.errors import SourceLocation
from superc.numeric import I64_MAX


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the SuperC language."""

    # === Structural Tokens ===
    EOF = auto()
    NEWLINE = auto()

    # === Identifiers and Literals ===
    IDENTIFIER = auto()
    INT_LIT = auto()
    FLOAT_LIT = auto()
    BOOL_LIT = auto()       # true / false
    STRING_LIT = auto()

    # === Keywords ===
    DATA = auto()
    FN = auto()
    PARALLEL = auto()
    SEQ = auto()
    GPU = auto()
    ASM = auto()
    REDUCE = auto()
    IF = auto()
    ELSE = auto()
    FOR = auto()
    RETURN = auto()

    # === Type Keywords ===
    I32 = auto()
    I64 = auto()
    F32 = auto()
    F64 = auto()
    BOOL = auto()

    # === Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /
    PERCENT = auto()        # %
    ASSIGN = auto()         # =
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    GT = auto()             # >
    LE = auto()             # <=
    GE = auto()             # >=
    AND = auto()            # &&
    OR = auto()             # ||
    NOT = auto()            # !
    ARROW = auto()          # ->

    # === Delimiters ===
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()


KEYWORDS: dict[str, TokenType] = {
    "data": TokenType.DATA,
    "fn": TokenType.FN,
    "parallel": TokenType.PARALLEL,
    "seq": TokenType.SEQ,
    "gpu": TokenType.GPU,
    "asm": TokenType.ASM,
    "reduce": TokenType.REDUCE,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "for": TokenType.FOR,
    "return": TokenType.RETURN,
    "i32": TokenType.I32,
    "i64": TokenType.I64,
    "f32": TokenType.F32,
    "f64": TokenType.F64,
    "bool": TokenType.BOOL,
}

TYPE_KEYWORDS = frozenset({
    TokenType.I32,
    TokenType.I64,
    TokenType.F32,
    TokenType.F64,
    TokenType.BOOL,
})

EXEC_KEYWORDS = frozenset({
    TokenType.PARALLEL,
    TokenType.SEQ,
    TokenType.GPU,
    TokenType.ASM,
})

# Digits in the largest i64; longer literals are out of range
MAX_INT_DIGITS = len(str(I64_MAX))


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from SuperC source.

    Attributes:
        type: The TokenType classification
        value: Identifier name, literal value, or operator text
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | float | bool | None
    line: int
    column: int
    filename: str = "<input>"

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, (int, float)) and not isinstance(self.value, bool):
                return f"Token({self.type.name}, {self.value}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def describe(self) -> str:
        """Human readable form used in parser error messages."""
        if self.type == TokenType.EOF:
            return "end of file"
        if self.type == TokenType.NEWLINE:
            return "newline"
        if self.type == TokenType.IDENTIFIER:
            return f"identifier '{self.value}'"
        if self.type == TokenType.STRING_LIT:
            return f"string {self.value!r}"
        if self.type == TokenType.BOOL_LIT:
            return "true" if self.value else "false"
        return f"'{self.value}'"


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes SuperC source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())
    """

    ESCAPE_SEQUENCES = {
        "n": "\n",
        "t": "\t",
        "\\": "\\",
        '"': '"',
    }

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "%": TokenType.PERCENT,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        "[": TokenType.LBRACKET,
        "]": TokenType.RBRACKET,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
        ";": TokenType.SEMICOLON,
    }

    # (first, second) -> two character token; the first character alone
    # maps to the single token, or is dropped when that is None
    PAIR_TOKENS = {
        "-": (">", TokenType.ARROW, TokenType.MINUS),
        "=": ("=", TokenType.EQ, TokenType.ASSIGN),
        "!": ("=", TokenType.NE, TokenType.NOT),
        "<": ("=", TokenType.LE, TokenType.LT),
        ">": ("=", TokenType.GE, TokenType.GT),
        "&": ("&", TokenType.AND, None),
        "|": ("|", TokenType.OR, None),
    }

    def __init__(self, source: str, filename: str = "<input>"):
        """
        Initialize the lexer with source code.

        Args:
            source: The SuperC source code to tokenize
            filename: Name of the source file (for error messages)
        """
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._column = 1

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with a single EOF token
        """
        while True:
            self._skip_whitespace()
            if self._at_end():
                break

            token = self._scan_token()
            if token is not None:
                yield token

        yield self._make_token(TokenType.EOF, None, self._line, self._column)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look at the character at position + offset; '' past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        if self._peek() == expected:
            self._advance()
            return True
        return False

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | float | bool | None,
        line: int,
        column: int,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=line,
            column=column,
            filename=self.filename,
        )

    def _skip_whitespace(self) -> None:
        while self._peek() in (" ", "\t", "\r"):
            self._advance()

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Optional[Token]:
        """
        Scan one token starting at the current position.

        Returns:
            The token, or None when the characters produced no token
            (comments and unknown characters)
        """
        line = self._line
        column = self._column
        char = self._advance()

        if char == "\n":
            return self._make_token(TokenType.NEWLINE, "\n", line, column)

        if char == "/" and self._peek() == "/":
            while not self._at_end() and self._peek() != "\n":
                self._advance()
            return None

        if char == '"':
            return self._make_token(TokenType.STRING_LIT, self._scan_string(), line, column)

        if char in string.digits:
            return self._scan_number(char, line, column)

        if char.isalpha() or char == "_":
            return self._scan_identifier(char, line, column)

        if char in self.SINGLE_CHAR_TOKENS:
            return self._make_token(self.SINGLE_CHAR_TOKENS[char], char, line, column)

        if char in self.PAIR_TOKENS:
            second, pair_type, single_type = self.PAIR_TOKENS[char]
            if self._match(second):
                return self._make_token(pair_type, char + second, line, column)
            if single_type is not None:
                return self._make_token(single_type, char, line, column)

        # Unknown character: dropped
        return None

    def _scan_identifier(self, first: str, line: int, column: int) -> Token:
        chars = [first]
        while self._peek() and (self._peek().isalnum() or self._peek() == "_"):
            chars.append(self._advance())

        text = "".join(chars)
        if text == "true":
            return self._make_token(TokenType.BOOL_LIT, True, line, column)
        if text == "false":
            return self._make_token(TokenType.BOOL_LIT, False, line, column)

        token_type = KEYWORDS.get(text, TokenType.IDENTIFIER)
        return self._make_token(token_type, text, line, column)

    def _scan_number(self, first: str, line: int, column: int) -> Token:
        """
        Scan an integer or float literal.

        Only the first '.' belongs to the number; a second one ends it.
        """
        chars = [first]
        is_float = False

        while True:
            char = self._peek()
            if char and char in string.digits:
                chars.append(self._advance())
            elif char == "." and not is_float:
                is_float = True
                chars.append(self._advance())
            else:
                break

        text = "".join(chars)
        if is_float:
            return self._make_token(TokenType.FLOAT_LIT, float(text), line, column)
        return self._make_token(TokenType.INT_LIT, self._int_value(text), line, column)

    @staticmethod
    def _int_value(text: str) -> int:
        """Value of an integer literal; literals outside the i64 range read as 0."""
        digits = text.lstrip("0")
        if len(digits) > MAX_INT_DIGITS:
            return 0
        value = int(digits or "0")
        return value if value <= I64_MAX else 0

    def _scan_string(self) -> str:
        """Scan a string body after the opening quote."""
        chars = []
        while not self._at_end():
            char = self._advance()
            if char == '"':
                break
            if char == "\\":
                if self._at_end():
                    break
                escaped = self._advance()
                chars.append(self.ESCAPE_SEQUENCES.get(escaped, escaped))
            else:
                chars.append(char)
        return "".join(chars)


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """
    Tokenize SuperC source into a list ending with EOF.

    Args:
        source: SuperC source code
        filename: Name used in token locations

    Returns:
        List of tokens
    """
    return list(Lexer(source, filename).tokenize())
