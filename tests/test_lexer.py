# =============================================================================
# test_lexer.py - SuperC Lexer Unit Tests
# =============================================================================
# Tests for the SuperC tokenizer.
#
# Test coverage includes:
#   - Keywords, type names and execution targets
#   - Integer, float, boolean and string literals, including out of range values
#   - One and two character operators
#   - Newline tokens, comments and position tracking
#   - Inputs the lexer silently drops
# =============================================================================

import pytest
from superc.lexer import Lexer, Token, TokenType, tokenize


# =============================================================================
# Helper Functions
# =============================================================================

def types(source: str) -> list[TokenType]:
    """Token types of source, including the final EOF."""
    return [t.type for t in tokenize(source)]


def values(source: str) -> list:
    """Values of all tokens except EOF."""
    return [t.value for t in tokenize(source) if t.type != TokenType.EOF]


# =============================================================================
# Basic Token Recognition Tests
# =============================================================================

class TestBasicTokens:
    """Test basic token recognition."""

    def test_empty_source(self):
        """Empty input produces exactly one EOF token."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_whitespace_only(self):
        """Spaces, tabs and carriage returns produce no tokens."""
        assert types("  \t \r ") == [TokenType.EOF]

    def test_data_declaration(self):
        """The token sequence of an array declaration."""
        assert types("data x: f32[100]") == [
            TokenType.DATA,
            TokenType.IDENTIFIER,
            TokenType.COLON,
            TokenType.F32,
            TokenType.LBRACKET,
            TokenType.INT_LIT,
            TokenType.RBRACKET,
            TokenType.EOF,
        ]
        assert values("data x: f32[100]")[1] == "x"
        assert values("data x: f32[100]")[5] == 100

    def test_identifier_with_underscore_and_digits(self):
        tokens = tokenize("_tmp2 my_var")
        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[0].value == "_tmp2"
        assert tokens[1].value == "my_var"

    def test_keywords(self):
        """Every keyword gets its own token type."""
        assert types("data fn reduce if else for return")[:-1] == [
            TokenType.DATA,
            TokenType.FN,
            TokenType.REDUCE,
            TokenType.IF,
            TokenType.ELSE,
            TokenType.FOR,
            TokenType.RETURN,
        ]

    def test_execution_targets(self):
        assert types("parallel seq gpu asm")[:-1] == [
            TokenType.PARALLEL,
            TokenType.SEQ,
            TokenType.GPU,
            TokenType.ASM,
        ]

    def test_type_names(self):
        assert types("i32 i64 f32 f64 bool")[:-1] == [
            TokenType.I32,
            TokenType.I64,
            TokenType.F32,
            TokenType.F64,
            TokenType.BOOL,
        ]

    def test_keyword_prefix_is_identifier(self):
        """Identifiers that merely start with a keyword stay identifiers."""
        assert types("data1 format")[:-1] == [TokenType.IDENTIFIER, TokenType.IDENTIFIER]

    def test_max_and_min_are_identifiers(self):
        """Reduce operator names are ordinary identifiers."""
        assert types("max min")[:-1] == [TokenType.IDENTIFIER, TokenType.IDENTIFIER]


# =============================================================================
# Literal Tests
# =============================================================================

class TestLiterals:
    """Test numeric, boolean and string literals."""

    def test_integer(self):
        tokens = tokenize("42")
        assert tokens[0].type == TokenType.INT_LIT
        assert tokens[0].value == 42

    def test_float(self):
        tokens = tokenize("3.25")
        assert tokens[0].type == TokenType.FLOAT_LIT
        assert tokens[0].value == 3.25

    def test_trailing_dot_is_float(self):
        tokens = tokenize("2.")
        assert tokens[0].type == TokenType.FLOAT_LIT
        assert tokens[0].value == 2.0

    def test_second_dot_ends_number(self):
        """Only the first '.' belongs to a number; the second is dropped."""
        tokens = tokenize("1.2.3")
        assert tokens[0].type == TokenType.FLOAT_LIT
        assert tokens[0].value == 1.2
        assert tokens[1].type == TokenType.INT_LIT
        assert tokens[1].value == 3
        assert tokens[2].type == TokenType.EOF

    def test_largest_integer(self):
        assert tokenize("9223372036854775807")[0].value == 2 ** 63 - 1

    @pytest.mark.parametrize("source", [
        "9223372036854775808",
        "9" * 400,
        "1" * 5000,
    ])
    def test_integer_out_of_range_reads_as_zero(self, source):
        tokens = tokenize(f"x = {source}")
        assert tokens[2].type == TokenType.INT_LIT
        assert tokens[2].value == 0
        assert tokens[3].type == TokenType.EOF

    def test_leading_zeros_do_not_count(self):
        assert tokenize("0" * 5000 + "7")[0].value == 7

    def test_float_too_large_is_infinity(self):
        tokens = tokenize("9" * 400 + ".0")
        assert tokens[0].type == TokenType.FLOAT_LIT
        assert tokens[0].value == float("inf")

    def test_booleans(self):
        tokens = tokenize("true false")
        assert tokens[0].type == TokenType.BOOL_LIT
        assert tokens[0].value is True
        assert tokens[1].type == TokenType.BOOL_LIT
        assert tokens[1].value is False

    def test_string(self):
        tokens = tokenize('"hello world"')
        assert tokens[0].type == TokenType.STRING_LIT
        assert tokens[0].value == "hello world"

    def test_string_escapes(self):
        tokens = tokenize(r'"a\nb\tc\\d\"e"')
        assert tokens[0].value == 'a\nb\tc\\d"e'

    def test_unknown_escape_keeps_character(self):
        tokens = tokenize(r'"\q"')
        assert tokens[0].value == "q"

    def test_unterminated_string(self):
        """An unterminated string runs to the end of input without error."""
        tokens = tokenize('print("abc')
        assert tokens[2].type == TokenType.STRING_LIT
        assert tokens[2].value == "abc"
        assert tokens[-1].type == TokenType.EOF


# =============================================================================
# Operator Tests
# =============================================================================

class TestOperators:
    """Test operator and delimiter tokens."""

    @pytest.mark.parametrize("source,expected", [
        ("+", TokenType.PLUS),
        ("-", TokenType.MINUS),
        ("*", TokenType.STAR),
        ("/", TokenType.SLASH),
        ("%", TokenType.PERCENT),
        ("=", TokenType.ASSIGN),
        ("==", TokenType.EQ),
        ("!=", TokenType.NE),
        ("!", TokenType.NOT),
        ("<", TokenType.LT),
        ("<=", TokenType.LE),
        (">", TokenType.GT),
        (">=", TokenType.GE),
        ("&&", TokenType.AND),
        ("||", TokenType.OR),
        ("->", TokenType.ARROW),
        (";", TokenType.SEMICOLON),
    ])
    def test_operator(self, source, expected):
        tokens = tokenize(source)
        assert tokens[0].type == expected
        assert tokens[0].value == source

    def test_adjacent_operators(self):
        assert types("a<=-b")[:-1] == [
            TokenType.IDENTIFIER,
            TokenType.LE,
            TokenType.MINUS,
            TokenType.IDENTIFIER,
        ]

    def test_single_ampersand_dropped(self):
        """A lone '&' or '|' is not a token."""
        assert types("a & b | c")[:-1] == [
            TokenType.IDENTIFIER,
            TokenType.IDENTIFIER,
            TokenType.IDENTIFIER,
        ]

    def test_unknown_characters_dropped(self):
        assert values("x @ $ y") == ["x", "y"]


# =============================================================================
# Line Structure Tests
# =============================================================================

class TestLineStructure:
    """Test newlines, comments and source positions."""

    def test_newline_tokens(self):
        assert types("a\nb")[:-1] == [
            TokenType.IDENTIFIER,
            TokenType.NEWLINE,
            TokenType.IDENTIFIER,
        ]

    def test_comment_to_end_of_line(self):
        """A comment is dropped but its newline is kept."""
        assert types("x // note = 1\ny")[:-1] == [
            TokenType.IDENTIFIER,
            TokenType.NEWLINE,
            TokenType.IDENTIFIER,
        ]

    def test_comment_at_end_of_input(self):
        assert types("x // trailing") == [TokenType.IDENTIFIER, TokenType.EOF]

    def test_slash_alone_is_division(self):
        assert types("a / b")[1] == TokenType.SLASH

    def test_third_line_position(self):
        """After two newlines the first token is at line 3, column 1."""
        tokens = [t for t in tokenize("data a: f32\n\nx = 1") if t.type != TokenType.NEWLINE]
        x = next(t for t in tokens if t.value == "x")
        assert x.line == 3
        assert x.column == 1

    def test_columns(self):
        tokens = tokenize("x = 10")
        assert [t.column for t in tokens] == [1, 3, 5, 7]

    def test_eof_position(self):
        tokens = tokenize("ab\ncd")
        assert tokens[-1].line == 2
        assert tokens[-1].column == 3

    def test_filename_in_location(self):
        token = tokenize("x", "prog.sc")[0]
        assert str(token.location) == "prog.sc:1:1"


# =============================================================================
# Token Helpers
# =============================================================================

class TestTokenHelpers:
    """Test Token presentation helpers used in error messages."""

    def test_describe(self):
        tokens = tokenize('x 5 "s" true\n')
        assert tokens[0].describe() == "identifier 'x'"
        assert tokens[1].describe() == "'5'"
        assert tokens[2].describe() == "string 's'"
        assert tokens[3].describe() == "true"
        assert tokens[4].describe() == "newline"
        assert tokens[5].describe() == "end of file"

    def test_repr(self):
        token = Token(TokenType.INT_LIT, 7, 1, 5)
        assert repr(token) == "Token(INT_LIT, 7, 1:5)"
        assert repr(Token(TokenType.EOF, None, 2, 1)) == "Token(EOF, 2:1)"

    def test_lexer_is_lazy(self):
        """tokenize() on the class yields tokens one by one."""
        stream = Lexer("a b").tokenize()
        assert next(stream).value == "a"
        assert next(stream).value == "b"
        assert next(stream).type == TokenType.EOF
