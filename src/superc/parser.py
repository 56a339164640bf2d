"""
SuperC Recursive Descent Parser
===============================

This module turns the token list produced by the lexer into a Program AST.

Grammar (Simplified EBNF)
-------------------------
program      ::= (function_def | statement)*
function_def ::= 'fn' IDENT '(' (IDENT ':' type ','?)* ')' ('->' type)? block
type         ::= ('i32' | 'i64' | 'f32' | 'f64' | 'bool') ('[' INT_LIT ']')?
block        ::= '{' statement* '}'
statement    ::= 'data' IDENT ':' type
               | ('parallel' | 'seq' | 'gpu' | 'asm') block
               | 'if' expr block ('else' block)?
               | 'for' IDENT '=' expr ':' expr block
               | 'return' expr?
               | IDENT ('[' expr ']')? '=' expr
               | IDENT ('(' args ')')?

Expression Precedence (lowest to highest)
-----------------------------------------
1. logical_or     ||
2. logical_and    &&
3. equality       == !=
4. comparison     < > <= >=
5. additive       + -
6. multiplicative * / %
7. unary          - !
8. primary        literal, IDENT, IDENT(args), IDENT[expr],
                  reduce(op, expr), '(' expr ')'

Newlines
--------
Newline tokens are skipped after every consumed token, so statements and
expressions may span lines freely. The only place a line break matters is
``return``: a value on the following line is not part of the return.

The parser stops at the first error; there is no recovery.

Example Usage
-------------
>>> from superc.parser import parse_source
>>> program = parse_source("data x: f32[4]\\nx[0] = 1 + 2 * 3")
>>> program.statements[1].value
BinaryExpression(operator=<BinaryOperator.ADD: 1>, ...)
"""

from typing import Callable, Optional

from superc.errors import (
    MissingArraySizeError,
    MissingTokenError,
    NestingDepthError,
    UnexpectedTokenError,
)
from superc.lexer import EXEC_KEYWORDS, Lexer, Token, TokenType
from superc.types import BaseType, DataType, VOID
from superc.ast import (
    Assignment,
    BinaryExpression,
    BinaryOperator,
    BoolLiteral,
    CallExpression,
    DataDeclaration,
    ExecBlock,
    ExecTarget,
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


TYPE_KEYWORD_MAP = {
    TokenType.I32: BaseType.I32,
    TokenType.I64: BaseType.I64,
    TokenType.F32: BaseType.F32,
    TokenType.F64: BaseType.F64,
    TokenType.BOOL: BaseType.BOOL,
}

EXEC_TARGET_MAP = {
    TokenType.PARALLEL: ExecTarget.PARALLEL,
    TokenType.SEQ: ExecTarget.SEQ,
    TokenType.GPU: ExecTarget.GPU,
    TokenType.ASM: ExecTarget.ASM,
}

UNARY_OPERATOR_MAP = {
    TokenType.MINUS: UnaryOperator.NEGATE,
    TokenType.NOT: UnaryOperator.LOGICAL_NOT,
}

# Combined depth of nested blocks, parentheses and unary operators.
# Each level costs about fifteen Python frames in the parser.
MAX_NESTING_DEPTH = 40


class Parser:
    """
    Recursive descent parser for SuperC.

    Usage:
        tokens = tokenize(source, "prog.sc")
        program = Parser(tokens, source.splitlines()).parse()

    Attributes:
        tokens: Token list, ending with EOF
        source_lines: Original source lines, used for error context
    """

    def __init__(
        self,
        tokens: list[Token],
        source_lines: Optional[list[str]] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer (must end with EOF)
            source_lines: Original source lines for error context
        """
        self.tokens = tokens
        self.source_lines = source_lines or []
        self._pos = 0
        self._depth = 0

    def parse(self) -> Program:
        """
        Parse the whole token list.

        Returns:
            The Program AST

        Raises:
            ParseError: On the first structural error
        """
        functions = []
        statements = []

        self._skip_newlines()
        while not self._at_end():
            if self._check(TokenType.FN):
                functions.append(self._parse_function())
            else:
                statements.append(self._parse_statement())
            self._skip_newlines()

        return Program(
            functions=functions,
            statements=statements,
            location=self.tokens[0].location if self.tokens else None,
        )

    def parse_expression(self) -> Expression:
        """
        Parse a single expression that must span the whole input.

        Raises:
            ParseError: If the input is not exactly one expression
        """
        self._skip_newlines()
        expr = self._parse_expression()
        if not self._at_end():
            raise self._unexpected(self._peek(), "expression", "end of input")
        return expr

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _advance(self) -> Token:
        """Consume the current token, then skip any newlines after it."""
        token = self._peek()
        if not self._at_end():
            self._pos += 1
        self._skip_newlines()
        return token

    def _skip_newlines(self) -> None:
        while self._peek().type == TokenType.NEWLINE:
            self._pos += 1

    def _newline_before_current(self) -> bool:
        return self._pos > 0 and self.tokens[self._pos - 1].type == TokenType.NEWLINE

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, description: str) -> Token:
        """
        Expect and consume a specific token type.

        Args:
            token_type: The expected token type
            description: How the token is named in the error message

        Raises:
            MissingTokenError: If the current token has another type
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            description,
            current.describe(),
            current.location,
            self._get_source_line(current.line),
        )

    def _expect_identifier(self, description: str) -> Token:
        return self._expect(TokenType.IDENTIFIER, description)

    def _unexpected(
        self,
        token: Token,
        context: str,
        expected: Optional[str] = None,
    ) -> UnexpectedTokenError:
        return UnexpectedTokenError(
            token.describe(),
            context,
            token.location,
            expected=expected,
            source_line=self._get_source_line(token.line),
        )

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    # =========================================================================
    # Functions and Types
    # =========================================================================

    def _parse_function(self) -> FunctionDefinition:
        """Parse: fn NAME ( [NAME : TYPE],* ) [-> TYPE] { ... }"""
        fn_token = self._expect(TokenType.FN, "'fn'")
        name = self._expect_identifier("function name").value
        self._expect(TokenType.LPAREN, "'('")

        parameters = []
        while not self._check(TokenType.RPAREN):
            param_token = self._expect_identifier("parameter name")
            self._expect(TokenType.COLON, "':'")
            parameters.append(Parameter(
                name=param_token.value,
                data_type=self._parse_type(),
                location=param_token.location,
            ))
            self._match(TokenType.COMMA)
        self._expect(TokenType.RPAREN, "')'")

        return_type = VOID
        if self._match(TokenType.ARROW):
            return_type = self._parse_type()

        body = self._parse_block()
        return FunctionDefinition(
            name=name,
            parameters=parameters,
            return_type=return_type,
            body=body,
            location=fn_token.location,
        )

    def _parse_type(self) -> DataType:
        """Parse a scalar type keyword with an optional [SIZE] suffix."""
        token = self._peek()
        if token.type not in TYPE_KEYWORD_MAP:
            raise MissingTokenError(
                "type",
                token.describe(),
                token.location,
                self._get_source_line(token.line),
            )
        self._advance()
        base = TYPE_KEYWORD_MAP[token.type]

        if not self._match(TokenType.LBRACKET):
            return DataType(base)

        size_token = self._peek()
        if size_token.type != TokenType.INT_LIT:
            raise MissingArraySizeError(
                size_token.describe(),
                size_token.location,
                self._get_source_line(size_token.line),
            )
        self._advance()
        self._expect(TokenType.RBRACKET, "']'")
        return DataType(base, size_token.value)

    def _parse_block(self) -> list[Statement]:
        """Parse: { statement* }"""
        self._enter_nesting(self._peek())
        try:
            self._expect(TokenType.LBRACE, "'{'")
            statements = []
            self._skip_newlines()
            while not self._check(TokenType.RBRACE, TokenType.EOF):
                statements.append(self._parse_statement())
                self._skip_newlines()
            self._expect(TokenType.RBRACE, "'}'")
        finally:
            self._depth -= 1
        return statements

    def _enter_nesting(self, token: Token) -> None:
        """Count one nesting level; fail before Python's recursion limit."""
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            self._depth -= 1
            raise NestingDepthError(
                MAX_NESTING_DEPTH,
                token.location,
                self._get_source_line(token.line),
            )

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> Statement:
        self._skip_newlines()
        token = self._peek()

        if token.type == TokenType.DATA:
            return self._parse_data_declaration()
        if token.type in EXEC_KEYWORDS:
            self._advance()
            return ExecBlock(
                target=EXEC_TARGET_MAP[token.type],
                body=self._parse_block(),
                location=token.location,
            )
        if token.type == TokenType.IF:
            return self._parse_if()
        if token.type == TokenType.FOR:
            return self._parse_for()
        if token.type == TokenType.RETURN:
            return self._parse_return()
        if token.type == TokenType.IDENTIFIER:
            return self._parse_assign_or_call()

        raise self._unexpected(token, "statement", "a statement")

    def _parse_data_declaration(self) -> DataDeclaration:
        """Parse: data NAME : TYPE"""
        data_token = self._expect(TokenType.DATA, "'data'")
        name = self._expect_identifier("variable name").value
        self._expect(TokenType.COLON, "':'")
        return DataDeclaration(
            name=name,
            data_type=self._parse_type(),
            location=data_token.location,
        )

    def _parse_if(self) -> IfStatement:
        """Parse: if EXPR { ... } [else { ... }]"""
        if_token = self._expect(TokenType.IF, "'if'")
        condition = self._parse_expression()
        then_body = self._parse_block()

        else_body = None
        if self._match(TokenType.ELSE):
            else_body = self._parse_block()

        return IfStatement(
            condition=condition,
            then_body=then_body,
            else_body=else_body,
            location=if_token.location,
        )

    def _parse_for(self) -> ForStatement:
        """Parse: for VAR = START : END { ... }"""
        for_token = self._expect(TokenType.FOR, "'for'")
        variable = self._expect_identifier("loop variable").value
        self._expect(TokenType.ASSIGN, "'='")
        start = self._parse_expression()
        self._expect(TokenType.COLON, "':'")
        end = self._parse_expression()
        body = self._parse_block()
        return ForStatement(
            variable=variable,
            start=start,
            end=end,
            body=body,
            location=for_token.location,
        )

    def _parse_return(self) -> ReturnStatement:
        """Parse: return [EXPR], the value being on the same line."""
        return_token = self._expect(TokenType.RETURN, "'return'")
        if self._check(TokenType.RBRACE, TokenType.EOF) or self._newline_before_current():
            return ReturnStatement(location=return_token.location)
        return ReturnStatement(
            value=self._parse_expression(),
            location=return_token.location,
        )

    def _parse_assign_or_call(self) -> Statement:
        """
        Parse an assignment, or a name used as a statement.

        NAME[INDEX]? = VALUE is an assignment. Without '=', NAME(ARGS)
        becomes a call statement and a bare NAME an identifier statement;
        an index parsed before a missing '=' is discarded.
        """
        name_token = self._expect_identifier("identifier")
        name = name_token.value
        location = name_token.location

        index = None
        if self._match(TokenType.LBRACKET):
            index = self._parse_expression()
            self._expect(TokenType.RBRACKET, "']'")

        if self._match(TokenType.ASSIGN):
            return Assignment(
                target=name,
                index=index,
                value=self._parse_expression(),
                location=location,
            )

        if self._match(TokenType.LPAREN):
            expr = CallExpression(
                name=name,
                arguments=self._parse_arguments(),
                location=location,
            )
        else:
            expr = Identifier(name=name, location=location)
        return ExpressionStatement(expression=expr, location=location)

    def _parse_arguments(self) -> list[Expression]:
        """Parse call arguments after '(' up to and including ')'."""
        arguments = []
        while not self._check(TokenType.RPAREN):
            arguments.append(self._parse_expression())
            self._match(TokenType.COMMA)
        self._expect(TokenType.RPAREN, "')'")
        return arguments

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_logical_or()

    def _parse_logical_or(self) -> Expression:
        """Parse logical OR expression (||)."""
        return self._parse_binary(
            self._parse_logical_and,
            {TokenType.OR: BinaryOperator.LOGICAL_OR},
        )

    def _parse_logical_and(self) -> Expression:
        """Parse logical AND expression (&&)."""
        return self._parse_binary(
            self._parse_equality,
            {TokenType.AND: BinaryOperator.LOGICAL_AND},
        )

    def _parse_equality(self) -> Expression:
        """Parse equality expression (== !=)."""
        return self._parse_binary(
            self._parse_comparison,
            {
                TokenType.EQ: BinaryOperator.EQUAL,
                TokenType.NE: BinaryOperator.NOT_EQUAL,
            },
        )

    def _parse_comparison(self) -> Expression:
        """Parse comparison expression (< > <= >=)."""
        return self._parse_binary(
            self._parse_additive,
            {
                TokenType.LT: BinaryOperator.LESS,
                TokenType.GT: BinaryOperator.GREATER,
                TokenType.LE: BinaryOperator.LESS_EQ,
                TokenType.GE: BinaryOperator.GREATER_EQ,
            },
        )

    def _parse_additive(self) -> Expression:
        """Parse additive expression (+ -)."""
        return self._parse_binary(
            self._parse_multiplicative,
            {
                TokenType.PLUS: BinaryOperator.ADD,
                TokenType.MINUS: BinaryOperator.SUBTRACT,
            },
        )

    def _parse_multiplicative(self) -> Expression:
        """Parse multiplicative expression (* / %)."""
        return self._parse_binary(
            self._parse_unary,
            {
                TokenType.STAR: BinaryOperator.MULTIPLY,
                TokenType.SLASH: BinaryOperator.DIVIDE,
                TokenType.PERCENT: BinaryOperator.MODULO,
            },
        )

    def _parse_binary(
        self,
        operand_parser: Callable[[], Expression],
        operators: dict[TokenType, BinaryOperator],
    ) -> Expression:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Function to parse operands
            operators: Map of token types to binary operators
        """
        expr = operand_parser()

        while self._peek().type in operators:
            op_token = self._advance()
            right = operand_parser()
            expr = BinaryExpression(
                operator=operators[op_token.type],
                left=expr,
                right=right,
                location=op_token.location,
            )

        return expr

    def _parse_unary(self) -> Expression:
        """Parse unary expression (- !)."""
        token = self._peek()
        self._enter_nesting(token)
        try:
            if token.type in UNARY_OPERATOR_MAP:
                self._advance()
                return UnaryExpression(
                    operator=UNARY_OPERATOR_MAP[token.type],
                    operand=self._parse_unary(),
                    location=token.location,
                )
            return self._parse_primary()
        finally:
            self._depth -= 1

    def _parse_primary(self) -> Expression:
        token = self._peek()
        location = token.location

        if token.type == TokenType.INT_LIT:
            self._advance()
            return IntLiteral(value=token.value, location=location)
        if token.type == TokenType.FLOAT_LIT:
            self._advance()
            return FloatLiteral(value=token.value, location=location)
        if token.type == TokenType.BOOL_LIT:
            self._advance()
            return BoolLiteral(value=token.value, location=location)
        if token.type == TokenType.STRING_LIT:
            self._advance()
            return StringLiteral(value=token.value, location=location)

        if token.type == TokenType.REDUCE:
            return self._parse_reduce()

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LPAREN):
                return CallExpression(
                    name=token.value,
                    arguments=self._parse_arguments(),
                    location=location,
                )
            if self._match(TokenType.LBRACKET):
                index = self._parse_expression()
                self._expect(TokenType.RBRACKET, "']'")
                return IndexExpression(array=token.value, index=index, location=location)
            return Identifier(name=token.value, location=location)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        raise self._unexpected(token, "expression", "an expression")

    def _parse_reduce(self) -> ReduceExpression:
        """Parse: reduce ( + | * | max | min , EXPR )"""
        reduce_token = self._expect(TokenType.REDUCE, "'reduce'")
        self._expect(TokenType.LPAREN, "'('")

        op_token = self._peek()
        if op_token.type == TokenType.PLUS:
            operator = ReduceOperator.SUM
        elif op_token.type == TokenType.STAR:
            operator = ReduceOperator.PROD
        elif op_token.type == TokenType.IDENTIFIER and op_token.value == "max":
            operator = ReduceOperator.MAX
        elif op_token.type == TokenType.IDENTIFIER and op_token.value == "min":
            operator = ReduceOperator.MIN
        else:
            raise self._unexpected(op_token, "reduce", "one of +, *, max, min")
        self._advance()

        self._expect(TokenType.COMMA, "','")
        array = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")
        return ReduceExpression(operator=operator, array=array, location=reduce_token.location)


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> Program:
    """
    Parse SuperC source code into an AST.

    Args:
        source: The SuperC source code
        filename: Source filename for error messages

    Returns:
        The Program AST

    Raises:
        ParseError: If parsing fails
    """
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, source.splitlines()).parse()


def parse_expression(source: str, filename: str = "<input>") -> Expression:
    """
    Parse a single SuperC expression.

    Raises:
        ParseError: If the text is not exactly one expression
    """
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, source.splitlines()).parse_expression()
