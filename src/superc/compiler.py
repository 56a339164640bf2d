"""
SuperC Compiler Main Module
===========================

This module provides the compiler interface for SuperC. It runs the
front end and one of the source emitters:

    Source → Lex → Parse → Generate → Rust / C / x86-64 assembly

Usage
-----
Command line:
    $ superc emit kernel.sc --c

Programmatic:
    >>> from superc import compile_to_c
    >>> c_source = compile_to_c('data x: f32[100]')

Compilation Pipeline
--------------------
1. **Lexical Analysis**: Convert source to tokens
2. **Parsing**: Build the Program AST
3. **Code Generation**: Emit Rust or C (superc.codegen) or NASM
   assembly (superc.codegen_asm)

The first error of any stage aborts the compilation; there is no error
recovery.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional
import logging

from superc.ast import Program
from superc.codegen import CodeGenerator, CodegenTarget
from superc.codegen_asm import AsmCodeGenerator
from superc.lexer import Lexer, Token
from superc.parser import Parser


logger = logging.getLogger(__name__)


class OutputTarget(Enum):
    """Source language a program is compiled to."""
    RUST = "rust"
    C = "c"
    ASM = "asm"

    @property
    def extension(self) -> str:
        return {"rust": ".rs", "c": ".c", "asm": ".asm"}[self.value]

    def __str__(self) -> str:
        return self.value


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        emit_header_comment: Start generated source with a comment naming
            the tool and the source file
    """
    emit_header_comment: bool = True


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        success: True if compilation succeeded
        output: Generated source code
        ast: Abstract syntax tree (if parsing succeeded)
        token_count: Number of tokens lexed
        target: Output language
    """
    filename: str = ""
    success: bool = False
    output: str = ""
    ast: Optional[Program] = None
    token_count: int = 0
    target: OutputTarget = OutputTarget.RUST


class SuperCCompiler:
    """
    SuperC source-to-source compiler.

    Example:
        compiler = SuperCCompiler()
        result = compiler.compile_file("kernel.sc", OutputTarget.C)
        print(result.output)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler configuration (uses defaults if None)
        """
        self.options = options or CompilerOptions()

    def compile_source(
        self,
        source: str,
        filename: str = "<input>",
        target: OutputTarget = OutputTarget.RUST,
    ) -> CompilerResult:
        """
        Compile SuperC source code.

        Args:
            source: SuperC source code string
            filename: Source filename for error messages
            target: Output language

        Returns:
            CompilerResult containing the generated source

        Raises:
            ParseError: If the source does not parse
            CodeGenError: If the program cannot be expressed in the target
        """
        result = CompilerResult(filename=filename, target=target)

        # Stage 1: Lexical analysis
        tokens = self._lex(source, filename)
        result.token_count = len(tokens)
        logger.debug(f"{filename}: {len(tokens)} tokens")

        # Stage 2: Parsing
        ast = self._parse(tokens, source.splitlines())
        result.ast = ast
        logger.debug(
            f"{filename}: {len(ast.functions)} functions, "
            f"{len(ast.statements)} top-level statements"
        )

        # Stage 3: Code generation
        result.output = self._generate(ast, filename, target)
        result.success = True
        logger.debug(f"{filename}: generated {len(result.output.splitlines())} lines of {target}")

        return result

    def compile_file(self, filepath: str, target: OutputTarget = OutputTarget.RUST) -> CompilerResult:
        """
        Compile a SuperC source file.

        Raises:
            ParseError: If the source does not parse
            CodeGenError: If the program cannot be expressed in the target
            FileNotFoundError: If source file not found
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding='utf-8')
        return self.compile_source(source, str(filepath), target)

    def _lex(self, source: str, filename: str) -> list[Token]:
        """Tokenize source."""
        return list(Lexer(source, filename).tokenize())

    def _parse(self, tokens: list[Token], source_lines: list[str]) -> Program:
        """Parse tokens into AST."""
        return Parser(tokens, source_lines).parse()

    def _generate(self, ast: Program, filename: str, target: OutputTarget) -> str:
        """Generate target source from the AST."""
        source_name = Path(filename).name if filename != "<input>" else None
        header = self.options.emit_header_comment

        if target == OutputTarget.ASM:
            generator = AsmCodeGenerator(source_name, emit_header=header)
        elif target == OutputTarget.C:
            generator = CodeGenerator(CodegenTarget.C, source_name, emit_header=header)
        else:
            generator = CodeGenerator(CodegenTarget.RUST, source_name, emit_header=header)
        return generator.generate(ast)


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_to_rust(source: str, filename: str = "<input>") -> str:
    """
    Compile SuperC source code to Rust.

    Example:
        >>> rust = compile_to_rust("data x: f32[100]")
        >>> "let mut x: [f32; 100] = [0.0; 100];" in rust
        True
    """
    return SuperCCompiler().compile_source(source, filename, OutputTarget.RUST).output


def compile_to_c(source: str, filename: str = "<input>") -> str:
    """
    Compile SuperC source code to C.

    Example:
        >>> "float x[100];" in compile_to_c("data x: f32[100]")
        True
    """
    return SuperCCompiler().compile_source(source, filename, OutputTarget.C).output


def compile_to_asm(source: str, filename: str = "<input>") -> str:
    """Compile SuperC source code to NASM x86-64 assembly."""
    return SuperCCompiler().compile_source(source, filename, OutputTarget.ASM).output
