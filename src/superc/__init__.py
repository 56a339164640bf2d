"""
SuperC - Array Compute Language
===============================

SuperC is a small array-oriented language. Programs declare typed
scalars and fixed-size arrays, transform them with loops, reductions and
element-wise arithmetic, and tag blocks with the execution target they
are meant for (parallel, seq, gpu, asm).

This package provides:

- A lexer and recursive descent parser producing an AST
- A compute engine that interprets programs and labels each run with
  the backend it would use (CUDA, HIP, HIP-CPU, ASM SIMD, pure CPU)
- Emitters producing Rust, C and x86-64 NASM assembly source

Pipeline
--------
    Source → Lexer → Parser → AST → Compute Engine (run)
                                  → Rust / C / ASM emitters (emit)

Usage
-----
>>> from superc import ComputeEngine, compile_to_c
>>> source = '''
... data v: f32[4]
... parallel {
...     for i = 0:4 { v[i] = i * i }
... }
... '''
>>> ComputeEngine().execute(source).output
[0.0, 1.0, 4.0, 9.0]
>>> c_source = compile_to_c(source)

Or from the command line:
    $ superc run kernel.sc --asm
    $ superc emit kernel.sc --rust
"""

# =============================================================================
# Version Information
# =============================================================================

__version__ = "0.1.0"

# =============================================================================
# Public API Imports
# =============================================================================

from superc.compiler import (
    SuperCCompiler,
    CompilerOptions,
    CompilerResult,
    OutputTarget,
    compile_to_rust,
    compile_to_c,
    compile_to_asm,
)
from superc.engine import ComputeEngine, ComputeResult, ExecutionEnvironment
from superc.backends import Backend, ComputePreference
from superc.config import EngineConfig
from superc.errors import (
    SourceLocation,
    SuperCError,
    ParseError,
    EvaluationError,
    UndefinedVariableError,
    ArrayAccessError,
    UnknownFunctionError,
    CodeGenError,
)
from superc.lexer import Lexer, Token, TokenType, tokenize
from superc.parser import Parser, parse_source, parse_expression
from superc.codegen import CodeGenerator, CodegenTarget
from superc.codegen_asm import AsmCodeGenerator
from superc.ast import Program, SourcePrinter

__all__ = [
    # Version
    "__version__",
    # Compiler
    "SuperCCompiler",
    "CompilerOptions",
    "CompilerResult",
    "OutputTarget",
    "compile_to_rust",
    "compile_to_c",
    "compile_to_asm",
    # Engine
    "ComputeEngine",
    "ComputeResult",
    "ExecutionEnvironment",
    "Backend",
    "ComputePreference",
    "EngineConfig",
    # Errors
    "SourceLocation",
    "SuperCError",
    "ParseError",
    "EvaluationError",
    "UndefinedVariableError",
    "ArrayAccessError",
    "UnknownFunctionError",
    "CodeGenError",
    # Front end
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Parser",
    "parse_source",
    "parse_expression",
    "Program",
    "SourcePrinter",
    # Emitters
    "CodeGenerator",
    "CodegenTarget",
    "AsmCodeGenerator",
]
