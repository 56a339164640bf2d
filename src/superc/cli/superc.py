"""
superc - SuperC Command-Line Interface
======================================

This module implements the ``superc`` command: run SuperC programs with
the compute engine, or translate them to Rust, C or x86-64 assembly.

Commands
--------
- **run**: Interpret a program and report the backend it ran under
- **emit**: Print generated source for one target
- **build**: Write ``<name>_generated.rs`` and ``<name>_generated.c``
- **fmt**: Print the program in canonical form
- **help**: Show usage

Usage Examples
--------------
Run with automatic backend selection:
    $ superc run kernel.sc

Prefer a backend:
    $ superc run kernel.sc --gpu
    $ superc run kernel.sc --asm

Print generated code:
    $ superc emit kernel.sc --rust
    $ superc emit kernel.sc c
    $ superc emit kernel.sc -a

Generate files next to the source:
    $ superc build kernel.sc

Debug logging:
    $ superc -v run kernel.sc
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from superc import __version__
from superc.ast import SourcePrinter
from superc.backends import ComputePreference
from superc.cli.errors import ExitCode, handle_cli_exception
from superc.compiler import CompilerOptions, OutputTarget, SuperCCompiler
from superc.config import EngineConfig
from superc.engine import ComputeEngine
from superc.errors import SuperCError
from superc.parser import parse_source


logger = logging.getLogger(__name__)

PREFERENCE_NAMES = {
    ComputePreference.AUTO: "Auto (automatic selection)",
    ComputePreference.GPU: "GPU (CUDA/HIP/HIP-CPU)",
    ComputePreference.CPU: "Pure CPU",
    ComputePreference.ASM: "ASM SIMD",
    ComputePreference.LOW_POWER: "Low power",
}

TARGET_NAMES = {
    "rust": OutputTarget.RUST,
    "c": OutputTarget.C,
    "asm": OutputTarget.ASM,
}

INPUT_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores the verbosity flag.
    """

    def __init__(self) -> None:
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.INFO
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def read_source(input_file: Path) -> str:
    return input_file.read_text(encoding="utf-8")


def generated_path(input_file: Path, target: OutputTarget) -> Path:
    """Sibling file for generated code: kernel.sc -> kernel_generated.rs"""
    return input_file.with_name(f"{input_file.stem}_generated{target.extension}")


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(version=__version__, prog_name="superc")
@pass_context
def main(ctx: Context, verbose: bool) -> None:
    """
    SuperC compute engine and source-to-source compiler.

    Programs (.sc) declare scalars and fixed-size arrays and tag blocks
    with the target they are meant for (parallel, seq, gpu, asm).

    \b
    Examples:
        superc run kernel.sc              # Automatic backend selection
        superc run kernel.sc --gpu        # Prefer GPU (CUDA/HIP/HIP-CPU)
        superc emit kernel.sc --rust      # Print Rust source
        superc build kernel.sc            # Write kernel_generated.rs/.c
    """
    ctx.verbose = verbose
    ctx.setup_logging()


# =============================================================================
# Run Command
# =============================================================================

@main.command()
@click.argument("input_file", type=INPUT_FILE)
@click.option(
    "--gpu",
    is_flag=True,
    help="Prefer GPU (CUDA/HIP/HIP-CPU)",
)
@click.option(
    "--cpu",
    is_flag=True,
    help="Prefer the pure CPU path",
)
@click.option(
    "--asm",
    is_flag=True,
    help="Prefer ASM SIMD",
)
@click.option(
    "--low-power",
    is_flag=True,
    help="Prefer low power (pure CPU)",
)
@click.option(
    "--show-output",
    is_flag=True,
    help="Print the output array after the run",
)
@pass_context
def run(
    ctx: Context,
    input_file: Path,
    gpu: bool,
    cpu: bool,
    asm: bool,
    low_power: bool,
    show_output: bool,
) -> None:
    """
    Run a SuperC program with the compute engine.

    Without a preference flag the backend is chosen from the size of the
    largest array. GPU backends are reported when configured through
    SUPERC_GPU; every run is interpreted on the CPU.

    \b
    Examples:
        superc run kernel.sc
        superc run kernel.sc --asm --show-output
    """
    # Check for mutually exclusive preference options
    if sum([gpu, cpu, asm, low_power]) > 1:
        click.echo("Error: --gpu, --cpu, --asm and --low-power are mutually exclusive", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    if gpu:
        compute_preference = ComputePreference.GPU
    elif cpu:
        compute_preference = ComputePreference.CPU
    elif asm:
        compute_preference = ComputePreference.ASM
    elif low_power:
        compute_preference = ComputePreference.LOW_POWER
    else:
        compute_preference = ComputePreference.AUTO

    click.echo("SuperC Compute Engine")
    click.echo("=====================")
    click.echo(f"File: {input_file}")
    click.echo(f"Preference: {PREFERENCE_NAMES[compute_preference]}")
    click.echo("---------------------")

    try:
        source = read_source(input_file)
        config = EngineConfig.from_env()
        logger.debug(f"Engine configuration: {config}")
        engine = ComputeEngine(compute_preference, config)
        result = engine.execute(source, str(input_file))
    except Exception as e:
        handle_cli_exception(e, ctx.verbose, "Execution")

    click.echo("---------------------")
    click.echo("Execution completed")
    click.echo(f"Backend: {result.backend_used.description}")
    click.echo(f"Time: {result.execution_time_us} us")
    if show_output:
        values = ", ".join(f"{v:g}" for v in result.output)
        click.echo(f"Output: [{values}]")
    click.echo("=====================")


# =============================================================================
# Emit Command
# =============================================================================

@main.command()
@click.argument("input_file", type=INPUT_FILE)
@click.argument("target_name", required=False, metavar="[rust|c|asm]")
@click.option(
    "-r", "--rust",
    is_flag=True,
    help="Emit Rust",
)
@click.option(
    "-c", "--c", "c_target",
    is_flag=True,
    help="Emit C",
)
@click.option(
    "-a", "--asm",
    is_flag=True,
    help="Emit NASM x86-64 assembly",
)
@click.option(
    "--no-header",
    is_flag=True,
    help="Omit the header comment",
)
@pass_context
def emit(
    ctx: Context,
    input_file: Path,
    target_name: Optional[str],
    rust: bool,
    c_target: bool,
    asm: bool,
    no_header: bool,
) -> None:
    """
    Print generated source for INPUT_FILE.

    The target is given as a flag (--rust, --c, --asm) or as a word
    (rust, c, asm).

    \b
    Examples:
        superc emit kernel.sc --rust
        superc emit kernel.sc c > kernel.c
        superc emit kernel.sc -a > kernel.asm
    """
    flags = [name for name, given in (("rust", rust), ("c", c_target), ("asm", asm)) if given]
    if len(flags) + (target_name is not None) > 1:
        click.echo("Error: give exactly one target: --rust, --c or --asm", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    name = flags[0] if flags else target_name
    if name is None:
        click.echo("Error: Missing target: use --rust, --c or --asm", err=True)
        sys.exit(ExitCode.INVALID_ARGS)
    target = TARGET_NAMES.get(name.lower())
    if target is None:
        click.echo(f"Error: Unknown target: {name} (use --rust, --c or --asm)", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    try:
        compiler = SuperCCompiler(CompilerOptions(emit_header_comment=not no_header))
        result = compiler.compile_source(read_source(input_file), str(input_file), target)
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)

    click.echo(result.output, nl=False)


# =============================================================================
# Build Command
# =============================================================================

@main.command()
@click.argument("input_file", type=INPUT_FILE)
@pass_context
def build(ctx: Context, input_file: Path) -> None:
    """
    Generate Rust and C source next to INPUT_FILE.

    Writes NAME_generated.rs, then NAME_generated.c. A program that
    cannot be expressed in C only produces a warning.
    """
    click.echo(f"Compiling {input_file}...")
    compiler = SuperCCompiler()

    try:
        source = read_source(input_file)
        rust = compiler.compile_source(source, str(input_file), OutputTarget.RUST)
        rust_path = generated_path(input_file, OutputTarget.RUST)
        rust_path.write_text(rust.output, encoding="utf-8")
    except Exception as e:
        handle_cli_exception(e, ctx.verbose, "Compilation")
    click.echo(f"Generated: {rust_path}")

    try:
        c = compiler.compile_source(source, str(input_file), OutputTarget.C)
        c_path = generated_path(input_file, OutputTarget.C)
        c_path.write_text(c.output, encoding="utf-8")
    except (SuperCError, OSError) as e:
        click.echo(f"Warning: C source not generated: {e}", err=True)
        return
    click.echo(f"Generated: {c_path}")


# =============================================================================
# Format Command
# =============================================================================

@main.command()
@click.argument("input_file", type=INPUT_FILE)
@pass_context
def fmt(ctx: Context, input_file: Path) -> None:
    """
    Print INPUT_FILE in canonical form.

    Comments are dropped; parsing the result gives the same program.
    """
    try:
        program = parse_source(read_source(input_file), str(input_file))
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)

    click.echo(SourcePrinter().print(program), nl=False)


# =============================================================================
# Help Command
# =============================================================================

@main.command("help")
@click.pass_context
def show_help(click_ctx: click.Context) -> None:
    """Show usage information."""
    click.echo(click_ctx.parent.get_help())
    click_ctx.exit(ExitCode.SUCCESS)


if __name__ == "__main__":
    main()
