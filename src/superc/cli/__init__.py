"""
SuperC Command-Line Interface
=============================

This package provides the ``superc`` command:

- **run**: interpret a program with the compute engine
- **emit**: print generated Rust, C or assembly
- **build**: write generated Rust and C next to the source
- **fmt**: print the canonical form of a program

The tool is a Click group with help on every command.
"""

__all__ = ["superc"]
