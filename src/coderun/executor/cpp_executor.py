"""
Runners for C and C++ programs.

The source is compiled with the configured ``gcc``/``g++`` into an
artifact inside the workspace, and the artifact is run with stdin bound to
the input file.  Compiler diagnostics are returned verbatim when no
artifact is produced.
"""

from __future__ import annotations

from .base import CompiledRunner, Language


class CppRunner(CompiledRunner):
    """Compile with ``g++`` and run the resulting binary."""

    language = Language.CPP
    display_name = "C++"
    extension = ".cpp"
    compile_flags = ["-std=gnu++17", "-O2", "-pipe"]


class CRunner(CompiledRunner):
    """Compile with ``gcc`` and run the resulting binary."""

    language = Language.C
    display_name = "C"
    extension = ".c"
    compile_flags = ["-std=gnu11", "-O2", "-pipe"]
    link_flags = ["-lm"]
