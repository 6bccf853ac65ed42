"""
Runner for Python programs.

The source is written to the workspace and handed to the configured
``python3`` interpreter.  Isolated mode keeps the user's site packages
and ``PYTHON*`` environment variables out of the run, and unbuffered mode
keeps printed lines and tracebacks in the order they were produced.

This runner assumes that the host image includes any third‑party libraries
users may import.  Users should not be allowed to install arbitrary
packages at runtime.
"""

from __future__ import annotations

from typing import List

from .base import InterpretedRunner, Language


class PythonRunner(InterpretedRunner):
    """Execute Python code with the system interpreter."""

    language = Language.PYTHON
    display_name = "Python"
    extension = ".py"

    def interpreter_args(self) -> List[str]:
        return ["-I", "-u"]
