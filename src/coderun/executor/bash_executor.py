"""
Runner for Bash scripts.

The script is written to the workspace and passed to ``bash`` as a file
argument, so no shebang or executable bit is needed.  Startup files are
skipped.  As with the other runners, only a limited set of core utilities
should be available on the host to minimise the attack surface.
"""

from __future__ import annotations

from typing import List

from .base import InterpretedRunner, Language


class BashRunner(InterpretedRunner):
    """Execute Bash scripts."""

    language = Language.BASH
    display_name = "Bash"
    extension = ".sh"

    def interpreter_args(self) -> List[str]:
        return ["--noprofile", "--norc"]
