"""Runner for JavaScript programs under Node.js."""

from __future__ import annotations

from dataclasses import replace
from typing import List

from .base import InterpretedRunner, Language


class JavaScriptRunner(InterpretedRunner):
    """Execute JavaScript with ``node``.

    V8 reserves far more address space than it uses, so an address space
    rlimit would stop node from starting.  The heap is capped with
    ``--max-old-space-size`` instead.
    """

    language = Language.JAVASCRIPT
    display_name = "JavaScript"
    extension = ".js"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.heap_mb = self.limits.max_memory_mb
        self.limits = replace(self.limits, max_memory_mb=None)

    def interpreter_args(self) -> List[str]:
        if self.heap_mb is None:
            return []
        return [f"--max-old-space-size={self.heap_mb}"]
