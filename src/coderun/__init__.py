"""Multi-language code execution backend.

This package turns submitted source code, a language identifier and
standard input into a captured result.  Compiled languages are built into
a private workspace first; every program runs as an external process with
a wall‑clock budget, resource limits and guaranteed cleanup.

The top‑level modules include:

* ``config`` – configuration handling for environment variables and toolchain discovery.
* ``workspace`` – per‑execution temporary directories.
* ``executor`` – process invocation and language‑specific runners.
* ``dispatcher`` – the single entry point mapping languages to runners.
* ``pool`` – bounded worker pool with admission control and cancellation.
* ``models`` – Pydantic models defining request and response schemas.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

from .dispatcher import ExecutionDispatcher
from .executor import ErrorKind, ExecutionRequest, ExecutionResult, Language
from .pool import ExecutionHandle, ExecutionPool

__all__ = [
    "ErrorKind",
    "ExecutionDispatcher",
    "ExecutionHandle",
    "ExecutionPool",
    "ExecutionRequest",
    "ExecutionResult",
    "Language",
]
