"""
Language runners for the execution backend.

This package exposes concrete runners for supported languages.  The
dispatcher selects the appropriate runner based on the requested language.
Each runner writes user code to a private workspace, compiles it when the
language needs it, invokes the program or interpreter, enforces resource
limits and returns a classified result.  Additional languages can be added
by subclassing ``CompiledRunner`` or ``InterpretedRunner`` from ``base.py``.
"""

from .base import (
    NO_OUTPUT,
    CompiledRunner,
    ErrorKind,
    ExecutionRequest,
    ExecutionResult,
    InterpretedRunner,
    Language,
    LanguageRunner,
    RunnerKind,
)
from .bash_executor import BashRunner
from .cpp_executor import CppRunner, CRunner
from .javascript_executor import JavaScriptRunner
from .process import ProcessInvoker, ProcessOutcome, ResourceLimits
from .python_executor import PythonRunner

__all__ = [
    "NO_OUTPUT",
    "BashRunner",
    "CompiledRunner",
    "CppRunner",
    "CRunner",
    "ErrorKind",
    "ExecutionRequest",
    "ExecutionResult",
    "InterpretedRunner",
    "JavaScriptRunner",
    "Language",
    "LanguageRunner",
    "ProcessInvoker",
    "ProcessOutcome",
    "PythonRunner",
    "ResourceLimits",
    "RunnerKind",
]
