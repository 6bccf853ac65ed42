"""Entry point of the execution backend.

:class:`ExecutionDispatcher` maps a language identifier to its runner and
hands the request over.  It is the only component the transport layer
calls.  Whatever the request contains, ``execute`` returns an
:class:`~coderun.executor.ExecutionResult` and never raises.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional

from .config import Config
from .executor import (
    BashRunner,
    CppRunner,
    CRunner,
    ErrorKind,
    ExecutionRequest,
    ExecutionResult,
    JavaScriptRunner,
    LanguageRunner,
    ProcessInvoker,
    PythonRunner,
    ResourceLimits,
)

logger = logging.getLogger(__name__)


def build_runners(config: Config) -> Dict[str, LanguageRunner]:
    """Create one runner per enabled language from the process configuration."""
    invoker = ProcessInvoker(max_output_bytes=config.max_output_bytes)
    limits = ResourceLimits(
        max_memory_mb=config.max_memory_mb,
        max_cpu_secs=config.max_cpu_secs,
        max_processes=config.max_processes,
    )
    common = dict(
        timeout=config.max_execution_seconds,
        limits=limits,
        scratch_dir=config.scratch_dir,
        invoker=invoker,
    )
    toolchain = config.toolchain
    runners: List[LanguageRunner] = [
        CppRunner(toolchain.cxx, compile_timeout=config.compile_timeout_seconds, **common),
        CRunner(toolchain.cc, compile_timeout=config.compile_timeout_seconds, **common),
        PythonRunner(toolchain.python, **common),
        BashRunner(toolchain.bash, **common),
        JavaScriptRunner(toolchain.node, **common),
    ]
    return {
        runner.language.value: runner
        for runner in runners
        if runner.language.value in config.allowed_langs
    }


class ExecutionDispatcher:
    """Route execution requests to language runners."""

    def __init__(self, runners: Mapping[str, LanguageRunner]) -> None:
        self._runners = dict(runners)

    @classmethod
    def from_config(cls, config: Config) -> "ExecutionDispatcher":
        missing = config.toolchain.missing()
        if missing:
            logger.warning("Toolchain binaries not found on this host: %s", ", ".join(missing))
        return cls(build_runners(config))

    def runner_for(self, language: str) -> Optional[LanguageRunner]:
        return self._runners.get((language or "").strip().lower())

    def languages(self) -> List[Dict[str, object]]:
        """Describe every enabled language."""
        return [runner.describe() for runner in self._runners.values()]

    def execute(
        self,
        request: ExecutionRequest,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        runner = self.runner_for(request.language)
        if runner is None:
            logger.warning("Unsupported language: %r", request.language)
            return ExecutionResult.failure(
                ErrorKind.INTERNAL_ERROR,
                f"Unsupported language: {request.language}",
                request.language,
            )
        try:
            return runner.run(request.source_code, request.stdin, cancel=cancel)
        except Exception as exc:
            # Runners convert their own failures; this only guards against bugs.
            logger.exception("Runner for %s raised", request.language)
            return ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, f"Internal error: {exc}", request.language)
