"""
Base interfaces and dataclasses for language runners.

All concrete runners inherit from :class:`CompiledRunner` or
:class:`InterpretedRunner` and describe how to turn a source file into a
running program.  A runner is a stateless strategy: it is configured once
with a toolchain binary and limits, and every call to :meth:`LanguageRunner.run`
receives the code and input explicitly.  One runner instance can therefore
serve any number of concurrent executions.

Each call creates exactly one :class:`~coderun.workspace.TempWorkspace` and
releases it before returning.  Every failure, whether caused by the
submitted code or by the host, is converted into an :class:`ExecutionResult`;
``run`` never raises.

Resource limitations (wall clock timeouts, memory and CPU limits) are
enforced through :class:`~coderun.executor.process.ProcessInvoker`.
Containers and processes outside of Python are assumed to be configured
with additional safeguards (e.g. Docker isolation, seccomp profiles) to
prevent system compromise.
"""

from __future__ import annotations

import abc
import enum
import logging
import signal
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Tool
from ..workspace import TempWorkspace
from .process import ProcessInvoker, ProcessOutcome, ResourceLimits

logger = logging.getLogger(__name__)

NO_OUTPUT = "No output"
CANCELLED_MESSAGE = "Execution cancelled."


class Language(str, enum.Enum):
    """Language identifiers accepted by the dispatcher."""

    CPP = "cpp"
    C = "c"
    PYTHON = "python"
    BASH = "bash"
    JAVASCRIPT = "javascript"


class ErrorKind(str, enum.Enum):
    NONE = "none"
    COMPILE_ERROR = "compile_error"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


class RunnerKind(str, enum.Enum):
    COMPILED = "compiled"
    INTERPRETED = "interpreted"


@dataclass(frozen=True)
class ExecutionRequest:
    """One piece of code to run, with the text to feed it on stdin."""

    source_code: str
    language: str
    stdin: str = ""


@dataclass
class ExecutionResult:
    """Result of running a code snippet.

    Attributes
    ----------
    success: bool
        ``True`` exactly when ``error_kind`` is :attr:`ErrorKind.NONE`.
    output: str
        Program output, or a human readable diagnostic when the execution
        failed.  A silent successful run yields :data:`NO_OUTPUT`.
    error_kind: ErrorKind
        Failure classification.
    language: str
        Language identifier the request asked for.
    exit_code: int, optional
        Exit status of the last process run, when there was one.
    duration_ms: int
        Wall‑clock time of the whole execution in milliseconds.
    """

    success: bool
    output: str
    error_kind: ErrorKind
    language: str
    exit_code: Optional[int] = None
    duration_ms: int = 0

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        output: str,
        language: str,
        exit_code: Optional[int] = None,
    ) -> "ExecutionResult":
        return cls(success=False, output=output, error_kind=error_kind, language=language, exit_code=exit_code)


def describe_exit(exit_code: Optional[int]) -> str:
    if exit_code is not None and exit_code < 0:
        try:
            name = signal.Signals(-exit_code).name
        except ValueError:
            name = f"signal {-exit_code}"
        return f"Process terminated by {name}."
    return f"Process exited with status {exit_code}."


class LanguageRunner(abc.ABC):
    """
    Abstract base class for per‑language runners.

    Subclasses set the class attributes describing the language and
    implement :meth:`_execute`, which receives a workspace that already
    holds the source and input files.
    """

    language: Language
    display_name: str = ""
    extension: str = ""
    kind: RunnerKind

    def __init__(
        self,
        tool: Tool,
        timeout: int = 10,
        limits: Optional[ResourceLimits] = None,
        scratch_dir: str | Path | None = None,
        invoker: Optional[ProcessInvoker] = None,
    ) -> None:
        """
        Parameters
        ----------
        tool: Tool
            Interpreter, or compiler for compiled languages.
        timeout: int, optional
            Maximum wall‑clock time (in seconds) the program may run.
        limits: ResourceLimits, optional
            Limits applied to the running program.
        scratch_dir: path, optional
            Parent directory for workspaces.  System temp dir by default.
        invoker: ProcessInvoker, optional
            Shared invoker; a default one is created when omitted.
        """
        self.tool = tool
        self.timeout = timeout
        self.limits = limits if limits is not None else ResourceLimits()
        self.scratch_dir = scratch_dir
        self.invoker = invoker if invoker is not None else ProcessInvoker()

    @property
    def available(self) -> bool:
        return self.tool.available

    def describe(self) -> Dict[str, object]:
        return {
            "language": self.language.value,
            "name": self.display_name,
            "extension": self.extension,
            "kind": self.kind.value,
            "available": self.available,
        }

    def run(
        self,
        code: str,
        stdin: str = "",
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Materialize ``code``, run it with ``stdin`` and classify the outcome."""
        language = self.language.value
        if not self.available:
            return ExecutionResult.failure(
                ErrorKind.INTERNAL_ERROR,
                f"Toolchain not found: {self.tool.name} is required to run {self.display_name} code.",
                language,
            )
        if cancel is not None and cancel.is_set():
            return ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, CANCELLED_MESSAGE, language)

        start_time = time.perf_counter()
        try:
            with TempWorkspace.acquire(
                self.scratch_dir,
                extension=self.extension,
                with_artifact=self.kind is RunnerKind.COMPILED,
            ) as workspace:
                workspace.write_source(code)
                workspace.write_input(stdin)
                result = self._execute(workspace, cancel)
        except OSError as exc:
            logger.exception("Workspace failure while running %s code", language)
            result = ExecutionResult.failure(
                ErrorKind.INTERNAL_ERROR, f"Could not prepare execution workspace: {exc}", language
            )
        except Exception as exc:
            logger.exception("Unexpected failure while running %s code", language)
            result = ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, f"Internal error: {exc}", language)
        result.duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Executed %s code: error_kind=%s, exit_code=%s, duration_ms=%s",
            language,
            result.error_kind.value,
            result.exit_code,
            result.duration_ms,
        )
        return result

    @abc.abstractmethod
    def _execute(self, workspace: TempWorkspace, cancel: Optional[threading.Event]) -> ExecutionResult:
        raise NotImplementedError

    def run_env(self) -> Dict[str, str]:
        """Extra environment variables for the program being run."""
        return {}

    def _run_program(
        self,
        args: List[str],
        workspace: TempWorkspace,
        cancel: Optional[threading.Event],
    ) -> ExecutionResult:
        outcome = self.invoker.invoke(
            args,
            output_path=workspace.output_file,
            stdin_path=workspace.input_file,
            cwd=workspace.root_dir,
            timeout=self.timeout,
            limits=self.limits,
            env=self.run_env(),
            cancel=cancel,
        )
        return self._classify_run(outcome, args[0])

    def _classify_run(self, outcome: ProcessOutcome, program: str) -> ExecutionResult:
        language = self.language.value
        if not outcome.did_start:
            return ExecutionResult.failure(
                ErrorKind.INTERNAL_ERROR, f"Failed to start {program}: {outcome.error}", language
            )
        if outcome.cancelled:
            return ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, CANCELLED_MESSAGE, language)
        if outcome.timed_out:
            output = outcome.combined_output
            if output and not output.endswith("\n"):
                output += "\n"
            output += f"Execution timed out after {self.timeout} seconds."
            return ExecutionResult.failure(ErrorKind.TIMEOUT, output, language, outcome.exit_code)
        if outcome.exit_code != 0:
            output = outcome.combined_output if outcome.combined_output.strip() else describe_exit(outcome.exit_code)
            return ExecutionResult.failure(ErrorKind.RUNTIME_ERROR, output, language, outcome.exit_code)
        return ExecutionResult(
            success=True,
            output=outcome.combined_output or NO_OUTPUT,
            error_kind=ErrorKind.NONE,
            language=language,
            exit_code=0,
        )


class InterpretedRunner(LanguageRunner):
    """Run the source file directly with an interpreter."""

    kind = RunnerKind.INTERPRETED

    def interpreter_args(self) -> List[str]:
        return []

    def _execute(self, workspace: TempWorkspace, cancel: Optional[threading.Event]) -> ExecutionResult:
        args = [self.tool.path, *self.interpreter_args(), str(workspace.source_file)]
        return self._run_program(args, workspace, cancel)


class CompiledRunner(LanguageRunner):
    """Compile the source file into an artifact, then run the artifact.

    Compilation counts as successful when the artifact exists afterwards,
    whatever the compiler's exit status was.
    """

    kind = RunnerKind.COMPILED
    compile_flags: List[str] = []
    link_flags: List[str] = []

    def __init__(
        self,
        tool: Tool,
        timeout: int = 10,
        limits: Optional[ResourceLimits] = None,
        scratch_dir: str | Path | None = None,
        invoker: Optional[ProcessInvoker] = None,
        compile_timeout: int = 30,
    ) -> None:
        super().__init__(tool, timeout, limits, scratch_dir, invoker)
        self.compile_timeout = compile_timeout

    def compile_command(self, workspace: TempWorkspace) -> List[str]:
        return [
            self.tool.path,
            *self.compile_flags,
            str(workspace.source_file),
            "-o",
            str(workspace.artifact_file),
            *self.link_flags,
        ]

    def _execute(self, workspace: TempWorkspace, cancel: Optional[threading.Event]) -> ExecutionResult:
        language = self.language.value
        outcome = self.invoker.invoke(
            self.compile_command(workspace),
            output_path=workspace.output_file,
            cwd=workspace.root_dir,
            timeout=self.compile_timeout,
            cancel=cancel,
        )
        if not outcome.did_start:
            return ExecutionResult.failure(
                ErrorKind.INTERNAL_ERROR, f"Failed to start {self.tool.name}: {outcome.error}", language
            )
        if outcome.cancelled:
            return ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, CANCELLED_MESSAGE, language)
        if outcome.timed_out:
            return ExecutionResult.failure(
                ErrorKind.TIMEOUT, f"Compilation timed out after {self.compile_timeout} seconds.", language
            )
        if not workspace.artifact_file.exists():
            output = outcome.combined_output
            if not output.strip():
                output = f"Compilation failed with exit status {outcome.exit_code}."
            return ExecutionResult.failure(ErrorKind.COMPILE_ERROR, output, language, outcome.exit_code)
        return self._run_program([str(workspace.artifact_file)], workspace, cancel)
