"""Configuration loader.

The execution backend reads its configuration from environment variables so
the same image can run under docker‑compose, a bare VM or a test runner.
Reasonable defaults are provided so that local development works out of the
box.  Configuration is loaded once per process; toolchain discovery happens
at load time and is never repeated per request.

Environment variables:

``CODERUN_API_KEY``
    Shared secret checked against the ``x-api-key`` header by the HTTP API.
    Empty (the default) disables the check.

``CODERUN_SCRATCH_DIR``
    Parent directory for per‑execution workspaces.  Defaults to the system
    temporary directory.

``CODERUN_ALLOWED_LANGS``
    Comma‑separated list of languages permitted for execution.  Defaults to
    every supported language.

``CODERUN_MAX_EXECUTION_SECONDS``
    Wall‑clock timeout (in seconds) for running a program.  Default is 10.

``CODERUN_COMPILE_TIMEOUT_SECONDS``
    Wall‑clock timeout (in seconds) for the compile step.  Default is 30.

``CODERUN_MAX_MEMORY_MB``
    Address space limit (in megabytes) applied to the running program.
    Default is 512.

``CODERUN_MAX_CPU_SECS``
    CPU time limit (in seconds) applied to the running program.  Default is 10.

``CODERUN_MAX_PROCESSES``
    ``RLIMIT_NPROC`` applied to the running program.  The kernel counts
    every process and thread of the user, so size it above what the service
    user already runs.  Default is 512; ``0`` disables the limit.

``CODERUN_MAX_OUTPUT_BYTES``
    Maximum number of bytes of program output returned.  Default is 65536.

``CODERUN_MAX_WORKERS`` / ``CODERUN_MAX_QUEUE_DEPTH``
    Size of the execution pool and of its admission queue.

``CODERUN_CXX``, ``CODERUN_CC``, ``CODERUN_PYTHON``, ``CODERUN_BASH``, ``CODERUN_NODE``
    Compiler and interpreter names or paths.  Resolved against ``PATH``.

``CODERUN_LOG_LEVEL``
    Log level of the ``coderun`` logger.  Defaults to ``INFO``.

``PORT``
    The port on which the API server listens.  Defaults to 8080.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from typing import List, Optional

SUPPORTED_LANGUAGES = ("cpp", "c", "python", "bash", "javascript")

LOG_FORMAT = "[coderun] %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach the service handler to the ``coderun`` logger once."""
    logger = logging.getLogger("coderun")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger


@dataclass(frozen=True)
class Tool:
    """A compiler or interpreter binary.

    ``name`` is what was asked for, ``path`` is where it was found on this
    host (``None`` when it could not be resolved).
    """

    name: str
    path: Optional[str]

    @property
    def available(self) -> bool:
        return self.path is not None

    @classmethod
    def resolve(cls, name: str) -> "Tool":
        return cls(name=name, path=shutil.which(name))


@dataclass(frozen=True)
class Toolchain:
    """Compilers and interpreters used by the language runners."""

    cxx: Tool
    cc: Tool
    python: Tool
    bash: Tool
    node: Tool

    @classmethod
    def discover(
        cls,
        cxx: str = "g++",
        cc: str = "gcc",
        python: str = "python3",
        bash: str = "bash",
        node: str = "node",
    ) -> "Toolchain":
        return cls(
            cxx=Tool.resolve(cxx),
            cc=Tool.resolve(cc),
            python=Tool.resolve(python),
            bash=Tool.resolve(bash),
            node=Tool.resolve(node),
        )

    def missing(self) -> List[str]:
        return [tool.name for tool in (self.cxx, self.cc, self.python, self.bash, self.node) if not tool.available]


def _default_workers() -> int:
    return max(1, min(os.cpu_count() or 1, 8))


@dataclass
class Config:
    """Centralised configuration object."""

    api_key: str
    scratch_dir: str | None
    allowed_langs: List[str]
    max_execution_seconds: int
    compile_timeout_seconds: int
    max_memory_mb: int
    max_cpu_secs: int
    max_processes: int | None
    max_output_bytes: int
    max_workers: int
    max_queue_depth: int
    toolchain: Toolchain
    log_level: str
    port: int

    @classmethod
    def load(cls) -> "Config":
        # API key may be empty in local development but should be set in production.
        api_key = os.getenv("CODERUN_API_KEY", "")
        scratch_dir = os.getenv("CODERUN_SCRATCH_DIR") or None

        allowed_langs_env = os.getenv("CODERUN_ALLOWED_LANGS", ",".join(SUPPORTED_LANGUAGES))
        allowed_langs = [lang.strip().lower() for lang in allowed_langs_env.split(",") if lang.strip()]
        unknown = [lang for lang in allowed_langs if lang not in SUPPORTED_LANGUAGES]
        if unknown:
            raise ValueError(
                f"Invalid CODERUN_ALLOWED_LANGS: {', '.join(unknown)}. "
                f"Supported: {', '.join(SUPPORTED_LANGUAGES)}."
            )

        def _int_var(name: str, default: int, minimum: int = 0) -> int:
            val = os.getenv(name)
            if val is None:
                return default
            try:
                parsed = int(val)
            except ValueError:
                raise ValueError(f"Invalid integer for {name}: {val}")
            if parsed < minimum:
                raise ValueError(f"{name} must be at least {minimum}, got {parsed}")
            return parsed

        max_execution_seconds = _int_var("CODERUN_MAX_EXECUTION_SECONDS", 10, minimum=1)
        compile_timeout_seconds = _int_var("CODERUN_COMPILE_TIMEOUT_SECONDS", 30, minimum=1)
        max_memory_mb = _int_var("CODERUN_MAX_MEMORY_MB", 512, minimum=16)
        max_cpu_secs = _int_var("CODERUN_MAX_CPU_SECS", 10, minimum=1)
        max_processes = _int_var("CODERUN_MAX_PROCESSES", 512) or None
        max_output_bytes = _int_var("CODERUN_MAX_OUTPUT_BYTES", 65536, minimum=1)
        max_workers = _int_var("CODERUN_MAX_WORKERS", _default_workers(), minimum=1)
        max_queue_depth = _int_var("CODERUN_MAX_QUEUE_DEPTH", 32)
        port = _int_var("PORT", 8080)

        toolchain = Toolchain.discover(
            cxx=os.getenv("CODERUN_CXX", "g++"),
            cc=os.getenv("CODERUN_CC", "gcc"),
            python=os.getenv("CODERUN_PYTHON", "python3"),
            bash=os.getenv("CODERUN_BASH", "bash"),
            node=os.getenv("CODERUN_NODE", "node"),
        )

        return cls(
            api_key=api_key,
            scratch_dir=scratch_dir,
            allowed_langs=allowed_langs,
            max_execution_seconds=max_execution_seconds,
            compile_timeout_seconds=compile_timeout_seconds,
            max_memory_mb=max_memory_mb,
            max_cpu_secs=max_cpu_secs,
            max_processes=max_processes,
            max_output_bytes=max_output_bytes,
            max_workers=max_workers,
            max_queue_depth=max_queue_depth,
            toolchain=toolchain,
            log_level=os.getenv("CODERUN_LOG_LEVEL", "INFO"),
            port=port,
        )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        It exists to provide a more intuitive name when consumed in
        application code.
        """
        return cls.load()
