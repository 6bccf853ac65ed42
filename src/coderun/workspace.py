"""Temporary workspaces for single executions.

Every execution gets a private directory under the scratch area holding the
source file, the stdin file, the output capture file and, for compiled
languages, the build artifact.  File names embed a random token so that
paths never collide between concurrent executions, even when several
workspaces share one scratch directory.

A workspace is removed by :meth:`TempWorkspace.release`, which is idempotent
and tolerates files that have already disappeared.  Use the workspace as a
context manager so it is released on every exit path.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "coderun-"


class TempWorkspace:
    """Files for one execution, owned exclusively by that execution."""

    def __init__(self, root_dir: Path, token: str, extension: str, with_artifact: bool) -> None:
        self.root_dir = root_dir
        self.token = token
        self.source_file = root_dir / f"main_{token}{extension}"
        self.input_file = root_dir / f"input_{token}.txt"
        self.output_file = root_dir / f"output_{token}.txt"
        self.artifact_file: Optional[Path] = root_dir / f"main_{token}" if with_artifact else None
        self._released = False

    @classmethod
    def acquire(
        cls,
        base_dir: str | Path | None = None,
        extension: str = ".txt",
        with_artifact: bool = False,
    ) -> "TempWorkspace":
        """Create a fresh private directory under ``base_dir``.

        Raises ``OSError`` when the scratch area is not writable.
        """
        if base_dir is not None:
            Path(base_dir).mkdir(parents=True, exist_ok=True)
        # mkdtemp creates the directory with mode 0700
        root_dir = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=base_dir))
        workspace = cls(root_dir, uuid.uuid4().hex, extension, with_artifact)
        logger.debug("Acquired workspace %s", root_dir)
        return workspace

    @property
    def released(self) -> bool:
        return self._released

    def write_source(self, code: str) -> Path:
        self.source_file.write_text(code, encoding="utf-8")
        return self.source_file

    def write_input(self, text: str) -> Path:
        self.input_file.write_text(text, encoding="utf-8")
        return self.input_file

    def release(self) -> None:
        """Delete every file and directory below the workspace root."""
        if self._released:
            return
        self._released = True
        if not self.root_dir.exists():
            return
        # Children sort after their parents, so reverse order empties
        # directories before removing them.
        for path in sorted(self.root_dir.rglob("*"), reverse=True):
            if path.is_dir() and not path.is_symlink():
                try:
                    path.rmdir()
                except FileNotFoundError:
                    pass
            else:
                path.unlink(missing_ok=True)
        try:
            self.root_dir.rmdir()
        except FileNotFoundError:
            pass
        logger.debug("Released workspace %s", self.root_dir)

    def __enter__(self) -> "TempWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
