"""Tests for per-execution temporary workspaces."""

from __future__ import annotations

import os

import pytest

from coderun.workspace import WORKSPACE_PREFIX, TempWorkspace


def test_acquire_creates_private_directory(tmp_path):
    workspace = TempWorkspace.acquire(tmp_path, extension=".py")
    try:
        assert workspace.root_dir.parent == tmp_path
        assert workspace.root_dir.name.startswith(WORKSPACE_PREFIX)
        assert workspace.root_dir.is_dir()
        assert oct(workspace.root_dir.stat().st_mode & 0o777) == oct(0o700)
        assert workspace.source_file.suffix == ".py"
        assert workspace.token in workspace.source_file.name
        assert workspace.token in workspace.input_file.name
        assert workspace.artifact_file is None
    finally:
        workspace.release()


def test_paths_are_unique_between_workspaces(tmp_path):
    first = TempWorkspace.acquire(tmp_path, with_artifact=True)
    second = TempWorkspace.acquire(tmp_path, with_artifact=True)
    try:
        assert first.root_dir != second.root_dir
        assert first.token != second.token
        assert first.artifact_file != second.artifact_file
    finally:
        first.release()
        second.release()


def test_release_removes_everything(tmp_path):
    workspace = TempWorkspace.acquire(tmp_path)
    workspace.write_source("print('hi')")
    workspace.write_input("5")
    nested = workspace.root_dir / "a" / "b"
    nested.mkdir(parents=True)
    (nested / "data.txt").write_text("x")
    workspace.release()
    assert workspace.released
    assert os.listdir(tmp_path) == []


def test_release_is_idempotent_and_tolerates_missing_files(tmp_path):
    workspace = TempWorkspace.acquire(tmp_path)
    workspace.write_source("code")
    workspace.source_file.unlink()
    workspace.release()
    workspace.release()
    assert os.listdir(tmp_path) == []


def test_release_after_root_already_removed(tmp_path):
    workspace = TempWorkspace.acquire(tmp_path)
    workspace.root_dir.rmdir()
    workspace.release()
    assert workspace.released


def test_context_manager_releases_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with TempWorkspace.acquire(tmp_path) as workspace:
            workspace.write_input("data")
            raise RuntimeError("boom")
    assert os.listdir(tmp_path) == []


def test_acquire_creates_missing_scratch_dir(tmp_path):
    scratch = tmp_path / "scratch" / "nested"
    with TempWorkspace.acquire(scratch) as workspace:
        assert workspace.root_dir.parent == scratch
    assert os.listdir(scratch) == []
