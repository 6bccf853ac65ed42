"""
Tests for the language runners.

Runners for languages whose toolchain is missing on the test host are
skipped.  The Python runner always uses the interpreter running the tests.
"""

from __future__ import annotations

import os
import shutil
import signal
import sys
import threading
import time

import pytest

from coderun.config import Tool
from coderun.executor import (
    NO_OUTPUT,
    BashRunner,
    CompiledRunner,
    CppRunner,
    CRunner,
    ErrorKind,
    JavaScriptRunner,
    Language,
    PythonRunner,
)

requires_gxx = pytest.mark.skipif(shutil.which("g++") is None, reason="g++ not installed")
requires_gcc = pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed")
requires_bash = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="node not installed")

CPP_ECHO = """
#include <iostream>
#include <string>
int main() {
    std::string line;
    std::getline(std::cin, line);
    std::cout << "got " << line << std::endl;
    return 0;
}
"""


@pytest.fixture
def scratch(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def python_runner(scratch):
    return PythonRunner(Tool("python3", sys.executable), timeout=10, scratch_dir=scratch)


def test_python_echoes_stdin(python_runner, scratch):
    result = python_runner.run("x = input()\nprint(f'got {x}')", "5")
    assert result.success
    assert result.error_kind is ErrorKind.NONE
    assert result.output.strip() == "got 5"
    assert result.language == "python"
    assert result.exit_code == 0
    assert os.listdir(scratch) == []


def test_python_runtime_error(python_runner, scratch):
    result = python_runner.run("print('before')\nraise ValueError('boom')")
    assert not result.success
    assert result.error_kind is ErrorKind.RUNTIME_ERROR
    assert "ValueError: boom" in result.output
    # unbuffered output keeps the print ahead of the traceback
    assert result.output.index("before") < result.output.index("Traceback")
    assert os.listdir(scratch) == []


def test_python_silent_exit_code_is_described(python_runner):
    result = python_runner.run("import sys\nsys.exit(4)")
    assert result.error_kind is ErrorKind.RUNTIME_ERROR
    assert result.output == "Process exited with status 4."


def test_python_no_output_sentinel(python_runner):
    result = python_runner.run("x = 1 + 1")
    assert result.success
    assert result.output == NO_OUTPUT


def test_python_timeout(scratch):
    runner = PythonRunner(Tool("python3", sys.executable), timeout=1, scratch_dir=scratch)
    start = time.monotonic()
    result = runner.run("print('spinning', flush=True)\nwhile True:\n    pass")
    assert time.monotonic() - start < 6
    assert result.error_kind is ErrorKind.TIMEOUT
    assert not result.success
    assert "spinning" in result.output
    assert result.output.endswith("Execution timed out after 1 seconds.")
    assert os.listdir(scratch) == []


def test_python_cancelled_before_start(python_runner, scratch):
    cancel = threading.Event()
    cancel.set()
    result = python_runner.run("print('never')", cancel=cancel)
    assert result.error_kind is ErrorKind.INTERNAL_ERROR
    assert "cancelled" in result.output
    assert os.listdir(scratch) == []


def test_missing_toolchain_is_internal_error(scratch):
    runner = PythonRunner(Tool("python-does-not-exist", None), scratch_dir=scratch)
    result = runner.run("print(1)")
    assert result.error_kind is ErrorKind.INTERNAL_ERROR
    assert "python-does-not-exist" in result.output
    assert os.listdir(scratch) == []


def test_vanished_toolchain_is_internal_error(scratch):
    runner = PythonRunner(Tool("python3", str(scratch.parent / "gone" / "python3")), scratch_dir=scratch)
    result = runner.run("print(1)")
    assert result.error_kind is ErrorKind.INTERNAL_ERROR
    assert result.output.startswith("Failed to start")
    assert os.listdir(scratch) == []


def test_unwritable_scratch_is_internal_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    runner = PythonRunner(Tool("python3", sys.executable), scratch_dir=blocker / "sub")
    result = runner.run("print(1)")
    assert result.error_kind is ErrorKind.INTERNAL_ERROR
    assert "workspace" in result.output


def test_describe(python_runner):
    assert python_runner.describe() == {
        "language": "python",
        "name": "Python",
        "extension": ".py",
        "kind": "interpreted",
        "available": True,
    }


@requires_gxx
def test_cpp_echoes_stdin(scratch):
    runner = CppRunner(Tool.resolve("g++"), scratch_dir=scratch)
    result = runner.run(CPP_ECHO, "5")
    assert result.success, result.output
    assert "5" in result.output
    assert os.listdir(scratch) == []


@requires_gxx
def test_cpp_compile_error_leaves_no_artifact(scratch):
    runner = CppRunner(Tool.resolve("g++"), scratch_dir=scratch)
    result = runner.run("int main() { this is not c++; }", "")
    assert not result.success
    assert result.error_kind is ErrorKind.COMPILE_ERROR
    assert "error" in result.output
    assert os.listdir(scratch) == []


@requires_gxx
def test_cpp_runtime_error(scratch):
    runner = CppRunner(Tool.resolve("g++"), scratch_dir=scratch)
    result = runner.run("int main() { return 3; }", "")
    assert result.error_kind is ErrorKind.RUNTIME_ERROR
    assert result.exit_code == 3
    assert result.output == "Process exited with status 3."


@requires_gxx
def test_cpp_timeout(scratch):
    runner = CppRunner(Tool.resolve("g++"), timeout=1, scratch_dir=scratch)
    result = runner.run("int main() { volatile int x = 0; for (;;) { x++; } }", "")
    assert result.error_kind is ErrorKind.TIMEOUT
    assert os.listdir(scratch) == []


@requires_gxx
def test_cpp_no_output_sentinel(scratch):
    runner = CppRunner(Tool.resolve("g++"), scratch_dir=scratch)
    result = runner.run("int main() { return 0; }", "")
    assert result.success
    assert result.output == NO_OUTPUT


@requires_gcc
def test_c_uses_math_library(scratch):
    runner = CRunner(Tool.resolve("gcc"), scratch_dir=scratch)
    code = '#include <stdio.h>\n#include <math.h>\nint main(void) { double x; scanf("%lf", &x); printf("%.1f\\n", sqrt(x)); return 0; }\n'
    result = runner.run(code, "16")
    assert result.success, result.output
    assert result.output.strip() == "4.0"


@requires_bash
def test_bash_reads_stdin(scratch):
    runner = BashRunner(Tool.resolve("bash"), scratch_dir=scratch)
    result = runner.run('read name\necho "hello $name"\n', "world")
    assert result.success
    assert result.output.strip() == "hello world"


@requires_bash
def test_bash_timeout_kills_background_children(scratch):
    runner = BashRunner(Tool.resolve("bash"), timeout=1, scratch_dir=scratch)
    result = runner.run("sleep 30 &\nsleep 30\n", "")
    assert result.error_kind is ErrorKind.TIMEOUT
    assert os.listdir(scratch) == []


@requires_bash
def test_bash_background_child_does_not_outlive_run(scratch, tmp_path, process_gone):
    pid_file = tmp_path / "sleep.pid"
    runner = BashRunner(Tool.resolve("bash"), scratch_dir=scratch)
    result = runner.run(f"sleep 300 &\necho $! > {pid_file}\necho done\n", "")
    assert result.success
    assert result.output.strip() == "done"
    assert process_gone(int(pid_file.read_text()))
    assert os.listdir(scratch) == []


@requires_node
def test_javascript_runs(scratch):
    runner = JavaScriptRunner(Tool.resolve("node"), scratch_dir=scratch)
    assert runner.limits.max_memory_mb is None
    result = runner.run("console.log(6 * 7);", "")
    assert result.success, result.output
    assert result.output.strip() == "42"


class FakeCompiledRunner(CompiledRunner):
    language = Language.CPP
    display_name = "Fake"
    extension = ".src"
    compile_flags = []


FAKE_COMPILER = """
import os, signal, sys, time

source, artifact = sys.argv[1], sys.argv[3]
mode = open(source).read().strip()
if mode == "silent-ok":
    print("fine")
    sys.exit(0)
if mode == "artifact-but-fails":
    with open(artifact, "w") as out:
        out.write("#!/bin/sh\\necho built\\n")
    os.chmod(artifact, 0o755)
    print("warning: treated as error")
    sys.exit(1)
if mode == "crash":
    os.kill(os.getpid(), signal.SIGSEGV)
if mode == "hang":
    time.sleep(60)
"""


@pytest.fixture
def fake_compiler(tmp_path):
    """A compiler whose behaviour is chosen by the source text."""
    script = tmp_path / "fake_cc.py"
    script.write_text(FAKE_COMPILER, encoding="utf-8")
    wrapper = tmp_path / "fake-cc"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8")
    wrapper.chmod(0o755)
    return Tool("fake-cc", str(wrapper))


def test_compiler_exit_zero_without_artifact_is_compile_error(fake_compiler, scratch):
    runner = FakeCompiledRunner(fake_compiler, scratch_dir=scratch)
    result = runner.run("silent-ok", "")
    assert result.error_kind is ErrorKind.COMPILE_ERROR
    assert result.output.strip() == "fine"
    assert result.exit_code == 0
    assert os.listdir(scratch) == []


def test_compiler_failure_with_artifact_still_runs(fake_compiler, scratch):
    runner = FakeCompiledRunner(fake_compiler, scratch_dir=scratch)
    result = runner.run("artifact-but-fails", "")
    assert result.success, result.output
    assert result.output.strip() == "built"
    assert os.listdir(scratch) == []


def test_compiler_crash_is_compile_error(fake_compiler, scratch):
    runner = FakeCompiledRunner(fake_compiler, scratch_dir=scratch)
    result = runner.run("crash", "")
    assert result.error_kind is ErrorKind.COMPILE_ERROR
    assert result.output == f"Compilation failed with exit status {-signal.SIGSEGV}."
    assert os.listdir(scratch) == []


def test_compile_timeout(fake_compiler, scratch):
    runner = FakeCompiledRunner(fake_compiler, scratch_dir=scratch, compile_timeout=1)
    start = time.monotonic()
    result = runner.run("hang", "")
    assert time.monotonic() - start < 6
    assert result.error_kind is ErrorKind.TIMEOUT
    assert result.output == "Compilation timed out after 1 seconds."
    assert os.listdir(scratch) == []
