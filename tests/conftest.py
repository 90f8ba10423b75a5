# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
from __future__ import annotations

import ast
import copy as stdlib_copy
import inspect
import marshal
import os
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from _pytest.assertion.rewrite import rewrite_asserts

import replica
from datamodelzoo import CASES

if TYPE_CHECKING:
    from types import FunctionType


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--memory",
        action="store_true",
        default=False,
        help="Run memory leak tests (slow)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "memory: mark test as memory leak test (opt-in)")
    config.addinivalue_line(
        "markers",
        "subprocess(environ=None): run the body of the test in a fresh Python subprocess",
    )


def pytest_collection_modifyitems(config, items):
    """Skip memory tests unless --memory flag is provided."""
    if not config.getoption("--memory"):
        skip_memory = pytest.mark.skip(reason="need --memory option to run")
        for item in items:
            if "memory" in item.keywords:
                item.add_marker(skip_memory)


CASE_PARAMS = [case.as_pytest_param() for case in CASES]


class CopyModule:  # just for typing
    Error = replica.Error
    deepcopy = staticmethod(replica.deepcopy)


@pytest.fixture(
    params=[
        pytest.param(stdlib_copy, id="stdlib"),
        pytest.param(replica, id="replica"),
    ]
)
def copy(request) -> CopyModule:
    return request.param


@pytest.fixture
def replica_patch_enabled():
    import replica.patch

    replica.patch.enable()
    try:
        yield
    finally:
        replica.patch.disable()


def _get_function_body_source_and_first_lineno(function: FunctionType) -> tuple[str, int]:
    """Return the dedented body of ``function`` and the line its body starts on."""
    source_lines, start_lineno = inspect.getsourcelines(function)

    for offset, line in enumerate(source_lines):
        if line.lstrip().startswith("def "):
            body_lines = source_lines[offset + 1 :]
            return textwrap.dedent("".join(body_lines)), start_lineno + offset + 1

    raise RuntimeError(f"Could not find the body of {function.__qualname__}")


def _ensure_subprocess_safe_function(func: FunctionType) -> None:
    """Subprocess bodies can take no arguments and close over nothing."""
    code = func.__code__
    if code.co_argcount or code.co_kwonlyargcount or code.co_posonlyargcount:
        raise RuntimeError(
            f"@pytest.mark.subprocess function {func.__qualname__} must not accept any arguments"
        )
    if code.co_freevars:
        raise RuntimeError(
            f"@pytest.mark.subprocess function {func.__qualname__} must not close over"
            f" outer-scope variables (freevars={code.co_freevars!r})"
        )


def _compile_rewritten_subprocess_body(body_source: str, original_path: str, body_first_lineno: int):
    # pad so that line numbers in tracebacks match the test file
    padded_source = ("\n" * (body_first_lineno - 1)) + body_source.lstrip("\n")
    tree = ast.parse(padded_source, filename=original_path)
    rewrite_asserts(tree, padded_source.encode("utf-8"), original_path)
    return compile(tree, original_path, "exec")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Run the body of tests marked with @pytest.mark.subprocess in a fresh interpreter."""
    mark = pyfuncitem.get_closest_marker("subprocess")
    if mark is None:
        return None

    func: FunctionType = pyfuncitem.obj
    _ensure_subprocess_safe_function(func)

    body_source, body_first_lineno = _get_function_body_source_and_first_lineno(func)
    original_path = str(Path(pyfuncitem.path).resolve())
    code = _compile_rewritten_subprocess_body(body_source, original_path, body_first_lineno)

    tmp_path = pyfuncitem._request.getfixturevalue("tmp_path")
    runner_file = tmp_path / f"{pyfuncitem.name}_subprocess_runner.py"
    runner_file.write_text(
        "import marshal\n"
        f"exec(marshal.loads({marshal.dumps(code)!r}), {{'__name__': '__main__'}})\n"
    )

    env = dict(os.environ)
    for key, value in (mark.kwargs.get("environ") or {}).items():
        if value is None:
            env.pop(key, None)
        else:
            env[key] = value

    proc = subprocess.run(
        [sys.executable, str(runner_file)],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
    )
    if proc.returncode != 0:
        pytest.fail(
            f"subprocess run failed with non-zero exit code {proc.returncode}:\n\n"
            f"{proc.stdout}{proc.stderr}",
            pytrace=False,
        )

    # We handled execution ourselves; pytest must not call the test function again.
    return True
