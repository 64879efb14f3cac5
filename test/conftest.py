"""Shared fixtures for climark tests."""

import os
import sys
import textwrap

import pytest

from program import ProcessEnvironment, Program
from render import Renderer, RenderOptions
from utils import terminal_ui


@pytest.fixture(autouse=True)
def quiet_terminal():
    """Keep rendering status lines out of test output."""
    terminal_ui.set_quiet(True)
    yield
    terminal_ui.set_quiet(False)


@pytest.fixture
def environment(tmp_path):
    """A fixed environment that does not depend on the caller's shell."""
    return ProcessEnvironment(
        variables={"PATH": os.pathsep.join(["/usr/bin", "/bin"]), "LANG": "C.UTF-8"},
        cwd=str(tmp_path),
    )


@pytest.fixture
def write_file(tmp_path):
    """Write dedented text below tmp_path, creating parent directories."""

    def _write(relative: str, content: str):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


def python_program(name: str, code: str, **kwargs) -> Program:
    """A program running a Python snippet with the test interpreter."""
    return Program(name=name, path=sys.executable, raw_flags=["-c", code], **kwargs)


@pytest.fixture
def echo_program():
    return Program.from_dict(
        {
            "name": "echo",
            "path": "/bin/echo",
            "args": [{"name": "msg", "type": "string", "value": "hi"}],
        }
    )


@pytest.fixture
def make_renderer(environment):
    """Build a Renderer over the hermetic environment."""

    def _make(programs=None, **options):
        options.setdefault("verbose", False)
        return Renderer(RenderOptions(programs=programs or {}, **options), environment)

    return _make
