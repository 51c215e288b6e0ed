"""Shared fixtures for classtags tests."""

import importlib
import itertools
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

_package_ids = itertools.count()


MARKERS_SOURCE = '''"""Tag declarations."""

from classtags import tag


@tag
class Plugin:
    pass


@tag
class Exported:
    pass


class NotATag:
    pass
'''

PLUGINS_SOURCE = '''"""Tagged classes."""

import abc
from typing import Protocol

from classtags import tagged
from {pkg}.markers import Exported, NotATag, Plugin


class CsvPlugin(Plugin):
    pass


@tagged(Exported)
class JsonPlugin(Plugin):
    class Options(Exported):
        pass


class BasePlugin(Plugin, abc.ABC):
    @abc.abstractmethod
    def run(self):
        raise NotImplementedError


@tagged(Plugin)
class PluginShape(Protocol):
    def run(self):
        ...


class Plain(NotATag):
    pass
'''


@dataclass
class SamplePackage:
    """An importable package with tagged classes on disk."""

    root: Path  # project root
    src: Path  # import root
    name: str  # package name

    def tag(self, name: str) -> str:
        return f"{self.name}.markers.{name}"

    def cls(self, name: str) -> str:
        return f"{self.name}.plugins.{name}"


def _forget(package_name: str) -> None:
    for module_name in list(sys.modules):
        if module_name == package_name or module_name.startswith(package_name + "."):
            del sys.modules[module_name]


@pytest.fixture
def sample_package(tmp_path, monkeypatch):
    """Create an importable package under tmp_path/src."""
    name = f"sample_tags_{next(_package_ids)}"
    src = tmp_path / "src"
    pkg = src / name
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text("")
    (pkg / "markers.py").write_text(MARKERS_SOURCE)
    (pkg / "plugins.py").write_text(PLUGINS_SOURCE.format(pkg=name))

    # Sources are rewritten within one test; stale bytecode must not mask that
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    monkeypatch.syspath_prepend(str(src))
    yield SamplePackage(root=tmp_path, src=src, name=name)
    _forget(name)


@pytest.fixture
def failing_module(sample_package):
    """Add a module to the sample package that raises when imported."""
    (sample_package.src / sample_package.name / "failing.py").write_text(
        'raise RuntimeError("failing at import")\n\n\nclass A:\n    pass\n'
    )
    importlib.invalidate_caches()
    return f"{sample_package.name}.failing"


@pytest.fixture
def write_fragment(tmp_path):
    """Write an index fragment under tmp_path and return its path."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
