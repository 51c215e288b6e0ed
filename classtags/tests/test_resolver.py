"""Tests for entity resolution."""

import abc
import importlib
from typing import Protocol

import pytest

from classtags.markers import tag
from classtags.resolver import EntityNotFound, is_concrete, resolve_entity


class TestResolveEntity:
    """Tests for resolve_entity."""

    def test_top_level_class(self, sample_package):
        """A module-level class resolves."""
        cls = resolve_entity(sample_package.cls("CsvPlugin"))

        assert cls.__name__ == "CsvPlugin"

    def test_nested_class(self, sample_package):
        """Nested classes resolve through attribute lookup."""
        cls = resolve_entity(sample_package.cls("JsonPlugin.Options"))

        assert cls.__qualname__ == "JsonPlugin.Options"

    def test_stdlib_class(self):
        """Any importable class resolves."""
        from collections import OrderedDict

        assert resolve_entity("collections.OrderedDict") is OrderedDict

    def test_missing_class(self, sample_package):
        """A missing attribute raises EntityNotFound."""
        with pytest.raises(EntityNotFound) as exc_info:
            resolve_entity(sample_package.cls("Removed"))

        assert exc_info.value.entity_name == sample_package.cls("Removed")

    def test_missing_module(self):
        """A name with no importable prefix raises EntityNotFound."""
        with pytest.raises(EntityNotFound):
            resolve_entity("no_such_package_xyz.Thing")

    def test_not_a_class(self):
        """Functions and modules are not entities."""
        with pytest.raises(EntityNotFound):
            resolve_entity("os.path.join")
        with pytest.raises(EntityNotFound):
            resolve_entity("os.path")

    def test_invalid_name(self):
        """Names with empty parts are rejected."""
        with pytest.raises(EntityNotFound):
            resolve_entity("pkg..Thing")

    def test_broken_module_import(self, sample_package):
        """A module whose own imports fail is reported, not raised raw."""
        pkg_dir = sample_package.src / sample_package.name
        (pkg_dir / "broken.py").write_text("import no_such_dependency_xyz\n\nclass A:\n    pass\n")
        importlib.invalidate_caches()

        with pytest.raises(EntityNotFound) as exc_info:
            resolve_entity(f"{sample_package.name}.broken.A")

        assert "import failed" in exc_info.value.reason

    def test_module_raising_on_import(self, failing_module):
        """Any exception raised by module code becomes EntityNotFound."""
        with pytest.raises(EntityNotFound) as exc_info:
            resolve_entity(f"{failing_module}.A")

        assert "failing at import" in exc_info.value.reason
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_syntax_error_in_module(self, sample_package):
        """A module that no longer parses is reported like a missing one."""
        pkg_dir = sample_package.src / sample_package.name
        (pkg_dir / "halfway.py").write_text("class A(:\n    pass\n")
        importlib.invalidate_caches()

        with pytest.raises(EntityNotFound):
            resolve_entity(f"{sample_package.name}.halfway.A")

    def test_is_lookup_error(self):
        """Callers can catch resolution failures as LookupError."""
        assert issubclass(EntityNotFound, LookupError)


class TestIsConcrete:
    """Tests for is_concrete."""

    def test_plain_class(self):
        """Ordinary classes are concrete."""

        class Plain:
            pass

        assert is_concrete(Plain)

    def test_abstract_class(self):
        """Classes with abstract methods are not concrete."""

        class Base(abc.ABC):
            @abc.abstractmethod
            def run(self):
                raise NotImplementedError

        class Impl(Base):
            def run(self):
                return 1

        assert not is_concrete(Base)
        assert is_concrete(Impl)

    def test_protocol(self):
        """Protocol classes describe a shape, not an implementation."""

        class Shape(Protocol):
            def area(self) -> float:
                ...

        class Square(Shape):
            def area(self) -> float:
                return 1.0

        assert not is_concrete(Shape)
        assert is_concrete(Square)

    def test_tag_marker(self):
        """Tag classes themselves are not concrete, their subclasses are."""

        @tag
        class Marker:
            pass

        class Impl(Marker):
            pass

        assert not is_concrete(Marker)
        assert is_concrete(Impl)
