"""Resolving entity names to classes."""

from __future__ import annotations

import importlib
import inspect
from typing import Any

from classtags.markers import TAG_MARKER


class EntityNotFound(LookupError):
    """An entity name does not resolve to a loadable class."""

    def __init__(self, entity_name: str, reason: str = "not found"):
        super().__init__(f"{entity_name}: {reason}")
        self.entity_name = entity_name
        self.reason = reason


def resolve_entity(entity_name: str) -> type:
    """Import and return the class named ``entity_name``.

    The longest importable module prefix is imported, then the remaining
    parts are looked up as attributes, so nested classes
    (``pkg.mod.Outer.Inner``) resolve as well.

    Raises:
        EntityNotFound: If no module prefix imports, a module raises while
            importing, an attribute is missing, or the target is not a class.
    """
    parts = entity_name.split(".")
    if not all(parts):
        raise EntityNotFound(entity_name, "invalid name")

    module = None
    index = len(parts)
    while index > 0:
        module_name = ".".join(parts[:index])
        try:
            module = importlib.import_module(module_name)
            break
        except ModuleNotFoundError as e:
            # Only keep walking up when the missing module is the one we asked for
            if e.name is not None and not module_name.startswith(e.name):
                raise EntityNotFound(entity_name, f"import failed: {e}") from e
            index -= 1
        except Exception as e:
            # Module code runs on import and may raise anything
            raise EntityNotFound(entity_name, f"import failed: {e!r}") from e

    if module is None:
        raise EntityNotFound(entity_name, "no importable module")

    target: Any = module
    for attr in parts[index:]:
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise EntityNotFound(entity_name, f"missing attribute {attr!r}") from e

    if not inspect.isclass(target):
        raise EntityNotFound(entity_name, "not a class")

    return target


def is_concrete(cls: type) -> bool:
    """True if the class can be instantiated as-is.

    Abstract classes, ``typing.Protocol`` classes and tag marker classes
    describe a shape rather than an implementation and are excluded.
    """
    if inspect.isabstract(cls):
        return False
    if getattr(cls, "_is_protocol", False):
        return False
    if vars(cls).get(TAG_MARKER, False):
        return False
    return True
