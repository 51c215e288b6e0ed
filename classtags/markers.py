"""Declaring tags on classes.

A tag is a class marked with ``@tag``. A class carries a tag when it is
decorated with ``@tagged(SomeTag)`` or when any of its base classes is a
tag::

    @tag
    class Plugin:
        pass

    class CsvExporter(Plugin):          # tagged with Plugin
        pass

    @tagged(Plugin, "myapp.Exported")   # explicit tags
    class JsonExporter:
        pass
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

TAG_MARKER = "__classtag__"
TAGS_ATTRIBUTE = "__classtags__"


def qualified_name(obj: Any) -> str:
    """Return the importable dotted name of a class or function."""
    return f"{obj.__module__}.{obj.__qualname__}"


def tag(cls: type) -> type:
    """Mark a class as a tag.

    The marker lives in the class's own namespace, so subclasses of a tag
    are tagged by it but are not tags themselves.
    """
    setattr(cls, TAG_MARKER, True)
    return cls


def tagged(*tags: type | str):
    """Class decorator attaching explicit tags.

    Args:
        *tags: Tag classes, or dotted tag names for tags declared elsewhere.

    Raises:
        ValueError: If a tag name is empty or contains ':' or a line break,
            none of which can be stored in the index.
    """
    for name in tags:
        if isinstance(name, str) and (not name or ":" in name or name.splitlines() != [name]):
            raise ValueError(f"Invalid tag name: {name!r}")

    def decorator(cls: type) -> type:
        existing = list(vars(cls).get(TAGS_ATTRIBUTE, ()))
        setattr(cls, TAGS_ATTRIBUTE, tuple(existing) + tags)
        return cls

    return decorator


def is_tag(cls: Any, external_tags: Iterable[str] = ()) -> bool:
    """True if ``cls`` is marked with ``@tag`` or named in ``external_tags``."""
    if not isinstance(cls, type):
        return False
    if vars(cls).get(TAG_MARKER, False):
        return True
    return qualified_name(cls) in set(external_tags)


def tags_of(cls: type, external_tags: Iterable[str] = ()) -> Optional[set[str]]:
    """Collect the tag names carried by a class.

    Explicit tags come from ``@tagged``; tag classes listed there are kept
    only if they really are tags, while string names are trusted. Every base
    class in the MRO that is a tag contributes its own name.

    Returns:
        The tag names, or None if the class carries no tag.
    """
    external = set(external_tags)
    result: set[str] = set()

    for explicit in vars(cls).get(TAGS_ATTRIBUTE, ()):
        if isinstance(explicit, str):
            result.add(explicit)
        elif is_tag(explicit, external):
            result.add(qualified_name(explicit))

    for base in cls.__mro__[1:]:
        if is_tag(base, external):
            result.add(qualified_name(base))

    return result or None
