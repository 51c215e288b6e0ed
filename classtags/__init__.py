"""Class tags - build-time index of tagged Python classes.

This package provides tools for:
- Declaring tags on classes (``@tag``, ``@tagged``)
- Building a per-project tag index incrementally
- Merging every index visible on the import path and querying it

Usage:
    python -m classtags build                  # Build or update the index
    python -m classtags query --tag myapp.Plugin
    python -m classtags status
"""

from classtags.entry import Entry, EntityTags
from classtags.markers import tag, tagged, tags_of
from classtags.query import (
    TagQuery,
    query,
    list_names_by_tag,
    list_by_tag,
    list_concrete_by_tag,
)
from classtags.resolver import EntityNotFound

__version__ = "1.0.0"

__all__ = [
    "Entry",
    "EntityTags",
    "EntityNotFound",
    "TagQuery",
    "list_by_tag",
    "list_concrete_by_tag",
    "list_names_by_tag",
    "query",
    "tag",
    "tagged",
    "tags_of",
]
