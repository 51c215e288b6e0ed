"""Value types for the class tag index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from classtags.markers import qualified_name

FIELD_SEPARATOR = ":"


@dataclass(frozen=True, order=True)
class Entry:
    """A single (entity, tag) fact in the index."""

    entity_name: str
    tag_name: str

    def __post_init__(self) -> None:
        for field_name in ("entity_name", "tag_name"):
            value = getattr(self, field_name)
            if not value:
                raise ValueError(f"{field_name} must not be empty")
            # Either would split the persisted line
            if FIELD_SEPARATOR in value or value.splitlines() != [value]:
                raise ValueError(f"{field_name} must not contain ':' or line breaks: {value!r}")

    def __str__(self) -> str:
        return f"{self.entity_name}:{self.tag_name}"


@dataclass
class EntityTags:
    """All the tags found on a single entity after merging fragments."""

    entity_name: str
    tags: set[str] = field(default_factory=set)

    def contains_tag(self, tag: Optional[Any]) -> bool:
        """True if the entity carries the tag.

        Args:
            tag: A tag name, or the tag class itself.
        """
        if tag is None:
            return False
        if isinstance(tag, str):
            return tag in self.tags
        return qualified_name(tag) in self.tags

    def __str__(self) -> str:
        return f"{self.entity_name}:{sorted(self.tags)}"
