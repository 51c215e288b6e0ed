"""Query interface over the merged class tag index."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from classtags.codec import EntryFilter, load_entries
from classtags.entry import Entry, EntityTags
from classtags.locator import FragmentLocator, list_fragments
from classtags.markers import qualified_name
from classtags.resolver import EntityNotFound, is_concrete, resolve_entity

logger = logging.getLogger(__name__)

EntityFilter = Callable[[EntityTags], bool]
ErrorSink = Callable[[EntityNotFound], Any]


def _tag_name(tag: type | str) -> str:
    return tag if isinstance(tag, str) else qualified_name(tag)


class TagQuery:
    """Merge every visible index fragment and filter the result.

    Fragments are reloaded on each call, so a query object holds no state
    besides its settings and can be reused after fragments change.

    Args:
        roots: Directories searched for fragments (``sys.path`` if None).
        locator: Callable listing fragment paths for ``roots``.
        resolver: Callable turning an entity name into a class; must raise
            ``EntityNotFound`` on failure.
    """

    def __init__(
        self,
        roots: Optional[Iterable[str | Path]] = None,
        locator: FragmentLocator = list_fragments,
        resolver: Callable[[str], type] = resolve_entity,
    ):
        self.roots = list(roots) if roots is not None else None
        self.locator = locator
        self.resolver = resolver
        self.resources: list[Path] = []
        self.entry_filter: Optional[EntryFilter] = None
        self.entity_filter: Optional[EntityFilter] = None
        self.error_sink: Optional[ErrorSink] = None

    def resource(self, path: Path | str) -> TagQuery:
        """Add a fragment to read besides those the locator finds."""
        self.resources.append(Path(path))
        return self

    def filter_entries(self, predicate: EntryFilter) -> TagQuery:
        """Keep only entries accepted by ``predicate`` while loading.

        Use this to avoid materializing entries for tags you don't need.
        """
        existing = self.entry_filter
        if existing is None:
            self.entry_filter = predicate
        else:
            self.entry_filter = lambda e: existing(e) and predicate(e)
        return self

    def filter(self, predicate: EntityFilter | type | str) -> TagQuery:
        """Keep only entities accepted by ``predicate`` after grouping.

        Filters that need an entity's whole tag set (has A and not B) belong
        here. A tag class or tag name is shorthand for "has this tag".
        """
        if isinstance(predicate, (str, type)):
            name = _tag_name(predicate)

            def check(tags: EntityTags) -> bool:
                return tags.contains_tag(name)

        else:
            check = predicate

        existing = self.entity_filter
        if existing is None:
            self.entity_filter = check
        else:
            self.entity_filter = lambda t: existing(t) and check(t)
        return self

    def on_not_found(self, sink: ErrorSink) -> TagQuery:
        """Report entities that fail to resolve to ``sink``."""
        self.error_sink = sink
        return self

    def _load_entries(self) -> set[Entry]:
        fragments = list(self.locator(self.roots)) + self.resources
        entries: set[Entry] = set()
        for fragment in fragments:
            load_entries(fragment, into=entries, entry_filter=self.entry_filter)
        logger.debug(f"Loaded {len(entries)} entries from {len(fragments)} fragments")
        return entries

    def map_tags_by_entity(self) -> dict[str, EntityTags]:
        """Load, group and filter the index.

        Raises:
            OSError: If a fragment cannot be read.
        """
        result: dict[str, EntityTags] = {}
        for entry in self._load_entries():
            entity = result.get(entry.entity_name)
            if entity is None:
                entity = EntityTags(entry.entity_name)
                result[entry.entity_name] = entity
            entity.tags.add(entry.tag_name)

        if self.entity_filter is not None:
            result = {
                name: tags for name, tags in result.items() if self.entity_filter(tags)
            }

        return result

    def list_entity_tags(self) -> list[EntityTags]:
        """Grouped entities sorted by name."""
        mapping = self.map_tags_by_entity()
        return [mapping[name] for name in sorted(mapping)]

    def list_entity_names(self) -> list[str]:
        """Entity names, sorted."""
        return sorted(self.map_tags_by_entity())

    def _resolve_all(self) -> list[type]:
        result = []
        for name in self.list_entity_names():
            try:
                result.append(self.resolver(name))
            except EntityNotFound as e:
                logger.debug(f"Could not resolve {name}: {e.reason}")
                if self.error_sink is not None:
                    self.error_sink(e)
        return result

    def list_entities(self) -> list[type]:
        """Classes that match the query and load without error."""
        return self._resolve_all()

    def list_concrete_entities(self) -> list[type]:
        """Concrete classes that match the query and load without error."""
        return [cls for cls in self._resolve_all() if is_concrete(cls)]


def query(roots: Optional[Iterable[str | Path]] = None) -> TagQuery:
    """Start a new query."""
    return TagQuery(roots=roots)


def _by_tag(tag: type | str, roots: Optional[Iterable[str | Path]]) -> TagQuery:
    name = _tag_name(tag)
    return TagQuery(roots=roots).filter_entries(lambda e: e.tag_name == name)


def list_names_by_tag(
    tag: type | str, roots: Optional[Iterable[str | Path]] = None
) -> list[str]:
    """Names of all entities carrying ``tag``."""
    return _by_tag(tag, roots).list_entity_names()


def list_by_tag(tag: type | str, roots: Optional[Iterable[str | Path]] = None) -> list[type]:
    """All classes carrying ``tag``, including abstract ones."""
    return _by_tag(tag, roots).list_entities()


def list_concrete_by_tag(
    tag: type | str, roots: Optional[Iterable[str | Path]] = None
) -> list[type]:
    """Concrete classes carrying ``tag``."""
    return _by_tag(tag, roots).list_concrete_entities()
