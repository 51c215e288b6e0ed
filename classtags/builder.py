"""Incremental builder for the class tag index.

One builder serves one build. It is seeded from the index written by the
previous build, re-evaluates only the entities presented in each round, and
at the end re-checks every previously known entity that no round touched
before writing the final index::

    builder = IndexBuilder(index_path, config=".classtags.yaml")
    builder.load()
    for names in rounds:
        builder.process_round(names)
    builder.finish()

Untouched entities cannot simply be trusted: the code that grants a tag
(a shared base class, say) may have changed even though the entity's own
source did not.

The builder is not re-entrant and keeps all state on the instance.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from classtags.codec import load_entries, write_entries
from classtags.config import ClassTagsConfig, get_default_config, load_config
from classtags.entry import Entry
from classtags.inspector import TagInspector

logger = logging.getLogger(__name__)

TagsFor = Callable[[str], Optional[set[str]]]
Exists = Callable[[str], bool]


class BuilderState(Enum):
    """Lifecycle of an IndexBuilder."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    SCANNING = "scanning"
    VALIDATING = "validating"
    PERSISTED = "persisted"


class BuilderStateError(RuntimeError):
    """A builder operation was called out of order."""


class IndexBuilder:
    """Maintain the class tag index across incremental build rounds.

    Args:
        index_path: Where the previous index is read and the new one written.
        tags_for: Returns the tag names of an entity, or None if untagged.
        exists: Returns False if the entity no longer exists at all.
        config: A loaded configuration, or the path of a config file read
            by ``load()``. When ``tags_for`` or ``exists`` is omitted, a
            TagInspector using the configured external tags fills in.
    """

    def __init__(
        self,
        index_path: Path | str,
        tags_for: Optional[TagsFor] = None,
        exists: Optional[Exists] = None,
        config: ClassTagsConfig | Path | str | None = None,
    ):
        self.index_path = Path(index_path)
        self.tags_for = tags_for
        self.exists = exists
        self.config = config
        self.failed: list[str] = []
        self._state = BuilderState.UNINITIALIZED
        self._index: dict[str, set[Entry]] = {}
        self._to_validate: set[str] = set()

    @property
    def state(self) -> BuilderState:
        return self._state

    def _require(self, *states: BuilderState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise BuilderStateError(
                f"Builder is {self._state.value}, expected one of: {allowed}"
            )

    def load(self) -> IndexBuilder:
        """Seed the working index from the previously written index.

        The configuration is read first. A missing index starts an empty
        build. An unreadable one is logged and also treated as empty: a full
        rescan recovers it.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        self._require(BuilderState.UNINITIALIZED)

        if not isinstance(self.config, ClassTagsConfig):
            self.config = load_config(self.config) if self.config is not None else get_default_config()
        if self.config.external_tags:
            logger.debug(f"External tags: {sorted(self.config.external_tags)}")

        if self.tags_for is None or self.exists is None:
            inspector = TagInspector(self.config.external_tags)
            self.tags_for = self.tags_for or inspector.tags_for
            self.exists = self.exists or inspector.exists

        try:
            entries = load_entries(self.index_path)
            logger.info(f"Incremental build: {len(entries)} entries loaded from {self.index_path}")
        except FileNotFoundError:
            logger.info(f"No previous index at {self.index_path}")
            entries = set()
        except OSError as e:
            logger.error(f"Could not read previous index {self.index_path}: {e}")
            entries = set()

        self._index = {}
        for entry in entries:
            self._index.setdefault(entry.entity_name, set()).add(entry)
        self._to_validate = set(self._index)
        self._state = BuilderState.LOADED
        return self

    def _check_entity(self, entity_name: str) -> None:
        tag_names = self.tags_for(entity_name)
        known = entity_name in self._index

        if tag_names:
            if known:
                logger.debug(f"Updating tagged entity: {entity_name}")
            else:
                logger.debug(f"Found a new tagged entity: {entity_name}")
            self._index[entity_name] = {Entry(entity_name, t) for t in tag_names}
        elif known:
            logger.debug(f"Entity is no longer tagged: {entity_name}")
            del self._index[entity_name]

        self._to_validate.discard(entity_name)

    def process_round(self, entity_names: Iterable[str]) -> None:
        """Re-evaluate the entities compiled in one round."""
        self._require(BuilderState.LOADED, BuilderState.SCANNING)
        self._state = BuilderState.SCANNING

        count = 0
        for entity_name in entity_names:
            self._check_entity(entity_name)
            count += 1
        logger.debug(f"Round processed {count} entities")

    def _validate(self) -> None:
        if not self._to_validate:
            return

        logger.info(f"Validating {len(self._to_validate)} entities not seen in this build")
        for entity_name in sorted(self._to_validate):
            try:
                if not self.exists(entity_name):
                    logger.debug(f"Entity not found: {entity_name}")
                    self._index.pop(entity_name, None)
                    self._to_validate.discard(entity_name)
                else:
                    self._check_entity(entity_name)
            except Exception:
                logger.exception(f"Error validating entity: {entity_name}")
                self.failed.append(entity_name)

    def finish(self) -> set[Entry]:
        """Validate untouched entities and write the final index.

        Returns:
            The entries written.

        Raises:
            OSError: If the index cannot be written.
        """
        self._require(BuilderState.LOADED, BuilderState.SCANNING)
        self._state = BuilderState.VALIDATING

        self._validate()

        final = self.entries()
        write_entries(final, self.index_path)
        self._state = BuilderState.PERSISTED
        logger.info(f"Wrote {len(final)} entries to {self.index_path}")
        return final

    def entries(self) -> set[Entry]:
        """Snapshot of the working index as a flat entry set."""
        result: set[Entry] = set()
        for entity_entries in self._index.values():
            result.update(entity_entries)
        return result
