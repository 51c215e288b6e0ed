"""Runtime tag detection for the index builder."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from classtags.markers import tags_of
from classtags.resolver import EntityNotFound, resolve_entity

logger = logging.getLogger(__name__)


class TagInspector:
    """Answer the builder's questions by importing classes.

    Args:
        external_tags: Names of classes to treat as tags even though they
            are not marked with ``@tag``.
    """

    def __init__(self, external_tags: Iterable[str] = ()):
        self.external_tags = frozenset(external_tags)

    def tags_for(self, entity_name: str) -> Optional[set[str]]:
        """Tag names carried by the entity, or None if it has none."""
        try:
            cls = resolve_entity(entity_name)
        except EntityNotFound as e:
            logger.debug(f"Cannot inspect {entity_name}: {e.reason}")
            return None
        return tags_of(cls, self.external_tags)

    def exists(self, entity_name: str) -> bool:
        """True if the entity still resolves to a class."""
        try:
            resolve_entity(entity_name)
        except EntityNotFound:
            return False
        return True
