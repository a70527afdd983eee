"""
Selection of change events concerning editable components.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging import Logger
from typing import TYPE_CHECKING

from .types import MatchMode
from .utils import EDITABLE_COMPONENT_SUPER_TYPE, parent_path

if TYPE_CHECKING:
    from .node import ContentNode
    from .session import Session
    from .types import ChangeEvent

__all__ = [
    "TypeMatcher",
    "ChangeFilter",
]


@dataclass(frozen=True)
class TypeMatcher:
    """
    Predicate on a node's resource type.

    The default mode is {obj}`MatchMode.CONTAINS` so that composite resource
    types embedding the marker, e.g. those of components derived from the
    editable component, are matched too.
    """

    marker: str = EDITABLE_COMPONENT_SUPER_TYPE
    mode: MatchMode = MatchMode.CONTAINS
    ignore_case: bool = False

    def __post_init__(self):
        assert self.marker, "Marker must not be empty"

    def __call__(self, resource_type: str | None) -> bool:
        if not resource_type:
            return False

        marker = self.marker
        if self.ignore_case:
            marker = marker.lower()
            resource_type = resource_type.lower()

        if self.mode is MatchMode.PREFIX:
            return resource_type.startswith(marker)
        elif self.mode is MatchMode.EXACT:
            return resource_type == marker

        return marker in resource_type


class ChangeFilter:
    """
    Maps a property change event to the node owning the property and
    decides whether that node is an editable component.
    """

    _matcher: TypeMatcher
    _logger: Logger

    def __init__(
        self,
        matcher: TypeMatcher | None = None,
        *,
        logger: Logger | None = None,
    ):
        self._matcher = matcher or TypeMatcher()
        self._logger = logger or logging.getLogger()

    @property
    def matcher(self) -> TypeMatcher:
        return self._matcher

    def resolve(self, session: Session, event: ChangeEvent) -> ContentNode | None:
        """
        Get the node containing the changed property, or `None` if it can't
        be resolved by this session; such events are dropped without error.
        """
        path = parent_path(event.path)
        node = session.resolve(path)

        if node is None:
            self._logger.debug(f"Dropping {event}: '{path}' not resolvable")

        return node

    def is_relevant(self, node: ContentNode) -> bool:
        """
        Check whether the node's resource type identifies it as an editable
        component.
        """
        return self._matcher(node.resource_type)
