from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import Callable, Iterable

from .utils import is_descendant, parent_path

__all__ = [
    "EventKind",
    "ChangeEvent",
    "MatchMode",
    "SubscriptionHandle",
    "EventListener",
]


class EventKind(Flag):
    """
    Kind of change reported by the repository. Members can be combined to
    register interest in several kinds.
    """

    NODE_ADDED = auto()
    """Node created, including nodes created by a subtree copy"""

    NODE_REMOVED = auto()
    """Node removed"""

    PROPERTY_ADDED = auto()
    """Property set on a node which didn't have it"""

    PROPERTY_CHANGED = auto()
    """Existing property set to a different value"""

    PROPERTY_REMOVED = auto()
    """Property removed"""


@dataclass(frozen=True)
class ChangeEvent:
    """
    A single change notification. For property events, `path` is the path
    of the property, i.e. the owning node's path followed by the property
    name.
    """

    path: str
    kind: EventKind
    timestamp: datetime.datetime = field(
        default_factory=datetime.datetime.now
    )
    user_id: str | None = None
    """Service identity of the session which committed the change"""

    node_type: str | None = None
    """Primary type of the associated node"""

    def __str__(self) -> str:
        return f"{self.kind.name}({self.path})"


class MatchMode(Enum):
    """
    How a node's resource type is compared against the configured marker.
    """

    CONTAINS = "contains"
    """Marker occurs anywhere in the resource type"""

    PREFIX = "prefix"
    """Resource type starts with the marker"""

    EXACT = "exact"
    """Resource type equals the marker"""


EventListener = Callable[[Iterable[ChangeEvent]], None]
"""
Callable receiving a batch of events in delivery order.
"""


@dataclass(frozen=True, kw_only=True)
class SubscriptionHandle:
    """
    Registration of a listener, as returned by {obj}`Session.subscribe`.
    """

    handle_id: int
    user_id: str
    scope_path: str
    deep: bool
    event_kinds: EventKind
    node_types: tuple[str, ...] | None = None

    def accepts(self, event: ChangeEvent) -> bool:
        """
        Check whether the event falls within this registration's filters.
        """
        if not event.kind & self.event_kinds:
            return False

        # events are scoped by their associated node: the owner of a
        # property, or the parent of an added/removed node
        path = parent_path(event.path)

        if not is_descendant(path, self.scope_path, deep=self.deep):
            return False

        if self.node_types is not None:
            return event.node_type in self.node_types

        return True
