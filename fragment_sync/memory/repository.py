"""
In-memory content repository.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from logging import Logger
from typing import Any, Iterable

from ..core.exceptions import (
    CommitFailure,
    CopyFailure,
    ResolutionFailure,
    SessionClosedError,
)
from ..core.node import ContentNode
from ..core.session import Session
from ..core.types import (
    ChangeEvent,
    EventKind,
    EventListener,
    SubscriptionHandle,
)
from ..core.utils import NT_UNSTRUCTURED, join_path

__all__ = [
    "MemoryRepository",
    "MemorySession",
]


@dataclass(kw_only=True)
class Registration:
    """
    Listener registered with the repository along with its filters.
    """

    handle: SubscriptionHandle
    listener: EventListener


@dataclass(frozen=True)
class _RemoveStep:
    parent_path: str
    name: str


@dataclass(frozen=True)
class _CopyStep:
    destination_path: str
    subtree: ContentNode


@dataclass(frozen=True)
class _SetStep:
    node_path: str
    name: str
    value: Any


@dataclass(frozen=True)
class _AddStep:
    parent_path: str
    name: str
    node_type: str
    properties: dict[str, Any]


_Step = _RemoveStep | _CopyStep | _SetStep | _AddStep


class MemoryRepository:
    """
    Content tree held in memory, with change notifications.

    Notifications are delivered synchronously after each commit, one batch
    at a time in commit order. A commit made by a listener while a batch is
    being delivered queues its own batch behind the current one.
    """

    _root: ContentNode
    """
    Root of the committed tree.
    """

    _registrations: dict[int, Registration]
    """
    Active registrations by handle id.
    """

    _queue: deque[tuple[list[ChangeEvent], str]]
    """
    Batches of events pending delivery, with the committing identity.
    """

    _dispatching: bool = False
    """
    Whether a batch is currently being delivered.
    """

    _logger: Logger

    def __init__(
        self,
        root: ContentNode | None = None,
        *,
        logger: Logger | None = None,
    ):
        self._root = root or ContentNode()
        self._registrations = {}
        self._queue = deque()
        self._ids = itertools.count(1)
        self._logger = logger or logging.getLogger()

        assert self._root.parent is None, "Root node must be detached"

    @property
    def root(self) -> ContentNode:
        """
        Root of the committed tree. Mutating it directly bypasses change
        notifications.
        """
        return self._root

    @property
    def registrations(self) -> list[SubscriptionHandle]:
        return [r.handle for r in self._registrations.values()]

    def open_session(
        self, user_id: str, *, logger: Logger | None = None
    ) -> MemorySession:
        """
        Create a session without authorization; see
        {obj}`MemoryIdentityProvider` for privileged access.
        """
        return MemorySession(self, user_id, logger=logger or self._logger)

    def snapshot(self) -> ContentNode:
        return self._root.clone()

    def lookup(self, path: str) -> ContentNode | None:
        return self._root.lookup(path)

    def _register(
        self, user_id: str, listener: EventListener, **kwargs
    ) -> SubscriptionHandle:
        handle = SubscriptionHandle(
            handle_id=next(self._ids), user_id=user_id, **kwargs
        )
        self._registrations[handle.handle_id] = Registration(
            handle=handle, listener=listener
        )
        self._logger.debug(f"Registered listener: {handle}")
        return handle

    def _unregister(self, handle: SubscriptionHandle):
        if self._registrations.pop(handle.handle_id, None) is not None:
            self._logger.debug(f"Unregistered listener: {handle}")

    def _apply(self, steps: list[_Step], user_id: str):
        """
        Apply journaled steps to the committed tree in order and deliver the
        resulting events. Steps which fail are reported together after all
        others have been applied.
        """
        events: list[ChangeEvent] = []
        errors: list[str] = []

        for step in steps:
            try:
                events += self._apply_step(step, user_id)
            except (ResolutionFailure, CopyFailure) as e:
                errors.append(str(e))

        self._publish(events, user_id)

        if errors:
            raise CommitFailure(errors)

    def _apply_step(self, step: _Step, user_id: str) -> list[ChangeEvent]:
        def event(path: str, kind: EventKind, node: ContentNode | None):
            return ChangeEvent(
                path,
                kind,
                user_id=user_id,
                node_type=node.node_type if node is not None else None,
            )

        if isinstance(step, _SetStep):
            node = self._require(step.node_path)
            path = join_path(node.path, step.name)

            if step.name not in node.properties:
                kind = EventKind.PROPERTY_ADDED
            elif node.properties[step.name] != step.value:
                kind = EventKind.PROPERTY_CHANGED
            else:
                return []

            node.properties[step.name] = step.value
            return [event(path, kind, node)]

        elif isinstance(step, _RemoveStep):
            parent = self._require(step.parent_path)
            if parent.child(step.name) is None:
                raise ResolutionFailure(join_path(parent.path, step.name))

            removed = parent.remove_child(step.name)
            return [
                event(
                    join_path(parent.path, removed.name),
                    EventKind.NODE_REMOVED,
                    parent,
                )
            ]

        elif isinstance(step, _CopyStep):
            destination = self._require(step.destination_path)
            subtree = step.subtree.clone()

            if destination.child(subtree.name) is not None:
                raise CopyFailure(
                    subtree.name,
                    destination.path,
                    "child with same name exists",
                )

            destination.add_child(subtree)
            return [
                event(n.path, EventKind.NODE_ADDED, n.parent)
                for n in subtree.walk()
            ]

        else:
            parent = self._require(step.parent_path)
            if parent.child(step.name) is not None:
                raise CopyFailure(
                    step.name, parent.path, "child with same name exists"
                )

            node = parent.add_child(
                ContentNode(
                    step.name,
                    node_type=step.node_type,
                    properties=step.properties,
                )
            )
            return [event(node.path, EventKind.NODE_ADDED, parent)]

    def _require(self, path: str) -> ContentNode:
        node = self._root.lookup(path)
        if node is None:
            raise ResolutionFailure(path)
        return node

    def _publish(self, events: list[ChangeEvent], user_id: str):
        if events:
            self._queue.append((events, user_id))

        # deliver from the outermost commit only
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                batch, _ = self._queue.popleft()
                self._deliver(batch)
        finally:
            self._dispatching = False

    def _deliver(self, batch: list[ChangeEvent]):
        for registration in list(self._registrations.values()):
            # may have been removed by a previous listener
            if registration.handle.handle_id not in self._registrations:
                continue

            events = [e for e in batch if registration.handle.accepts(e)]
            if not events:
                continue

            try:
                registration.listener(events)
            except Exception as e:
                self._logger.error(
                    f"Listener {registration.handle} raised: {e}",
                    exc_info=True,
                )


class MemorySession(Session):
    """
    Session on a {obj}`MemoryRepository`.

    Reads are served from a working copy of the committed tree, taken upon
    first access after creation or commit. Mutations apply to the working
    copy and are journaled; {obj}`MemorySession.commit` replays the journal
    onto the committed tree. Mutations address nodes by path, so nodes
    obtained before a commit may still be passed afterward.
    """

    _repository: MemoryRepository | None
    """
    Repository, or `None` once logged out.
    """

    _tree: ContentNode | None = None
    """
    Working copy of the committed tree.
    """

    _journal: list[_Step]
    """
    Mutations pending commit.
    """

    _handles: list[SubscriptionHandle]
    """
    Registrations made through this session.
    """

    def __init__(
        self,
        repository: MemoryRepository,
        user_id: str,
        *,
        logger: Logger | None = None,
    ):
        super().__init__(user_id, logger=logger)
        self._repository = repository
        self._journal = []
        self._handles = []

    @property
    def live(self) -> bool:
        return self._repository is not None

    @property
    def pending_count(self) -> int:
        """
        Number of mutations pending commit.
        """
        return len(self._journal)

    @property
    def repository(self) -> MemoryRepository:
        if self._repository is None:
            raise SessionClosedError(f"{self} has been logged out")
        return self._repository

    def resolve(self, path: str) -> ContentNode | None:
        if not path.startswith("/"):
            return None
        return self._working_tree.lookup(path)

    def children_of(self, node: ContentNode) -> list[tuple[str, ContentNode]]:
        current = self._working_node(node)
        return [(child.name, child) for child in current]

    def remove_child(self, node: ContentNode, name: str):
        parent = self._working_node(node)
        if parent.child(name) is None:
            raise ResolutionFailure(join_path(parent.path, name))

        parent.remove_child(name)
        self._journal.append(_RemoveStep(parent.path, name))

    def copy_subtree_into(self, source: ContentNode, destination: ContentNode):
        target = self._working_node(destination)
        if target.child(source.name) is not None:
            raise CopyFailure(
                source.path, target.path, "child with same name exists"
            )

        subtree = source.clone(skip_versions=True)
        target.add_child(subtree)
        self._journal.append(_CopyStep(target.path, subtree.clone()))

    def set_property(self, node: ContentNode, name: str, value: Any):
        current = self._working_node(node)
        current.properties[name] = value
        self._journal.append(_SetStep(current.path, name, value))

    def add_node(
        self,
        parent: ContentNode,
        name: str,
        *,
        node_type: str = NT_UNSTRUCTURED,
        properties: dict[str, Any] | None = None,
    ) -> ContentNode:
        """
        Create a new child node.
        """
        target = self._working_node(parent)
        if target.child(name) is not None:
            raise CopyFailure(name, target.path, "child with same name exists")

        node = target.add_child(
            ContentNode(name, node_type=node_type, properties=properties)
        )
        self._journal.append(
            _AddStep(target.path, name, node_type, dict(properties or {}))
        )
        return node

    def commit(self):
        repository = self.repository
        journal, self._journal = self._journal, []

        # re-read committed state upon next access
        self._tree = None

        if not journal:
            return

        self._logger.debug(f"Committing {len(journal)} changes from {self}")
        repository._apply(journal, self._user_id)

    def discard(self):
        """
        Drop pending mutations.
        """
        self._journal = []
        self._tree = None

    def subscribe(
        self,
        listener: EventListener,
        event_kinds: EventKind,
        scope_path: str,
        *,
        deep: bool = True,
        node_types: Iterable[str] | None = None,
    ) -> SubscriptionHandle:
        handle = self.repository._register(
            self._user_id,
            listener,
            scope_path=scope_path,
            deep=deep,
            event_kinds=event_kinds,
            node_types=tuple(node_types) if node_types is not None else None,
        )
        self._handles.append(handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle):
        self.repository._unregister(handle)
        if handle in self._handles:
            self._handles.remove(handle)

    def logout(self):
        if self._repository is None:
            return

        if self._journal:
            self._logger.warning(
                f"Logging out with {len(self._journal)} uncommitted changes"
            )

        for handle in self._handles:
            self._repository._unregister(handle)

        self._handles = []
        self._journal = []
        self._tree = None
        self._repository = None

    @property
    def _working_tree(self) -> ContentNode:
        if self._tree is None:
            self._tree = self.repository.snapshot()
        return self._tree

    def _working_node(self, node: ContentNode) -> ContentNode:
        """
        Map a node, possibly from an earlier working copy, to the current
        one.
        """
        current = self._working_tree.lookup(node.path)
        if current is None:
            raise ResolutionFailure(node.path)
        return current
