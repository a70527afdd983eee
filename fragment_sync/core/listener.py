"""
Event handling for editable components: wires the filter, the sync engine
and the flag reset together.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import TYPE_CHECKING, Iterable

from .engine import SyncEngine, SyncResult
from .filtering import ChangeFilter
from .handshake import FlagResetHandshake
from .types import EventKind
from .utils import (
    FRAGMENT_PATH_PROPERTY,
    ORIGIN_SUFFIX,
    SERVICE_USER,
    join_path,
    parent_path,
    path_name,
)

if TYPE_CHECKING:
    from .node import ContentNode
    from .session import IdentityProvider, Session
    from .types import ChangeEvent

__all__ = [
    "EditableComponentListener",
    "ReentryGuard",
]


class ReentryGuard:
    """
    Recognizes change notifications made redundant by the listener's own
    reset of the refresh flag.

    Two notifications are dropped:

    - The echo of a reset: a change of the flag committed by the listener's
    service user, while resets of that component are still unechoed
    - A change of the flag delivered in the same batch after the component
    was already refreshed and reset, since that refresh consumed it

    When events carry no user, a change of the flag is taken as the echo
    if the flag is still false when the event is handled.
    """

    _property: str
    _user_id: str | None
    _pending: dict[str, int]
    """
    Number of unechoed resets per component path.
    """

    _batch: set[str] | None
    """
    Paths of components reset while handling the current batch, or `None`
    outside of a batch.
    """

    def __init__(self, property_name: str, user_id: str | None = None):
        self._property = property_name
        self._user_id = user_id
        self._pending = {}
        self._batch = None

    def __len__(self) -> int:
        return sum(self._pending.values())

    def begin_batch(self):
        self._batch = set()

    def end_batch(self):
        self._batch = None

    def record(self, node_path: str):
        self._pending[node_path] = self._pending.get(node_path, 0) + 1
        if self._batch is not None:
            self._batch.add(node_path)

    def forget(self, node_path: str):
        """
        Drop records of a component which no longer resolves.
        """
        self._pending.pop(node_path, None)
        if self._batch is not None:
            self._batch.discard(node_path)

    def is_echo(self, event: ChangeEvent, node: ContentNode) -> bool:
        """
        Check whether the event is redundant, consuming the record of an
        echoed reset.
        """
        if path_name(event.path) != self._property:
            return False

        node_path = parent_path(event.path)

        if self._pending.get(node_path, 0) and self._is_own(event, node):
            self._pending[node_path] -= 1
            if not self._pending[node_path]:
                del self._pending[node_path]
            return True

        return self._batch is not None and node_path in self._batch

    def _is_own(self, event: ChangeEvent, node: ContentNode) -> bool:
        if event.user_id is not None and self._user_id is not None:
            return event.user_id == self._user_id
        return not node.get(self._property, False)


class EditableComponentListener:
    """
    Handles property change events for editable components.

    Each event is processed with its own session, acquired from the identity
    provider and released afterward:

    1. Resolve the node owning the changed property; drop the event if it
    can't be resolved
    2. If the node is an editable component, sync the component structure
    of its fragment variation into it, forcing a refresh if its refresh flag
    is set
    3. Clear the refresh flag of the node, whether or not it is an editable
    component

    Errors are logged per event and never propagated, so one failing event
    doesn't affect others in the same batch.
    """

    _identity: IdentityProvider
    _service_name: str
    _filter: ChangeFilter
    _engine: SyncEngine
    _handshake: FlagResetHandshake
    _guard: ReentryGuard | None
    _fragment_property: str
    _origin_suffix: str
    _logger: Logger

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        service_name: str = SERVICE_USER,
        change_filter: ChangeFilter | None = None,
        engine: SyncEngine | None = None,
        handshake: FlagResetHandshake | None = None,
        fragment_property: str = FRAGMENT_PATH_PROPERTY,
        origin_suffix: str = ORIGIN_SUFFIX,
        guard_reentry: bool = True,
        logger: Logger | None = None,
    ):
        """
        :param identity: Provider of per-event sessions
        :param service_name: Service identity to acquire sessions for
        :param change_filter: Selects editable components
        :param engine: Performs the sync
        :param handshake: Clears the refresh flag
        :param fragment_property: Property holding the fragment variation path
        :param origin_suffix: Path of the component structure relative to the fragment variation
        :param guard_reentry: Drop notifications caused by clearing the refresh flag
        :param logger: Logger to use, or `None` to use default logger
        """
        self._logger = logger or logging.getLogger()
        self._identity = identity
        self._service_name = service_name
        self._filter = change_filter or ChangeFilter(logger=self._logger)
        self._engine = engine or SyncEngine(logger=self._logger)
        self._handshake = handshake or FlagResetHandshake(logger=self._logger)
        self._fragment_property = fragment_property
        self._origin_suffix = origin_suffix
        self._guard = (
            ReentryGuard(
                self._handshake.property_name, user_id=service_name
            )
            if guard_reentry
            else None
        )

    def __call__(self, events: Iterable[ChangeEvent]):
        self.on_event(events)

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def guard(self) -> ReentryGuard | None:
        return self._guard

    def on_event(self, events: Iterable[ChangeEvent]):
        """
        Handle a batch of events in delivery order.
        """
        if self._guard is not None:
            self._guard.begin_batch()

        try:
            for event in events:
                try:
                    self.handle(event)
                except Exception as e:
                    self._logger.error(
                        f"Failed to handle {event}: {e}", exc_info=True
                    )
        finally:
            if self._guard is not None:
                self._guard.end_batch()

    def handle(self, event: ChangeEvent) -> SyncResult | None:
        """
        Handle one event. Returns the sync result if the event concerned an
        editable component, otherwise `None`.

        :raises AuthorizationFailure: If a session can't be acquired
        """
        if not event.kind & EventKind.PROPERTY_CHANGED:
            return None

        with self._identity.acquire(self._service_name) as session:
            node = self._filter.resolve(session, event)
            if node is None:
                if self._guard is not None:
                    self._guard.forget(parent_path(event.path))
                return None

            if self._guard is not None and self._guard.is_echo(event, node):
                self._logger.debug(f"Ignoring echo of flag reset: {event}")
                return None

            result: SyncResult | None = None

            if self._filter.is_relevant(node):
                result = self._sync(session, node)

            if self._handshake.reset(session, node) and self._guard is not None:
                self._guard.record(node.path)

            return result

    def origin_path(self, node: ContentNode) -> str:
        """
        Get path of the component structure to mirror into the node.
        """
        fragment_path = str(node.get(self._fragment_property, "") or "")
        return join_path(fragment_path, self._origin_suffix)

    def _sync(self, session: Session, node: ContentNode) -> SyncResult:
        force_refresh = bool(node.get(self._handshake.property_name, False))

        return self._engine.copy_subtree(
            session,
            self.origin_path(node),
            node.path,
            force_refresh,
        )
