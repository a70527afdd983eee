"""
Interfaces to a content repository under a privileged identity.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from logging import Logger
from typing import TYPE_CHECKING, Any, Iterable

from .types import EventKind

if TYPE_CHECKING:
    from .node import ContentNode
    from .types import EventListener, SubscriptionHandle

__all__ = [
    "Session",
    "IdentityProvider",
]


class Session(ABC):
    """
    Interface to a content repository bound to one identity, and context in
    which to stage mutations until {obj}`Session.commit`.

    Sessions are released with {obj}`Session.logout`, or automatically when
    used as a context manager:

    ```
    with identity.acquire("my-service") as session:
        node = session.resolve("/content/page")
        session.set_property(node, "title", "Hello")
        session.commit()
    ```

    Unlike a unit of work which flushes on exit, nothing is committed
    implicitly; uncommitted changes are discarded upon logout.
    """

    _user_id: str
    """
    Service identity this session was acquired for.
    """

    _logger: Logger
    """
    Logger to use.
    """

    def __init__(self, user_id: str, *, logger: Logger | None = None):
        self._user_id = user_id
        self._logger = logger or logging.getLogger()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        if exc_type:
            self._logger.debug(f"Releasing {self} after error: {exc_val}")
        self.logout()

    def __str__(self) -> str:
        return f"{type(self).__name__}(user_id={self._user_id})"

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    @abstractmethod
    def live(self) -> bool:
        """
        Whether this session is still usable.
        """
        ...

    @abstractmethod
    def resolve(self, path: str) -> ContentNode | None:
        """
        Lookup node by absolute path, or `None` if it doesn't exist or is
        not accessible to this session.
        """
        ...

    @abstractmethod
    def children_of(self, node: ContentNode) -> list[tuple[str, ContentNode]]:
        """
        Get `(name, node)` pairs of the node's children in their order.
        """
        ...

    @abstractmethod
    def remove_child(self, node: ContentNode, name: str):
        """
        Remove child of node by name, along with its subtree.
        """
        ...

    @abstractmethod
    def copy_subtree_into(self, source: ContentNode, destination: ContentNode):
        """
        Deep-copy `source` with its subtree as a new child of `destination`,
        keeping its name and node types and excluding version history.
        """
        ...

    @abstractmethod
    def set_property(self, node: ContentNode, name: str, value: Any):
        """
        Set property on node.
        """
        ...

    @abstractmethod
    def commit(self):
        """
        Persist pending mutations of this session.
        """
        ...

    @abstractmethod
    def subscribe(
        self,
        listener: EventListener,
        event_kinds: EventKind,
        scope_path: str,
        *,
        deep: bool = True,
        node_types: Iterable[str] | None = None,
    ) -> SubscriptionHandle:
        """
        Register listener for events under `scope_path`. Registrations are
        owned by this session and removed when it logs out.
        """
        ...

    @abstractmethod
    def unsubscribe(self, handle: SubscriptionHandle):
        """
        Remove a registration returned by {obj}`Session.subscribe`.
        """
        ...

    @abstractmethod
    def logout(self):
        """
        Release this session. Subsequent calls are no-ops.
        """
        ...


class IdentityProvider(ABC):
    """
    Source of privileged sessions for service identities, supplied by the
    deployment environment.
    """

    @abstractmethod
    def acquire(self, service_name: str) -> Session:
        """
        Acquire a new session for the given service identity.

        :raises AuthorizationFailure: If the identity is not permitted
        """
        ...
