"""
Lifecycle of the listener's registration with the repository.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import TYPE_CHECKING

from .types import EventKind
from .utils import CONTENT_ROOT, NT_UNSTRUCTURED

if TYPE_CHECKING:
    from .listener import EditableComponentListener
    from .session import IdentityProvider, Session
    from .types import SubscriptionHandle

__all__ = ["ChangeSubscription"]


class ChangeSubscription:
    """
    Registers a listener for property changes under the content root, using
    a privileged session held open for as long as the subscription is
    active.

    Owned by the composition root, which calls {obj}`ChangeSubscription.start`
    and {obj}`ChangeSubscription.stop`; may also be used as a context
    manager.
    """

    _identity: IdentityProvider
    _listener: EditableComponentListener
    _service_name: str
    _scope_path: str
    _node_types: tuple[str, ...]

    _session: Session | None = None
    """
    Observation session, set while active.
    """

    _handle: SubscriptionHandle | None = None
    """
    Registration, set while active.
    """

    _logger: Logger

    def __init__(
        self,
        identity: IdentityProvider,
        listener: EditableComponentListener,
        *,
        scope_path: str = CONTENT_ROOT,
        node_types: tuple[str, ...] = (NT_UNSTRUCTURED,),
        service_name: str | None = None,
        logger: Logger | None = None,
    ):
        """
        :param identity: Provider of the observation session
        :param listener: Receives event batches
        :param scope_path: Root of the observed subtree
        :param node_types: Only observe properties of nodes of these types
        :param service_name: Identity to observe with, by default the listener's
        :param logger: Logger to use, or `None` to use default logger
        """
        self._identity = identity
        self._listener = listener
        self._scope_path = scope_path
        self._node_types = node_types
        self._service_name = service_name or listener.service_name
        self._logger = logger or logging.getLogger()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        self.stop()

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> SubscriptionHandle | None:
        return self._handle

    def start(self) -> bool:
        """
        Acquire the observation session and register the listener. Failures
        are logged and leave the subscription inactive, so it may be
        started again later.

        Returns whether the subscription is active.
        """
        if self.active:
            self._logger.warning(f"Subscription already active: {self._handle}")
            return True

        session: Session | None = None

        try:
            session = self._identity.acquire(self._service_name)
            handle = session.subscribe(
                self._listener,
                EventKind.PROPERTY_CHANGED,
                self._scope_path,
                deep=True,
                node_types=self._node_types,
            )
        except Exception as e:
            self._logger.error(
                f"Failed to subscribe to changes under '{self._scope_path}': {e}",
                exc_info=True,
            )
            if session is not None:
                session.logout()
            return False

        self._session = session
        self._handle = handle

        self._logger.info(
            f"Listening for property changes under '{self._scope_path}' as '{self._service_name}'"
        )
        return True

    def stop(self):
        """
        Unregister the listener and release the observation session. No-op
        if not active.
        """
        session, handle = self._session, self._handle
        self._session = None
        self._handle = None

        if session is None:
            return

        try:
            if handle is not None:
                session.unsubscribe(handle)
        except Exception as e:
            self._logger.error(
                f"Failed to unsubscribe from changes under '{self._scope_path}': {e}",
                exc_info=True,
            )
        finally:
            session.logout()

        self._logger.info(f"Stopped listening under '{self._scope_path}'")
