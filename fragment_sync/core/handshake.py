from __future__ import annotations

import logging
from logging import Logger
from typing import TYPE_CHECKING

from .utils import REFRESH_PROPERTY

if TYPE_CHECKING:
    from .node import ContentNode
    from .session import Session

__all__ = ["FlagResetHandshake"]


class FlagResetHandshake:
    """
    Clears the refresh flag of a node after an event was handled for it, so
    that a requested refresh isn't repeated upon unrelated edits later on.
    """

    _property: str
    _logger: Logger

    def __init__(
        self,
        property_name: str = REFRESH_PROPERTY,
        *,
        logger: Logger | None = None,
    ):
        self._property = property_name
        self._logger = logger or logging.getLogger()

    @property
    def property_name(self) -> str:
        return self._property

    def reset(self, session: Session, node: ContentNode) -> bool:
        """
        Set the flag to `False` and commit.

        Returns whether the flag was previously set, i.e. whether the reset
        is itself a change which observers will be notified of.
        """
        was_set = bool(node.get(self._property, False))

        session.set_property(node, self._property, False)
        session.commit()

        if was_set:
            self._logger.debug(f"Cleared {self._property} on {node.path}")

        return was_set
