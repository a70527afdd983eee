"""
Mirroring of a template fragment's component structure into an editable
component.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import Logger
from typing import TYPE_CHECKING

from .exceptions import CommitFailure, RepositoryError

if TYPE_CHECKING:
    from .node import ContentNode
    from .session import Session

__all__ = [
    "SyncEngine",
    "SyncResult",
]


@dataclass(kw_only=True)
class SyncResult:
    """
    Outcome of {obj}`SyncEngine.copy_subtree`.
    """

    origin_path: str
    destination_path: str

    skipped: bool = False
    """Origin or destination did not resolve; nothing was done"""

    copied: list[str] = field(default_factory=list)
    """Names of origin children copied, in order"""

    removed_count: int = 0
    """Number of destination children removed, across all wipes"""

    failures: list[str] = field(default_factory=list)
    """Error messages of children which failed to copy or be removed"""

    committed: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.copied or self.removed_count)

    @property
    def summary(self) -> str:
        if self.skipped:
            return "skipped"
        return (
            f"copied={len(self.copied)}, removed={self.removed_count}, "
            f"failures={len(self.failures)}"
        )


class SyncEngine:
    """
    Copies the children of an origin node into a destination node.

    For each origin child, the destination is considered out of date if it
    has no children or any child whose name differs (ignoring case) from
    the origin child's. In that case, or if a refresh is forced, all of the
    destination's children are removed and the origin child is copied in.

    The wipe covers every destination child, including ones copied for
    earlier origin children of the same call: when names mismatch, only the
    last origin child remains in the destination afterward.
    """

    _logger: Logger

    def __init__(self, *, logger: Logger | None = None):
        self._logger = logger or logging.getLogger()

    def copy_subtree(
        self,
        session: Session,
        origin_path: str,
        destination_path: str,
        force_refresh: bool = False,
    ) -> SyncResult:
        """
        Mirror children of `origin_path` into `destination_path` and commit
        once after all children are processed.

        Returns without mutation if either path doesn't resolve. Failures of
        individual children and of the commit are logged and recorded in
        the result rather than raised.

        :param session: Session to read and write with
        :param origin_path: Node whose children are copied
        :param destination_path: Node receiving the copies
        :param force_refresh: Replace children even if names match
        """
        result = SyncResult(
            origin_path=origin_path, destination_path=destination_path
        )

        origin = session.resolve(origin_path)
        destination = session.resolve(destination_path)

        if origin is None or destination is None:
            missing = origin_path if origin is None else destination_path
            self._logger.debug(
                f"Skipping sync {origin_path} -> {destination_path}: '{missing}' not found"
            )
            result.skipped = True
            return result

        for name, child in session.children_of(origin):
            try:
                if self._should_replace(session, destination, name, force_refresh):
                    result.removed_count += self._clear(
                        session, destination, result
                    )
                    session.copy_subtree_into(child, destination)
                    result.copied.append(name)
            except RepositoryError as e:
                self._logger.error(
                    f"Error copying {origin_path}/{name} -> {destination_path}: {e}"
                )
                result.failures.append(str(e))

        try:
            session.commit()
        except CommitFailure as e:
            self._logger.error(
                f"Error committing sync {origin_path} -> {destination_path}: {e}"
            )
            result.failures.append(str(e))
        else:
            result.committed = True

        if result.changed:
            self._logger.info(
                f"Synced {origin_path} -> {destination_path}: {result.summary}"
            )

        return result

    def _should_replace(
        self,
        session: Session,
        destination: ContentNode,
        name: str,
        force_refresh: bool,
    ) -> bool:
        names = [n for n, _ in session.children_of(destination)]

        names_differ = True
        if names:
            names_differ = any(n.lower() != name.lower() for n in names)

        return names_differ or force_refresh

    def _clear(
        self, session: Session, node: ContentNode, result: SyncResult
    ) -> int:
        """
        Remove all children of node; a child which can't be removed is logged
        and skipped.
        """
        count = 0

        for name, _ in session.children_of(node):
            try:
                session.remove_child(node, name)
            except RepositoryError as e:
                self._logger.error(f"Error removing {node.path}/{name}: {e}")
                result.failures.append(str(e))
            else:
                count += 1

        return count
