from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable

from ..core.exceptions import AuthorizationFailure
from ..core.session import IdentityProvider
from ..core.utils import SERVICE_USER
from .repository import MemoryRepository, MemorySession

__all__ = ["MemoryIdentityProvider"]


class MemoryIdentityProvider(IdentityProvider):
    """
    Grants sessions on a {obj}`MemoryRepository` to a fixed set of service
    identities.
    """

    _repository: MemoryRepository
    _service_users: set[str]
    _logger: Logger

    def __init__(
        self,
        repository: MemoryRepository,
        service_users: Iterable[str] = (SERVICE_USER,),
        *,
        logger: Logger | None = None,
    ):
        self._repository = repository
        self._service_users = set(service_users)
        self._logger = logger or logging.getLogger()

    @property
    def repository(self) -> MemoryRepository:
        return self._repository

    def allow(self, service_name: str):
        self._service_users.add(service_name)

    def revoke(self, service_name: str):
        self._service_users.discard(service_name)

    def acquire(self, service_name: str) -> MemorySession:
        if service_name not in self._service_users:
            raise AuthorizationFailure(
                service_name, "service user not configured"
            )

        return self._repository.open_session(service_name, logger=self._logger)
