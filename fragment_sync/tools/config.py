"""
Interface to configuration as persisted in .yaml file.
"""

from __future__ import annotations

from logging import Logger
from typing import Self

from pydantic import Field, field_validator, model_validator

from ..core import (
    CONTENT_ROOT,
    EDITABLE_COMPONENT_SUPER_TYPE,
    FRAGMENT_PATH_PROPERTY,
    NT_UNSTRUCTURED,
    ORIGIN_SUFFIX,
    REFRESH_PROPERTY,
    SERVICE_USER,
    ChangeFilter,
    ChangeSubscription,
    EditableComponentListener,
    FlagResetHandshake,
    IdentityProvider,
    MatchMode,
    SyncEngine,
    TypeMatcher,
)
from .yaml_model import BaseYamlModel

__all__ = [
    "Config",
]


class Config(BaseYamlModel):
    """
    Encapsulates configuration of the editable component listener. All
    fields have defaults, so an empty file is a valid configuration.
    """

    content_root: str = CONTENT_ROOT
    """
    Root of the observed content tree.
    """

    supertype_marker: str = EDITABLE_COMPONENT_SUPER_TYPE
    """
    Marker identifying editable components by their resource type.
    """

    match_mode: MatchMode = MatchMode.CONTAINS
    """
    How resource types are compared against the marker.
    """

    ignore_case: bool = False
    """
    Whether resource types are compared against the marker ignoring case.
    """

    service_user: str = SERVICE_USER
    """
    Service identity for observation and per-event sessions.
    """

    observed_node_types: list[str] = Field(
        default_factory=lambda: [NT_UNSTRUCTURED]
    )
    """
    Only changes to nodes with these primary types are observed.
    """

    fragment_path_property: str = FRAGMENT_PATH_PROPERTY
    refresh_property: str = REFRESH_PROPERTY

    origin_suffix: str = ORIGIN_SUFFIX
    """
    Location of the component structure relative to a fragment variation.
    """

    guard_reentry: bool = True
    """
    Drop the notification caused by clearing the refresh flag. Disable to
    handle it like any other change.
    """

    @field_validator("content_root")
    def validate_content_root(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"content root must be absolute: '{value}'")
        return value.rstrip("/") or "/"

    @field_validator("supertype_marker", "service_user")
    def validate_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("origin_suffix")
    def validate_origin_suffix(cls, value: str) -> str:
        if value.startswith("/"):
            raise ValueError(f"origin suffix must be relative: '{value}'")
        return value

    @model_validator(mode="after")
    def validate_properties(self) -> Self:
        if self.fragment_path_property == self.refresh_property:
            raise ValueError(
                "fragment path and refresh properties must be different"
            )
        return self

    @property
    def matcher(self) -> TypeMatcher:
        return TypeMatcher(
            self.supertype_marker,
            mode=self.match_mode,
            ignore_case=self.ignore_case,
        )

    def create_listener(
        self,
        identity: IdentityProvider,
        *,
        logger: Logger | None = None,
    ) -> EditableComponentListener:
        """
        Get listener configured from this model's fields.
        """
        return EditableComponentListener(
            identity,
            service_name=self.service_user,
            change_filter=ChangeFilter(self.matcher, logger=logger),
            engine=SyncEngine(logger=logger),
            handshake=FlagResetHandshake(self.refresh_property, logger=logger),
            fragment_property=self.fragment_path_property,
            origin_suffix=self.origin_suffix,
            guard_reentry=self.guard_reentry,
            logger=logger,
        )

    def create_subscription(
        self,
        identity: IdentityProvider,
        *,
        logger: Logger | None = None,
    ) -> ChangeSubscription:
        """
        Get subscription of a listener configured from this model's fields.
        """
        return ChangeSubscription(
            identity,
            self.create_listener(identity, logger=logger),
            scope_path=self.content_root,
            node_types=tuple(self.observed_node_types),
            service_name=self.service_user,
            logger=logger,
        )
