"""
Content node representation shared by the core and repository adapters.
"""

from __future__ import annotations

import copy
from typing import Any, Iterator

from .utils import (
    NT_UNSTRUCTURED,
    RESOURCE_TYPE_PROPERTY,
    VERSION_PROPERTIES,
    join_path,
)

__all__ = ["ContentNode"]

MIXIN_PROPERTY = "jcr:mixinTypes"
VERSIONABLE_MIXIN = "mix:versionable"


class ContentNode:
    """
    Node in a hierarchical, path-addressable content tree. Holds a primary
    type, an unordered mapping of properties, and children ordered by
    insertion.

    Nodes are owned by the repository adapter which handed them out; the
    core should only hold them for the duration of one event.
    """

    _name: str
    """
    Name of this node within its parent, or `""` for the root.
    """

    _parent: ContentNode | None
    """
    Parent node, or `None` for the root.
    """

    node_type: str
    """
    Primary node type.
    """

    properties: dict[str, Any]
    """
    Properties by name.
    """

    _children: dict[str, ContentNode]
    """
    Children by name, in insertion order.
    """

    def __init__(
        self,
        name: str = "",
        *,
        node_type: str = NT_UNSTRUCTURED,
        properties: dict[str, Any] | None = None,
    ):
        assert "/" not in name, f"Invalid node name: {name}"

        self._name = name
        self._parent = None
        self.node_type = node_type
        self.properties = dict(properties or {})
        self._children = {}

    def __repr__(self) -> str:
        return f"ContentNode({self.path}, type={self.node_type})"

    def __iter__(self) -> Iterator[ContentNode]:
        return iter(list(self._children.values()))

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> ContentNode | None:
        return self._parent

    @property
    def path(self) -> str:
        """
        Absolute path, computed from the chain of parents.
        """
        if self._parent is None:
            return "/"
        return join_path(self._parent.path, self._name)

    @property
    def resource_type(self) -> str:
        """
        Type tag of this node: its resource type property if set, otherwise
        its primary type.
        """
        value = self.properties.get(RESOURCE_TYPE_PROPERTY)
        return str(value) if value else self.node_type

    @property
    def child_names(self) -> list[str]:
        return list(self._children.keys())

    @property
    def has_children(self) -> bool:
        return bool(self._children)

    def get(self, name: str, default: Any = None) -> Any:
        """
        Get property value, or `default` if not set.
        """
        return self.properties.get(name, default)

    def child(self, name: str) -> ContentNode | None:
        return self._children.get(name)

    def add_child(self, node: ContentNode) -> ContentNode:
        """
        Attach a detached node as the last child.
        """
        assert node._parent is None, f"Node already attached: {node}"

        if node.name in self._children:
            raise KeyError(f"Child '{node.name}' already exists under {self.path}")

        node._parent = self
        self._children[node.name] = node
        return node

    def remove_child(self, name: str) -> ContentNode:
        """
        Detach and return child by name.
        """
        node = self._children.pop(name)
        node._parent = None
        return node

    def lookup(self, path: str) -> ContentNode | None:
        """
        Resolve an absolute path relative to the root of this node's tree.
        """
        assert path.startswith("/"), f"Path is not absolute: {path}"

        node: ContentNode | None = self
        while node is not None and node._parent is not None:
            node = node._parent

        for segment in [s for s in path.split("/") if s]:
            assert node is not None
            node = node._children.get(segment)
            if node is None:
                return None

        return node

    def walk(self) -> Iterator[ContentNode]:
        """
        Iterate over this node and its descendants, depth first.
        """
        yield self
        for child in self._children.values():
            yield from child.walk()

    def clone(self, *, skip_versions: bool = False) -> ContentNode:
        """
        Deep copy of this subtree, detached from any parent. With
        `skip_versions`, version bookkeeping properties and the versionable
        mixin are dropped from each node.
        """
        properties = copy.deepcopy(self.properties)

        if skip_versions:
            for name in VERSION_PROPERTIES:
                properties.pop(name, None)

            mixins = properties.get(MIXIN_PROPERTY)
            if isinstance(mixins, list):
                mixins = [m for m in mixins if m != VERSIONABLE_MIXIN]
                if mixins:
                    properties[MIXIN_PROPERTY] = mixins
                else:
                    del properties[MIXIN_PROPERTY]

        node = ContentNode(
            self._name, node_type=self.node_type, properties=properties
        )
        for child in self._children.values():
            node.add_child(child.clone(skip_versions=skip_versions))

        return node
