"""
Content tree snapshots persisted in .yaml files.

Example:

```yaml
children:
  content:
    children:
      page:
        properties:
          sling:resourceType: my-site/components/editable
          fragmentVariationPath: /content/fragments/hero/master
```
"""

from __future__ import annotations

from logging import Logger
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from ..core import NT_UNSTRUCTURED, ContentNode
from ..memory import MemoryRepository
from .yaml_model import BaseYamlModel

__all__ = [
    "NodeModel",
    "TreeModel",
]


class NodeModel(BaseModel):
    """
    Node metadata used to populate yaml. Children are ordered as in the
    containing mapping.
    """

    node_type: str = Field(
        default=NT_UNSTRUCTURED,
        validation_alias=AliasChoices("node_type", "type"),
        serialization_alias="type",
    )
    properties: dict[str, Any] = Field(default_factory=dict)
    children: dict[str, NodeModel] = Field(default_factory=dict)

    @classmethod
    def from_node(cls, node: ContentNode) -> NodeModel:
        """
        Populate model from a node and its subtree.
        """
        return NodeModel(
            node_type=node.node_type,
            properties=dict(node.properties),
            children={child.name: cls.from_node(child) for child in node},
        )

    def to_node(self, name: str = "") -> ContentNode:
        """
        Create a detached node with its subtree from this model.
        """
        node = ContentNode(
            name, node_type=self.node_type, properties=self.properties
        )
        for child_name, child in self.children.items():
            node.add_child(child.to_node(child_name))
        return node


class TreeModel(NodeModel, BaseYamlModel):
    """
    Model of a complete content tree, the root node being implicit.
    """

    @classmethod
    def from_repository(cls, repository: MemoryRepository) -> TreeModel:
        root = NodeModel.from_node(repository.root)
        return TreeModel(
            node_type=root.node_type,
            properties=root.properties,
            children=root.children,
        )

    def to_repository(self, *, logger: Logger | None = None) -> MemoryRepository:
        return MemoryRepository(self.to_node(), logger=logger)

    def count(self) -> int:
        """
        Get number of nodes in the tree, excluding the root.
        """

        def count_children(model: NodeModel) -> int:
            return sum(1 + count_children(c) for c in model.children.values())

        return count_children(self)
