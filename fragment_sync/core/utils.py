"""
Common constants and path utilities.
"""

__all__ = [
    "CONTENT_ROOT",
    "EDITABLE_COMPONENT_SUPER_TYPE",
    "FRAGMENT_PATH_PROPERTY",
    "REFRESH_PROPERTY",
    "ORIGIN_SUFFIX",
    "SERVICE_USER",
    "NT_UNSTRUCTURED",
    "RESOURCE_TYPE_PROPERTY",
    "VERSION_PROPERTIES",
    "parent_path",
    "path_name",
    "join_path",
    "is_descendant",
]

CONTENT_ROOT = "/content"
"""
Root of the observed content tree.
"""

EDITABLE_COMPONENT_SUPER_TYPE = "editable-components/components/editablecomponent"
"""
Marker contained in the resource type of editable components.
"""

FRAGMENT_PATH_PROPERTY = "fragmentVariationPath"
"""
Property of an editable component holding the path of its template
fragment.
"""

REFRESH_PROPERTY = "refreshComponents"
"""
Property of an editable component requesting a forced refresh.
"""

ORIGIN_SUFFIX = "jcr:content/root"
"""
Location of the component structure relative to a fragment variation.
"""

SERVICE_USER = "editable-components-service-user"
"""
Service identity used for observation and per-event writes.
"""

NT_UNSTRUCTURED = "nt:unstructured"
"""
Default primary node type.
"""

RESOURCE_TYPE_PROPERTY = "sling:resourceType"
"""
Property holding a node's resource type; the primary type is used if absent.
"""

VERSION_PROPERTIES = frozenset(
    [
        "jcr:versionHistory",
        "jcr:baseVersion",
        "jcr:predecessors",
        "jcr:isCheckedOut",
        "jcr:uuid",
    ]
)
"""
Properties dropped when copying a subtree, along with the `mix:versionable`
mixin.
"""


def parent_path(path: str) -> str:
    """
    Strip the final segment of an absolute path, e.g.
    `/content/page/title` -> `/content/page`. The parent of a top-level
    path is `/`.
    """
    head, _, _ = path.rstrip("/").rpartition("/")
    return head or "/"


def path_name(path: str) -> str:
    """
    Get the final segment of a path.
    """
    return path.rstrip("/").rpartition("/")[2]


def join_path(base: str, *names: str) -> str:
    """
    Join relative segments onto a base path, collapsing duplicate slashes.
    """
    parts = [base.rstrip("/")] + [n.strip("/") for n in names if n]
    joined = "/".join(parts)
    return joined if joined.startswith("/") else f"/{joined}"


def is_descendant(path: str, scope: str, *, deep: bool = True) -> bool:
    """
    Check whether `path` is `scope` itself or, with `deep=True`, lies
    anywhere beneath it.
    """
    scope = scope.rstrip("/") or "/"

    if path == scope:
        return True

    if not deep:
        return False

    prefix = scope if scope == "/" else f"{scope}/"
    return path.startswith(prefix)
