import logging
from typing import Any, Generator

from pytest import Config, FixtureRequest, fixture

from fragment_sync import *
from fragment_sync.tools.tree import TreeModel

logging.basicConfig(level=logging.WARNING)

COMPONENT_TYPE = f"my-site/components/{EDITABLE_COMPONENT_SUPER_TYPE}/teaser"
"""
Resource type of a component derived from the editable component.
"""

FRAGMENT_PATH = "/content/fragments/hero/master"
ORIGIN_PATH = f"{FRAGMENT_PATH}/jcr:content/root"
COMPONENT_PATH = "/content/page/jcr:content/hero"
TEXT_PATH = "/content/page/jcr:content/text"

MARKERS = [
    "origin",
    "destination",
]


def pytest_configure(config: Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


def create_tree(children: dict[str, Any]) -> MemoryRepository:
    """
    Create a repository from a mapping of the form used in tree .yaml files.
    """
    return TreeModel(children=children).to_repository()


def leaves(*names: str) -> dict[str, Any]:
    """
    Get children mapping of plain nodes with a marker property, so copies can
    be told apart from originals.
    """
    return {
        name: {"properties": {"source": name}, "children": {}} for name in names
    }


def content_tree(
    origin: tuple[str, ...] = ("a", "c"),
    destination: tuple[str, ...] = ("a", "b"),
) -> dict[str, Any]:
    """
    Tree with a fragment variation and a page containing an editable component
    and a plain text component.
    """
    return {
        "content": {
            "children": {
                "fragments": {
                    "children": {
                        "hero": {
                            "children": {
                                "master": {
                                    "children": {
                                        "jcr:content": {
                                            "children": {
                                                "root": {
                                                    "children": leaves(*origin)
                                                }
                                            }
                                        }
                                    }
                                }
                            }
                        }
                    }
                },
                "page": {
                    "children": {
                        "jcr:content": {
                            "children": {
                                "hero": {
                                    "properties": {
                                        RESOURCE_TYPE_PROPERTY: COMPONENT_TYPE,
                                        FRAGMENT_PATH_PROPERTY: FRAGMENT_PATH,
                                        REFRESH_PROPERTY: False,
                                        "title": "Hero",
                                    },
                                    "children": {
                                        name: {"properties": {"source": "old"}}
                                        for name in destination
                                    },
                                },
                                "text": {
                                    "properties": {
                                        RESOURCE_TYPE_PROPERTY: "my-site/components/text",
                                        REFRESH_PROPERTY: True,
                                        "text": "Hello",
                                    },
                                },
                            }
                        }
                    }
                },
            }
        }
    }


@fixture
def repository(request: FixtureRequest) -> MemoryRepository:
    """
    Create repository with the content tree.

    Origin and destination children may be given like:

    @mark.origin("a", "c")
    @mark.destination("a", "b")
    """
    kwargs = {}

    for name in ["origin", "destination"]:
        marker = request.node.get_closest_marker(name)
        if marker is not None:
            kwargs[name] = tuple(marker.args)

    return create_tree(content_tree(**kwargs))


@fixture
def identity(repository: MemoryRepository) -> MemoryIdentityProvider:
    return MemoryIdentityProvider(repository, [SERVICE_USER, "author"])


@fixture
def session(
    identity: MemoryIdentityProvider,
) -> Generator[MemorySession, None, None]:
    """
    Session of the service user, released after the test.
    """
    with identity.acquire(SERVICE_USER) as session:
        yield session


@fixture
def author(
    identity: MemoryIdentityProvider,
) -> Generator[MemorySession, None, None]:
    """
    Session of a content author making edits.
    """
    with identity.acquire("author") as session:
        yield session


def child_names(repository: MemoryRepository, path: str) -> list[str]:
    node = repository.lookup(path)
    assert node is not None
    return node.child_names


class RecordingListener:
    """
    Listener which records event batches.
    """

    batches: list[list[ChangeEvent]]

    def __init__(self):
        self.batches = []

    def __call__(self, events):
        self.batches.append(list(events))

    @property
    def events(self) -> list[ChangeEvent]:
        return [e for batch in self.batches for e in batch]
