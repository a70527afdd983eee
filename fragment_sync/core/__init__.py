"""
This module implements the synchronization of editable components with the
component structure of their fragment variations, along with the interfaces
it consumes from a content repository.
"""

from pyrollup import rollup

from . import (
    engine,
    exceptions,
    filtering,
    handshake,
    listener,
    node,
    session,
    subscription,
    types,
    utils,
)
from .engine import *  # noqa
from .exceptions import *  # noqa
from .filtering import *  # noqa
from .handshake import *  # noqa
from .listener import *  # noqa
from .node import *  # noqa
from .session import *  # noqa
from .subscription import *  # noqa
from .types import *  # noqa
from .utils import *  # noqa

__all__ = rollup(
    session,
    node,
    types,
    filtering,
    engine,
    handshake,
    listener,
    subscription,
    exceptions,
    utils,
)

__canonical_children__ = [
    "session",
    "node",
    "types",
    "filtering",
    "engine",
    "handshake",
    "listener",
    "subscription",
    "exceptions",
    "utils",
]
