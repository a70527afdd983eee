"""
fragment-sync: keeps editable components in a content repository in sync
with the component structure of their fragment variations.
"""

from pyrollup import rollup

from . import core, memory
from .core import *  # noqa
from .memory import *  # noqa

__all__ = rollup(core, memory)

__canonical_children__ = [
    "core",
    "memory",
]
