"""
In-memory implementation of the content repository interfaces, used by the
CLI and for testing.
"""

from pyrollup import rollup

from . import identity, repository
from .identity import *  # noqa
from .repository import *  # noqa

__all__ = rollup(repository, identity)
