"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from click import BadParameter, Parameter
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from typer import Context, Typer

from ..tree import TreeModel

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("fragment-sync")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    root_context = ctx.find_root().obj
    assert isinstance(root_context, RootContext)
    return root_context


def load_tree(ctx: Context, path: Path) -> TreeModel:
    """
    Load tree snapshot, reporting problems against the `tree` argument.
    """
    try:
        return TreeModel.load_yaml(path)
    except (ValueError, ValidationError, yaml.YAMLError) as e:
        raise BadParameter(
            f"failed to load tree '{path}': {e}",
            ctx=ctx,
            param=lookup_param(ctx, "tree"),
        )


def parse_value(value: str) -> Any:
    """
    Parse a property value given on the command line as a yaml scalar, so
    `true` becomes a bool and `3` an int.
    """
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value

    return "" if parsed is None else parsed


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param
