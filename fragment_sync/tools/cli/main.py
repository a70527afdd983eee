"""
Entry point of `fragment-sync` CLI.

Commands operate on content trees stored as .yaml snapshots, loaded into an
in-memory repository:

- `check`: show effective configuration
- `show`: print a tree, marking editable components
- `sync`: mirror one origin node's children into a destination node
- `set`: edit a property while the listener is subscribed, letting it react
as it would to an author's change
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import dotenv
import yaml
from click.exceptions import BadParameter
from pydantic import ValidationError
from rich.markup import escape
from rich.tree import Tree
from typer import Argument, Context, Exit, Option

from ...core import ContentNode, SyncEngine
from ...memory import MemoryIdentityProvider, MemoryRepository
from ..config import Config
from ..tree import TreeModel
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    load_tree,
    logger,
    lookup_param,
    parse_value,
)

DEFAULT_CONFIG_FILE = Path("fragment-sync.yaml")
"""
Config file used if present and none was passed.
"""

CLI_USER = "fragment-sync-cli"
"""
Identity used by the CLI for edits, distinct from the listener's.
"""

dotenv.load_dotenv()

app = MainTyper(
    "fragment-sync",
    help="Sync editable components with their fragment variations",
)


@app.callback()
def main(
    ctx: Context,
    config_file: Path
    | None = Option(
        None,
        help=f".yaml file containing configuration, by default '{DEFAULT_CONFIG_FILE}' if it exists",
        envvar="FRAGMENT_SYNC_CONFIG_FILE",
        dir_okay=False,
    ),
    verbose: bool = Option(False, "--verbose", "-v", help="Enable debug logs"),
):
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if config_file is None:
        if DEFAULT_CONFIG_FILE.is_file():
            config_file = DEFAULT_CONFIG_FILE
        else:
            ctx.obj = RootContext(config=Config(), config_file=None)
            return

    ctx.obj = RootContext.from_config(ctx=ctx, config_file=config_file)


@app.command()
def check(ctx: Context):
    """
    Validate and show effective configuration
    """
    root_context = get_root_context(ctx)

    source = root_context.config_file or "defaults"
    logger.info(f"Configuration from {source}:")

    model = root_context.config.model_dump(mode="json")
    console.print(
        escape(yaml.safe_dump(model, default_flow_style=False, sort_keys=False)),
        end="",
    )


@app.command()
def show(
    ctx: Context,
    tree: Path = Argument(help="Tree .yaml file", dir_okay=False),
    path: str = Option("/", help="Only show subtree at this path"),
):
    """
    Print content tree, marking editable components
    """
    root_context = get_root_context(ctx)
    model = load_tree(ctx, tree)
    repository = model.to_repository(logger=logger)

    node = repository.lookup(path)
    if node is None:
        raise BadParameter(
            f"path '{path}' not found in '{tree}'",
            ctx=ctx,
            param=lookup_param(ctx, "path"),
        )

    console.print(_render(node, root_context.config))


@app.command()
def sync(
    ctx: Context,
    tree: Path = Argument(help="Tree .yaml file", dir_okay=False),
    origin: str = Argument(help="Path of node whose children are copied"),
    destination: str = Argument(help="Path of node receiving the copies"),
    refresh: bool = Option(
        False, help="Replace children even if names already match"
    ),
    dry_run: bool = Option(
        False, "--dry-run", help="Don't write the resulting tree"
    ),
):
    """
    Mirror children of origin node into destination node
    """
    root_context = get_root_context(ctx)
    model = load_tree(ctx, tree)
    repository = model.to_repository(logger=logger)
    identity = _create_identity(repository, root_context.config)

    engine = SyncEngine(logger=logger)

    with identity.acquire(CLI_USER) as session:
        result = engine.copy_subtree(session, origin, destination, refresh)

    if result.skipped:
        logger.error(
            f"Nothing synced: '{origin}' or '{destination}' not found in '{tree}'"
        )
        raise Exit(code=1)

    logger.info(f"Sync {origin} -> {destination}: {result.summary}")
    _write_tree(repository, tree, dry_run=dry_run)

    if result.failures:
        raise Exit(code=1)


@app.command("set")
def set_(
    ctx: Context,
    tree: Path = Argument(help="Tree .yaml file", dir_okay=False),
    path: str = Argument(help="Path of node to edit"),
    name: str = Argument(help="Property name"),
    value: str = Argument(help="Property value, parsed as yaml scalar"),
    dry_run: bool = Option(
        False, "--dry-run", help="Don't write the resulting tree"
    ),
):
    """
    Set property with listener subscribed and let it react
    """
    root_context = get_root_context(ctx)
    model = load_tree(ctx, tree)
    repository = model.to_repository(logger=logger)
    identity = _create_identity(repository, root_context.config)

    subscription = root_context.config.create_subscription(
        identity, logger=logger
    )

    with subscription:
        if not subscription.active:
            # would have already logged error
            raise Exit(code=1)

        with identity.acquire(CLI_USER) as session:
            node = session.resolve(path)
            if node is None:
                raise BadParameter(
                    f"path '{path}' not found in '{tree}'",
                    ctx=ctx,
                    param=lookup_param(ctx, "path"),
                )

            session.set_property(node, name, parse_value(value))
            session.commit()

    _write_tree(repository, tree, dry_run=dry_run)


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    config: Config
    config_file: Path | None

    @classmethod
    def from_config(cls, *, ctx: Context, config_file: Path) -> RootContext:
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError, yaml.YAMLError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        return RootContext(config=config, config_file=config_file)


def _create_identity(
    repository: MemoryRepository, config: Config
) -> MemoryIdentityProvider:
    return MemoryIdentityProvider(
        repository, [config.service_user, CLI_USER], logger=logger
    )


def _write_tree(repository: MemoryRepository, tree: Path, *, dry_run: bool):
    model = TreeModel.from_repository(repository)

    if dry_run:
        logger.info(f"Dry run, not writing {model.count()} nodes to '{tree}'")
        return

    model.dump_yaml(tree)
    logger.info(f"Wrote {model.count()} nodes to '{tree}'")


def _render(node: ContentNode, config: Config) -> Tree:
    """
    Build a rich tree of the node's subtree.
    """
    matcher = config.matcher

    def label(n: ContentNode) -> str:
        name = escape(n.name or "/")
        text = f"[bold]{name}[/bold] [dim]{escape(n.node_type)}[/dim]"

        if matcher(n.resource_type):
            fragment = n.get(config.fragment_path_property, "")
            text += f" [cyan]component[/cyan] -> {escape(str(fragment))}"
            if n.get(config.refresh_property, False):
                text += " [yellow](refresh)[/yellow]"

        return text

    def add(tree: Tree, n: ContentNode):
        for child in n:
            add(tree.add(label(child)), child)

    root = Tree(label(node))
    add(root, node)
    return root


if __name__ == "__main__":
    app()
