import logging
from pathlib import Path

import yaml
from pytest import FixtureRequest, fixture
from typer.testing import CliRunner

from fragment_sync import *
from fragment_sync.tools.cli.main import app
from fragment_sync.tools.config import Config
from fragment_sync.tools.tree import TreeModel

from .conftest import COMPONENT_PATH, ORIGIN_PATH, TEXT_PATH, content_tree


class LogHandler(logging.Handler):
    """
    Handler to create a list of logs for testcases to access for verification.
    """

    test_logs: list[str]

    def __init__(self):
        super().__init__()
        self.test_logs = []

    def emit(self, record: logging.LogRecord):
        self.test_logs.append(record.getMessage())


# create and register handler
log_handler = LogHandler()
logging.getLogger("fragment-sync").addHandler(log_handler)

runner = CliRunner()


@fixture(autouse=True)
def clear_logs():
    log_handler.test_logs.clear()


@fixture
def tree_path(tmp_path: Path) -> Path:
    path = tmp_path / "tree.yaml"
    TreeModel(children=content_tree()).dump_yaml(path)
    return path


def load(path: Path) -> MemoryRepository:
    return TreeModel.load_yaml(path).to_repository()


def children(path: Path, node_path: str) -> list[str]:
    node = load(path).lookup(node_path)
    assert node is not None
    return node.child_names


def _run(request: FixtureRequest, args: list, exit_code: int = 0):
    result = runner.invoke(app, [str(a) for a in args])

    print(f"--- {request.node.name}: {args}\n{result.output}")

    assert result.exit_code == exit_code, result.output
    return result


def test_check(request: FixtureRequest, tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = _run(request, ["check"])
    assert "Configuration from defaults:" in log_handler.test_logs
    assert EDITABLE_COMPONENT_SUPER_TYPE in result.output

    config_path = tmp_path / "custom.yaml"
    Config(service_user="custom-user").dump_yaml(config_path)

    result = _run(request, ["--config-file", config_path, "check"])
    assert "custom-user" in result.output

    # picked up from working dir
    Config(service_user="default-file-user").dump_yaml(
        tmp_path / "fragment-sync.yaml"
    )
    result = _run(request, ["check"])
    assert "default-file-user" in result.output


def test_bad_config(request: FixtureRequest, tmp_path: Path):
    config_path = tmp_path / "bad.yaml"
    config_path.write_text(yaml.safe_dump({"content_root": "relative"}))

    _run(request, ["--config-file", config_path, "check"], exit_code=2)
    _run(
        request,
        ["--config-file", tmp_path / "missing.yaml", "check"],
        exit_code=2,
    )


def test_show(request: FixtureRequest, tree_path: Path):
    result = _run(request, ["show", tree_path, "--path", "/content/page"])

    assert "hero" in result.output
    assert "component" in result.output
    assert "/content/fragments/hero/master" in result.output

    _run(request, ["show", tree_path, "--path", "/missing"], exit_code=2)


def test_sync(request: FixtureRequest, tree_path: Path):
    _run(request, ["sync", "--dry-run", tree_path, ORIGIN_PATH, COMPONENT_PATH])
    assert children(tree_path, COMPONENT_PATH) == ["a", "b"]

    _run(request, ["sync", tree_path, ORIGIN_PATH, COMPONENT_PATH])
    assert children(tree_path, COMPONENT_PATH) == ["c"]

    # origin children mismatch each other, so every run copies both
    log_handler.test_logs.clear()
    _run(request, ["sync", tree_path, ORIGIN_PATH, COMPONENT_PATH])
    assert any("copied=2, removed=2" in log for log in log_handler.test_logs)
    assert children(tree_path, COMPONENT_PATH) == ["c"]

    _run(
        request,
        ["sync", tree_path, "/content/missing", COMPONENT_PATH],
        exit_code=1,
    )


def test_set(request: FixtureRequest, tree_path: Path):
    _run(request, ["set", tree_path, COMPONENT_PATH, REFRESH_PROPERTY, "true"])

    repository = load(tree_path)
    component = repository.lookup(COMPONENT_PATH)
    assert component is not None
    assert component.child_names == ["c"]
    assert component.get(REFRESH_PROPERTY) is False

    _run(request, ["set", tree_path, TEXT_PATH, "text", "Bye"])

    text = load(tree_path).lookup(TEXT_PATH)
    assert text is not None
    assert text.get("text") == "Bye"
    assert text.get(REFRESH_PROPERTY) is False

    _run(
        request,
        ["set", tree_path, "/content/missing", "text", "Bye"],
        exit_code=2,
    )


def test_set_dry_run(request: FixtureRequest, tree_path: Path):
    before = tree_path.read_text()

    _run(
        request,
        ["set", "--dry-run", tree_path, COMPONENT_PATH, "title", "New title"],
    )

    assert tree_path.read_text() == before
