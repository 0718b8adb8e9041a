"""Tests for CLI commands."""

import json
from pathlib import Path

import pytest

from task_graph import cli, link_commands
from task_graph.config import Config
from task_graph.generation import FallbackTextGenerator
from task_graph.service import TaskGraphService
from task_graph.stores.memory import MemoryGraphStore


@pytest.fixture
def graph_file(tmp_path: Path) -> Path:
    return tmp_path / "graph.json"


@pytest.fixture(autouse=True)
def file_backed_service(graph_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Make every command use a fresh service over the same graph file."""
    cli.configure_logging("critical")

    def get_service() -> TaskGraphService:
        return TaskGraphService(store=MemoryGraphStore(path=graph_file), generator=FallbackTextGenerator())

    monkeypatch.setattr("task_graph.cli.get_service", get_service)


def created_id(output: str) -> str:
    return output.split("Created task ", 1)[1].split(":", 1)[0]


def test_create_and_list(capsys: pytest.CaptureFixture[str]) -> None:
    """Test created tasks are listed."""
    cli.create("Write spec")
    task_id = created_id(capsys.readouterr().out)

    cli.list_tasks()
    out = capsys.readouterr().out
    assert "Found 1 task(s)" in out
    assert f"[TODO] {task_id}: Write spec" in out


def test_graph_prints_json(capsys: pytest.CaptureFixture[str]) -> None:
    """Test the graph command prints the JSON contract."""
    cli.create("Write spec")
    first = created_id(capsys.readouterr().out)
    cli.create("Review spec")
    second = created_id(capsys.readouterr().out)
    link_commands.add(first, second, type="DEPENDS_ON")
    capsys.readouterr()

    cli.graph()
    data = json.loads(capsys.readouterr().out)
    assert len(data["nodes"]) == 2
    assert data["edges"] == [{"sourceId": first, "targetId": second, "type": "DEPENDS_ON"}]


def test_decompose_and_tree(capsys: pytest.CaptureFixture[str]) -> None:
    """Test decomposition output and the resulting tree."""
    cli.create("Write spec")
    task_id = created_id(capsys.readouterr().out)

    cli.decompose(task_id)
    out = capsys.readouterr().out
    assert f"Created 2 subtask(s) of {task_id}" in out

    link_commands.tree(task_id)
    out = capsys.readouterr().out
    assert "Subtasks:" in out
    assert "Write spec - Part 1" in out


def test_delete(capsys: pytest.CaptureFixture[str]) -> None:
    """Test deleting tasks by ID."""
    cli.create("Write spec")
    task_id = created_id(capsys.readouterr().out)

    cli.delete(task_id, "missing")
    assert "Deleted 2 task(s)" in capsys.readouterr().out

    cli.list_tasks()
    assert "Found 0 task(s)" in capsys.readouterr().out


def test_get_store_memory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the memory store is the default and lives under the config directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config(config_dir=tmp_path / ".task-graph")
    monkeypatch.setattr("task_graph.cli.get_config", lambda: config)

    store = cli.get_store()

    assert isinstance(store, MemoryGraphStore)
    assert store.path == tmp_path / ".task-graph" / "graph.json"


def test_get_store_unknown(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test an unknown store type is rejected."""
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config(config_dir=tmp_path / ".task-graph")
    config.set("store", "sqlite")
    monkeypatch.setattr("task_graph.cli.get_config", lambda: config)

    with pytest.raises(ValueError):
        cli.get_store()
