"""CLI for the task graph."""

import json
import sys
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from task_graph.config import get_config
from task_graph.config_commands import config_app
from task_graph.errors import TaskGraphError
from task_graph.generation import build_generator
from task_graph.link_commands import link_app
from task_graph.service import TaskGraphService
from task_graph.store import GraphStore
from task_graph.stores import MemoryGraphStore, Neo4jGraphStore

logger = structlog.get_logger()

app = App(
    name="task-graph",
    help="Task Graph - tasks linked by dependencies, associations and subtasks",
)

app.command(link_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_store() -> GraphStore:
    """Get the configured graph store."""
    config = get_config()
    store_type = config.get("store", "memory")
    timeout = config.get_float("timeout", 30)

    if store_type == "memory":
        path = config.get("memory.path", str(config.config_dir / "graph.json"))
        return MemoryGraphStore(path=path)
    elif store_type == "neo4j":
        return Neo4jGraphStore(
            uri=config.get("neo4j.uri", "neo4j://localhost:7687"),
            username=config.get("neo4j.username", "neo4j"),
            password=config.get("neo4j.password", "password"),
            database=config.get("neo4j.database"),
            timeout=timeout,
        )
    else:
        raise ValueError(f"Unknown store: {store_type}")


def get_service() -> TaskGraphService:
    """Build the service from configuration."""
    config = get_config()
    generator = build_generator(
        api_key=config.get("openai.api_key"),
        model=config.get("openai.model", "gpt-4"),
        timeout=config.get_float("timeout", 30),
    )
    return TaskGraphService(
        store=get_store(),
        generator=generator,
        environment=config.get("environment", "development"),
    )


@app.command
def create(title: str, description: str = "", status: str | None = None) -> None:
    """Create a new task."""
    with get_service() as service:
        task = service.create_task(title=title, description=description, status=status)
    print(f"Created task {task.id}: {task.title}")


@app.command
def show(task_id: str) -> None:
    """Show a task by ID."""
    with get_service() as service:
        task = service.get_task(task_id)

    print(f"Task: {task.id}")
    print(f"Title: {task.title}")
    print(f"Description: {task.description}")
    print(f"Status: {task.status.value}")
    if task.parent_id:
        print(f"Parent: {task.parent_id}")
    print(f"Created: {task.created_at.isoformat()}")


@app.command(name="list")
def list_tasks() -> None:
    """List all tasks."""
    with get_service() as service:
        tasks = service.list_tasks()

    print(f"Found {len(tasks)} task(s):\n")
    for task in tasks:
        print(f"[{task.status.value}] {task.id}: {task.title}")


@app.command
def graph() -> None:
    """Print the whole graph as JSON."""
    with get_service() as service:
        task_graph = service.get_graph()
    print(json.dumps(task_graph.to_dict(), indent=2))


@app.command
def summarize(task_id: str) -> None:
    """Summarize a task and every task connected to it."""
    with get_service() as service:
        result = service.summarize_connected(task_id)

    print(result.summary)
    print(f"\nCovers {len(result.tasks)} task(s):")
    for task in result.tasks:
        print(f"  - {task.id} {task.title}")


@app.command
def decompose(task_id: str) -> None:
    """Break a task into generated subtasks."""
    with get_service() as service:
        subtasks = service.decompose_task(task_id)

    if not subtasks:
        print(f"No subtasks generated for task {task_id}")
        return

    print(f"Created {len(subtasks)} subtask(s) of {task_id}:")
    for task in subtasks:
        print(f"  - {task.id} {task.title}")


@app.command
def delete(*task_ids: str) -> None:
    """Delete one or more tasks with their relationships."""
    with get_service() as service:
        for task_id in task_ids:
            service.delete_task(task_id)
    print(f"Deleted {len(task_ids)} task(s)")


@app.command
def delete_all() -> None:
    """Delete every task. Not available in production."""
    with get_service() as service:
        service.delete_all_tasks()
    print("Deleted all tasks")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except TaskGraphError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    app.meta()
