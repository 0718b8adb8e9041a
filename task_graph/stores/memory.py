"""In-process graph store with optional JSON file persistence."""

import json
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

import structlog

from task_graph.errors import NotFoundError, StorageError
from task_graph.models import Relationship, RelationshipType, Task, TaskFields
from task_graph.store import GraphStore

logger = structlog.get_logger()


class MemoryGraphStore(GraphStore):
    """Graph store keeping tasks and relationships in memory.

    When a path is given the whole graph is loaded from that JSON file at
    construction and written back after every mutation.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize the memory store.

        Args:
            path: Optional JSON file used to persist the graph between processes
        """
        self.path = Path(path) if path is not None else None
        self._tasks: dict[str, Task] = {}
        self._relationships: list[Relationship] = []
        self._lock = threading.RLock()

        if self.path is not None and self.path.exists():
            self._load(self.path)
        logger.debug("Memory store initialized", path=str(self.path) if self.path else None, tasks=len(self._tasks))

    def _load(self, path: Path) -> None:
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to load graph file", path=str(path), error=str(e))
            raise StorageError(f"Failed to load graph from {path}: {e}") from e

        for item in data.get("tasks", []):
            task = Task.from_dict(item)
            self._tasks[task.id] = task
        self._relationships = [Relationship.from_dict(item) for item in data.get("relationships", [])]

    def _commit(self, tasks: dict[str, Task], relationships: list[Relationship]) -> None:
        """Persist the candidate graph, then make it the live one.

        A failed save leaves the live graph untouched.
        """
        self._save(tasks, relationships)
        self._tasks = tasks
        self._relationships = relationships

    def _save(self, tasks: dict[str, Task], relationships: list[Relationship]) -> None:
        if self.path is None:
            return
        data = {
            "tasks": [task.to_dict() for task in tasks.values()],
            "relationships": [rel.to_dict() for rel in relationships],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Failed to save graph file", path=str(self.path), error=str(e))
            raise StorageError(f"Failed to save graph to {self.path}: {e}") from e

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def create_task(self, fields: TaskFields, parent_id: str | None = None) -> Task:
        """Create a task in memory."""
        now = datetime.now(timezone.utc)
        task = Task(
            id=str(uuid.uuid4()),
            title=fields.title,
            description=fields.description,
            status=fields.status,
            created_at=now,
            updated_at=now,
            parent_id=parent_id,
        )
        with self._lock:
            self._commit({**self._tasks, task.id: task}, self._relationships)
        logger.debug("Task stored", task_id=task.id, parent_id=parent_id)
        return task

    def get_task(self, task_id: str) -> Task:
        """Read a task from memory."""
        with self._lock:
            return self._require(task_id)

    def list_tasks(self) -> list[Task]:
        """List all tasks in memory."""
        with self._lock:
            return list(self._tasks.values())

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        type: RelationshipType,
        weight: float | None = None,
    ) -> Relationship:
        """Append a relationship between two existing tasks."""
        with self._lock:
            self._require(source_id)
            self._require(target_id)
            relationship = Relationship(source_id=source_id, target_id=target_id, type=type, weight=weight)
            self._commit(self._tasks, [*self._relationships, relationship])
        logger.debug("Relationship stored", source_id=source_id, target_id=target_id, type=type.value)
        return relationship

    def list_relationships(self, task_id: str) -> list[Relationship]:
        """List relationships touching a task."""
        with self._lock:
            return [rel for rel in self._relationships if task_id in (rel.source_id, rel.target_id)]

    def fetch_graph(self) -> tuple[list[Task], list[Relationship]]:
        """Return all tasks and the outgoing relationships of each one."""
        with self._lock:
            tasks = list(self._tasks.values())
            outgoing: dict[str, list[Relationship]] = {task.id: [] for task in tasks}
            for rel in self._relationships:
                if rel.source_id in outgoing:
                    outgoing[rel.source_id].append(rel)
            edges = [rel for task in tasks for rel in outgoing[task.id]]
        return tasks, edges

    def fetch_connected_component(self, task_id: str) -> list[Task]:
        """Breadth-first search over relationships ignoring their direction."""
        with self._lock:
            start = self._require(task_id)

            neighbours: dict[str, set[str]] = {}
            for rel in self._relationships:
                neighbours.setdefault(rel.source_id, set()).add(rel.target_id)
                neighbours.setdefault(rel.target_id, set()).add(rel.source_id)

            seen = {start.id}
            order = [start]
            queue = deque([start.id])
            while queue:
                current = queue.popleft()
                for other in neighbours.get(current, ()):
                    if other in seen or other not in self._tasks:
                        continue
                    seen.add(other)
                    order.append(self._tasks[other])
                    queue.append(other)

        logger.debug("Connected component fetched", task_id=task_id, count=len(order))
        return order

    def delete_task(self, task_id: str) -> None:
        """Remove a task and every relationship touching it."""
        with self._lock:
            if task_id not in self._tasks:
                logger.debug("Task already absent", task_id=task_id)
                return
            tasks = {key: task for key, task in self._tasks.items() if key != task_id}
            relationships = [rel for rel in self._relationships if task_id not in (rel.source_id, rel.target_id)]
            self._commit(tasks, relationships)

    def delete_all_tasks(self) -> None:
        """Clear the store."""
        with self._lock:
            self._commit({}, [])
