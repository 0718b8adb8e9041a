"""Task graph service orchestrating the store and the text generator."""

from types import TracebackType
from typing import Any

import structlog

from task_graph.assembly import assemble_graph, build_task_tree, find_cycles
from task_graph.errors import ForbiddenError, PartialDecompositionError, TaskGraphError, ValidationError
from task_graph.generation import TextGenerator
from task_graph.models import (
    ConnectedSummary,
    Relationship,
    RelationshipType,
    Task,
    TaskFields,
    TaskGraph,
    TaskStatus,
)
from task_graph.store import GraphStore

logger = structlog.get_logger()

PRODUCTION = "production"


def _parse_status(status: str | TaskStatus | None) -> TaskStatus:
    if status is None or status == "":
        return TaskStatus.TODO
    try:
        return TaskStatus(status.upper() if isinstance(status, str) else status)
    except ValueError as e:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise ValidationError(f"Unknown status: '{status}'. Expected one of: {allowed}") from e


def _parse_type(type: str | RelationshipType) -> RelationshipType:
    try:
        return RelationshipType(type.upper() if isinstance(type, str) else type)
    except ValueError as e:
        allowed = ", ".join(t.value for t in RelationshipType)
        raise ValidationError(f"Unknown relationship type: '{type}'. Expected one of: {allowed}") from e


def _parse_weight(weight: Any) -> float | None:
    if weight is None:
        return None
    if isinstance(weight, bool):
        raise ValidationError("Relationship weight must be a number")
    try:
        return float(weight)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Relationship weight must be a number, got '{weight}'") from e


class TaskGraphService:
    """Request-level operations over the task graph.

    Every operation holds a single store scope, so a store that pools
    sessions uses one session per operation and releases it on every exit
    path.
    """

    def __init__(self, store: GraphStore, generator: TextGenerator, environment: str = "development") -> None:
        """Initialize the service.

        Args:
            store: Graph store owning tasks and relationships
            generator: Text generator used for summaries and decomposition
            environment: Deployment environment; bulk deletion is refused in production
        """
        self.store = store
        self.generator = generator
        self.environment = environment

    def create_task(self, title: str, description: str = "", status: str | TaskStatus | None = None) -> Task:
        """Create a task after validating its fields."""
        if not title or not title.strip():
            raise ValidationError("Task title must not be empty")
        fields = TaskFields(title=title.strip(), description=description or "", status=_parse_status(status))

        with self.store.scope():
            task = self.store.create_task(fields)
        logger.info("Task created", task_id=task.id, title=task.title)
        return task

    def list_tasks(self) -> list[Task]:
        """List every task."""
        with self.store.scope():
            return self.store.list_tasks()

    def get_task(self, task_id: str) -> Task:
        """Read one task."""
        with self.store.scope():
            return self.store.get_task(task_id)

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        type: str | RelationshipType,
        weight: float | str | None = None,
    ) -> Relationship:
        """Link two existing tasks.

        Repeated calls create parallel edges and self-loops are allowed.
        """
        rel_type = _parse_type(type)
        rel_weight = _parse_weight(weight)

        with self.store.scope():
            relationship = self.store.create_relationship(source_id, target_id, rel_type, rel_weight)
        logger.info("Relationship created", source_id=source_id, target_id=target_id, type=rel_type.value)
        return relationship

    def list_relationships(self, task_id: str) -> list[Relationship]:
        """List relationships touching an existing task."""
        with self.store.scope():
            self.store.get_task(task_id)
            return self.store.list_relationships(task_id)

    def get_graph(self) -> TaskGraph:
        """Fetch and assemble the whole graph."""
        with self.store.scope():
            tasks, relationships = self.store.fetch_graph()
        return assemble_graph(tasks, relationships)

    def summarize_connected(self, task_id: str) -> ConnectedSummary:
        """Summarize the task together with every task connected to it."""
        with self.store.scope():
            tasks = self.store.fetch_connected_component(task_id)

        summary = self.generator.summarize(tasks)
        logger.info("Connected tasks summarized", task_id=task_id, count=len(tasks))
        return ConnectedSummary(summary=summary, tasks=tasks)

    def decompose_task(self, task_id: str) -> list[Task]:
        """Expand a task into generated subtasks linked back to it.

        Generation runs before any write, so a generation failure leaves the
        graph untouched. The writes run inside ``store.transaction()``. On a
        store with transactions a failed write rolls every subtask back; on
        one without, subtasks already written stay in the graph. Either way
        the failure is raised as ``PartialDecompositionError`` listing the
        subtasks that remain persisted. Nothing is retried, since a retry
        would add further subtasks.
        """
        with self.store.scope():
            task = self.store.get_task(task_id)
            proposals = self.generator.decompose(task)
            logger.debug("Decomposition proposed", task_id=task_id, count=len(proposals))

            created: list[Task] = []
            try:
                with self.store.transaction():
                    for fields in proposals:
                        subtask = self.store.create_task(fields, parent_id=task.id)
                        created.append(subtask)
                        self.store.create_relationship(subtask.id, task.id, RelationshipType.SUBTASK_OF)
            except TaskGraphError as e:
                persisted = [] if self.store.supports_transactions else created
                logger.error(
                    "Decomposition failed partway",
                    task_id=task_id,
                    persisted=[t.id for t in persisted],
                    rolled_back=self.store.supports_transactions,
                    error=str(e),
                )
                raise PartialDecompositionError(task_id, persisted) from e

        logger.info("Task decomposed", task_id=task_id, subtasks=len(created))
        return created

    def get_task_tree(self, task_id: str) -> dict[str, Any]:
        """Return a task with its direct neighbours grouped by relationship."""
        with self.store.scope():
            task = self.store.get_task(task_id)
            relationships = self.store.list_relationships(task_id)
            tasks_by_id = {t.id: t for t in self.store.list_tasks()}
        return build_task_tree(task, relationships, tasks_by_id)

    def find_cycles(self, type: str | RelationshipType = RelationshipType.DEPENDS_ON) -> list[list[str]]:
        """Find cycles among relationships of one type."""
        rel_type = _parse_type(type)
        with self.store.scope():
            _, relationships = self.store.fetch_graph()
        return find_cycles(relationships, rel_type)

    def delete_task(self, task_id: str) -> None:
        """Delete a task and its relationships; absent tasks are ignored."""
        with self.store.scope():
            self.store.delete_task(task_id)
        logger.info("Task deleted", task_id=task_id)

    def delete_all_tasks(self) -> None:
        """Wipe the graph. Refused in production."""
        if self.environment == PRODUCTION:
            logger.warning("Refusing to delete all tasks", environment=self.environment)
            raise ForbiddenError("Deleting all tasks is not allowed in production")

        with self.store.scope():
            self.store.delete_all_tasks()
        logger.info("All tasks deleted", environment=self.environment)

    def close(self) -> None:
        """Close the underlying store."""
        self.store.close()

    def __enter__(self) -> "TaskGraphService":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
