"""Graph store interface for tasks and relationships."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

from task_graph.models import Relationship, RelationshipType, Task, TaskFields


class GraphStore(ABC):
    """Abstract base class for task graph stores."""

    # True when transaction() groups writes so they commit or roll back together.
    supports_transactions = False

    @abstractmethod
    def create_task(self, fields: TaskFields, parent_id: str | None = None) -> Task:
        """Create and persist a new task."""
        pass

    @abstractmethod
    def get_task(self, task_id: str) -> Task:
        """Read a task by ID."""
        pass

    @abstractmethod
    def list_tasks(self) -> list[Task]:
        """List every task in no particular order."""
        pass

    @abstractmethod
    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        type: RelationshipType,
        weight: float | None = None,
    ) -> Relationship:
        """Create a directed edge between two existing tasks.

        Identical edges may already exist; a new parallel edge is created anyway.
        """
        pass

    @abstractmethod
    def list_relationships(self, task_id: str) -> list[Relationship]:
        """List every relationship where the task is source or target."""
        pass

    @abstractmethod
    def fetch_graph(self) -> tuple[list[Task], list[Relationship]]:
        """Fetch every task together with every outgoing relationship of each task."""
        pass

    @abstractmethod
    def fetch_connected_component(self, task_id: str) -> list[Task]:
        """Fetch the task and every task reachable from it in either direction."""
        pass

    @abstractmethod
    def delete_task(self, task_id: str) -> None:
        """Delete a task and every relationship touching it. Missing IDs are ignored."""
        pass

    @abstractmethod
    def delete_all_tasks(self) -> None:
        """Delete every task and relationship."""
        pass

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Hold one store session for the duration of a request.

        Store calls made inside the block share the session, which is released
        on every exit path.
        """
        yield

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group the store calls made inside the block into one transaction.

        Stores without multi-statement transactions run each call on its own,
        so writes made before a failure stay committed.
        """
        yield

    def close(self) -> None:
        """Release resources held by the store."""
        pass

    def __enter__(self) -> "GraphStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
