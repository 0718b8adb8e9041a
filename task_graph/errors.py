"""Error taxonomy for the task graph."""

from task_graph.models import Task


class TaskGraphError(Exception):
    """Base class for all task graph errors."""


class ValidationError(TaskGraphError):
    """Raised when input is malformed or a required field is missing."""


class NotFoundError(TaskGraphError):
    """Raised when a referenced task does not exist."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StorageError(TaskGraphError):
    """Raised when the graph store is unreachable or returns a fault."""


class OperationTimeoutError(TaskGraphError, TimeoutError):
    """Raised when a store or generation call exceeds its time bound."""


class GenerationError(TaskGraphError):
    """Raised when the text generation backend fails while decomposing a task."""


class ForbiddenError(TaskGraphError):
    """Raised when an operation is refused by policy."""


class PartialDecompositionError(TaskGraphError):
    """Raised when a decomposition write fails.

    The subtasks in ``created`` remain persisted; it is empty when the store
    rolled the whole decomposition back. The failing error is
    available as ``__cause__``.
    """

    def __init__(self, task_id: str, created: list[Task]) -> None:
        super().__init__(f"Decomposition of task {task_id} failed with {len(created)} subtask(s) left persisted")
        self.task_id = task_id
        self.created = created
