"""Task graph: tasks linked by typed relationships, with summarization and decomposition."""

from task_graph.models import Relationship, RelationshipType, Task, TaskFields, TaskGraph, TaskStatus
from task_graph.service import TaskGraphService

__all__ = ["Relationship", "RelationshipType", "Task", "TaskFields", "TaskGraph", "TaskGraphService", "TaskStatus"]
