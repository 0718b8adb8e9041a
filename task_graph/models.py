"""Data models for the task graph."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    """Lifecycle state of a task."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class RelationshipType(str, Enum):
    """Type of a directed edge between two tasks."""

    DEPENDS_ON = "DEPENDS_ON"
    RELATED_TO = "RELATED_TO"
    SUBTASK_OF = "SUBTASK_OF"


@dataclass
class TaskFields:
    """Fields supplied when creating a task."""

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO


@dataclass
class Task:
    """Represents a unit of work stored as a node in the graph."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    parent_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON contract."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Build a task from its JSON contract."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description") or "",
            status=TaskStatus(data.get("status") or TaskStatus.TODO.value),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            parent_id=data.get("parentId"),
        )


@dataclass
class Relationship:
    """Represents a directed, typed edge between two tasks."""

    source_id: str
    target_id: str
    type: RelationshipType
    weight: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON contract."""
        data: dict[str, Any] = {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "type": self.type.value,
        }
        if self.weight is not None:
            data["weight"] = self.weight
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Relationship":
        """Build a relationship from its JSON contract."""
        return cls(
            source_id=data["sourceId"],
            target_id=data["targetId"],
            type=RelationshipType(data["type"]),
            weight=data.get("weight"),
        )


@dataclass
class Position:
    """Placeholder layout coordinates; real layout belongs to the presentation layer."""

    x: float = 0
    y: float = 0


@dataclass
class GraphNode:
    """A task wrapped with its layout position."""

    task: Task
    position: Position = field(default_factory=Position)

    def to_dict(self) -> dict[str, Any]:
        return {"task": self.task.to_dict(), "position": {"x": self.position.x, "y": self.position.y}}


@dataclass
class TaskGraph:
    """Caller-facing view of the whole graph."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[Relationship] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass
class ConnectedSummary:
    """Summary text of a task's connected component and the tasks it covers."""

    summary: str
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.summary, "tasks": [task.to_dict() for task in self.tasks]}
