"""Shaping raw store records into caller-facing graph views."""

from collections.abc import Iterable
from typing import Any

import structlog

from task_graph.models import GraphNode, Position, Relationship, RelationshipType, Task, TaskGraph

logger = structlog.get_logger()


def assemble_graph(tasks: Iterable[Task], relationships: Iterable[Relationship]) -> TaskGraph:
    """Build the nodes and edges view of the graph.

    Every task becomes a node at the placeholder position (0, 0). Edges whose
    source or target is not among the nodes are dropped. Parallel duplicate
    edges are passed through unchanged.
    """
    nodes = [GraphNode(task=task, position=Position()) for task in tasks]
    node_ids = {node.task.id for node in nodes}

    edges = []
    dropped = 0
    for rel in relationships:
        if rel.source_id in node_ids and rel.target_id in node_ids:
            edges.append(rel)
        else:
            dropped += 1

    if dropped:
        logger.warning("Dropped dangling edges", count=dropped)
    logger.debug("Graph assembled", nodes=len(nodes), edges=len(edges))
    return TaskGraph(nodes=nodes, edges=edges)


def _summary(task: Task) -> dict[str, Any]:
    return {"id": task.id, "title": task.title, "status": task.status.value}


def build_task_tree(task: Task, relationships: Iterable[Relationship], tasks_by_id: dict[str, Task]) -> dict[str, Any]:
    """Group a task's direct neighbours by how they relate to it.

    Returns:
        Dictionary with structure:
        {
            "task": {"id": str, "title": str, "status": str},
            "links": {
                "subtasks": list[dict],    # tasks that are SUBTASK_OF this task
                "parent": list[dict],      # tasks this task is SUBTASK_OF
                "depends_on": list[dict],  # tasks this task DEPENDS_ON
                "dependents": list[dict],  # tasks that DEPENDS_ON this task
                "related": list[dict]      # RELATED_TO in either direction
            }
        }
    """
    tree: dict[str, Any] = {
        "task": _summary(task),
        "links": {
            "subtasks": [],
            "parent": [],
            "depends_on": [],
            "dependents": [],
            "related": [],
        },
    }
    links = tree["links"]

    for rel in relationships:
        outgoing = rel.source_id == task.id
        other = tasks_by_id.get(rel.target_id if outgoing else rel.source_id)
        if other is None:
            continue

        if rel.type == RelationshipType.SUBTASK_OF:
            links["parent" if outgoing else "subtasks"].append(_summary(other))
        elif rel.type == RelationshipType.DEPENDS_ON:
            links["depends_on" if outgoing else "dependents"].append(_summary(other))
        else:
            links["related"].append(_summary(other))

    return tree


def find_cycles(relationships: Iterable[Relationship], type: RelationshipType) -> list[list[str]]:
    """Find cycles among edges of one relationship type.

    Each cycle is reported once, as the list of task IDs along it starting
    from the task where the search first closed it. Self-loops are cycles of
    length one.
    """
    graph: dict[str, list[str]] = {}
    for rel in relationships:
        if rel.type == type:
            graph.setdefault(rel.source_id, []).append(rel.target_id)

    cycles: list[list[str]] = []
    seen_cycles: set[frozenset[str]] = set()
    visited: set[str] = set()

    def visit(node: str, path: list[str], on_path: set[str]) -> None:
        visited.add(node)
        path.append(node)
        on_path.add(node)
        for nxt in graph.get(node, []):
            if nxt in on_path:
                cycle = path[path.index(nxt):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(cycle)
            elif nxt not in visited:
                visit(nxt, path, on_path)
        path.pop()
        on_path.discard(node)

    for start in list(graph):
        if start not in visited:
            visit(start, [], set())

    logger.debug("Cycle search finished", type=type.value, cycles=len(cycles))
    return cycles
