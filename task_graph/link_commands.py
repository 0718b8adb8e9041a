"""Relationship commands for the task graph CLI."""

from cyclopts import App

link_app = App(name="link", help="Manage relationships between tasks")


@link_app.command
def add(
    source_id: str,
    *target_ids: str,
    type: str = "RELATED_TO",
    weight: float | None = None,
) -> None:
    """Add relationships from a source task to target tasks."""
    from task_graph.cli import get_service

    with get_service() as service:
        for target_id in target_ids:
            service.create_relationship(source_id, target_id, type, weight)
    print(f"Added {len(target_ids)} relationship(s) from {source_id}")


@link_app.command(name="list")
def list_links(task_id: str) -> None:
    """List all relationships touching a task."""
    from task_graph.cli import get_service

    with get_service() as service:
        relationships = service.list_relationships(task_id)

    if not relationships:
        print(f"No relationships found for task {task_id}")
        return

    print(f"Relationships for task {task_id}:\n")
    for rel in relationships:
        weight = f" ({rel.weight})" if rel.weight is not None else ""
        print(f"  {rel.source_id} --[{rel.type.value}]--> {rel.target_id}{weight}")


@link_app.command
def tree(task_id: str) -> None:
    """Display a task with its direct neighbours."""
    from task_graph.cli import get_service

    with get_service() as service:
        tree = service.get_task_tree(task_id)

    task = tree["task"]
    print(f"Task: {task['id']} {task['title']} ({task['status']})\n")

    for link_type, items in tree["links"].items():
        if not items:
            continue

        display_name = link_type.replace("_", " ").title()

        print(f"{display_name}:")
        for item in items:
            print(f"  - {item['id']} {item['title']}")
        print()


@link_app.command
def cycle(type: str = "DEPENDS_ON") -> None:
    """Find and display cycles among relationships of one type."""
    from task_graph.cli import get_service

    with get_service() as service:
        cycles = service.find_cycles(type)

    if not cycles:
        print("No cycles found")
        return

    print(f"Found {len(cycles)} cycle(s):\n")
    for i, cycle in enumerate(cycles, 1):
        cycle_str = " -> ".join(cycle)
        print(f"{i}. {cycle_str} -> {cycle[0]}")
