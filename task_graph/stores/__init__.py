"""Graph store implementations."""

from task_graph.stores.memory import MemoryGraphStore
from task_graph.stores.neo4j import Neo4jGraphStore

__all__ = ["MemoryGraphStore", "Neo4jGraphStore"]
