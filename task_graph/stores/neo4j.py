"""Neo4j graph store implementation using the official neo4j driver."""

import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import structlog
from neo4j import GraphDatabase, ManagedTransaction, Session, Transaction, unit_of_work
from neo4j.exceptions import ClientError, DriverError, Neo4jError

from task_graph.errors import NotFoundError, OperationTimeoutError, StorageError
from task_graph.models import Relationship, RelationshipType, Task, TaskFields, TaskStatus
from task_graph.store import GraphStore

logger = structlog.get_logger()

TIMEOUT_CODES = (
    "Neo.ClientError.Transaction.TransactionTimedOut",
    "Neo.ClientError.Transaction.TransactionTimedOutClientConfiguration",
)


def _node_to_task(node: Any) -> Task:
    """Convert a (:Task) node to a Task."""
    props = dict(node.items())
    return Task(
        id=props["id"],
        title=props["title"],
        description=props.get("description") or "",
        status=TaskStatus(props.get("status") or TaskStatus.TODO.value),
        created_at=datetime.fromisoformat(props["createdAt"]),
        updated_at=datetime.fromisoformat(props["updatedAt"]),
        parent_id=props.get("parentId"),
    )


def _row_to_relationship(row: dict[str, Any]) -> Relationship:
    return Relationship(
        source_id=row["sourceId"],
        target_id=row["targetId"],
        type=RelationshipType(row["type"]),
        weight=row.get("weight"),
    )


class Neo4jGraphStore(GraphStore):
    """Neo4j-backed store keeping tasks as (:Task) nodes and relationships as typed edges."""

    supports_transactions = True

    def __init__(
        self,
        uri: str,
        username: str,
        password: str,
        database: str | None = None,
        timeout: float = 30,
    ) -> None:
        """Initialize Neo4j store.

        Args:
            uri: Bolt or neo4j URI of the server
            username: Database user
            password: Database password
            database: Target database (defaults to the server's default database)
            timeout: Seconds bounding every transaction and connection attempt
        """
        self.uri = uri
        self.database = database
        self.timeout = timeout
        self._local = threading.local()

        logger.debug("Initializing Neo4j store", uri=uri, database=database)
        self.driver = GraphDatabase.driver(
            uri,
            auth=(username, password),
            connection_timeout=timeout,
            connection_acquisition_timeout=timeout,
        )
        try:
            with self._translate_errors("connect"):
                self.driver.verify_connectivity()
        except StorageError:
            self.driver.close()
            raise
        logger.info("Neo4j store initialized", uri=uri)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Translate driver exceptions into task graph errors."""
        try:
            yield
        except ClientError as e:
            if e.code in TIMEOUT_CODES:
                logger.error("Neo4j transaction timed out", operation=operation, timeout=self.timeout)
                raise OperationTimeoutError(f"{operation} exceeded {self.timeout}s") from e
            logger.error("Neo4j rejected query", operation=operation, code=e.code, error=str(e))
            raise StorageError(f"{operation} failed: {e}") from e
        except (Neo4jError, DriverError) as e:
            logger.error("Neo4j operation failed", operation=operation, error=str(e))
            raise StorageError(f"{operation} failed: {e}") from e

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Open one session shared by every store call until the block exits."""
        if getattr(self._local, "session", None) is not None:
            yield
            return

        session = self.driver.session(database=self.database)
        self._local.session = session
        logger.debug("Neo4j session acquired")
        try:
            yield
        finally:
            self._local.session = None
            session.close()
            logger.debug("Neo4j session released")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        current = getattr(self._local, "session", None)
        if current is not None:
            yield current
            return
        with self.driver.session(database=self.database) as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run every store call inside the block in one explicit transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises. Nested blocks join the outer transaction.
        """
        if getattr(self._local, "tx", None) is not None:
            yield
            return

        with self._session() as session:
            with self._translate_errors("begin transaction"):
                tx: Transaction = session.begin_transaction(timeout=self.timeout)
            self._local.tx = tx
            logger.debug("Neo4j transaction opened")
            try:
                yield
                with self._translate_errors("commit transaction"):
                    tx.commit()
                logger.debug("Neo4j transaction committed")
            finally:
                self._local.tx = None
                # Closing an uncommitted transaction rolls it back.
                tx.close()

    def _run(self, operation: str, work: Callable[..., Any], write: bool, params: dict[str, Any]) -> Any:
        tx = getattr(self._local, "tx", None)
        with self._translate_errors(operation):
            if tx is not None:
                return work(tx, **params)
            with self._session() as session:
                execute = session.execute_write if write else session.execute_read
                return execute(unit_of_work(timeout=self.timeout)(work), **params)

    def _read(self, operation: str, work: Callable[..., Any], **params: Any) -> Any:
        return self._run(operation, work, False, params)

    def _write(self, operation: str, work: Callable[..., Any], **params: Any) -> Any:
        return self._run(operation, work, True, params)

    def create_task(self, fields: TaskFields, parent_id: str | None = None) -> Task:
        """Create a (:Task) node."""
        now = datetime.now(timezone.utc).isoformat()
        props: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "title": fields.title,
            "description": fields.description,
            "status": fields.status.value,
            "createdAt": now,
            "updatedAt": now,
        }
        if parent_id is not None:
            props["parentId"] = parent_id
        logger.debug("Creating Neo4j task node", task_id=props["id"], parent_id=parent_id)

        def work(tx: ManagedTransaction, props: dict[str, Any]) -> Task:
            record = tx.run("CREATE (t:Task $props) RETURN t", props=props).single(strict=True)
            return _node_to_task(record["t"])

        return self._write("create task", work, props=props)

    def get_task(self, task_id: str) -> Task:
        """Read a (:Task) node by ID."""

        def work(tx: ManagedTransaction, task_id: str) -> Task:
            record = tx.run("MATCH (t:Task {id: $task_id}) RETURN t", task_id=task_id).single()
            if record is None:
                raise NotFoundError(task_id)
            return _node_to_task(record["t"])

        return self._read("get task", work, task_id=task_id)

    def list_tasks(self) -> list[Task]:
        """List all (:Task) nodes."""

        def work(tx: ManagedTransaction) -> list[Task]:
            return [_node_to_task(record["t"]) for record in tx.run("MATCH (t:Task) RETURN t")]

        tasks = self._read("list tasks", work)
        logger.debug("Listed Neo4j tasks", count=len(tasks))
        return tasks

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        type: RelationshipType,
        weight: float | None = None,
    ) -> Relationship:
        """Create a typed edge between two (:Task) nodes."""
        # Relationship types cannot be query parameters; the enum bounds what is interpolated.
        rel_type = RelationshipType(type).value
        query = (
            "MATCH (source:Task {id: $source_id}) "
            "MATCH (target:Task {id: $target_id}) "
            f"CREATE (source)-[r:{rel_type}]->(target) "
            "SET r.weight = $weight "
            "RETURN r"
        )

        def work(tx: ManagedTransaction, source_id: str, target_id: str, weight: float | None) -> None:
            found = {
                record["id"]
                for record in tx.run(
                    "MATCH (t:Task) WHERE t.id IN $ids RETURN t.id AS id", ids=[source_id, target_id]
                )
            }
            for task_id in (source_id, target_id):
                if task_id not in found:
                    raise NotFoundError(task_id)
            tx.run(query, source_id=source_id, target_id=target_id, weight=weight).consume()

        self._write("create relationship", work, source_id=source_id, target_id=target_id, weight=weight)
        logger.debug("Created Neo4j relationship", source_id=source_id, target_id=target_id, type=rel_type)
        return Relationship(source_id=source_id, target_id=target_id, type=RelationshipType(rel_type), weight=weight)

    def list_relationships(self, task_id: str) -> list[Relationship]:
        """List edges where the task is an endpoint."""

        def work(tx: ManagedTransaction, task_id: str) -> list[Relationship]:
            result = tx.run(
                """
                MATCH (s:Task)-[r]->(e:Task)
                WHERE s.id = $task_id OR e.id = $task_id
                RETURN s.id AS sourceId, e.id AS targetId, type(r) AS type, r.weight AS weight
                """,
                task_id=task_id,
            )
            return [_row_to_relationship(record.data()) for record in result]

        return self._read("list relationships", work, task_id=task_id)

    def fetch_graph(self) -> tuple[list[Task], list[Relationship]]:
        """Fetch every task with its outgoing edges."""

        def work(tx: ManagedTransaction) -> tuple[list[Task], list[Relationship]]:
            result = tx.run(
                """
                MATCH (t:Task)
                OPTIONAL MATCH (t)-[r]->(t2:Task)
                RETURN t, collect({sourceId: t.id, targetId: t2.id, type: type(r), weight: r.weight}) AS relationships
                """
            )
            tasks: list[Task] = []
            edges: list[Relationship] = []
            for record in result:
                tasks.append(_node_to_task(record["t"]))
                # A task without outgoing edges yields a single row of nulls.
                edges.extend(_row_to_relationship(row) for row in record["relationships"] if row["targetId"] is not None)
            return tasks, edges

        tasks, edges = self._read("fetch graph", work)
        logger.debug("Fetched Neo4j graph", nodes=len(tasks), edges=len(edges))
        return tasks, edges

    def fetch_connected_component(self, task_id: str) -> list[Task]:
        """Fetch the task and everything reachable over edges of any type and direction."""

        # Expanded one hop per query, so the cost follows nodes and edges rather than paths.
        def work(tx: ManagedTransaction, task_id: str) -> list[Task]:
            record = tx.run("MATCH (t:Task {id: $task_id}) RETURN t", task_id=task_id).single()
            if record is None:
                raise NotFoundError(task_id)

            start = _node_to_task(record["t"])
            tasks = [start]
            seen = [start.id]
            frontier = [start.id]
            while frontier:
                result = tx.run(
                    """
                    MATCH (t:Task)--(n:Task)
                    WHERE t.id IN $frontier AND NOT n.id IN $seen
                    RETURN DISTINCT n
                    """,
                    frontier=frontier,
                    seen=seen,
                )
                frontier = []
                for row in result:
                    task = _node_to_task(row["n"])
                    tasks.append(task)
                    seen.append(task.id)
                    frontier.append(task.id)
            return tasks

        tasks = self._read("fetch connected component", work, task_id=task_id)
        logger.debug("Fetched Neo4j connected component", task_id=task_id, count=len(tasks))
        return tasks

    def delete_task(self, task_id: str) -> None:
        """Detach delete a task node."""

        def work(tx: ManagedTransaction, task_id: str) -> None:
            tx.run("MATCH (t:Task {id: $task_id}) DETACH DELETE t", task_id=task_id).consume()

        self._write("delete task", work, task_id=task_id)

    def delete_all_tasks(self) -> None:
        """Detach delete every task node."""

        def work(tx: ManagedTransaction) -> None:
            tx.run("MATCH (t:Task) DETACH DELETE t").consume()

        self._write("delete all tasks", work)

    def close(self) -> None:
        """Close the driver."""
        self.driver.close()
        logger.info("Neo4j store closed", uri=self.uri)
