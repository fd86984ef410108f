"""
Graph store for object nodes and relation edges.

Nodes are keyed by (id, upload_id); edges are append-only. Every write is
committed as it happens, so an interrupted parse leaves a readable partial
graph.
"""
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple

from gitvis.graph.schema import Node, Edge, Upload
from gitvis.graph.migrate import apply_sqlite_migrations


logger = logging.getLogger(__name__)

BACKENDS = ("memory", "sqlite", "postgres")


class GraphStoreError(Exception):
    """A storage operation failed; the graph being written is incomplete."""


class GraphStore:
    """
    Durable keyed storage for nodes and edges, scoped by upload id.

    Supports in-memory, SQLite and Postgres backends. One instance may be
    shared by concurrent parse runs as long as they write different uploads.
    """

    def __init__(self, backend: str = "memory", sqlite_path: Optional[Path] = None,
                 postgres_url: Optional[str] = None):
        """
        Initialize graph store.

        Args:
            backend: "memory", "sqlite" or "postgres"
            sqlite_path: Database file (if backend is sqlite)
            postgres_url: PostgreSQL connection URL (if backend is postgres)
        """
        self.backend = backend
        self.sqlite_path = sqlite_path
        self.postgres_url = postgres_url
        self._lock = threading.Lock()

        if backend == "memory":
            self.uploads: Dict[int, str] = {}
            self.nodes: Dict[Tuple[int, str], Dict[str, Any]] = {}
            self.edges: List[Dict[str, Any]] = []
        elif backend == "sqlite":
            if not sqlite_path:
                raise ValueError("sqlite_path required for sqlite backend")
            self.sqlite_path = Path(sqlite_path)
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.sqlite_path, check_same_thread=False, timeout=30)
            apply_sqlite_migrations(self.conn)
        elif backend == "postgres":
            if not postgres_url:
                raise ValueError("postgres_url required for postgres backend")
            # Import here to avoid dependency if not using postgres
            import psycopg2
            self.conn = psycopg2.connect(postgres_url)
        else:
            raise ValueError(f"Unknown backend: {backend}")

    @contextmanager
    def _transaction(self, operation: str):
        """Serialize access to the backend and surface its failures as GraphStoreError."""
        with self._lock:
            try:
                yield
                if self.backend != "memory":
                    self.conn.commit()
            except GraphStoreError:
                raise
            except Exception as e:
                if self.backend != "memory":
                    self._rollback()
                raise GraphStoreError(f"{operation} failed: {e}") from e

    def _rollback(self):
        try:
            self.conn.rollback()
        except Exception as e:
            logger.warning(f"Rollback failed on {self.backend} store: {e}")

    # Uploads

    def create_upload(self, name: str) -> int:
        """Record a new upload and return its id (the graph scope)."""
        with self._transaction("create_upload"):
            if self.backend == "memory":
                upload_id = max(self.uploads, default=0) + 1
                self.uploads[upload_id] = name
                return upload_id
            elif self.backend == "sqlite":
                cursor = self.conn.execute("INSERT INTO uploads (name) VALUES (?)", (name,))
                return cursor.lastrowid
            else:
                with self.conn.cursor() as cur:
                    cur.execute("INSERT INTO uploads (name) VALUES (%s) RETURNING id", (name,))
                    return cur.fetchone()[0]

    def get_upload(self, upload_id: int) -> Optional[Upload]:
        """Get an upload by id, or None if it was never recorded."""
        with self._transaction("get_upload"):
            if self.backend == "memory":
                name = self.uploads.get(upload_id)
                return Upload(id=upload_id, name=name) if name is not None else None
            elif self.backend == "sqlite":
                row = self.conn.execute("SELECT id, name FROM uploads WHERE id = ?", (upload_id,)).fetchone()
            else:
                with self.conn.cursor() as cur:
                    cur.execute("SELECT id, name FROM uploads WHERE id = %s", (upload_id,))
                    row = cur.fetchone()
        return Upload(id=row[0], name=row[1]) if row else None

    # Nodes

    def upsert_node(self, node: Node):
        """Insert a node, overwriting any existing record for (id, upload_id)."""
        with self._transaction("upsert_node"):
            if self.backend == "memory":
                self.nodes[(node.upload_id, node.id)] = node.model_dump()
            elif self.backend == "sqlite":
                self.conn.execute(
                    "INSERT OR REPLACE INTO nodes (id, upload_id, type, label, meta) VALUES (?, ?, ?, ?, ?)",
                    (node.id, node.upload_id, node.type, node.label, _dump_meta(node.meta))
                )
            else:
                with self.conn.cursor() as cur:
                    cur.execute("""
                        INSERT INTO nodes (id, upload_id, type, label, meta)
                        VALUES (%s, %s, %s, %s, %s)
                        ON CONFLICT (id, upload_id) DO UPDATE
                        SET type = EXCLUDED.type, label = EXCLUDED.label, meta = EXCLUDED.meta
                    """, (node.id, node.upload_id, node.type, node.label, _dump_meta(node.meta)))

    def insert_node_if_absent(self, node: Node) -> bool:
        """
        Insert a node unless (id, upload_id) already exists.

        Returns:
            True if the node was written, False if an earlier record was kept
        """
        with self._transaction("insert_node_if_absent"):
            if self.backend == "memory":
                key = (node.upload_id, node.id)
                if key in self.nodes:
                    return False
                self.nodes[key] = node.model_dump()
                return True
            elif self.backend == "sqlite":
                cursor = self.conn.execute(
                    "INSERT OR IGNORE INTO nodes (id, upload_id, type, label, meta) VALUES (?, ?, ?, ?, ?)",
                    (node.id, node.upload_id, node.type, node.label, _dump_meta(node.meta))
                )
                return cursor.rowcount > 0
            else:
                with self.conn.cursor() as cur:
                    cur.execute("""
                        INSERT INTO nodes (id, upload_id, type, label, meta)
                        VALUES (%s, %s, %s, %s, %s)
                        ON CONFLICT (id, upload_id) DO NOTHING
                    """, (node.id, node.upload_id, node.type, node.label, _dump_meta(node.meta)))
                    return cur.rowcount > 0

    def get_node(self, upload_id: int, node_id: str) -> Optional[Node]:
        """Get a node by upload and id."""
        with self._transaction("get_node"):
            if self.backend == "memory":
                record = self.nodes.get((upload_id, node_id))
                return Node(**record) if record else None
            elif self.backend == "sqlite":
                row = self.conn.execute(
                    "SELECT id, upload_id, type, label, meta FROM nodes WHERE upload_id = ? AND id = ?",
                    (upload_id, node_id)
                ).fetchone()
            else:
                with self.conn.cursor() as cur:
                    cur.execute(
                        "SELECT id, upload_id, type, label, meta FROM nodes WHERE upload_id = %s AND id = %s",
                        (upload_id, node_id)
                    )
                    row = cur.fetchone()
        return _node_from_row(row) if row else None

    def list_nodes(self, upload_id: int) -> List[Node]:
        """Return every node of an upload."""
        with self._transaction("list_nodes"):
            if self.backend == "memory":
                return [Node(**record) for (scope, _), record in self.nodes.items() if scope == upload_id]
            elif self.backend == "sqlite":
                rows = self.conn.execute(
                    "SELECT id, upload_id, type, label, meta FROM nodes WHERE upload_id = ?", (upload_id,)
                ).fetchall()
            else:
                with self.conn.cursor() as cur:
                    cur.execute("SELECT id, upload_id, type, label, meta FROM nodes WHERE upload_id = %s", (upload_id,))
                    rows = cur.fetchall()
        return [_node_from_row(row) for row in rows]

    # Edges

    def append_edge(self, edge: Edge):
        """Append an edge. Identical edges are stored as separate rows."""
        with self._transaction("append_edge"):
            if self.backend == "memory":
                self.edges.append(edge.model_dump())
            elif self.backend == "sqlite":
                self.conn.execute(
                    "INSERT INTO edges (upload_id, source, target, rel) VALUES (?, ?, ?, ?)",
                    (edge.upload_id, edge.source, edge.target, edge.rel)
                )
            else:
                with self.conn.cursor() as cur:
                    cur.execute(
                        "INSERT INTO edges (upload_id, source, target, rel) VALUES (%s, %s, %s, %s)",
                        (edge.upload_id, edge.source, edge.target, edge.rel)
                    )

    def list_edges(self, upload_id: int) -> List[Edge]:
        """Return every edge of an upload in insertion order."""
        with self._transaction("list_edges"):
            if self.backend == "memory":
                return [Edge(**record) for record in self.edges if record['upload_id'] == upload_id]
            elif self.backend == "sqlite":
                rows = self.conn.execute(
                    "SELECT upload_id, source, target, rel FROM edges WHERE upload_id = ? ORDER BY rowid",
                    (upload_id,)
                ).fetchall()
            else:
                with self.conn.cursor() as cur:
                    cur.execute(
                        "SELECT upload_id, source, target, rel FROM edges WHERE upload_id = %s ORDER BY id",
                        (upload_id,)
                    )
                    rows = cur.fetchall()
        return [Edge(upload_id=row[0], source=row[1], target=row[2], rel=row[3]) for row in rows]

    def close(self):
        """Close backend connections."""
        if self.backend != "memory" and hasattr(self, 'conn'):
            self.conn.close()


def _dump_meta(meta: Dict[str, Any]) -> Optional[str]:
    return json.dumps(meta) if meta else None


def _node_from_row(row) -> Node:
    meta = row[4]
    if isinstance(meta, str):
        meta = json.loads(meta) if meta else {}
    return Node(id=row[0], upload_id=row[1], type=row[2], label=row[3] or "", meta=meta or {})
