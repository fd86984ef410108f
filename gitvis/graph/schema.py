"""
Graph schema with strict typed primitives.

Defines node types, edge relations, and validation models for the gitvis
object graph.
"""
from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeType(str, Enum):
    """Object kinds stored in the graph."""
    COMMIT = "commit"
    TREE = "tree"
    BLOB = "blob"


class Relation(str, Enum):
    """Edge relations between objects."""
    PARENT = "parent"                   # Commit -> parent commit
    COMMIT_TREE = "commit->tree"        # Commit -> root tree
    TREE_TREE = "tree->tree"            # Tree -> subtree
    TREE_BLOB = "tree->blob"            # Tree -> file


ROOT_TREE_LABEL = "/"


class Node(BaseModel):
    """
    A stored object, identified by (id, upload_id).

    The same object id under two uploads is two independent records.
    """
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Content-addressed object id")
    upload_id: int = Field(..., description="Graph scope the node belongs to")
    type: NodeType
    label: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('id')
    @classmethod
    def id_not_empty(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("node id must not be empty")
        return value


class Edge(BaseModel):
    """A directed relation between two nodes of the same upload."""
    model_config = ConfigDict(use_enum_values=True)

    upload_id: int
    source: str
    target: str
    rel: Relation


class Upload(BaseModel):
    """An uploaded repository; its id is the graph scope."""
    id: int
    name: str


def commit_node(upload_id: int, commit_id: str, message: str = "",
                meta: Optional[Dict[str, Any]] = None) -> Node:
    """Build a commit node. Parent stubs have an empty message and meta."""
    return Node(id=commit_id, upload_id=upload_id, type=NodeType.COMMIT,
                label=message, meta=meta or {})


def tree_node(upload_id: int, tree_id: str, name: str) -> Node:
    """Build a tree node labelled with its directory name."""
    return Node(id=tree_id, upload_id=upload_id, type=NodeType.TREE, label=name)


def blob_node(upload_id: int, blob_id: str, filename: str) -> Node:
    """Build a blob node labelled with its filename."""
    return Node(id=blob_id, upload_id=upload_id, type=NodeType.BLOB, label=filename)
