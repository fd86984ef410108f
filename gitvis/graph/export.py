"""
Graph export for the rendering client.

Turns the stored nodes and edges of one upload into the node/link structure
the graph page consumes. Output order follows the store and carries no
traversal meaning; layout is the client's job.
"""
from typing import Dict, Any, List, Optional
from pydantic import BaseModel

from gitvis.graph.schema import Node, Edge, NodeType
from gitvis.graph.store import GraphStore

SHORT_ID_LENGTH = 7

# meta key -> extra key exposed for commit nodes
COMMIT_EXTRA_FIELDS = {
    'message': 'message',
    'author': 'author',
    'email': 'email',
    'time': 'date',
}


class GraphNode(BaseModel):
    """Node as sent to the client."""
    id: str
    type: str
    label: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class GraphLink(BaseModel):
    """Edge as sent to the client."""
    source: str
    target: str
    rel: Optional[str] = None


class GraphResponse(BaseModel):
    """Full graph of one upload."""
    nodes: List[GraphNode]
    links: List[GraphLink]


def display_label(node: Node) -> str:
    """Label to show for a node; unlabelled nodes fall back to the short id."""
    return node.label or node.id[:SHORT_ID_LENGTH]


def node_extra(node: Node) -> Dict[str, Any]:
    """Type-specific detail for the client's info panel."""
    if node.type == NodeType.COMMIT:
        return {
            extra_key: node.meta[meta_key]
            for meta_key, extra_key in COMMIT_EXTRA_FIELDS.items()
            if node.meta.get(meta_key) is not None
        }
    if node.type == NodeType.BLOB:
        return {'filename': node.label}
    return {}


def to_graph_node(node: Node) -> GraphNode:
    return GraphNode(
        id=node.id,
        type=node.type,
        label=display_label(node) or None,
        extra=node_extra(node) or None
    )


def to_graph_link(edge: Edge) -> GraphLink:
    return GraphLink(source=edge.source, target=edge.target, rel=edge.rel or None)


class GraphExporter:
    """Reads one upload's graph from a store and shapes it for the client."""

    def __init__(self, store: GraphStore):
        self.store = store

    def build(self, upload_id: int) -> GraphResponse:
        """Build the typed graph response for an upload."""
        nodes = [to_graph_node(node) for node in self.store.list_nodes(upload_id)]
        links = [to_graph_link(edge) for edge in self.store.list_edges(upload_id)]
        return GraphResponse(nodes=nodes, links=links)

    def export(self, upload_id: int) -> Dict[str, Any]:
        """
        Export an upload as a JSON-serializable dict.

        Returns:
            {"nodes": [{id, type, label?, extra?}], "links": [{source, target, rel?}]}
        """
        return self.build(upload_id).model_dump(exclude_none=True)


def export_graph(store: GraphStore, upload_id: int) -> Dict[str, Any]:
    """Export an upload's graph from the given store."""
    return GraphExporter(store).export(upload_id)
