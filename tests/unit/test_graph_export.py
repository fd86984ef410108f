"""
Unit tests for graph export.
"""
from gitvis.graph.export import GraphExporter, export_graph, display_label
from gitvis.graph.schema import Edge, Relation, commit_node, tree_node, blob_node

COMMIT_ID = "1234567890abcdef1234567890abcdef12345678"
STUB_ID = "fedcba0987654321fedcba0987654321fedcba09"
TREE_ID = "a" * 40
BLOB_ID = "b" * 40


def populate(store, upload_id=1):
    store.upsert_node(commit_node(upload_id, COMMIT_ID, "Fix parser", {
        'author': 'Ann', 'email': 'ann@example.com',
        'time': '2024-01-01T10:00:00+00:00', 'message': 'Fix parser',
    }))
    store.insert_node_if_absent(commit_node(upload_id, STUB_ID))
    store.insert_node_if_absent(tree_node(upload_id, TREE_ID, "/"))
    store.upsert_node(blob_node(upload_id, BLOB_ID, "parser.py"))
    store.append_edge(Edge(upload_id=upload_id, source=COMMIT_ID, target=STUB_ID, rel=Relation.PARENT))
    store.append_edge(Edge(upload_id=upload_id, source=COMMIT_ID, target=TREE_ID, rel=Relation.COMMIT_TREE))
    store.append_edge(Edge(upload_id=upload_id, source=TREE_ID, target=BLOB_ID, rel=Relation.TREE_BLOB))


class TestGraphExport:
    """Test the node/link structure sent to the client."""

    def test_commit_extra(self, store):
        """Commit nodes should expose message, author, email and date."""
        populate(store)
        nodes = {n['id']: n for n in export_graph(store, 1)['nodes']}

        commit = nodes[COMMIT_ID]
        assert commit['type'] == "commit"
        assert commit['label'] == "Fix parser"
        assert commit['extra'] == {
            'message': 'Fix parser',
            'author': 'Ann',
            'email': 'ann@example.com',
            'date': '2024-01-01T10:00:00+00:00',
        }

    def test_stub_commit_uses_short_id(self, store):
        """Unlabelled nodes should display the first 7 characters of their id."""
        populate(store)
        nodes = {n['id']: n for n in export_graph(store, 1)['nodes']}

        stub = nodes[STUB_ID]
        assert stub['label'] == STUB_ID[:7]
        assert 'extra' not in stub

        # Display only: the stored label is untouched
        assert store.get_node(1, STUB_ID).label == ""

    def test_blob_and_tree_extra(self, store):
        """Blobs expose their filename; trees expose nothing extra."""
        populate(store)
        nodes = {n['id']: n for n in export_graph(store, 1)['nodes']}

        assert nodes[BLOB_ID]['extra'] == {'filename': 'parser.py'}
        assert nodes[TREE_ID]['label'] == "/"
        assert 'extra' not in nodes[TREE_ID]

    def test_links(self, store):
        """Every stored edge should become a link."""
        populate(store)
        links = export_graph(store, 1)['links']

        assert sorted((l['source'], l['target'], l['rel']) for l in links) == sorted([
            (COMMIT_ID, STUB_ID, "parent"),
            (COMMIT_ID, TREE_ID, "commit->tree"),
            (TREE_ID, BLOB_ID, "tree->blob"),
        ])

    def test_duplicate_edges_exported(self, memory_store):
        """Duplicate edges should be exported as duplicate links."""
        populate(memory_store)
        memory_store.append_edge(Edge(upload_id=1, source=TREE_ID, target=BLOB_ID, rel=Relation.TREE_BLOB))

        assert len(export_graph(memory_store, 1)['links']) == 4

    def test_empty_upload(self, memory_store):
        """Unknown uploads should export an empty graph."""
        assert export_graph(memory_store, 42) == {'nodes': [], 'links': []}

    def test_other_upload_not_exported(self, memory_store):
        """Export should only include the requested upload."""
        populate(memory_store, upload_id=1)
        populate(memory_store, upload_id=2)

        graph = GraphExporter(memory_store).build(2)
        assert len(graph.nodes) == 4
        assert len(graph.links) == 3

    def test_display_label(self):
        """display_label should prefer the stored label."""
        assert display_label(tree_node(1, TREE_ID, "src")) == "src"
        assert display_label(tree_node(1, TREE_ID, "")) == "aaaaaaa"
