"""
Parse pipeline: extracted upload directory -> stored object graph.

    locate repository -> open -> walk branches/tags -> walk trees -> store

The run is sequential and writes incrementally; there is no rollback, so a
failed run leaves whatever it already wrote queryable under its upload id.
"""
import logging
import time
from pathlib import Path

from gitvis.graph.store import GraphStore, GraphStoreError
from gitvis.ingest.errors import GraphIncompleteError
from gitvis.ingest.locator import locate_repository, open_repository
from gitvis.ingest.walker import HistoryWalker, ParseStats


logger = logging.getLogger(__name__)


def parse_repository(root: Path, upload_id: int, store: GraphStore) -> ParseStats:
    """
    Extract the commit/tree/blob graph under `root` into `store`.

    Args:
        root: Directory holding the repository somewhere below it
        upload_id: Graph scope to write under
        store: Destination graph store

    Returns:
        Counters describing the run

    Raises:
        RepositoryLocationError: No repository could be opened
        RefEnumerationError: References could not be listed
        GraphIncompleteError: A store write failed mid-walk
    """
    started = time.monotonic()
    repo = open_repository(locate_repository(Path(root)))
    stats = ParseStats()

    try:
        HistoryWalker(repo, store, upload_id, stats).walk()
    except GraphStoreError as e:
        logger.error(f"Store failure while parsing upload {upload_id}: {e}")
        raise GraphIncompleteError(upload_id, stats, e) from e
    finally:
        repo.close()

    logger.info(
        f"Parsed upload {upload_id} in {time.monotonic() - started:.2f}s: "
        f"{stats.commits_visited} commits, {stats.trees_visited} trees, "
        f"{stats.nodes_written} nodes, {stats.edges_written} edges, "
        f"{stats.refs_skipped} ref(s) skipped"
    )
    return stats
