"""
History and tree walkers.

HistoryWalker visits every commit reachable from each branch and tag and
hands each commit's root tree to TreeWalker. Both write straight into a
GraphStore: nodes dedupe on (id, upload_id), edges are appended once per
traversal path, so an object reached through several commits or refs gets
one node and several identical edges.
"""
import logging
from typing import List, Optional

import git
from git.exc import GitCommandError, ODBError
from git.objects import Commit, Tree
from pydantic import BaseModel

from gitvis.graph.schema import Edge, Relation, ROOT_TREE_LABEL, commit_node, tree_node, blob_node
from gitvis.graph.store import GraphStore
from gitvis.ingest.errors import RefEnumerationError


logger = logging.getLogger(__name__)

TRAVERSED_REF_PREFIXES = ("refs/heads/", "refs/tags/")

# Errors raised by GitPython when an object or log cannot be read
GIT_READ_ERRORS = (GitCommandError, ODBError, ValueError)


class ParseStats(BaseModel):
    """
    Counters for one parse run.

    An unreadable root tree counts in commits_without_tree, an unreadable
    subtree in trees_skipped; each failure is counted once.
    """
    refs_walked: int = 0
    refs_skipped: int = 0
    commits_visited: int = 0
    commits_skipped: int = 0
    commits_without_tree: int = 0
    trees_visited: int = 0
    trees_skipped: int = 0
    blobs_visited: int = 0
    nodes_written: int = 0
    edges_written: int = 0


class TreeWalker:
    """Writes the tree/blob structure below a root tree."""

    def __init__(self, store: GraphStore, upload_id: int, stats: Optional[ParseStats] = None):
        self.store = store
        self.upload_id = upload_id
        self.stats = stats or ParseStats()

    def resolve(self, tree: Tree) -> Optional[list]:
        """
        Read a tree's entries.

        Returns:
            The entries, or None if the tree object cannot be read
        """
        try:
            return list(tree)
        except GIT_READ_ERRORS as e:
            logger.warning(f"Skipping unreadable tree {tree.hexsha}: {e}")
            return None

    def walk(self, tree: Tree, entries: Optional[list] = None):
        """
        Visit every entry below `tree`.

        Blobs are upserted (the latest filename wins), subtrees are inserted
        only if absent. Unreadable subtrees are skipped along with everything
        below them. Descent uses an explicit stack.
        """
        if entries is None:
            entries = self.resolve(tree)
            if entries is None:
                self.stats.trees_skipped += 1
                return

        stack = [(tree.hexsha, entries)]
        while stack:
            tree_id, entries = stack.pop()
            self.stats.trees_visited += 1

            for item in entries:
                if item.type == "blob":
                    self._write_node(blob_node(self.upload_id, item.hexsha, item.name), overwrite=True)
                    self._write_edge(tree_id, item.hexsha, Relation.TREE_BLOB)
                    self.stats.blobs_visited += 1
                elif item.type == "tree":
                    subtree_entries = self.resolve(item)
                    if subtree_entries is None:
                        self.stats.trees_skipped += 1
                        continue
                    self._write_node(tree_node(self.upload_id, item.hexsha, item.name))
                    self._write_edge(tree_id, item.hexsha, Relation.TREE_TREE)
                    stack.append((item.hexsha, subtree_entries))
                else:
                    # Gitlinks point into another repository
                    logger.debug(f"Ignoring {item.type} entry {item.path}")

    def _write_node(self, node, overwrite: bool = False):
        if overwrite:
            self.store.upsert_node(node)
            self.stats.nodes_written += 1
        elif self.store.insert_node_if_absent(node):
            self.stats.nodes_written += 1

    def _write_edge(self, source: str, target: str, rel: Relation):
        self.store.append_edge(Edge(upload_id=self.upload_id, source=source, target=target, rel=rel))
        self.stats.edges_written += 1


class HistoryWalker:
    """Writes the commit graph of every branch and tag, and each commit's trees."""

    def __init__(self, repo: git.Repo, store: GraphStore, upload_id: int,
                 stats: Optional[ParseStats] = None):
        self.repo = repo
        self.store = store
        self.upload_id = upload_id
        self.stats = stats or ParseStats()
        self.tree_walker = TreeWalker(store, upload_id, self.stats)

    def traversal_refs(self) -> List[git.Reference]:
        """
        List branch and tag references.

        Raises:
            RefEnumerationError: If the repository's references cannot be read
        """
        try:
            refs = list(self.repo.references)
        except (OSError, *GIT_READ_ERRORS) as e:
            raise RefEnumerationError(f"Cannot list references: {e}") from e
        return [ref for ref in refs if ref.path.startswith(TRAVERSED_REF_PREFIXES)]

    def walk(self):
        """Walk every branch and tag. A ref that cannot be walked is skipped."""
        refs = self.traversal_refs()
        logger.info(f"Walking {len(refs)} ref(s) for upload {self.upload_id}")
        for ref in refs:
            self.walk_ref(ref)

    def walk_ref(self, ref: git.Reference) -> bool:
        """
        Visit every commit reachable from a ref's tip.

        Returns:
            False if the ref was skipped because its log could not be read
        """
        logger.debug(f"Walking {ref.path}")
        try:
            # Annotated tags peel to the commit they point at
            commits = self.repo.iter_commits(ref.commit)
        except GIT_READ_ERRORS as e:
            return self._skip_ref(ref, e)

        while True:
            # Only reading the log is guarded; failures while writing a commit propagate
            try:
                commit = next(commits)
            except StopIteration:
                break
            except GIT_READ_ERRORS as e:
                return self._skip_ref(ref, e)
            self.visit_commit(commit)

        self.stats.refs_walked += 1
        return True

    def _skip_ref(self, ref: git.Reference, error: Exception) -> bool:
        logger.warning(f"Skipping ref {ref.path}: {error}")
        self.stats.refs_skipped += 1
        return False

    def visit_commit(self, commit: Commit):
        """Write a commit, its parent links, and its root tree."""
        try:
            message = commit.message
            if isinstance(message, bytes):
                message = message.decode('utf-8', errors='replace')
            message = message.strip()
            meta = {
                'author': commit.author.name,
                'email': commit.author.email,
                'time': commit.authored_datetime.isoformat(),
                'message': message,
            }
            parent_ids = [parent.hexsha for parent in commit.parents]
        except (ODBError, ValueError) as e:
            logger.warning(f"Skipping unreadable commit {commit.hexsha}: {e}")
            self.stats.commits_skipped += 1
            return

        self.stats.commits_visited += 1
        self.store.upsert_node(commit_node(self.upload_id, commit.hexsha, message, meta))
        self.stats.nodes_written += 1

        for parent_id in parent_ids:
            # Parent stubs gain metadata only when walked themselves
            if self.store.insert_node_if_absent(commit_node(self.upload_id, parent_id)):
                self.stats.nodes_written += 1
            self._write_edge(commit.hexsha, parent_id, Relation.PARENT)

        tree = commit.tree
        entries = self.tree_walker.resolve(tree)
        if entries is None:
            self.stats.commits_without_tree += 1
            return

        if self.store.insert_node_if_absent(tree_node(self.upload_id, tree.hexsha, ROOT_TREE_LABEL)):
            self.stats.nodes_written += 1
        self._write_edge(commit.hexsha, tree.hexsha, Relation.COMMIT_TREE)
        self.tree_walker.walk(tree, entries)

    def _write_edge(self, source: str, target: str, rel: Relation):
        self.store.append_edge(Edge(upload_id=self.upload_id, source=source, target=target, rel=rel))
        self.stats.edges_written += 1
