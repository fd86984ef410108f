"""
Failures that abort a parse run.

Per-ref and per-object failures are not here: those are logged, counted in
the run's stats, and the walk continues.
"""


class ParseError(Exception):
    """Base class for fatal parse failures."""


class RepositoryLocationError(ParseError):
    """No openable repository was found under the upload root."""


class RefEnumerationError(ParseError):
    """The repository's references could not be listed."""


class GraphIncompleteError(ParseError):
    """A store write failed mid-walk; the upload's graph is only partially written."""

    def __init__(self, upload_id: int, stats, cause: Exception):
        self.upload_id = upload_id
        self.stats = stats
        self.cause = cause
        super().__init__(f"graph incomplete for upload {upload_id}: {cause}")
