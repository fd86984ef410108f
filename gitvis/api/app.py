"""
gitvis HTTP API.

FastAPI application for repository uploads and graph queries.

Usage:
    export GITVIS_BACKEND=sqlite
    python3 -m gitvis.api
"""
import logging
import shutil
import sys
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel
import uvicorn

from gitvis.config import get_config, GitvisConfig
from gitvis.graph.export import GraphExporter, GraphResponse
from gitvis.graph.store import GraphStore, GraphStoreError
from gitvis.ingest.errors import ParseError
from gitvis.ingest.pipeline import parse_repository
from gitvis.uploads.archive import ArchiveError, extract_archive, new_extract_dir


logger = logging.getLogger(__name__)

UNKNOWN_UPLOAD_NAME = "(unknown)"


# Pydantic models for API responses

class HealthResponse(BaseModel):
    """Health check response."""
    status: str


class UploadResponse(BaseModel):
    """Result of uploading and parsing a repository."""
    upload_id: int
    name: str
    status: str
    stats: Dict[str, Any]


class GraphSummaryResponse(BaseModel):
    """Upload name with node/link counts."""
    upload_id: int
    name: str
    nodes: int
    links: int


# Global state (initialized on startup)
config: Optional[GitvisConfig] = None
graph_store: Optional[GraphStore] = None
work_dir: Optional[Path] = None


def reset_stores():
    """Reset global store state (for tests)."""
    global config, graph_store, work_dir

    if graph_store:
        graph_store.close()

    config = None
    graph_store = None
    work_dir = None


def initialize_stores(store: Optional[GraphStore] = None, extract_dir: Optional[Path] = None):
    """
    Initialize stores (called on startup or lazily).

    Args:
        store: Optional graph store to use instead of the configured one (for tests)
        extract_dir: Optional override for the upload extraction directory (for tests)
    """
    global config, graph_store, work_dir

    if graph_store is not None:
        return  # Already initialized

    try:
        config = get_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    graph_store = store if store is not None else config.create_store()
    work_dir = Path(extract_dir) if extract_dir else config.work_dir
    work_dir.mkdir(parents=True, exist_ok=True)

    logger.info(f"gitvis API initialized (backend: {graph_store.backend}, work dir: {work_dir})")


def get_store() -> GraphStore:
    """Return the process-wide store, initializing it lazily."""
    if graph_store is None:
        initialize_stores()
    return graph_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    # Startup
    initialize_stores()

    yield

    # Shutdown
    if graph_store:
        graph_store.close()


# FastAPI app
app = FastAPI(
    title="gitvis",
    description="Upload a git repository and explore its commit/tree/blob graph",
    version="1.0.0",
    lifespan=lifespan
)


@app.get("/healthz", response_model=HealthResponse)
async def healthz():
    """Health check endpoint."""
    return HealthResponse(status="ok")


@app.post("/upload", response_model=UploadResponse)
def upload_repository(repo: Optional[UploadFile] = File(None)):
    """
    Store and parse an uploaded repository archive.

    The request blocks until the whole repository has been walked.

    Args:
        repo: Zip archive of a working copy or bare repository

    Returns:
        Upload id and parse statistics
    """
    if repo is None:
        raise HTTPException(status_code=400, detail="missing form field: repo")

    store = get_store()
    name = repo.filename or "upload.zip"

    with tempfile.NamedTemporaryFile(prefix="repo-", suffix=".zip", delete=False) as tmp:
        shutil.copyfileobj(repo.file, tmp)
        tmp_path = Path(tmp.name)

    extract_dir = None
    try:
        try:
            upload_id = store.create_upload(name)
        except GraphStoreError as e:
            raise HTTPException(status_code=500, detail=str(e))

        extract_dir = new_extract_dir(work_dir, upload_id)
        try:
            extract_archive(tmp_path, extract_dir)
        except ArchiveError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            stats = parse_repository(extract_dir, upload_id, store)
        except ParseError as e:
            logger.error(f"Parse failed for upload {upload_id} ({name}): {e}")
            raise HTTPException(status_code=500, detail=f"parse error: {e}")
    finally:
        tmp_path.unlink(missing_ok=True)
        if extract_dir is not None:
            shutil.rmtree(extract_dir, ignore_errors=True)

    return UploadResponse(upload_id=upload_id, name=name, status="ok", stats=stats.model_dump())


@app.get("/graph/{upload_id}", response_model=GraphSummaryResponse)
def graph_summary(upload_id: int):
    """
    Get an upload's name and graph size.

    Args:
        upload_id: Upload identifier

    Returns:
        Upload summary; unknown uploads are reported with an empty graph
    """
    store = get_store()
    upload = store.get_upload(upload_id)

    return GraphSummaryResponse(
        upload_id=upload_id,
        name=upload.name if upload else UNKNOWN_UPLOAD_NAME,
        nodes=len(store.list_nodes(upload_id)),
        links=len(store.list_edges(upload_id))
    )


@app.get("/graph/{upload_id}/json", response_model=GraphResponse, response_model_exclude_none=True)
def graph_json(upload_id: int):
    """
    Get an upload's graph in the rendering client's node/link format.

    Args:
        upload_id: Upload identifier

    Returns:
        {"nodes": [...], "links": [...]}
    """
    return GraphExporter(get_store()).build(upload_id)


def main():
    """Run the API server."""
    # Load config to get host/port
    try:
        cfg = get_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(level=cfg.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    uvicorn.run(
        "gitvis.api.app:app",
        host=cfg.host,
        port=cfg.port,
        reload=False
    )


if __name__ == "__main__":
    main()
