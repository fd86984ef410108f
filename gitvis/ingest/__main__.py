"""
CLI entrypoint for a local parse.

Usage:
    python -m gitvis.ingest /path/to/checkout
    python -m gitvis.ingest /path/to/repo.zip --name my-repo
"""
import argparse
import logging
import shutil
import sys
from pathlib import Path

from gitvis.config import get_config
from gitvis.graph.store import GraphStoreError
from gitvis.ingest.errors import GraphIncompleteError, ParseError
from gitvis.ingest.pipeline import parse_repository
from gitvis.uploads.archive import ArchiveError, extract_archive, new_extract_dir


def main():
    """Parse a repository directory or zip archive into the configured store."""
    parser = argparse.ArgumentParser(description="Parse a git repository into the gitvis graph store")
    parser.add_argument(
        "path",
        help="Directory containing a repository, or a zip archive of one"
    )
    parser.add_argument(
        "--name",
        help="Upload name to record (default: the path's basename)"
    )

    args = parser.parse_args()

    try:
        config = get_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    source = Path(args.path).expanduser()
    if not source.exists():
        print(f"Error: {source} does not exist", file=sys.stderr)
        sys.exit(1)

    store = config.create_store()
    extract_dir = None
    try:
        upload_id = store.create_upload(args.name or source.name)

        root = source
        if source.is_file():
            extract_dir = new_extract_dir(config.work_dir, upload_id)
            root = extract_archive(source, extract_dir)

        stats = parse_repository(root, upload_id, store)

    except GraphIncompleteError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Partial stats: {e.stats.model_dump()}", file=sys.stderr)
        sys.exit(1)
    except (ParseError, ArchiveError, GraphStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if extract_dir is not None:
            shutil.rmtree(extract_dir, ignore_errors=True)
        store.close()

    print(f"Upload: {upload_id}")
    print(f"Backend: {config.backend}")
    print("=" * 50)
    for field, value in stats.model_dump().items():
        print(f"{field}: {value}")


if __name__ == "__main__":
    main()
