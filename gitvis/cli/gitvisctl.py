#!/usr/bin/env python3
"""
gitvisctl - gitvis API client CLI

Upload repositories and fetch their graphs from a running gitvis API.
"""
import argparse
import json
import os
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Optional

import requests


class GitvisCLI:
    """gitvis API client."""

    def __init__(self, api_url: str):
        self.api_url = api_url.rstrip('/')
        self.session = requests.Session()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make GET request to API."""
        url = f"{self.api_url}{path}"
        response = self.session.get(url, params=params)
        response.raise_for_status()
        return response.json()

    def upload(self, archive: Path) -> Dict[str, Any]:
        """Upload a zip archive and display the parse result."""
        url = f"{self.api_url}/upload"
        with open(archive, 'rb') as f:
            response = self.session.post(url, files={'repo': (archive.name, f, 'application/zip')})
        response.raise_for_status()
        data = response.json()

        print(f"Upload {data.get('upload_id')}: {data.get('name')} ({data.get('status')})")
        print("=" * 50)
        for field, value in data.get('stats', {}).items():
            print(f"  {field}: {value}")
        return data

    def graph(self, upload_id: int) -> None:
        """Display an upload's graph summary with per-type counts."""
        summary = self._get(f'/graph/{upload_id}')
        graph = self._get(f'/graph/{upload_id}/json')

        print(f"Graph {summary.get('upload_id')}: {summary.get('name')}")
        print("=" * 50)
        print(f"Total Nodes: {summary.get('nodes', 0)}")
        print(f"Total Links: {summary.get('links', 0)}")
        print()

        node_types = Counter(node.get('type') for node in graph.get('nodes', []))
        if node_types:
            print("Node Types:")
            for node_type, count in sorted(node_types.items()):
                print(f"  {node_type}: {count}")
            print()

        relations = Counter(link.get('rel') for link in graph.get('links', []))
        if relations:
            print("Relations:")
            for rel, count in sorted(relations.items()):
                print(f"  {rel}: {count}")

    def export(self, upload_id: int, output: Optional[Path] = None) -> None:
        """Write an upload's graph JSON to a file or stdout."""
        graph = self._get(f'/graph/{upload_id}/json')
        text = json.dumps(graph, indent=2)

        if output:
            output.write_text(text + '\n')
            print(f"Wrote {len(graph.get('nodes', []))} nodes, {len(graph.get('links', []))} links to {output}")
        else:
            print(text)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='gitvis API client',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--api-url',
        default=os.environ.get('GITVIS_API_URL', 'http://localhost:8080'),
        help='gitvis API URL (default: $GITVIS_API_URL or http://localhost:8080)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    upload_parser = subparsers.add_parser('upload', help='Upload a zipped repository')
    upload_parser.add_argument('archive', type=Path, help='Zip archive of a repository')

    graph_parser = subparsers.add_parser('graph', help='Display graph summary for an upload')
    graph_parser.add_argument('upload_id', type=int, help='Upload ID')

    export_parser = subparsers.add_parser('export', help='Export graph JSON for an upload')
    export_parser.add_argument('upload_id', type=int, help='Upload ID')
    export_parser.add_argument('--output', type=Path, help='Write JSON to this file instead of stdout')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    cli = GitvisCLI(args.api_url)

    try:
        if args.command == 'upload':
            cli.upload(args.archive)
        elif args.command == 'graph':
            cli.graph(args.upload_id)
        elif args.command == 'export':
            cli.export(args.upload_id, args.output)
    except requests.exceptions.HTTPError as e:
        print(f"API Error: {e}", file=sys.stderr)
        if e.response is not None:
            print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except (requests.exceptions.RequestException, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
