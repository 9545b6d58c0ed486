#!/usr/bin/env python3
"""Upload a local file through the signed-upload flow.

Fetches a grant from a running backend (API_ENDPOINT) and posts the file
straight to ImageKit, printing progress as it goes.

Usage:
    cd backend
    python scripts/upload_file.py cover.png --type image --folder books/covers
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from app.clients.notifications import RecordingNotifier
from app.clients.upload_client import ProgressEvent, UploadClient, UploadClientConfig
from app.core.config import get_settings


def _print_progress(event: ProgressEvent) -> None:
    sys.stdout.write(f"\r{event.percent:3d}% ({event.loaded}/{event.total} bytes)")
    sys.stdout.flush()


async def _run(path: Path, upload_type: str, folder: str) -> int:
    notifier = RecordingNotifier()
    client = UploadClient(
        UploadClientConfig.from_settings(get_settings()),
        upload_type=upload_type,
        folder=folder,
        notifier=notifier,
        on_progress=_print_progress,
    )
    outcome = await client.upload(path.name, path.read_bytes())
    sys.stdout.write("\n")
    for note in notifier.notifications:
        print(f"{note.title}: {note.description}")
    if not outcome.ok:
        return 1
    print(client.preview_url())
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Upload a file to ImageKit via the backend grant endpoint")
    parser.add_argument("path", type=Path)
    parser.add_argument("--type", choices=["image", "video"], default="image")
    parser.add_argument("--folder", default="uploads")
    args = parser.parse_args()
    if not args.path.is_file():
        raise SystemExit(f"not a file: {args.path}")
    raise SystemExit(asyncio.run(_run(args.path, args.type, args.folder)))


if __name__ == "__main__":
    main()
