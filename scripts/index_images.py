# Path: scripts/index_images.py
# Purpose: CLI tool to scan an image folder and ingest it as a new record.
# Layer: scripts.
# Details: Demonstrates how to wire scanning, batch ingestion, and index persistence together.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tqdm import tqdm

from config import AppSettings
from core.indexing.scanner import ImageScanner
from core.logging import setup_logging
from core.services import build_services


def main() -> None:
    """Ingest every image in a folder into one record."""

    parser = argparse.ArgumentParser(description="Ingest a folder of images as a record")
    parser.add_argument("--folder", type=Path, default=Path("storage/images"), help="Folder containing images to ingest")
    parser.add_argument("--name", type=str, help="Record name (defaults to the folder name)")
    parser.add_argument("--description", type=str, default="", help="Record description")
    parser.add_argument("--concurrency", type=int, help="Override the maximum number of concurrent ingestions")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    if args.concurrency:
        settings.ingestion.max_concurrency = args.concurrency
    setup_logging(settings.log_level, settings.log_format)

    scanner = ImageScanner(args.folder, extensions=settings.upload.allowed_extensions)
    inputs = scanner.load()
    if not inputs:
        print(f"No images found under {args.folder}")
        return

    services = build_services(settings)
    try:
        with tqdm(total=len(inputs), desc="Ingesting images", unit="img") as progress:
            outcome = services.batch.create_record_with_images(
                args.name or args.folder.name,
                args.description,
                inputs,
                on_progress=lambda index, error: progress.update(1),
            )
    finally:
        services.close()

    record = outcome.record
    print(f"Record {record.id} '{record.name}': {len(record.images)}/{len(inputs)} images ingested")
    for index, message in outcome.failed:
        print(f"  failed [{index}] {inputs[index].filename}: {message}")


if __name__ == "__main__":
    main()
