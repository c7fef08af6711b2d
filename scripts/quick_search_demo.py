# Path: scripts/quick_search_demo.py
# Purpose: Simple CLI to run an image search against the stored index.
# Layer: scripts.
# Details: Demonstrates query-by-image and find-similar through the search pipeline.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AppSettings
from core.logging import setup_logging
from core.services import build_services


def main() -> None:
    """Execute a quick search from the command line."""

    parser = argparse.ArgumentParser(description="Find the records most similar to an image")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--image", type=Path, help="Query image file")
    group.add_argument("--similar-to", type=int, help="Existing image id to search from")
    parser.add_argument("--k", type=int, default=None, help="Number of results to return")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    services = build_services(settings)
    try:
        top_k = settings.clamp_top_k(args.k)
        if args.image is not None:
            results = services.search.search(args.image.read_bytes(), top_k, filename=args.image.name)
        else:
            results = services.search.find_similar(args.similar_to, top_k)
    finally:
        services.close()

    for match in results:
        print(
            f"distance={match.distance:.4f} record={match.record_id} ({match.record_name}) "
            f"image={match.image_id} file={match.filename}"
        )


if __name__ == "__main__":
    main()
