# Path: scripts/reconcile_index.py
# Purpose: CLI to report and optionally purge vectors that no image row references.
# Layer: scripts.
# Details: Operator-driven cleanup for orphans logged by ingestion and deletion.

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
    parser = argparse.ArgumentParser(description="Compare the metadata store with the vector index")
    parser.add_argument("--purge", action="store_true", help="Delete vectors that no image row references")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    services = build_services(settings)
    try:
        report = services.reconciler.run(purge=args.purge)
    finally:
        services.close()

    print(f"Orphan vectors: {len(report.orphan_vectors)}")
    for vector_id in report.orphan_vectors:
        print(f"  {vector_id}")
    print(f"Unreferenced but within grace period: {len(report.pending_vectors)}")
    print(f"Images without vectors: {len(report.dangling_images)}")
    for vector_id in report.dangling_images:
        print(f"  {vector_id}")
    if args.purge:
        print(f"Purged {len(report.purged)}, failed {len(report.purge_failures)}")
    unresolved = report.dangling_images or report.purge_failures or (report.orphan_vectors and not args.purge)
    sys.exit(1 if unresolved else 0)


if __name__ == "__main__":
    main()
