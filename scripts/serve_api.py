# Path: scripts/serve_api.py
# Purpose: Run the HTTP API with uvicorn.
# Layer: scripts.
# Details: Services are built from IMGREC_* settings inside the app lifespan.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import uvicorn

from api.app import create_app
from config import AppSettings
from core.logging import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the image record search API")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args()

    settings = AppSettings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
