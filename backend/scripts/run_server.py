#!/usr/bin/env python3
"""Launch the reaction analytics API server.

Usage:
    # From the backend/ directory with the venv activated:
    python scripts/run_server.py

    # Or from the repo root:
    python backend/scripts/run_server.py --seed-demo
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure backend/ is on sys.path so `from reaction_analytics.…` imports work
_backend_dir = Path(__file__).resolve().parent.parent
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))

from reaction_analytics.config.settings import LOG_LEVEL, SERVER_HOST, SERVER_PORT  # noqa: E402

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run_server")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the reaction analytics API.")
    parser.add_argument("--host", default=SERVER_HOST, help=f"Bind address (default: {SERVER_HOST}).")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help=f"Port (default: {SERVER_PORT}).")
    parser.add_argument(
        "--seed-demo",
        action="store_true",
        help="Load the demo group into Redis before starting.",
    )
    parser.add_argument("--reload", action="store_true", help="Enable uvicorn auto-reload.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    if args.seed_demo:
        from reaction_analytics.scripts.seed_demo import DEMO_GROUP, seed
        count = seed()
        logger.info("Seeded demo group '%s' with %d shares", DEMO_GROUP, count)

    import uvicorn
    logger.info("Starting API on %s:%d", args.host, args.port)
    uvicorn.run(
        "reaction_analytics.server:app",
        host=args.host,
        port=args.port,
        log_level=LOG_LEVEL.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
