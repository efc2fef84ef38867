"""
Run the squad_league API server.

Usage:
    python -m squad_league [--host HOST] [--port PORT] [--reload]
"""

import argparse
import logging

import uvicorn

from .logger import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Run the squad league API server")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload on code changes")
    args = parser.parse_args()

    setup_logging()
    logging.getLogger("squad_league").info(
        "Starting squad league API at http://%s:%d (docs at /docs)", args.host, args.port
    )
    uvicorn.run("squad_league.api:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
