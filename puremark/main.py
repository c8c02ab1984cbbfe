"""Main entry point for puremark."""
import argparse
import asyncio
from typing import List, Optional

import uvicorn

from puremark.api import create_app
from puremark.config import get_config
from puremark.server import main as mcp_main


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="puremark", description="Search-first bookmark manager")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", help="Bind address (default: PUREMARK_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, help="Port (default: PUREMARK_PORT or 3000)")

    subparsers.add_parser("mcp", help="Run the MCP server on stdio")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = get_config()

    if args.command == "serve":
        uvicorn.run(create_app(config=config), host=args.host or config.host, port=args.port or config.port)
    elif args.command == "mcp":
        asyncio.run(mcp_main())


if __name__ == "__main__":
    main()
