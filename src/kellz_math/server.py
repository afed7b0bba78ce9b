"""MCP Server: exposes the tutoring calls as stateless tools.

- generate_quiz          (practice quiz on a topic)
- create_learning_path   (prerequisite concepts for a problem)
- analyze_work           (explain a wrong answer, optionally from a work image)
"""

from __future__ import annotations

import argparse
import logging

from mcp.server.fastmcp import FastMCP

from kellz_math.config import load_settings
from kellz_math.gateway import GeminiGateway
from kellz_math.tools import guidance, practice

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_server() -> FastMCP:
    settings = load_settings()
    if not settings.gemini_api_key:
        logger.warning("GOOGLE_API_KEY not set. Tools will return fallback replies.")
    gateway = GeminiGateway(api_key=settings.gemini_api_key, model=settings.model)

    mcp = FastMCP("Kellz Math")
    practice.register(mcp, gateway)
    guidance.register(mcp, gateway)
    return mcp


def main():
    """Run the MCP server."""
    parser = argparse.ArgumentParser(description="Kellz Math MCP Server")
    parser.add_argument(
        "--sse",
        type=int,
        metavar="PORT",
        help="Run with SSE transport on specified port",
    )
    parser.add_argument(
        "--http",
        type=int,
        metavar="PORT",
        help="Run with Streamable HTTP transport on specified port",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    mcp = build_server()

    if args.sse:
        logger.info("Starting Kellz Math MCP server (transport: sse)...")
        mcp.settings.host = "0.0.0.0"
        mcp.settings.port = args.sse
        mcp.run(transport="sse")
    elif args.http:
        logger.info("Starting Kellz Math MCP server (transport: http)...")
        mcp.settings.host = "0.0.0.0"
        mcp.settings.port = args.http
        mcp.run(transport="streamable-http")
    else:
        logger.info("Starting Kellz Math MCP server (transport: stdio)...")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
