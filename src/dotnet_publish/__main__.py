"""Entry point for the dotnet-publish build step."""

import argparse
import asyncio
import logging
import os
import sys

from . import __version__
from .config import BuildContext, PublishEnvironment
from .publish import PublishOrchestrator, PublishResult


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Dotnet Publish Buildpack - publish a .NET app in place of its source"
    )
    parser.add_argument(
        "--working-dir",
        type=str,
        default=None,
        help="Application directory to publish (default: current directory). "
        "Its source is replaced by the publish output.",
    )
    parser.add_argument(
        "--platform",
        type=str,
        default=os.environ.get("CNB_PLATFORM_DIR", "/platform"),
        help="Platform directory holding service bindings.",
    )
    parser.add_argument(
        "--buildpack-name",
        type=str,
        default="Dotnet Publish Buildpack",
    )
    parser.add_argument(
        "--buildpack-version",
        type=str,
        default=__version__,
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Cancel the build after this many seconds.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        default=False,
        help="Run as an MCP server over stdio instead of publishing once.",
    )
    return parser.parse_args(argv)


async def run_build(args: argparse.Namespace) -> PublishResult:
    """Run the publish pipeline once."""
    context = BuildContext(
        working_dir=os.path.abspath(args.working_dir or os.getcwd()),
        platform_path=args.platform,
        buildpack_name=args.buildpack_name,
        buildpack_version=args.buildpack_version,
    )
    build = PublishOrchestrator().build(context, PublishEnvironment.from_environ())
    if args.timeout is not None:
        return await asyncio.wait_for(build, timeout=args.timeout)
    return await build


async def serve(args: argparse.Namespace) -> None:
    """Run the MCP server."""
    from .server import create_server

    logger = logging.getLogger(__name__)
    working_dir = os.path.abspath(args.working_dir or os.getcwd())
    logger.info(f"Starting dotnet-publish MCP Server (working dir: {working_dir})...")

    mcp = create_server(working_dir, platform_path=args.platform)
    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    configure_logging()
    logger = logging.getLogger(__name__)
    args = parse_args(argv)

    if args.serve:
        asyncio.run(serve(args))
        return 0

    try:
        result = asyncio.run(run_build(args))
    except asyncio.TimeoutError:
        logger.error(f"Build timeout after {args.timeout}s")
        return 1

    if not result.success:
        print(result.to_summary(), file=sys.stderr)
        return 1
    return 0


def run() -> None:
    """Console script entry."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
