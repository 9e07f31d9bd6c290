"""Main entry point for the webmention relay."""

import argparse
import asyncio
import logging
import sys

import uvicorn

from .config import Config, load_config
from .services import (
    DocumentFetcher,
    LiveBroadcaster,
    MentionStore,
    SourceResolver,
    get_db_service,
    init_db_service,
)
from .webmention_server import create_app


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def run_server(args, logger, config: Config) -> int:
    """Run the HTTP server until interrupted."""
    db_service = get_db_service()
    fetcher = DocumentFetcher(config.fetcher)

    store = MentionStore(db_service)
    broadcaster = LiveBroadcaster(queue_size=config.live.queue_size)
    resolver = SourceResolver(store, fetcher)
    resolver.add_listener(broadcaster.on_resolved)

    app = create_app(config, resolver, store, broadcaster)

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Starting webmention relay on %s:%d...", host, port)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info" if args.verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)

    try:
        await server.serve()
    finally:
        await fetcher.close()

    return 0


async def async_main(args, logger) -> int:
    """Async main function."""
    try:
        logger.info("Loading configuration from %s", args.config or "defaults")
        config = load_config(args.config)

        # Initialize database
        logger.info("Initializing database at %s", config.database.path)
        await init_db_service(config.database)
        logger.info("Database initialized successfully")

        if args.init_db:
            return 0

        return await run_server(args, logger, config)

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        # Clean up database connection
        try:
            db = get_db_service()
            await db.close()
            logger.info("Database connection closed")
        except RuntimeError:
            # Database wasn't initialized (error during startup)
            pass


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Webmention receiver with salmention relay and live updates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run with config.yaml if present, else defaults
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --port 9000                  # Override the configured port
  %(prog)s --init-db                    # Create the database tables and exit
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (default: from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables and exit",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())
