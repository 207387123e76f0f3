"""Main entry point for the RouterOS gateway.

This module provides the main entry point that:
1. Loads and validates configuration
2. Sets up logging and tracing
3. Builds the HTTP app and serves it with uvicorn (which handles
   SIGTERM/SIGINT and drains in-flight requests)
"""

import logging
import sys

import uvicorn

from routeros_gateway import __version__
from routeros_gateway.cli import load_config_from_cli
from routeros_gateway.config import Settings, set_settings
from routeros_gateway.infra.observability import setup_logging, setup_tracing


def print_startup_banner(settings: Settings) -> None:  # pragma: no cover
    """Log startup banner with configuration information.

    Args:
        settings: Settings instance
    """
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("RouterOS Gateway")
    logger.info(f"Version: {__version__}")
    logger.info("=" * 60)
    logger.info(f"  Debug: {settings.debug}")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  HTTP: {settings.http_host}:{settings.http_port}")
    logger.info(f"  Device timeout: {settings.device_timeout_seconds}s")
    logger.info(f"  Device time zone: {settings.device_timezone or 'local'}")
    if settings.directory_file is not None:
        logger.info(f"  Router directory: file {settings.directory_file}")
    else:
        logger.info(f"  Router directory: {settings.directory_url}")
    logger.info("=" * 60)

    if settings.debug:
        logger.warning("Debug mode enabled - not for production use")


def main() -> int:  # pragma: no cover
    """Main entry point for the RouterOS gateway.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        # Step 1: Load configuration from CLI and environment
        settings = load_config_from_cli()
        set_settings(settings)

        # Step 2: Setup logging and tracing
        setup_logging(
            level=settings.log_level,
            json_format=settings.log_format == "json",
        )
        setup_tracing(console_export=settings.debug)

        # Step 3: Print startup banner
        print_startup_banner(settings)

        # Import here so configuration errors surface before the app is built
        from routeros_gateway.api.http import create_http_app

        app = create_http_app(settings)

        # Step 4: Serve until SIGTERM/SIGINT
        uvicorn.run(
            app,
            host=settings.http_host,
            port=settings.http_port,
            log_config=None,
            access_log=settings.debug,
        )
        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc(file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
