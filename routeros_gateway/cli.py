"""Command-line interface for the RouterOS gateway.

Precedence, later wins: built-in defaults, configuration file, environment,
then command-line flags.
"""

import argparse
from pathlib import Path

from routeros_gateway import __version__
from routeros_gateway.config import Settings, load_settings_from_file

# argparse destination -> Settings field
CLI_OVERRIDES = {
    "log_level": "log_level",
    "log_format": "log_format",
    "host": "http_host",
    "port": "http_port",
    "directory_url": "directory_url",
    "directory_file": "directory_file",
    "device_timeout": "device_timeout_seconds",
    "device_timezone": "device_timezone",
}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="routeros-gateway",
        description="RouterOS Gateway - one HTTP API over MikroTik legacy and REST APIs",
    )
    parser.add_argument(
        "--config", "-c", type=Path, help="Path to configuration file (YAML or TOML)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--version", "-v", action="version", version=f"%(prog)s {__version__}"
    )

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    logging_group.add_argument("--log-format", choices=["json", "text"])

    server_group = parser.add_argument_group("http server")
    server_group.add_argument("--host", help="Bind address (default 127.0.0.1)")
    server_group.add_argument("--port", type=int, help="Port (default 3002)")

    directory_group = parser.add_argument_group("router directory")
    source = directory_group.add_mutually_exclusive_group()
    source.add_argument("--directory-url", help="Base URL of the panel service")
    source.add_argument("--directory-file", type=Path, help="YAML/JSON file with router records")

    device_group = parser.add_argument_group("devices")
    device_group.add_argument(
        "--device-timeout", type=float, help="Connect/request timeout in seconds"
    )
    device_group.add_argument(
        "--device-timezone", help="IANA time zone of the routers' clocks (default: local)"
    )

    return parser


def load_config_from_cli(args: list[str] | None = None) -> Settings:
    """Build settings from a config file or the environment, plus flags.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Validated Settings instance

    Raises:
        FileNotFoundError: If --config names a missing file
        pydantic.ValidationError: If an override is out of range

    Example:
        settings = load_config_from_cli(["--config", "gateway.yaml", "--port", "8080"])
    """
    parsed = create_argument_parser().parse_args(args)

    settings = load_settings_from_file(parsed.config) if parsed.config else Settings()

    overrides = {
        field: getattr(parsed, dest)
        for dest, field in CLI_OVERRIDES.items()
        if getattr(parsed, dest) is not None
    }
    if parsed.debug:
        overrides["debug"] = True
    # A file given on the command line replaces any configured panel URL
    if parsed.directory_file is not None:
        overrides["directory_url"] = None

    if not overrides:
        return settings
    return Settings(**{**settings.model_dump(), **overrides})
