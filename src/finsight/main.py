"""
Finsight entry point.

This file handles startup concerns (arg-parsing, credential checks, logging) and launches the
appropriate interface: the HTTP API alone, or the API plus an interactive terminal client.
"""

import argparse
import logging
import sys
import threading

from finsight.api.app import run_api
from finsight.config import (
    ConfigurationError,
    settings,
)

logger = logging.getLogger(__name__)

# Client libraries log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Finsight research assistant")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Serve the REST API only, or the API plus an interactive shell (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.API_PORT,
        help="Port for the API server (default from env: %(default)s)",
    )
    return parser


def _serve_in_background(port: int) -> threading.Thread:
    """Start the API on a daemon thread so the shell can own the main thread."""
    thread = threading.Thread(
        target=run_api,
        kwargs={"host": "127.0.0.1", "port": port, "reload": False, "log_level": "warning"},
        name="finsight-api",
        daemon=True,
    )
    thread.start()
    return thread


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Finsight application.

    Missing credentials are fatal here, before any server starts, so a misconfigured
    deployment fails at launch rather than on its first question.
    """
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    # Command-line values take precedence over the environment
    settings.LOG_LEVEL = args.log_level
    settings.API_PORT = args.port
    _init_logging(settings.LOG_LEVEL)

    try:
        settings.require_credentials()
    except ConfigurationError as exc:
        logger.error("Cannot start Finsight: %s", exc)
        sys.exit(1)

    logger.info("Starting Finsight [%s mode, planner=%s]", args.mode, settings.PLANNER)

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    _serve_in_background(settings.API_PORT)

    # Lazy import to avoid loading the shell when only serving
    from finsight.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli()


if __name__ == "__main__":
    main()
