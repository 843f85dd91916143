"""
Run script for starting the receptionist bridge server.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import sys

import uvicorn

from receptionist.config.logging_config import configure_logging
from receptionist.config.settings import load_settings

settings = load_settings()
logger = configure_logging(settings.log_level)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the receptionist bridge server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()

    for warning in settings.validate_startup():
        logger.warning(warning)

    if not settings.openai_api_key and not settings.front_desk_number:
        logger.error("Neither OPENAI_API_KEY nor FRONT_DESK_NUMBER is set; calls cannot be served")
        sys.exit(1)

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "receptionist.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        access_log=False,
        # Protocol-level pings on the caller leg, alongside the keepalive marks
        ws_ping_interval=settings.keepalive_interval,
        ws_ping_timeout=20,
    )


if __name__ == "__main__":
    main()
