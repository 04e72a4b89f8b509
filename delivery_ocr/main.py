"""Serve the delivery-note processing API with uvicorn.

Bind address and log level come from ``configs/config.yaml``; ``--host``
and ``--port`` override the configured address for one run.
"""

import argparse

import uvicorn

from delivery_ocr.api.app import app
from delivery_ocr.utils.config import load_config
from delivery_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Start the API server.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(description="Delivery note OCR API server")
    parser.add_argument("--host", help="Bind address (default: server.host)")
    parser.add_argument("--port", type=int, help="Bind port (default: server.port)")
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config.log_level)
    host = args.host or config.server.host
    port = args.port or config.server.port

    logger.info(
        "Serving on %s:%d with providers %s",
        host,
        port,
        ", ".join(config.providers.order) or "(none)",
    )
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
