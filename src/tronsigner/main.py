"""Main entry point - runs the signer API."""

import logging
import sys

import uvicorn
from pydantic import ValidationError

from tronsigner.api.app import create_app
from tronsigner.config import get_settings
from tronsigner.hdwallet.base import KeyConfigurationError

logger = logging.getLogger(__name__)


def main() -> None:
    """Load settings, build the app and serve it."""
    try:
        settings = get_settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.critical(f"Invalid configuration:\n{e}")
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting TRON signer...")
    logger.info(f"Environment: {settings.environment}")

    try:
        app = create_app(settings)
    except KeyConfigurationError as e:
        logger.critical(f"Invalid key material: {e}")
        sys.exit(1)

    logger.info(
        f"Signer listening on {settings.port} | addr={app.state.orchestrator.hot_keys.address}"
    )

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
