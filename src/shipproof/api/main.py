"""Shipproof API entry point.

``app`` is what uvicorn serves (shipproof.api.main:app); run() backs the
shipproof-api console script.
"""

import logging

from shipproof.api import create_app
from shipproof.core.settings import get_settings

logger = logging.getLogger(__name__)

app = create_app()


def run() -> None:
    """Run the API server using uvicorn."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info("Starting shipproof API on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        "shipproof.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    run()
