"""Application entry point."""

from __future__ import annotations

from macropulse.api.app import create_api_app
from macropulse.core.config import settings
from macropulse.core.logging import get_logger, setup_logging


setup_logging()

logger = get_logger("main")

app = create_api_app()


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    logger.info(
        f"Starting {settings.app_name} v{settings.app_version}",
        extra={"environment": settings.environment},
    )
    uvicorn.run(
        "macropulse.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
