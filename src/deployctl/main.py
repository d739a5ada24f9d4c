"""Application entrypoint."""

from __future__ import annotations

import uvicorn

from deployctl.api.app import create_app
from deployctl.config import Environment, get_settings
from deployctl.infrastructure.observability.logging import setup_logging


app = create_app()


def main() -> None:
    """Run the API server.

    The default in-process lock only serializes operations inside one
    process, so multiple workers require ``REDIS_LOCK_BACKEND=redis``.
    """
    settings = get_settings()
    setup_logging(
        settings.observability.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )

    uvicorn.run(
        "deployctl.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug,
        log_level=settings.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
