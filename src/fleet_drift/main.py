"""Fleet drift FastAPI application.

- FastAPI app wiring via FastAPIFactory
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI

from fleet_drift import __version__
from fleet_drift.api.routers.fingerprints import router as fingerprints_router
from fleet_drift.configuration.common_config import get_app_settings
from fleet_drift.configuration.logging_config import configure_logging
from fleet_drift.observability.tracing import init_tracing
from fleet_drift.utils.app_factory import FastAPIFactory

# Initialize logging before creating the app
configure_logging(get_app_settings().LOG_LEVEL)
logger = structlog.get_logger(__name__)
init_tracing("fleet-drift")

app: FastAPI = FastAPIFactory.create_app(
    title="Fleet Drift",
    description="Repository fingerprint extraction and convergence across a fleet",
    version=__version__,
    enable_cors=True,
)

app.include_router(fingerprints_router)


def run() -> None:
    import uvicorn

    settings = get_app_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)


if __name__ == "__main__":
    run()
