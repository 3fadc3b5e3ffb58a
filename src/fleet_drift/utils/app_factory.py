"""FastAPI application factory for standardized apps."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet_drift.aspects.registry import AspectRegistry, default_registry
from fleet_drift.utils.error_handler import ErrorHandler

logger = structlog.get_logger(__name__)


class FastAPIFactory:
    """Create FastAPI apps with shared configuration."""

    @staticmethod
    def create_app(
        title: str,
        description: str,
        version: str,
        enable_cors: bool = True,
        registry: Optional[AspectRegistry] = None,
        openapi_url: str = "/openapi.json",
        docs_url: str = "/docs",
        redoc_url: str = "/redoc"
    ) -> FastAPI:
        """Create a FastAPI application with standard configuration."""
        registry = registry or default_registry()

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            logger.info("Application shutting down")

        app = FastAPI(
            title=title,
            description=description,
            version=version,
            openapi_url=openapi_url,
            docs_url=docs_url,
            redoc_url=redoc_url,
            lifespan=lifespan
        )

        # Register global exception handlers for consistent error responses
        ErrorHandler().register_exception_handlers(app)

        # Aspects are registered once and shared read-only across requests
        app.state.aspect_registry = registry
        logger.info("Aspect registry attached to app.state", aspects=registry.names())

        if enable_cors:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )

        @app.get("/health", tags=["Health"])
        def health_check():
            """
            Health check endpoint.

            Returns:
                dict: Health check result
            """
            return {"status": "ok"}

        logger.info(
            "FastAPI application created",
            title=title,
            version=version,
            cors=enable_cors,
        )

        return app
