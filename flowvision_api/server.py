"""
FlowVision API Server - REST API for the strategic intelligence dashboard.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging
import os
from datetime import datetime

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowvision import __version__, config
from flowvision.observability import CorrelationIdMiddleware, configure_logging
from flowvision_api.analytics_router import analytics_router
from flowvision_api.response_models import HealthResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="FlowVision Analytics API",
        description="Strategic intelligence over issues, initiatives and teams",
        version=__version__,
    )

    # CORS_ORIGINS: comma-separated list, "*" (dev default) allows all
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(analytics_router, prefix="/api/v1/analytics")

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check():
        return {"status": "healthy", "version": __version__, "timestamp": datetime.now().isoformat()}

    return app


app = create_app()


def main():
    configure_logging(config.LOG_LEVEL)
    port = int(os.getenv("PORT", "8420"))
    logger.info(f"Starting FlowVision API on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
