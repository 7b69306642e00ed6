from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradewatch.api import settings
from tradewatch.api.routes import plans
from tradewatch.core.alerts.monitor import AlertMonitor


def create_app(monitor: AlertMonitor) -> FastAPI:
    app = FastAPI(title="tradewatch API")
    app.state.monitor = monitor

    # Allow calls from the frontend dev server (and any configured origins).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {
            "status": "ok",
            "monitor_running": monitor.is_running,
            "sandbox": monitor.sandbox,
        }

    app.include_router(plans.router)

    return app
