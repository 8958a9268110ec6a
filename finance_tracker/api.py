"""
HTTP API

The application's only server-side endpoint is a health check; every
other operation runs through the flows in `finance_tracker.orchestrator`.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finance_tracker import __version__


def create_app() -> FastAPI:
    app = FastAPI(title="Personal Finance Tracker API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
