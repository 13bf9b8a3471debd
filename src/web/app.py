"""
FastAPI application factory for the crash guard control/status API.

Routes (all under /api):
- /status                      -> session snapshot
- /trigger /cancel /confirm /reset -> operator commands (queued, 202)
- /records/latest[/export]     -> latest sealed trust packet
- /records/verify              -> digest check of a posted packet
- /queue                       -> outbound queue inspection / clear
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app(session, commands) -> FastAPI:
    """
    Create the FastAPI app bound to one monitoring session.

    Args:
        session: The MonitoringSession whose status and records are served.
        commands: ControlChannel that carries operator commands to the main loop.
    """
    app = FastAPI(
        title="Crash Guard",
        version="0.1.0",
        description="On-device crash detection and evidence capture",
    )

    # The device UI is served from a separate origin during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.session = session
    app.state.commands = commands

    app.include_router(api.router, prefix="/api")

    return app
