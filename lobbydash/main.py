"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException

from .api.models import (
    DisplayModeResponse,
    EditingRequest,
    RotationResponse,
    StatusResponse,
    ViewportRequest,
    ViewRequest,
    VisibilityRequest,
)
from .config import settings
from .dashboard.session import DashboardSession

VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize components
session = DashboardSession.from_settings(settings)


def get_session() -> DashboardSession:
    """Session dependency (overridden in tests)."""
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the dashboard session for the lifetime of the server."""
    await session.start()
    try:
        yield
    finally:
        await session.stop()


# Initialize FastAPI app
app = FastAPI(
    title="Lobby Dashboard",
    description="Live sales dashboard orchestration for unattended lobby displays",
    version=VERSION,
    lifespan=lifespan,
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Lobby Dashboard",
        "version": VERSION,
        "endpoints": {
            "state": "/api/state",
            "editing": "/api/editing",
            "visibility": "/api/visibility",
            "viewport": "/api/viewport",
            "view": "/api/view",
            "refresh": "/api/refresh",
            "status": "/status",
        },
    }


@app.get("/status", response_model=StatusResponse)
async def status(session: DashboardSession = Depends(get_session)):
    """Server status endpoint."""
    return StatusResponse(
        version=VERSION,
        timestamp=datetime.utcnow().isoformat(),
        store_url=settings.store_url,
        session_started=session.started,
        topics=session.layer.status(),
    )


@app.get("/api/state")
async def state_endpoint(session: DashboardSession = Depends(get_session)):
    """
    Everything the display needs to draw the current frame.

    Polled by the kiosk page; includes recent cue/celebration events.
    """
    return session.state()


@app.post("/api/editing", response_model=RotationResponse)
async def editing_endpoint(
    body: EditingRequest, session: DashboardSession = Depends(get_session)
):
    """Flip chart editor opened or closed: pause or resume rotation."""
    logger.info(f"Editing {'started' if body.editing else 'finished'}")
    session.on_editing_change(body.editing)
    return RotationResponse(
        active_view=session.rotation.active_view, paused=session.rotation.paused
    )


@app.post("/api/visibility")
async def visibility_endpoint(
    body: VisibilityRequest, session: DashboardSession = Depends(get_session)
):
    """Display became visible or hidden."""
    session.set_visible(body.visible)
    return {"status": "success", "watchdog_running": session.watchdog.running}


@app.post("/api/viewport", response_model=DisplayModeResponse)
async def viewport_endpoint(
    body: ViewportRequest, session: DashboardSession = Depends(get_session)
):
    """Classify the display on load and on every resize."""
    mode = session.report_viewport(body.width, body.height, body.user_agent)
    return DisplayModeResponse(mode=mode.value, width=body.width, height=body.height)


@app.post("/api/view", response_model=RotationResponse)
async def view_endpoint(body: ViewRequest, session: DashboardSession = Depends(get_session)):
    """Manual tab selection."""
    try:
        session.show_view(body.view)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RotationResponse(
        active_view=session.rotation.active_view, paused=session.rotation.paused
    )


@app.post("/api/refresh")
async def refresh_endpoint(session: DashboardSession = Depends(get_session)):
    """Refetch every topic now."""
    logger.info("Manual refresh requested")
    session.refresh()
    return {"status": "success", "message": "Refresh requested for all topics"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
