"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vpnportal.config import get_settings
from vpnportal.db.database import SessionLocal, init_db
from vpnportal.api.admin import router as admin_router
from vpnportal.api.auth import router as auth_router
from vpnportal.api.errors import register_error_handlers
from vpnportal.api.teamspeak import router as teamspeak_router
from vpnportal.api.users import router as users_router
from vpnportal.api.vpn import router as vpn_router
from vpnportal.scheduler.scheduler import router as scheduler_router, get_scheduler_service
from vpnportal.services.auth import ensure_admin_exists

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    init_db()
    db = SessionLocal()
    try:
        ensure_admin_exists(db)
    finally:
        db.close()
    scheduler = get_scheduler_service()
    scheduler.start()
    scheduler.setup_default_jobs()
    yield
    # Shutdown
    scheduler.stop()


app = FastAPI(
    title="VPN Portal",
    description="Invite-gated access and VPN provisioning for a self-hosted VPN + voice portal",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(vpn_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(teamspeak_router, prefix="/api")
app.include_router(scheduler_router, prefix="/api")


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "version": VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("vpnportal.main:app", host=settings.api_host, port=settings.api_port)
