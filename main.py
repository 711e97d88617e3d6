import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from redirector_app.api.errors import register_error_handlers
from redirector_app.api.v1 import aliases, audit_trail, destinations, notes, redirect, users
from redirector_app.config import settings
from redirector_app.database.connection import Base, SessionLocal, engine
from redirector_app.dependencies import get_password_codec, get_queue, get_token_codec
from redirector_app.hit_processor.hit_worker import HitWorker
# Import models to ensure they're registered with Base
from redirector_app.models import Alias, AuditTrailEntry, ClaimedSlug, Destination, Hit, Note, User  # noqa: F401
from redirector_app.services.user_service import UserService

logging.basicConfig(level=settings.log_level)

# Create database tables
Base.metadata.create_all(bind=engine)


async def bootstrap_initial_user():
    """Create the first admin when the store has no users yet"""
    db = SessionLocal()
    try:
        user_service = UserService(db=db, passwords=get_password_codec(), tokens=get_token_codec())
        await user_service.ensure_initial_user(settings.initial_username, settings.initial_password)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await bootstrap_initial_user()

    worker = None
    worker_task = None
    if settings.hit_worker_embedded:
        worker = HitWorker(queue=get_queue())
        worker_task = asyncio.create_task(worker.start())

    yield

    if worker_task is not None:
        worker.stop()
        worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await worker_task


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="A managed URL redirection service built with FastAPI",
    debug=settings.debug,
    lifespan=lifespan,
)

register_error_handlers(app)


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(users.router, prefix="/api")
app.include_router(destinations.router, prefix="/api")
app.include_router(aliases.router, prefix="/api")
app.include_router(notes.router, prefix="/api")
app.include_router(audit_trail.router, prefix="/api")
# Catch-all, must stay last
app.include_router(redirect.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port)
