import asyncio
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.config import settings
from .core.context import AppContext
from .routers.api import api_router
from .services.guard import watch

logger = logging.getLogger(__name__)


def default_context() -> AppContext:
    from .db.session import SessionLocal
    from .services.lifecycle import RoomLifecycleManager
    from .stores import RoomHub, PublishingRoomStore, SqlRoomStore, S3BlobStore

    hub = RoomHub()
    store = PublishingRoomStore(SqlRoomStore(SessionLocal), hub)
    return AppContext(store=store, hub=hub, blobs=S3BlobStore.from_settings(), lifecycle=RoomLifecycleManager(store))


def create_app(context: AppContext | None = None, run_sweeper: bool | None = None) -> FastAPI:
    app = FastAPI(title="ClipRoom API")
    owns_db = context is None
    app.state.context = context or default_context()
    if run_sweeper is None:
        run_sweeper = owns_db

    @app.on_event("startup")
    async def on_startup():
        if owns_db:
            from .db.session import Base, engine
            Base.metadata.create_all(bind=engine)
        if run_sweeper:
            app.state.sweeper = watch(asyncio.create_task(app.state.context.lifecycle.run_periodic_sweep()), "room sweeper")
            logger.info("sweeper.started interval=%s", settings.cleanup_interval_seconds)

    @app.on_event("shutdown")
    async def on_shutdown():
        sweeper = getattr(app.state, "sweeper", None)
        if sweeper is not None:
            sweeper.cancel()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(api_router)
    return app


app = create_app()
