# liveroom/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from liveroom.core import (
    celery,
    config,
    database,
    exception_handlers,
    redis,
)
from liveroom.core.middleware import auth_middleware
from liveroom.core.notifications import notifier
from liveroom.core.websocket_manager import websocket_manager
from liveroom.domains import activations, leaderboard, rooms, scoring, sessions, votes

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    celery.init_celery()
    await database.init_db()
    await notifier.start()
    await websocket_manager.start()
    yield
    await websocket_manager.stop()
    await notifier.stop()


app = FastAPI(title="Live Room Backend", version=VERSION, lifespan=lifespan)

app.middleware("http")(auth_middleware)
exception_handlers.setup_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms.router, prefix="/api/rooms", tags=["Rooms"])
app.include_router(sessions.router, prefix="/api/rooms", tags=["Sessions"])
app.include_router(sessions.ws_router, prefix="/api/rooms", tags=["Sessions WS"])
app.include_router(leaderboard.router, prefix="/api/rooms", tags=["Leaderboard"])
app.include_router(activations.router, prefix="/api", tags=["Activations"])
app.include_router(votes.router, prefix="/api", tags=["Votes"])
app.include_router(scoring.router, prefix="/api", tags=["Scoring"])


@app.get("/health")
async def health():
    services = {
        "database": await database.check_connection(),
        "redis": await redis.check_connection(),
        "broker": await celery.check_connection(),
    }
    status = "healthy" if all(services.values()) else "degraded"
    return {
        "status": status,
        "services": services,
        "version": VERSION,
        "notify_backend": config.settings.NOTIFY_BACKEND.value,
    }
