"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from navtracker.api import navigation, ws
from navtracker.config import settings
from navtracker.core.broadcaster import Broadcaster
from navtracker.core.directions_client import DirectionsClient
from navtracker.core.position_source import PushPositionSource
from navtracker.core.scheduler import create_scheduler
from navtracker.core.tracker import NavigationTracker
from navtracker.core.voice import Pyttsx3Announcer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    broadcaster = Broadcaster(settings.redis_url)
    await broadcaster.connect()

    scheduler = create_scheduler()
    scheduler.start()

    # Speech stays silent until enabled, here or through PUT /api/navigation/voice
    voice = Pyttsx3Announcer(rate=settings.voice_rate)
    source = PushPositionSource()
    directions = DirectionsClient()

    tracker = NavigationTracker(settings, voice=voice, scheduler=scheduler)
    tracker.subscribe(broadcaster.on_state_change)

    # Wire up API modules
    navigation.tracker = tracker
    navigation.source = source
    navigation.directions = directions
    ws.broadcaster = broadcaster

    logger.info(
        "Navigation service started (voice %s, redis %s)",
        "on" if settings.voice_enabled else "off", "on" if settings.redis_url else "off",
    )

    yield

    # Shutdown
    tracker.stop()
    scheduler.shutdown(wait=False)
    await asyncio.to_thread(voice.close)
    await directions.close()
    await broadcaster.close()
    logger.info("Navigation service shut down")


app = FastAPI(
    title="Turn-by-turn Navigation Tracker",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(navigation.router)
app.include_router(ws.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
