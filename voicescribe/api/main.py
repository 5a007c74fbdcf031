"""
API REST Main - VoiceScribe

Read-only monitoring API for stored transcripts.

Run:
    uvicorn voicescribe.api.main:app --port 8000
    python run_bot.py --api          (same process as the bot)
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI

from voicescribe import __version__
from voicescribe.database import engine, init_database, test_connection
from voicescribe.logger import get_logger
from voicescribe.api import utterances, stats

logger = get_logger("api", name=__name__)

app_start_time = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown."""
    global app_start_time
    app_start_time = datetime.utcnow()

    logger.info("🚀 Starting VoiceScribe API...")
    if not test_connection():
        logger.error("❌ Database connection failed!")
    else:
        init_database()

    yield

    logger.info("🛑 Shutting down VoiceScribe API...")
    try:
        engine.dispose()
    except Exception as e:
        logger.warning(f"Could not close database: {e}")


app = FastAPI(
    title="VoiceScribe API",
    description="Transcripts of Discord voice channels",
    version=__version__,
    lifespan=lifespan
)

app.include_router(utterances.router)
app.include_router(stats.router)


@app.get("/health")
def health_check():
    """Health check for monitoring."""
    database_ok = test_connection()
    uptime = (datetime.utcnow() - app_start_time).total_seconds() if app_start_time else 0.0
    return {
        "status": "healthy" if database_ok else "degraded",
        "service": "voicescribe",
        "version": __version__,
        "database": database_ok,
        "uptime_seconds": round(uptime, 1)
    }
