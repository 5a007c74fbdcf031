# -*- coding: utf-8 -*-
"""
Configuration Manager - VoiceScribe

Centralised configuration for the Discord voice transcription bot.

Pipeline:
- Voice receive : per-user PCM buffering (discord-ext-voice-recv)
- Flush         : utterance dumped once the speaker is silent for FLUSH_DELAY_MS
- Transcription : offline Vosk recognizer, results stored in the database

Every value can be overridden through the environment. The bot token is read
from the properties file (discord.properties) unless DISCORD_BOT_TOKEN is set.
"""

import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


# ═══════════════════════════════════════════════════════════════════════════
# 1. ENVIRONMENT & PATHS
# ═══════════════════════════════════════════════════════════════════════════

# Project root
BASE_DIR = Path(__file__).parent.parent.resolve()

# Runtime data (logs, recordings, sqlite database)
DATA_DIR = Path(os.getenv("VOICESCRIBE_DATA_DIR", str(BASE_DIR))).resolve()

LOGS_DIR = DATA_DIR / "logs"
RECORDINGS_DIR = DATA_DIR / "recordings"
MODELS_DIR = DATA_DIR / "models"

for directory in [LOGS_DIR, RECORDINGS_DIR, MODELS_DIR]:
    directory.mkdir(parents=True, exist_ok=True)


# ═══════════════════════════════════════════════════════════════════════════
# 2. DISCORD
# ═══════════════════════════════════════════════════════════════════════════

# Properties file holding discord.bot_token
PROPERTIES_FILE = Path(os.getenv("VOICESCRIBE_PROPERTIES", str(BASE_DIR / "discord.properties")))
BOT_TOKEN_PROPERTY = "discord.bot_token"

# Takes precedence over the properties file
BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN", "")

COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "!")

# Presence: "Listening to jams", do not disturb
BOT_ACTIVITY = os.getenv("BOT_ACTIVITY", "to jams")
BOT_STATUS = os.getenv("BOT_STATUS", "dnd")

# Seconds to wait for the voice websocket handshake
VOICE_CONNECT_TIMEOUT = float(os.getenv("VOICE_CONNECT_TIMEOUT", "30"))


# ═══════════════════════════════════════════════════════════════════════════
# 3. VOICE BUFFERING
# ═══════════════════════════════════════════════════════════════════════════

# Silence (ms) after the last packet before a user's utterance is dumped
# Changed at runtime with !delay
FLUSH_DELAY_MS = int(os.getenv("FLUSH_DELAY_MS", "1000"))

# Seconds between two scans of the per-user buffers
FLUSH_POLL_INTERVAL = float(os.getenv("FLUSH_POLL_INTERVAL", "0.05"))

# Discord decoded PCM: 48kHz, stereo, signed 16-bit little endian, 20ms frames
DISCORD_SAMPLE_RATE = 48000
DISCORD_CHANNELS = 2
DISCORD_SAMPLE_WIDTH = 2


# ═══════════════════════════════════════════════════════════════════════════
# 4. STT - VOSK (offline Speech-to-Text)
# ═══════════════════════════════════════════════════════════════════════════

STT_ENABLED = _env_bool("STT_ENABLED", "true")

# Default: vosk-model-small-en-us-0.15 unpacked under models/
VOSK_MODEL_PATH = os.getenv("VOSK_MODEL_PATH", str(MODELS_DIR / "vosk-model-small-en-us-0.15"))

# Recognizer input rate (utterances are downmixed and resampled to it)
VOSK_SAMPLE_RATE = int(os.getenv("VOSK_SAMPLE_RATE", "16000"))

# Transcription threads
STT_WORKERS = int(os.getenv("STT_WORKERS", "1"))

# Utterances quieter than this (RMS dBFS) are not transcribed
SILENCE_THRESHOLD_DB = float(os.getenv("SILENCE_THRESHOLD_DB", "-50"))

# Utterances shorter than this are not transcribed (clicks, breaths)
MIN_UTTERANCE_MS = int(os.getenv("MIN_UTTERANCE_MS", "300"))

# Echo transcripts into the text channel where !echo was typed
POST_TRANSCRIPTS = _env_bool("POST_TRANSCRIPTS", "true")


# ═══════════════════════════════════════════════════════════════════════════
# 5. DATABASE
# ═══════════════════════════════════════════════════════════════════════════

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{DATA_DIR / 'voicescribe.db'}"
)


# ═══════════════════════════════════════════════════════════════════════════
# 6. API (monitoring)
# ═══════════════════════════════════════════════════════════════════════════

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Max rows returned by /utterances
API_MAX_LIMIT = 500


# ═══════════════════════════════════════════════════════════════════════════
# 7. LOGGING
# ═══════════════════════════════════════════════════════════════════════════

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# JSON structured file logs
LOG_FORMAT_JSON = _env_bool("LOG_FORMAT_JSON", "true")

# Colored console output (rich)
LOG_RICH_CONSOLE = _env_bool("LOG_RICH_CONSOLE", "true")

LOG_RETENTION_DAYS = 30

# Dumped utterances (days)
AUDIO_RETENTION_DAYS = int(os.getenv("AUDIO_RETENTION_DAYS", "7"))


# ═══════════════════════════════════════════════════════════════════════════
# 8. CONFIGURATION OBJECT
# ═══════════════════════════════════════════════════════════════════════════

class Config:
    """Configuration object, accessed as config.PARAM_NAME"""

    # Paths
    BASE_DIR = BASE_DIR
    DATA_DIR = DATA_DIR
    LOGS_DIR = LOGS_DIR
    RECORDINGS_DIR = RECORDINGS_DIR
    MODELS_DIR = MODELS_DIR

    # Discord
    PROPERTIES_FILE = PROPERTIES_FILE
    BOT_TOKEN_PROPERTY = BOT_TOKEN_PROPERTY
    BOT_TOKEN = BOT_TOKEN
    COMMAND_PREFIX = COMMAND_PREFIX
    BOT_ACTIVITY = BOT_ACTIVITY
    BOT_STATUS = BOT_STATUS
    VOICE_CONNECT_TIMEOUT = VOICE_CONNECT_TIMEOUT

    # Voice buffering
    FLUSH_DELAY_MS = FLUSH_DELAY_MS
    FLUSH_POLL_INTERVAL = FLUSH_POLL_INTERVAL
    DISCORD_SAMPLE_RATE = DISCORD_SAMPLE_RATE
    DISCORD_CHANNELS = DISCORD_CHANNELS
    DISCORD_SAMPLE_WIDTH = DISCORD_SAMPLE_WIDTH

    # STT
    STT_ENABLED = STT_ENABLED
    VOSK_MODEL_PATH = VOSK_MODEL_PATH
    VOSK_SAMPLE_RATE = VOSK_SAMPLE_RATE
    STT_WORKERS = STT_WORKERS
    SILENCE_THRESHOLD_DB = SILENCE_THRESHOLD_DB
    MIN_UTTERANCE_MS = MIN_UTTERANCE_MS
    POST_TRANSCRIPTS = POST_TRANSCRIPTS

    # Database
    DATABASE_URL = DATABASE_URL

    # API
    API_HOST = API_HOST
    API_PORT = API_PORT
    API_MAX_LIMIT = API_MAX_LIMIT

    # Logging
    LOG_LEVEL = LOG_LEVEL
    LOG_FORMAT_JSON = LOG_FORMAT_JSON
    LOG_RICH_CONSOLE = LOG_RICH_CONSOLE
    LOG_RETENTION_DAYS = LOG_RETENTION_DAYS
    AUDIO_RETENTION_DAYS = AUDIO_RETENTION_DAYS


# Global instance
config = Config()
