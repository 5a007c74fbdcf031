"""
Test configuration - VoiceScribe

Points data, logs and the database at throwaway locations before any
voicescribe module reads its configuration.
"""

import os
import tempfile

DATA_DIR = tempfile.mkdtemp(prefix="voicescribe-tests-")

os.environ["VOICESCRIBE_DATA_DIR"] = DATA_DIR
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_RICH_CONSOLE"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("DISCORD_BOT_TOKEN", None)

import pytest  # noqa: E402

from voicescribe.database import SessionLocal, init_database  # noqa: E402
from voicescribe.models import Utterance  # noqa: E402


@pytest.fixture
def db():
    """Session on an empty utterances table."""
    # The API lifespan disposes the engine, which drops the in-memory database
    init_database()
    session = SessionLocal()
    session.query(Utterance).delete()
    session.commit()
    try:
        yield session
    finally:
        session.close()
        init_database()
        cleanup = SessionLocal()
        cleanup.query(Utterance).delete()
        cleanup.commit()
        cleanup.close()
