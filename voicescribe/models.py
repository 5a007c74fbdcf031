"""
Database Models - VoiceScribe

ORM models for the transcript store.

Models:
- Utterance : one user's speech, dumped once they went silent, with its transcript

Usage:
    from voicescribe.models import Utterance, UtteranceStatus
    from voicescribe.database import SessionLocal

    db = SessionLocal()
    db.query(Utterance).filter(Utterance.status == UtteranceStatus.TRANSCRIBED).all()
"""

from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Float, DateTime, Enum as SQLEnum
)
from datetime import datetime
import enum

from voicescribe.database import Base


# ============================================================================
# ENUMS
# ============================================================================
class UtteranceStatus(str, enum.Enum):
    """Transcription state of an utterance"""
    PENDING = "pending"           # Dumped, waiting for a worker
    TRANSCRIBED = "transcribed"   # Text recognised
    EMPTY = "empty"               # Recognizer returned nothing
    SKIPPED = "skipped"           # Too short or silent
    FAILED = "failed"             # Conversion/recognizer error


# ============================================================================
# MODEL: Utterance
# ============================================================================
class Utterance(Base):
    """
    Utterance - one user's speech between two silences

    Main columns:
    - guild_id, channel_id : where it was spoken (Discord snowflakes)
    - user_id, user_name : who spoke
    - started_at, ended_at : first / last packet received
    - audio_path : dumped WAV file (None if the dump failed)
    - transcript, confidence : Vosk result
    """
    __tablename__ = "utterances"

    id = Column(Integer, primary_key=True, index=True)

    # Origin
    guild_id = Column(BigInteger, index=True, nullable=False)
    channel_id = Column(BigInteger, nullable=True)
    user_id = Column(BigInteger, index=True, nullable=False)
    user_name = Column(String(100), nullable=False)

    # Timing
    started_at = Column(DateTime, nullable=False, index=True)
    ended_at = Column(DateTime, nullable=False)
    duration_ms = Column(Integer, default=0)

    # Audio
    audio_path = Column(String(500), nullable=True)

    # Transcription
    transcript = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)
    status = Column(SQLEnum(UtteranceStatus), default=UtteranceStatus.PENDING, nullable=False, index=True)
    error = Column(Text, nullable=True)
    processing_time = Column(Float, nullable=True)  # seconds

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "guild_id": self.guild_id,
            "channel_id": self.channel_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "audio_path": self.audio_path,
            "transcript": self.transcript,
            "confidence": self.confidence,
            "status": self.status.value if self.status else None,
            "error": self.error,
            "processing_time": self.processing_time,
        }

    def __repr__(self):
        return f"<Utterance {self.id} {self.user_name} {self.status}>"
