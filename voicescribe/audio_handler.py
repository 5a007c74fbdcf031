"""
Audio Handler - VoiceScribe

Per-user voice buffering for a guild voice connection.

Architecture:
    1. TranscribingSink   : receives 20ms decoded PCM packets per speaking user
    2. VoiceBuffer        : appends packets to the user's pending utterance
    3. FlushScheduler     : background thread; a user silent for longer than the
                            flush delay has their utterance removed from the buffer
    4. UtteranceDumper    : writes the utterance to <recordings>/<guild>/<user>-<start ms>.wav
    5. on_flush callback  : hands the dumped utterance to the transcription worker

All sink methods run on discord-ext-voice-recv's packet router thread; the
buffer is shared with the flush thread and guarded by a lock.
"""

import re
import time
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from discord.ext import voice_recv

from voicescribe.config import config
from voicescribe.logger import get_logger, log_utterance_flushed
from voicescribe.services import audio_converter

logger = get_logger("voice", name=__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    """Epoch ms -> naive UTC datetime (what the database stores)."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).replace(tzinfo=None)


# ============================================================================
# DATACLASSES
# ============================================================================

@dataclass
class PendingUtterance:
    """Packets received from one user since their last flush."""
    user_id: int
    user_name: str
    start_ms: int
    last_packet_ms: int
    chunks: List[bytes] = field(default_factory=list)

    @property
    def pcm(self) -> bytes:
        return b"".join(self.chunks)

    @property
    def size(self) -> int:
        return sum(len(chunk) for chunk in self.chunks)


@dataclass
class FlushedUtterance:
    """An utterance dumped to disk, ready for transcription."""
    guild_id: int
    channel_id: Optional[int]
    user_id: int
    user_name: str
    start_ms: int
    end_ms: int
    pcm: bytes
    audio_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return audio_converter.pcm_duration_ms(len(self.pcm))

    @property
    def started_at(self) -> datetime:
        return ms_to_datetime(self.start_ms)

    @property
    def ended_at(self) -> datetime:
        return ms_to_datetime(self.end_ms)


class FlushDelay:
    """
    Silence (ms) before an utterance is flushed.

    One instance is shared by every sink so that !delay applies everywhere.
    """

    def __init__(self, milliseconds: int = config.FLUSH_DELAY_MS):
        self._lock = threading.Lock()
        self._ms = 0
        self.set(milliseconds)

    @property
    def ms(self) -> int:
        with self._lock:
            return self._ms

    def set(self, milliseconds: int) -> None:
        if milliseconds < 0:
            raise ValueError(f"Flush delay must be >= 0 ms, got {milliseconds}")
        with self._lock:
            self._ms = int(milliseconds)


# ============================================================================
# BUFFER
# ============================================================================

class VoiceBuffer:
    """Thread-safe map user_id -> PendingUtterance."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[int, PendingUtterance] = {}

    def add(self, user_id: int, user_name: str, pcm: bytes, now: Optional[int] = None) -> None:
        """
        Append a packet to the user's utterance.

        The start time is only set by the first packet of an utterance; every
        packet refreshes the last packet time.
        """
        now = self._clock() if now is None else now
        with self._lock:
            pending = self._pending.get(user_id)
            if pending is None:
                pending = PendingUtterance(
                    user_id=user_id,
                    user_name=user_name,
                    start_ms=now,
                    last_packet_ms=now
                )
                self._pending[user_id] = pending
            pending.chunks.append(pcm)
            pending.last_packet_ms = now

    def pop_expired(self, delay_ms: int, now: Optional[int] = None) -> List[PendingUtterance]:
        """
        Remove and return utterances whose last packet is older than delay_ms.
        """
        now = self._clock() if now is None else now
        with self._lock:
            expired = [
                user_id for user_id, pending in self._pending.items()
                if now - pending.last_packet_ms > delay_ms
            ]
            return [self._pending.pop(user_id) for user_id in expired]

    def pop_all(self) -> List[PendingUtterance]:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
            return pending

    def users(self) -> List[int]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


# ============================================================================
# DUMPER
# ============================================================================

class UtteranceDumper:
    """Writes utterances as WAV files under <recordings_dir>/<guild_id>/."""

    def __init__(self, guild_id: int, channel_id: Optional[int] = None,
                 recordings_dir: Optional[Path] = None):
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.directory = Path(recordings_dir or config.RECORDINGS_DIR) / str(guild_id)

    @staticmethod
    def safe_name(user_name: str) -> str:
        return re.sub(r"[^\w.-]", "_", user_name).strip("._") or "user"

    def path_for(self, pending: PendingUtterance) -> Path:
        return self.directory / f"{self.safe_name(pending.user_name)}-{pending.start_ms}.wav"

    def dump(self, pending: PendingUtterance) -> FlushedUtterance:
        """
        Concatenate the packets in arrival order and write them to disk.

        Disk errors are logged; the utterance is still returned (without
        audio_path) so that it can be transcribed from memory.
        """
        flushed = FlushedUtterance(
            guild_id=self.guild_id,
            channel_id=self.channel_id,
            user_id=pending.user_id,
            user_name=pending.user_name,
            start_ms=pending.start_ms,
            end_ms=pending.last_packet_ms,
            pcm=pending.pcm
        )

        path = self.path_for(pending)
        try:
            audio_converter.save_wav(audio_converter.pcm_to_segment(flushed.pcm), path)
            flushed.audio_path = path
        except Exception as e:
            logger.error(f"❌ Failed to dump utterance to {path}: {e}", exc_info=True)
            flushed.error = str(e)

        log_utterance_flushed(
            self.guild_id, pending.user_id, pending.user_name,
            flushed.duration_ms, str(flushed.audio_path) if flushed.audio_path else None
        )
        return flushed


# ============================================================================
# SCHEDULER
# ============================================================================

class FlushScheduler:
    """Background thread flushing utterances of users who went silent."""

    def __init__(
        self,
        buffer: VoiceBuffer,
        delay: FlushDelay,
        dumper: UtteranceDumper,
        on_flush: Optional[Callable[[FlushedUtterance], None]] = None,
        poll_interval: float = config.FLUSH_POLL_INTERVAL
    ):
        self.buffer = buffer
        self.delay = delay
        self.dumper = dumper
        self.on_flush = on_flush
        self.poll_interval = poll_interval

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"flush-{self.dumper.guild_id}",
            daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            try:
                self.flush_expired()
            except Exception as e:
                logger.error(f"Flush loop error: {e}", exc_info=True)

    def flush_expired(self, now: Optional[int] = None) -> List[FlushedUtterance]:
        return [self._flush(pending) for pending in self.buffer.pop_expired(self.delay.ms, now)]

    def flush_all(self) -> List[FlushedUtterance]:
        return [self._flush(pending) for pending in self.buffer.pop_all()]

    def _flush(self, pending: PendingUtterance) -> FlushedUtterance:
        flushed = self.dumper.dump(pending)
        if self.on_flush is not None:
            try:
                self.on_flush(flushed)
            except Exception as e:
                logger.error(f"on_flush callback failed for {pending.user_name}: {e}", exc_info=True)
        return flushed

    def stop(self, flush_remaining: bool = True) -> None:
        """Stop the thread, then flush whatever is still buffered."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None

        if flush_remaining:
            self.flush_all()


# ============================================================================
# SINK
# ============================================================================

class TranscribingSink(voice_recv.AudioSink):
    """
    Receive side of a guild voice connection.

    Decoded PCM per user (no combined audio); bots and packets whose SSRC is
    not yet mapped to a user are ignored.
    """

    def __init__(
        self,
        guild_id: int,
        channel_id: Optional[int],
        delay: FlushDelay,
        on_flush: Optional[Callable[[FlushedUtterance], None]] = None,
        recordings_dir: Optional[Path] = None,
        poll_interval: float = config.FLUSH_POLL_INTERVAL,
        clock: Callable[[], int] = now_ms,
        autostart: bool = True
    ):
        super().__init__()
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.voice_buffer = VoiceBuffer(clock)
        self.scheduler = FlushScheduler(
            self.voice_buffer,
            delay,
            UtteranceDumper(guild_id, channel_id, recordings_dir),
            on_flush=on_flush,
            poll_interval=poll_interval
        )
        self._closed = False
        if autostart:
            self.scheduler.start()

    def wants_opus(self) -> bool:
        return False

    def write(self, user, data) -> None:
        if self._closed or user is None or getattr(user, "bot", False):
            return

        pcm = getattr(data, "pcm", None)
        if not pcm:
            return

        self.voice_buffer.add(user.id, user.name, pcm)

    def cleanup(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.scheduler.stop(flush_remaining=True)
        logger.info("🔇 Sink closed", extra={"guild_id": self.guild_id, "channel_id": self.channel_id})
