"""
Transcription Worker - VoiceScribe

Worker threads turning flushed utterances into stored transcripts.

Cycle (per utterance):
1. Skip utterances that are too short or silent
2. Downmix / resample for the recognizer
3. Transcribe with Vosk
4. Store an Utterance row
5. Update stats and notify (the bot posts the text in Discord)

Usage:
    from voicescribe.services.transcription_worker import TranscriptionWorker

    worker = TranscriptionWorker(VoskSTT(), on_transcript=post)
    worker.start()
    worker.submit(flushed_utterance)
    ...
    worker.stop()
"""

import queue
import threading
from typing import Callable, List, Optional

from voicescribe.config import config
from voicescribe.database import SessionLocal
from voicescribe.logger import get_logger, log_stt_transcription, log_error
from voicescribe.models import Utterance, UtteranceStatus
from voicescribe.services import audio_converter
from voicescribe.stats_collector import StatsCollector, stats_collector as default_stats

logger = get_logger("stt", name=__name__)

_STOP = object()


class TranscriptionWorker:
    """
    Queue + worker threads for utterance transcription.

    stt may be None (transcription disabled): utterances are then stored as
    pending with their audio path, to be transcribed later.
    """

    def __init__(
        self,
        stt=None,
        on_transcript: Optional[Callable[[Utterance], None]] = None,
        workers: int = config.STT_WORKERS,
        session_factory=SessionLocal,
        stats: Optional[StatsCollector] = None,
        min_utterance_ms: int = config.MIN_UTTERANCE_MS,
        silence_threshold_db: float = config.SILENCE_THRESHOLD_DB
    ):
        self.stt = stt
        self.on_transcript = on_transcript
        self.workers = max(1, workers)
        self.session_factory = session_factory
        self.stats = stats or default_stats
        self.min_utterance_ms = min_utterance_ms
        self.silence_threshold_db = silence_threshold_db

        self.running = False
        self._queue: "queue.Queue" = queue.Queue()
        self._threads: List[threading.Thread] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        if self.running:
            logger.warning("TranscriptionWorker already running")
            return

        self.running = True
        for index in range(self.workers):
            thread = threading.Thread(target=self._run_loop, name=f"stt-worker-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)

        logger.info(f"✅ TranscriptionWorker started ({self.workers} thread(s))")

    def stop(self, drain: bool = True, timeout: float = 30.0):
        """
        Stop the worker threads.

        Args:
            drain: Process queued utterances first (otherwise drop them)
            timeout: Max seconds to wait per thread
        """
        if not self.running:
            return

        if not drain:
            dropped = 0
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
                self._queue.task_done()
                dropped += 1
            if dropped:
                logger.warning(f"⚠️ Dropped {dropped} queued utterance(s)")

        for _ in self._threads:
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout=timeout)

        self._threads.clear()
        self.running = False
        logger.info("TranscriptionWorker stopped")

    def submit(self, flushed) -> None:
        """Queue a FlushedUtterance."""
        self._queue.put(flushed)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _run_loop(self):
        while True:
            job = self._queue.get()
            try:
                if job is _STOP:
                    return
                self.process(job)
            except Exception as e:
                log_error(__name__, e, {"user_id": getattr(job, "user_id", None)})
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, flushed) -> Utterance:
        """
        Transcribe and store one utterance (synchronously).

        Returns:
            The Utterance row (detached; unsaved if the database failed)
        """
        utterance = Utterance(
            guild_id=flushed.guild_id,
            channel_id=flushed.channel_id,
            user_id=flushed.user_id,
            user_name=flushed.user_name,
            started_at=flushed.started_at,
            ended_at=flushed.ended_at,
            duration_ms=flushed.duration_ms,
            audio_path=str(flushed.audio_path) if flushed.audio_path else None,
            status=UtteranceStatus.PENDING
        )

        if flushed.duration_ms < self.min_utterance_ms:
            utterance.status = UtteranceStatus.SKIPPED
            utterance.error = f"shorter than {self.min_utterance_ms}ms"
        elif self.stt is not None:
            self._transcribe(flushed, utterance)

        self._save(utterance)

        if utterance.status != UtteranceStatus.PENDING:
            self.stats.record_utterance(
                flushed.guild_id,
                utterance.status.value,
                duration_ms=utterance.duration_ms or 0,
                confidence=utterance.confidence,
                processing_time=utterance.processing_time
            )

        if self.on_transcript is not None:
            try:
                self.on_transcript(utterance)
            except Exception as e:
                logger.error(f"on_transcript callback failed: {e}", exc_info=True)

        return utterance

    def _transcribe(self, flushed, utterance: Utterance) -> None:
        try:
            segment = audio_converter.pcm_to_segment(flushed.pcm)
            pcm = audio_converter.to_recognizer_pcm(segment, self.stt.sample_rate)
        except Exception as e:
            logger.error(f"❌ Audio conversion failed: {e}", exc_info=True)
            utterance.status = UtteranceStatus.FAILED
            utterance.error = str(e)
            return

        if audio_converter.is_silent(pcm, self.silence_threshold_db):
            utterance.status = UtteranceStatus.SKIPPED
            utterance.error = f"quieter than {self.silence_threshold_db}dBFS"
            return

        result = self.stt.transcribe_pcm(pcm, self.stt.sample_rate)
        utterance.processing_time = result.get("processing_time")

        if result.get("error"):
            utterance.status = UtteranceStatus.FAILED
            utterance.error = result["error"]
            return

        utterance.transcript = result.get("text", "")
        utterance.confidence = result.get("confidence", 0.0)
        utterance.status = UtteranceStatus.TRANSCRIBED if utterance.transcript else UtteranceStatus.EMPTY

        log_stt_transcription(
            flushed.guild_id,
            flushed.user_id,
            result.get("audio_duration", 0.0),
            utterance.transcript,
            utterance.confidence,
            utterance.processing_time or 0.0
        )

    def _save(self, utterance: Utterance) -> None:
        db = self.session_factory()
        try:
            db.add(utterance)
            db.commit()
            db.refresh(utterance)
            db.expunge(utterance)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to store utterance: {e}", exc_info=True)
        finally:
            db.close()
