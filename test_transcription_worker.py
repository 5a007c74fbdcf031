"""
Test Transcription Worker
=========================

Flushed utterance -> status, stored row, stats and notification.
The recognizer is replaced by a stub returning a canned result.
"""

import numpy as np

from voicescribe.audio_handler import FlushedUtterance
from voicescribe.models import Utterance, UtteranceStatus
from voicescribe.services.transcription_worker import TranscriptionWorker
from voicescribe.stats_collector import StatsCollector

START_MS = 1700000000000


class StubSTT:
    sample_rate = 16000

    def __init__(self, result):
        self.result = result
        self.calls = []

    def transcribe_pcm(self, pcm, sample_rate=None):
        self.calls.append((len(pcm), sample_rate))
        return dict(self.result)


def tone(seconds, amplitude=0.3):
    t = np.arange(int(48000 * seconds))
    wave = (amplitude * 32767 * np.sin(2 * np.pi * 440 * t / 48000)).astype(np.int16)
    return np.repeat(wave, 2).tobytes()


def flushed(pcm, guild_id=10, user_id=20, user_name="alice"):
    return FlushedUtterance(
        guild_id=guild_id,
        channel_id=30,
        user_id=user_id,
        user_name=user_name,
        start_ms=START_MS,
        end_ms=START_MS + 500,
        pcm=pcm
    )


def make_worker(stt, **kwargs):
    kwargs.setdefault("stats", StatsCollector())
    kwargs.setdefault("min_utterance_ms", 300)
    kwargs.setdefault("silence_threshold_db", -50)
    return TranscriptionWorker(stt, **kwargs)


def test_transcribed_utterance_is_stored(db):
    stt = StubSTT({"text": "hello world", "confidence": 0.9, "processing_time": 0.05, "audio_duration": 0.5})
    notified = []
    worker = make_worker(stt, on_transcript=notified.append)

    utterance = worker.process(flushed(tone(0.5)))

    assert utterance.status == UtteranceStatus.TRANSCRIBED
    assert utterance.transcript == "hello world"
    assert utterance.confidence == 0.9
    assert utterance.duration_ms == 500
    assert utterance.id is not None
    assert notified == [utterance]
    assert stt.calls and stt.calls[0][1] == 16000

    stored = db.get(Utterance, utterance.id)
    assert stored.user_name == "alice"
    assert stored.guild_id == 10
    assert stored.status == UtteranceStatus.TRANSCRIBED

    stats = worker.stats.get_guild_stats(10)
    assert stats["utterances"] == 1
    assert stats["transcribed"] == 1
    assert stats["total_audio_ms"] == 500


def test_empty_text_is_empty_status(db):
    worker = make_worker(StubSTT({"text": "", "confidence": 0.0, "processing_time": 0.01}))
    utterance = worker.process(flushed(tone(0.5)))

    assert utterance.status == UtteranceStatus.EMPTY
    assert worker.stats.get_guild_stats(10)["empty"] == 1


def test_recognizer_error_is_failed(db):
    worker = make_worker(StubSTT({"text": "", "error": "Vosk model not available"}))
    utterance = worker.process(flushed(tone(0.5)))

    assert utterance.status == UtteranceStatus.FAILED
    assert utterance.error == "Vosk model not available"
    assert worker.stats.get_guild_stats(10)["failed"] == 1


def test_short_utterance_is_skipped_without_recognizer(db):
    stt = StubSTT({"text": "never"})
    worker = make_worker(stt)

    utterance = worker.process(flushed(tone(0.1)))

    assert utterance.status == UtteranceStatus.SKIPPED
    assert stt.calls == []
    assert worker.stats.get_guild_stats(10)["skipped"] == 1


def test_silent_utterance_is_skipped_without_recognizer(db):
    stt = StubSTT({"text": "never"})
    worker = make_worker(stt)

    utterance = worker.process(flushed(b"\x00\x00" * 48000))

    assert utterance.status == UtteranceStatus.SKIPPED
    assert stt.calls == []


def test_without_stt_utterance_stays_pending(db):
    worker = make_worker(None)
    utterance = worker.process(flushed(tone(0.5)))

    assert utterance.status == UtteranceStatus.PENDING
    assert db.get(Utterance, utterance.id) is not None
    assert worker.stats.get_guild_stats(10)["utterances"] == 0


def test_notification_errors_are_contained(db):
    def broken(_):
        raise RuntimeError("discord down")

    worker = make_worker(StubSTT({"text": "hi", "confidence": 1.0}), on_transcript=broken)
    assert worker.process(flushed(tone(0.5))).status == UtteranceStatus.TRANSCRIBED


def test_threads_drain_queue_on_stop(db):
    worker = make_worker(StubSTT({"text": "queued", "confidence": 0.8}), workers=1)
    worker.start()
    for user_id in range(5):
        worker.submit(flushed(tone(0.5), user_id=user_id))
    worker.stop(drain=True)

    assert not worker.running
    assert db.query(Utterance).count() == 5
    assert worker.stats.get_guild_stats(10)["transcribed"] == 5
