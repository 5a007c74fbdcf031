"""
Test Audio Handler
==================

Per-user buffering, flush timing and utterance dumps.
"""

import threading
from types import SimpleNamespace

import pytest

from voicescribe.audio_handler import (
    FlushDelay,
    FlushScheduler,
    PendingUtterance,
    TranscribingSink,
    UtteranceDumper,
    VoiceBuffer,
)
from voicescribe.services import audio_converter

# 20ms of 48kHz stereo s16le
FRAME = b"\x10\x00" * 1920


class FakeClock:
    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now


def member(user_id, name, bot=False):
    return SimpleNamespace(id=user_id, name=name, bot=bot)


# ============================================================================
# FlushDelay
# ============================================================================

def test_flush_delay_rejects_negative():
    delay = FlushDelay(1000)
    with pytest.raises(ValueError):
        delay.set(-1)
    assert delay.ms == 1000


def test_flush_delay_accepts_zero():
    delay = FlushDelay(1000)
    delay.set(0)
    assert delay.ms == 0


# ============================================================================
# VoiceBuffer
# ============================================================================

def test_start_time_is_first_packet_only():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a", now=100)
    buffer.add(1, "alice", b"b", now=120)
    buffer.add(1, "alice", b"c", now=140)

    (pending,) = buffer.pop_all()
    assert pending.start_ms == 100
    assert pending.last_packet_ms == 140
    assert pending.pcm == b"abc"
    assert pending.size == 3


def test_users_are_buffered_separately():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a1", now=100)
    buffer.add(2, "bob", b"b1", now=110)
    buffer.add(1, "alice", b"a2", now=120)

    assert sorted(buffer.users()) == [1, 2]
    by_user = {pending.user_id: pending for pending in buffer.pop_all()}
    assert by_user[1].pcm == b"a1a2"
    assert by_user[2].pcm == b"b1"
    assert len(buffer) == 0


def test_pop_expired_needs_strictly_more_than_delay():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a", now=1000)

    assert buffer.pop_expired(500, now=1500) == []
    expired = buffer.pop_expired(500, now=1501)
    assert [pending.user_id for pending in expired] == [1]
    assert len(buffer) == 0


def test_pop_expired_only_silent_users():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a", now=1000)
    buffer.add(2, "bob", b"b", now=1400)

    expired = buffer.pop_expired(300, now=1500)
    assert [pending.user_id for pending in expired] == [1]
    assert buffer.users() == [2]


def test_new_utterance_after_flush():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a", now=1000)
    buffer.pop_expired(100, now=2000)
    buffer.add(1, "alice", b"b", now=3000)

    (pending,) = buffer.pop_all()
    assert pending.start_ms == 3000
    assert pending.pcm == b"b"


def test_zero_delay_flushes_any_older_packet():
    buffer = VoiceBuffer()
    buffer.add(1, "alice", b"a", now=1000)
    assert buffer.pop_expired(0, now=1000) == []
    assert len(buffer.pop_expired(0, now=1001)) == 1


# ============================================================================
# UtteranceDumper
# ============================================================================

def test_dump_writes_wav(tmp_path):
    dumper = UtteranceDumper(42, 7, recordings_dir=tmp_path)
    pending = PendingUtterance(1, "alice", 1700000000000, 1700000000040, [FRAME, FRAME])

    flushed = dumper.dump(pending)

    assert flushed.audio_path == tmp_path / "42" / "alice-1700000000000.wav"
    assert flushed.audio_path.is_file()
    assert flushed.error is None
    assert flushed.guild_id == 42
    assert flushed.channel_id == 7
    assert flushed.pcm == FRAME + FRAME
    assert flushed.duration_ms == 40
    assert flushed.end_ms == 1700000000040

    segment = audio_converter.load_wav(flushed.audio_path)
    assert segment.frame_rate == 48000
    assert segment.channels == 2
    assert segment.raw_data == FRAME + FRAME


def test_dump_file_name_is_sanitised(tmp_path):
    dumper = UtteranceDumper(1, recordings_dir=tmp_path)
    pending = PendingUtterance(9, "../we ird/name", 5, 5, [FRAME])
    path = dumper.path_for(pending)
    assert path.parent == tmp_path / "1"
    assert "/" not in path.name
    assert path.name.endswith("-5.wav")


def test_dump_error_keeps_utterance(tmp_path):
    # A file where the guild directory should be
    blocker = tmp_path / "blocked"
    blocker.write_text("")
    dumper = UtteranceDumper(1, recordings_dir=blocker)

    flushed = dumper.dump(PendingUtterance(1, "alice", 5, 25, [FRAME]))

    assert flushed.audio_path is None
    assert flushed.error
    assert flushed.pcm == FRAME


# ============================================================================
# FlushScheduler
# ============================================================================

def test_flush_expired_calls_back(tmp_path):
    buffer = VoiceBuffer()
    flushed = []
    scheduler = FlushScheduler(buffer, FlushDelay(200), UtteranceDumper(1, recordings_dir=tmp_path),
                               on_flush=flushed.append)

    buffer.add(1, "alice", FRAME, now=1000)
    assert scheduler.flush_expired(now=1100) == []
    result = scheduler.flush_expired(now=1201)

    assert len(result) == 1
    assert flushed == result


def test_flush_callback_errors_are_contained(tmp_path):
    def broken(_):
        raise RuntimeError("boom")

    buffer = VoiceBuffer()
    scheduler = FlushScheduler(buffer, FlushDelay(0), UtteranceDumper(1, recordings_dir=tmp_path),
                               on_flush=broken)
    buffer.add(1, "alice", FRAME, now=1000)

    assert len(scheduler.flush_expired(now=2000)) == 1


def test_delay_change_applies_to_running_scheduler(tmp_path):
    buffer = VoiceBuffer()
    delay = FlushDelay(5000)
    scheduler = FlushScheduler(buffer, delay, UtteranceDumper(1, recordings_dir=tmp_path))
    buffer.add(1, "alice", FRAME, now=1000)

    assert scheduler.flush_expired(now=2000) == []
    delay.set(500)
    assert len(scheduler.flush_expired(now=2000)) == 1


# ============================================================================
# TranscribingSink
# ============================================================================

def test_sink_ignores_bots_unknown_users_and_empty_packets(tmp_path):
    sink = TranscribingSink(1, 2, FlushDelay(1000), recordings_dir=tmp_path,
                            clock=FakeClock(), autostart=False)

    sink.write(None, SimpleNamespace(pcm=FRAME))
    sink.write(member(5, "robot", bot=True), SimpleNamespace(pcm=FRAME))
    sink.write(member(6, "alice"), SimpleNamespace(pcm=b""))
    assert len(sink.voice_buffer) == 0

    sink.write(member(6, "alice"), SimpleNamespace(pcm=FRAME))
    assert sink.voice_buffer.users() == [6]
    assert sink.wants_opus() is False
    sink.cleanup()


def test_sink_cleanup_flushes_remaining_once(tmp_path):
    flushed = []
    sink = TranscribingSink(1, 2, FlushDelay(1000), on_flush=flushed.append,
                            recordings_dir=tmp_path, clock=FakeClock(), autostart=False)
    sink.write(member(6, "alice"), SimpleNamespace(pcm=FRAME))
    sink.write(member(7, "bob"), SimpleNamespace(pcm=FRAME))

    sink.cleanup()
    sink.cleanup()

    assert sorted(f.user_name for f in flushed) == ["alice", "bob"]

    # Closed sinks drop packets
    sink.write(member(6, "alice"), SimpleNamespace(pcm=FRAME))
    assert len(sink.voice_buffer) == 0


def test_sink_flush_thread_dumps_after_silence(tmp_path):
    done = threading.Event()
    flushed = []

    def on_flush(utterance):
        flushed.append(utterance)
        done.set()

    sink = TranscribingSink(1, 2, FlushDelay(20), on_flush=on_flush,
                            recordings_dir=tmp_path, poll_interval=0.01)
    try:
        sink.write(member(6, "alice"), SimpleNamespace(pcm=FRAME))
        assert done.wait(timeout=5)
    finally:
        sink.cleanup()

    assert len(flushed) == 1
    assert flushed[0].user_id == 6
    assert flushed[0].audio_path.is_file()
