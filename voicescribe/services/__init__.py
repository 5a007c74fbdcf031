"""
Services Package - VoiceScribe

- audio_converter.py : Discord PCM <-> recognizer PCM, loudness
- vosk_stt.py : offline Speech-to-Text (Vosk)
- transcription_worker.py : queue of flushed utterances -> stored transcripts
- recording_cleanup.py : retention of dumped utterances
"""

from voicescribe.services.vosk_stt import VoskSTT
from voicescribe.services.transcription_worker import TranscriptionWorker
from voicescribe.services.recording_cleanup import RecordingCleanup

__all__ = [
    "VoskSTT",
    "TranscriptionWorker",
    "RecordingCleanup",
]
