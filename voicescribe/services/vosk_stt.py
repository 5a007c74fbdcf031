"""
Vosk STT Service - VoiceScribe

Offline Speech-to-Text for dumped utterances.

Technology: Vosk (Kaldi, offline)

Features:
- Lazy, thread-safe model loading (one Model shared by all workers)
- One KaldiRecognizer per transcription (recognizers are not thread-safe)
- Word-level confidence averaged into an utterance confidence

Usage:
    from voicescribe.services.vosk_stt import VoskSTT

    stt = VoskSTT()
    result = stt.transcribe_pcm(mono_16k_pcm)
    print(result["text"], result["confidence"])

    result = stt.transcribe_file("recordings/1234/alice-1712000000000.wav")
"""

import json
import time
import threading
from pathlib import Path
from typing import Optional, Dict, Any, List

from vosk import Model, KaldiRecognizer, SetLogLevel

from voicescribe.config import config
from voicescribe.logger import get_logger
from voicescribe.services import audio_converter

logger = get_logger("stt", name=__name__)

# Kaldi is very chatty on stderr
SetLogLevel(-1)

SUPPORTED_SAMPLE_RATES = (8000, 16000, 32000, 44100, 48000)


class VoskSTT:
    """
    Vosk transcription service.
    """

    # Bytes fed to the recognizer per AcceptWaveform call
    CHUNK_BYTES = 8000

    def __init__(self, model_path: Optional[str] = None, sample_rate: Optional[int] = None):
        """
        Args:
            model_path: Unpacked Vosk model directory (default: config)
            sample_rate: Recognizer input rate (default: config)
        """
        self.model_path = Path(model_path or config.VOSK_MODEL_PATH)
        self.sample_rate = sample_rate or config.VOSK_SAMPLE_RATE
        self.model = None
        self._load_lock = threading.Lock()

        if self.sample_rate not in SUPPORTED_SAMPLE_RATES:
            raise ValueError(f"Unsupported sample rate: {self.sample_rate}")

    @property
    def is_available(self) -> bool:
        """True if the model is loaded or can be loaded."""
        return self.model is not None or self.model_path.is_dir()

    def load_model(self) -> bool:
        """
        Load the Vosk model in memory (once).

        Returns:
            True if loaded
        """
        with self._load_lock:
            if self.model is not None:
                return True

            if not self.model_path.is_dir():
                logger.error(f"Vosk model not found: {self.model_path}")
                return False

            try:
                logger.info(f"🧠 Loading Vosk model from {self.model_path}")
                start_time = time.time()

                self.model = Model(str(self.model_path))

                logger.info(f"✅ Vosk model loaded in {time.time() - start_time:.2f}s")
                return True

            except Exception as e:
                logger.error(f"❌ Failed to load Vosk model: {e}", exc_info=True)
                return False

    def create_recognizer(self, sample_rate: Optional[int] = None) -> Optional[KaldiRecognizer]:
        """
        New recognizer with word timestamps enabled.

        Returns:
            KaldiRecognizer, or None if the model is unavailable
        """
        if not self.load_model():
            return None

        recognizer = KaldiRecognizer(self.model, sample_rate or self.sample_rate)
        recognizer.SetWords(True)
        return recognizer

    @staticmethod
    def _confidence(words: List[Dict[str, Any]]) -> float:
        if not words:
            return 0.0
        return sum(word.get("conf", 0.0) for word in words) / len(words)

    def transcribe_pcm(self, pcm: bytes, sample_rate: Optional[int] = None) -> Dict[str, Any]:
        """
        Transcribe mono s16le PCM.

        Args:
            pcm: Audio at sample_rate (default: recognizer rate)
            sample_rate: Rate of pcm

        Returns:
            Dict with text, confidence, words, audio_duration, processing_time
            (and error on failure)
        """
        sample_rate = sample_rate or self.sample_rate
        audio_duration = len(pcm) / (2 * sample_rate)
        result = {
            "text": "",
            "confidence": 0.0,
            "words": [],
            "audio_duration": audio_duration,
            "processing_time": 0.0
        }

        recognizer = self.create_recognizer(sample_rate)
        if recognizer is None:
            result["error"] = "Vosk model not available"
            return result

        start_time = time.time()
        texts = []
        words = []

        try:
            for offset in range(0, len(pcm), self.CHUNK_BYTES):
                if recognizer.AcceptWaveform(pcm[offset:offset + self.CHUNK_BYTES]):
                    partial = json.loads(recognizer.Result())
                    if partial.get("text"):
                        texts.append(partial["text"])
                    words.extend(partial.get("result", []))

            final = json.loads(recognizer.FinalResult())
            if final.get("text"):
                texts.append(final["text"])
            words.extend(final.get("result", []))

        except Exception as e:
            logger.error(f"Transcription error: {e}", exc_info=True)
            result["error"] = str(e)
            result["processing_time"] = time.time() - start_time
            return result

        result.update({
            "text": " ".join(texts).strip(),
            "confidence": self._confidence(words),
            "words": words,
            "processing_time": time.time() - start_time
        })

        logger.debug(
            f"Transcribed {audio_duration:.2f}s in {result['processing_time']:.2f}s: {result['text'][:100]}"
        )
        return result

    def transcribe_file(self, audio_file: str) -> Dict[str, Any]:
        """
        Transcribe a WAV file (any rate / channel count).

        Args:
            audio_file: WAV path

        Returns:
            Same dict as transcribe_pcm
        """
        audio_path = Path(audio_file)
        if not audio_path.exists():
            return {"text": "", "confidence": 0.0, "words": [], "error": f"File not found: {audio_path}"}

        try:
            segment = audio_converter.load_wav(audio_path)
        except Exception as e:
            logger.error(f"Cannot read {audio_path.name}: {e}")
            return {"text": "", "confidence": 0.0, "words": [], "error": str(e)}

        pcm = audio_converter.to_recognizer_pcm(segment, self.sample_rate)
        return self.transcribe_pcm(pcm, self.sample_rate)
