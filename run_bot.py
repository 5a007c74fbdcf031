#!/usr/bin/env python3
"""
Run Bot - VoiceScribe

Starts the Discord bot, its transcription workers and (optionally) the
monitoring API in the same process.

Usage:
    python run_bot.py
    python run_bot.py --properties /etc/voicescribe/discord.properties
    python run_bot.py --api                 (monitoring API on API_HOST:API_PORT)
    python run_bot.py --no-stt              (store utterances untranscribed)
    python run_bot.py --transcribe recordings/1234/alice-1712000000000.wav
"""

import argparse
import logging
import signal
import sys
import threading

import uvicorn

from voicescribe import __version__
from voicescribe.bot import create_bot
from voicescribe.config import config
from voicescribe.database import init_database
from voicescribe.logger import get_logger
from voicescribe.properties import ConfigurationError, resolve_bot_token
from voicescribe.services import TranscriptionWorker, VoskSTT

logger = get_logger("system", name="voicescribe.run_bot")


def signal_handler(signum, frame):
    """SIGTERM stops the bot like Ctrl+C."""
    logger.info(f"🛑 Signal {signum} received, stopping...")
    raise KeyboardInterrupt


def start_api_thread() -> threading.Thread:
    """Serve the monitoring API on a daemon thread."""
    from voicescribe.api.main import app

    thread = threading.Thread(
        target=uvicorn.run,
        args=(app,),
        kwargs={"host": config.API_HOST, "port": config.API_PORT, "log_level": "warning"},
        name="api",
        daemon=True
    )
    thread.start()
    logger.info(f"🌐 API listening on http://{config.API_HOST}:{config.API_PORT}")
    return thread


def transcribe_file(path: str) -> int:
    """Transcribe one WAV file and print the text (no Discord involved)."""
    stt = VoskSTT()
    result = stt.transcribe_file(path)
    if result.get("error"):
        logger.error(f"❌ {result['error']}")
        return 1

    print(result["text"])
    logger.info(f"Confidence {result['confidence']:.2f}, {result['processing_time']:.2f}s")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="VoiceScribe Discord voice transcription bot")
    parser.add_argument("--properties", help=f"Properties file (default: {config.PROPERTIES_FILE})")
    parser.add_argument("--no-stt", action="store_true", help="Do not transcribe, only store utterances")
    parser.add_argument("--api", action="store_true", help="Also serve the monitoring API")
    parser.add_argument("--transcribe", metavar="WAV", help="Transcribe a WAV file and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logs from discord.py")

    args = parser.parse_args()

    if args.transcribe:
        return transcribe_file(args.transcribe)

    try:
        token = resolve_bot_token(path=args.properties)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
    )

    logger.info("=" * 60)
    logger.info(f"🎧 VOICESCRIBE {__version__}")
    logger.info("=" * 60)
    logger.info(f"  Flush delay: {config.FLUSH_DELAY_MS}ms")
    logger.info(f"  STT: {'disabled' if args.no_stt or not config.STT_ENABLED else config.VOSK_MODEL_PATH}")
    logger.info(f"  Database: {config.DATABASE_URL}")
    logger.info(f"  Recordings: {config.RECORDINGS_DIR}")
    logger.info("")

    if not init_database():
        return 1

    stt = None
    if config.STT_ENABLED and not args.no_stt:
        stt = VoskSTT()
        if not stt.load_model():
            logger.warning("⚠️ Vosk model unavailable, utterances will be marked failed")

    worker = TranscriptionWorker(stt)
    worker.start()

    if args.api:
        start_api_thread()

    signal.signal(signal.SIGTERM, signal_handler)

    bot = create_bot(worker=worker)
    try:
        # log_handler=None: discord.py logs go through basicConfig above
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        pass
    finally:
        worker.stop(drain=True)

    logger.info("👋 Bye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
