"""
VoiceScribe - Discord voice transcription bot

Modules:
- bot.py : Discord client and chat commands
- audio_handler.py : per-user voice buffering and flushing
- config.py, properties.py, logger.py : configuration and logging
- database.py, models.py : transcript store
- services/ : audio conversion, Vosk STT, transcription workers, retention
- api/ : monitoring REST API
"""

__version__ = "0.1.0"
