"""
Properties Reader - VoiceScribe

Reads the discord.properties file (key=value lines, # comments).

Parsed with python-dotenv: quotes around a value are removed and an
`export ` prefix is accepted; `key: value` and `key value` lines are not
properties here.

Usage:
    from voicescribe.properties import resolve_bot_token

    token = resolve_bot_token()
"""

import os
from pathlib import Path
from typing import Dict, Optional, Union

from dotenv import dotenv_values

from voicescribe.config import config


class ConfigurationError(RuntimeError):
    """Raised when the bot cannot be configured (missing file, token, ...)."""


def read_properties(path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """
    Read a properties file.

    Args:
        path: Properties file (default: config.PROPERTIES_FILE)

    Returns:
        Dict of properties (values stripped, empty keys ignored)

    Raises:
        ConfigurationError: file does not exist
    """
    path = Path(path or config.PROPERTIES_FILE)
    if not path.is_file():
        raise ConfigurationError(f"Properties file not found: {path}")

    values = dotenv_values(path, interpolate=False)
    return {
        key.strip(): (value or "").strip()
        for key, value in values.items()
        if key and key.strip()
    }


def resolve_bot_token(properties: Optional[Dict[str, str]] = None,
                      path: Optional[Union[str, Path]] = None) -> str:
    """
    Find the Discord bot token.

    DISCORD_BOT_TOKEN wins over the properties file.

    Args:
        properties: Already loaded properties (read from path otherwise)
        path: Properties file

    Returns:
        Bot token

    Raises:
        ConfigurationError: no token anywhere
    """
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    if token:
        return token

    if properties is None:
        properties = read_properties(path)

    token = properties.get(config.BOT_TOKEN_PROPERTY, "")
    if not token:
        raise ConfigurationError(
            f"'{config.BOT_TOKEN_PROPERTY}' missing from properties "
            f"(or set DISCORD_BOT_TOKEN)"
        )
    return token
