"""
VoiceScribe Bot - Discord client

Joins voice channels on command, buffers every speaker separately and hands
each finished utterance to the transcription worker.

Commands (guild text channels, bots ignored):
    !echo               join the author's current voice channel
    !echo <id|name>     join a voice channel by id, else by name (case-insensitive)
    !delay <ms>         silence before an utterance is flushed (all guilds)
    !delay              show the current delay
    !leave              flush buffers and disconnect
    !stats              transcription stats of this guild

Usage:
    bot = create_bot(worker=worker)
    bot.run(token)
"""

import asyncio
import re
from typing import Dict, Optional

import discord
from discord.ext import voice_recv

from voicescribe.config import config
from voicescribe.logger import get_logger, log_command, log_voice_event
from voicescribe.audio_handler import FlushDelay, FlushedUtterance, TranscribingSink
from voicescribe.models import Utterance, UtteranceStatus
from voicescribe.stats_collector import stats_collector

logger = get_logger("bot", name=__name__)

UNKNOWN_CHANNEL_MESSAGE = "Unable to connect to ``{}``, no such channel!"
CONNECTING_MESSAGE = "Connecting to {}"
OWN_CHANNEL_COMMENT = "your voice channel"


def resolve_voice_channel(guild, arg: str):
    """
    Find a voice channel of guild from a command argument.

    An all-ASCII-digit argument is tried as a channel id first; otherwise (or if no
    voice channel has that id) the first voice channel whose name equals arg,
    ignoring case, is returned.

    Returns:
        The voice channel, or None
    """
    voice_channels = list(guild.voice_channels)

    if re.fullmatch(r"[0-9]+", arg):
        channel = guild.get_channel(int(arg))
        if channel is not None and channel in voice_channels:
            return channel

    wanted = arg.lower()
    for channel in voice_channels:
        if channel.name.lower() == wanted:
            return channel
    return None


class VoiceScribeBot(discord.Client):
    """Discord client listening to guild messages and voice channels."""

    def __init__(
        self,
        worker=None,
        delay: Optional[FlushDelay] = None,
        prefix: str = config.COMMAND_PREFIX,
        post_transcripts: bool = config.POST_TRANSCRIPTS,
        **options
    ):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.voice_states = True

        options.setdefault("activity", discord.Activity(
            type=discord.ActivityType.listening,
            name=config.BOT_ACTIVITY
        ))
        options.setdefault("status", discord.Status(config.BOT_STATUS))

        super().__init__(intents=intents, **options)

        self.worker = worker
        self.delay = delay or FlushDelay()
        self.prefix = prefix
        self.post_transcripts = post_transcripts

        # guild_id -> active sink / text channel receiving transcripts
        self.sinks: Dict[int, TranscribingSink] = {}
        self.transcript_channels: Dict[int, discord.abc.Messageable] = {}

        self._main_loop: Optional[asyncio.AbstractEventLoop] = None

        if self.worker is not None:
            self.worker.on_transcript = self.on_transcript

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup_hook(self):
        self._main_loop = asyncio.get_running_loop()

    async def on_ready(self):
        logger.info(
            f"✅ Logged in as {self.user} ({len(self.guilds)} guild(s))",
            extra={"guilds": [guild.id for guild in self.guilds]}
        )

    async def close(self):
        for guild_id in list(self.sinks):
            self._close_sink(guild_id)
        await super().close()

    async def on_voice_state_update(self, member, before, after):
        # Kicked / disconnected from voice: flush what we have
        if self.user is not None and member.id == self.user.id and after.channel is None:
            if member.guild.id in self.sinks:
                log_voice_event(member.guild.id, "Voice connection lost")
                self._close_sink(member.guild.id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def on_message(self, message: discord.Message):
        await self.handle_message(message)

    async def handle_message(self, message) -> None:
        """Dispatch a guild message to its command."""
        if message.author.bot or message.guild is None:
            return

        content = message.content
        echo = f"{self.prefix}echo"
        delay = f"{self.prefix}delay"

        if content.startswith(echo + " "):
            self._log_command(message, "echo")
            await self.on_echo_command(message, content[len(echo) + 1:])
        elif content.startswith(delay + " "):
            self._log_command(message, "delay")
            await self.on_delay_command(message, content[len(delay) + 1:])
        elif content == echo:
            self._log_command(message, "echo")
            await self.on_echo_command(message)
        elif content == delay:
            await message.channel.send(f"Flush delay is {self.delay.ms} ms")
        elif content == f"{self.prefix}leave":
            self._log_command(message, "leave")
            await self.on_leave_command(message)
        elif content == f"{self.prefix}stats":
            await self.on_stats_command(message)

    def _log_command(self, message, command: str):
        log_command(message.guild.id, str(message.author), command, {"content": message.content})

    async def on_echo_command(self, message, arg: Optional[str] = None) -> None:
        """
        Join a voice channel.

        Without argument: the author's current voice channel.
        """
        if arg is None:
            voice_state = getattr(message.author, "voice", None)
            channel = voice_state.channel if voice_state is not None else None
            comment = OWN_CHANNEL_COMMENT
        else:
            channel = resolve_voice_channel(message.guild, arg)
            comment = arg

        if channel is None:
            await self.on_unknown_channel(message.channel, comment)
            return

        if await self.connect_to(channel, message.channel):
            await self.on_connecting(channel, message.channel)

    async def on_delay_command(self, message, arg: str) -> None:
        try:
            self.delay.set(int(arg.strip()))
        except ValueError:
            await message.channel.send(f"Invalid delay ``{arg}``, expected a number of milliseconds >= 0")
            return

        logger.info(f"⏱️ Flush delay set to {self.delay.ms} ms", extra={"guild_id": message.guild.id})
        await message.channel.send(f"Flush delay set to {self.delay.ms} ms")

    async def on_leave_command(self, message) -> None:
        voice_client = message.guild.voice_client
        if voice_client is None:
            await message.channel.send("Not connected to a voice channel")
            return

        channel_name = voice_client.channel.name
        self._close_sink(message.guild.id, voice_client)
        await voice_client.disconnect()
        log_voice_event(message.guild.id, f"Disconnected from {channel_name}")
        await message.channel.send(f"Disconnected from {channel_name}")

    async def on_stats_command(self, message) -> None:
        stats = stats_collector.get_guild_stats(message.guild.id)
        await message.channel.send(
            f"Utterances: {stats['utterances']} | transcribed: {stats['transcribed']} | "
            f"empty: {stats['empty']} | skipped: {stats['skipped']} | failed: {stats['failed']} | "
            f"avg confidence: {stats['avg_confidence']:.2f}"
        )

    async def on_connecting(self, channel, text_channel) -> None:
        await text_channel.send(CONNECTING_MESSAGE.format(channel.name))

    async def on_unknown_channel(self, text_channel, comment: str) -> None:
        await text_channel.send(UNKNOWN_CHANNEL_MESSAGE.format(comment))

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------

    async def connect_to(self, channel, text_channel) -> bool:
        """
        Open (or move) the guild voice connection and attach a fresh sink.

        Returns:
            False if the connection failed (the user is told why)
        """
        guild = channel.guild
        voice_client = guild.voice_client

        try:
            if voice_client is None or not voice_client.is_connected():
                voice_client = await channel.connect(
                    cls=voice_recv.VoiceRecvClient,
                    timeout=config.VOICE_CONNECT_TIMEOUT
                )
            elif voice_client.channel != channel:
                await voice_client.move_to(channel)
        except (discord.ClientException, asyncio.TimeoutError) as e:
            logger.error(f"❌ Cannot join {channel.name}: {e}", extra={"guild_id": guild.id})
            await text_channel.send(f"Unable to connect to ``{channel.name}``: {e}")
            return False

        self._close_sink(guild.id, voice_client)

        sink = TranscribingSink(guild.id, channel.id, self.delay, on_flush=self.on_flush)
        voice_client.listen(sink)
        self.sinks[guild.id] = sink
        self.transcript_channels[guild.id] = text_channel

        log_voice_event(guild.id, f"Listening in {channel.name}", {"channel_id": channel.id})
        return True

    def _close_sink(self, guild_id: int, voice_client=None) -> None:
        if voice_client is not None and voice_client.is_listening():
            voice_client.stop_listening()

        sink = self.sinks.pop(guild_id, None)
        if sink is not None:
            sink.cleanup()

    def on_flush(self, flushed: FlushedUtterance) -> None:
        """Called on a sink's flush thread."""
        if self.worker is not None:
            self.worker.submit(flushed)

    def on_transcript(self, utterance: Utterance) -> None:
        """Called on a worker thread once an utterance is processed."""
        if not self.post_transcripts or utterance.status != UtteranceStatus.TRANSCRIBED:
            return

        text_channel = self.transcript_channels.get(utterance.guild_id)
        if text_channel is None or self._main_loop is None or self._main_loop.is_closed():
            return

        content = f"🗣️ **{discord.utils.escape_markdown(utterance.user_name)}**: {utterance.transcript}"
        future = asyncio.run_coroutine_threadsafe(text_channel.send(content[:2000]), self._main_loop)
        future.add_done_callback(self._log_post_failure)

    @staticmethod
    def _log_post_failure(future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Failed to post transcript: {future.exception()}")


def create_bot(worker=None, **options) -> VoiceScribeBot:
    return VoiceScribeBot(worker=worker, **options)
