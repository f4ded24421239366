from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Tuple

import discord
from discord.ext import commands

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
RECENT_LOG_LIMIT = 50


class LoggingHelper:
    """
    Console and Discord logging for the cog.

    Every message is printed. Messages at or above `min_level` are also kept in a short
    history and posted to the log channel, or queued until the bot is ready.
    Reconciliation reclaims log at INFO and dropped ornament bonuses at WARNING, so
    raising the level to WARNING keeps only the bonuses.
    """

    def __init__(self, bot: Optional[commands.Bot], log_channel_id: int, min_level: str = "INFO"):
        self.bot = bot
        self.log_channel_id = log_channel_id
        self.min_level = self.normalize_level(min_level)
        self._init_log_queue: List[Tuple[str, str]] = []
        self._recent: Deque[Tuple[str, str, str]] = deque(maxlen=RECENT_LOG_LIMIT)

    @staticmethod
    def normalize_level(level: str) -> str:
        level = level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Use one of {', '.join(LOG_LEVELS)}.")
        return level

    def set_min_level(self, level: str):
        self.min_level = self.normalize_level(level)

    def is_enabled_for(self, level: str) -> bool:
        return LOG_LEVELS.index(self.normalize_level(level)) >= LOG_LEVELS.index(self.min_level)

    def _is_bot_ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')

    def _remember(self, message: str, level: str):
        self._recent.append((self._timestamp(), level, message))

    def recent(self, limit: int = 10) -> List[Tuple[str, str, str]]:
        """The latest (timestamp, level, message) entries that passed the level filter, oldest first."""
        if limit <= 0:
            return []
        return list(self._recent)[-limit:]

    async def log_to_discord(self, message: str, level: str = "INFO", embed: Optional[discord.Embed] = None):
        """Posts a message to the log channel when its level passes the filter."""

        level = self.normalize_level(level)
        if not self.is_enabled_for(level):
            print(f"[LOG_SKIP|{level}] {message}")
            return

        self._remember(message, level)
        await self._send(message, level, embed)

    async def _send(self, message: str, level: str, embed: Optional[discord.Embed] = None):
        if not self._is_bot_ready():
            self._init_log_queue.append((message, level))
            print(f"[LOG_QUEUE|{level}] Bot not ready. Queued: {message}")
            return

        log_channel = self.bot.get_channel(self.log_channel_id)
        if not isinstance(log_channel, discord.TextChannel):
            print(f"[LOG|{level}] {message}")
            return

        log_prefix = f"`[{self._timestamp()}] [{level}]` "
        try:
            full_message = log_prefix + message
            if len(full_message) <= 2000:
                await log_channel.send(content=full_message, embed=embed,
                                       allowed_mentions=discord.AllowedMentions.none())
            else:
                await log_channel.send(content=f"{log_prefix}Log message exceeds 2000 characters. See chunks below.",
                                       embed=embed, allowed_mentions=discord.AllowedMentions.none())
                for i in range(0, len(message), 1900):
                    await log_channel.send(f"```{level} Chunk {i // 1900 + 1}```\n{message[i:i + 1900]}")
        except discord.Forbidden:
            print(f"[LOG_FORBIDDEN] No permission to send to log channel {self.log_channel_id}.")
        except discord.HTTPException as e:
            print(f"[LOG_HTTP_ERROR] Failed to send to log channel {self.log_channel_id}: {e}")

    def init_log(self, message: str, level: str = "INFO"):
        """
        Synchronous logger for cog startup and synchronous helpers such as the data loader.
        Prints immediately; forwards to Discord once the bot is ready if the level passes the filter.
        """

        level = self.normalize_level(level)
        print(f"[INIT_LOG|{level}|{self._timestamp()}] {message}")
        if not self.is_enabled_for(level):
            return

        self._remember(message, level)
        if self._is_bot_ready() and self.bot.loop.is_running():
            self.bot.loop.create_task(self._send(message, level))
        else:
            self._init_log_queue.append((message, level))

    @property
    def queued(self) -> List[Tuple[str, str]]:
        return list(self._init_log_queue)

    async def flush_init_log_queue(self):
        """Sends the logs queued before the bot was ready."""

        if not self._init_log_queue:
            return

        pending = list(self._init_log_queue)
        self._init_log_queue.clear()
        print(f"[LOG_QUEUE] Flushing {len(pending)} queued startup logs.")
        for message, level in pending:
            await self._send(message, level)
