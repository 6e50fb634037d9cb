"""
discordnotify.services.icons — Guild Icon Retrieval
====================================================

Fetches a guild's icon from Discord's CDN and stages it in a temporary PNG
file for the notification server, which only accepts icon *paths*.

Every failure here is non-fatal: the caller gets ``None`` and shows the
notification without an icon.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from discord import Client

logger = logging.getLogger(__name__)

ICON_SIZE = 128


class IconStore:
    """Reads guild icons through the gateway client's guild cache."""

    def __init__(self, client: Client, timeout: float = 5.0) -> None:
        self._client = client
        self.timeout = timeout

    async def fetch_guild_icon(self, guild_id: int | None) -> bytes | None:
        """Return the guild's icon as PNG bytes, or None on any failure."""
        if guild_id is None:
            return None
        guild = self._client.get_guild(guild_id)
        if guild is None or guild.icon is None:
            logger.debug("No icon available for guild %s", guild_id)
            return None

        try:
            asset = guild.icon.replace(format="png", size=ICON_SIZE)
            return await asyncio.wait_for(asset.read(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Timed out after %.1fs fetching icon for guild %d",
                self.timeout, guild_id,
            )
        except (discord.DiscordException, ValueError):
            logger.warning("Failed to fetch icon for guild %d", guild_id, exc_info=True)
        return None


@contextmanager
def temporary_icon(data: bytes | None) -> Iterator[str | None]:
    """Write *data* to a temporary ``.png`` and yield its path.

    Yields None when there is no data or the file can't be written.  The
    file is removed on exit.
    """
    if not data:
        yield None
        return

    path: str | None = None
    try:
        fd, path = tempfile.mkstemp(prefix="discordnotify-", suffix=".png")
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
    except OSError:
        logger.warning("Could not stage guild icon in a temp file", exc_info=True)
        if path is not None:
            _remove_quietly(path)
        path = None

    try:
        yield path
    finally:
        if path is not None:
            _remove_quietly(path)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove temp icon %s", path, exc_info=True)
