"""
discordnotify.bot.core — Gateway Client
========================================

Defines :class:`NotifyClient`, a ``discord.Client`` subclass (discord.py-self,
so it logs in as the user account) that wires the gateway session to the
relay:

1. ``READY``, ``USER_GUILD_SETTINGS_UPDATE`` and ``GUILD_CREATE`` are read
   from raw dispatch frames (``on_socket_raw_receive``, which requires
   ``enable_debug_events=True``), normalized and handed to the
   :class:`SettingsSynchronizer` in arrival order.
2. ``on_message`` normalizes each message into a :class:`MessageEvent` and
   asks the classifier whether to notify.
3. Deliveries fetch the guild icon and show the desktop notification —
   outside the index lock, with icon failures degrading to no icon.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import signal
from typing import Any

import discord

from discordnotify.config import NotifyConfig
from discordnotify.engine.classifier import should_notify
from discordnotify.engine.events import (
    GuildInfo,
    GuildSettings,
    MessageEvent,
    ReadySnapshot,
)
from discordnotify.engine.preferences import PreferenceIndex
from discordnotify.services.icons import IconStore, temporary_icon
from discordnotify.services.notifier import NotificationDispatcher
from discordnotify.services.sync import SettingsSynchronizer

logger = logging.getLogger(__name__)

# Gateway opcode for event dispatch frames
OP_DISPATCH = 0

# Raw dispatch events routed to the synchronizer
SYNC_EVENTS: frozenset[str] = frozenset({
    "READY",
    "USER_GUILD_SETTINGS_UPDATE",
    "GUILD_CREATE",
})

# Event-name field of a settings-bearing frame, checked before decoding
SYNC_EVENT_RE = re.compile(
    r'"t"\s*:\s*"(?:' + "|".join(sorted(SYNC_EVENTS)) + r')"'
)


class NotifyClient(discord.Client):
    """Gateway client that relays qualifying messages to the desktop.

    Parameters
    ----------
    cfg:
        The parsed :class:`NotifyConfig`.
    index:
        Shared :class:`PreferenceIndex`; a fresh one is created if omitted.
    dispatcher:
        Desktop notification collaborator; defaults to plyer.
    """

    def __init__(
        self,
        cfg: NotifyConfig,
        index: PreferenceIndex | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        # User-account session: READY carries user_guild_settings and
        # USER_GUILD_SETTINGS_UPDATE is dispatched.  Bot sessions get neither.
        super().__init__(enable_debug_events=True)

        self.cfg = cfg
        self.index = index if index is not None else PreferenceIndex()
        self.synchronizer = SettingsSynchronizer(self.index)
        self.dispatcher = dispatcher or NotificationDispatcher(
            app_name=cfg.app_name, timeout=cfg.notification_timeout,
        )
        self.icons = IconStore(self, timeout=cfg.icon_timeout)

    @property
    def current_user_id(self) -> int | None:
        return self.user.id if self.user else None

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Called once before connecting: route SIGTERM to a clean close."""
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, lambda: loop.create_task(self.close()))
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still works.
            logger.debug("SIGTERM handler not supported on this platform")

    async def on_ready(self) -> None:
        """Fired when the session is up and the guild cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        stats = self.index.stats()
        logger.info(
            "Watching %d guilds — %d muted, %d mentions-only, %d suppressing @everyone",
            len(self.guilds),
            stats["muted"], stats["mentions_only"], stats["suppress_everyone"],
        )

    async def close(self) -> None:
        """Graceful shutdown — the index only lives as long as the session."""
        logger.info("Client shutting down…")
        self.synchronizer.reset()
        await super().close()

    # -----------------------------------------------------------------------
    # Preference stream (raw gateway frames)
    # -----------------------------------------------------------------------
    async def on_socket_raw_receive(self, msg: str | bytes) -> None:
        """Route settings-bearing dispatch frames to the synchronizer.

        Runs without awaiting, so frames are applied in arrival order.
        """
        if isinstance(msg, bytes):
            msg = msg.decode("utf-8", errors="replace")
        if not SYNC_EVENT_RE.search(msg):
            return
        try:
            frame = json.loads(msg)
        except (json.JSONDecodeError, TypeError):
            logger.debug("Ignoring undecodable gateway frame")
            return
        self.handle_dispatch(frame)

    def handle_dispatch(self, frame: dict[str, Any]) -> None:
        """Apply one decoded gateway frame, if it is a settings event."""
        if frame.get("op") != OP_DISPATCH:
            return
        event_type = frame.get("t")
        data = frame.get("d")
        if event_type not in SYNC_EVENTS or not isinstance(data, dict):
            return

        try:
            if event_type == "READY":
                event = ReadySnapshot.from_payload(data)
            elif event_type == "USER_GUILD_SETTINGS_UPDATE":
                event = GuildSettings.from_payload(data)
            else:
                event = GuildInfo.from_payload(data)
        except (AttributeError, TypeError, ValueError):
            logger.exception("Malformed %s payload", event_type)
            return

        if event is None:
            logger.debug("%s without a guild id — ignoring", event_type)
            return
        self.synchronizer.apply(event)

    # -----------------------------------------------------------------------
    # Message stream
    # -----------------------------------------------------------------------
    async def on_message(self, message: discord.Message) -> None:
        event = MessageEvent.from_message(message)
        if not should_notify(event, self.index, self.current_user_id):
            return
        logger.debug(
            "Notifying for message %s in guild %s / channel %s",
            message.id, event.guild_id, event.channel_id,
        )
        await self.notify(event.guild_id)

    async def notify(self, guild_id: int | None) -> None:
        """Show a desktop notification, with the guild icon when available."""
        body = self.cfg.body
        if self.cfg.show_guild_name and guild_id is not None:
            guild = self.get_guild(guild_id)
            if guild is not None:
                body = f"{body} in {guild.name}"

        icon = await self.icons.fetch_guild_icon(guild_id)
        with temporary_icon(icon) as icon_path:
            # plyer talks to D-Bus/Cocoa synchronously; keep it off the loop.
            await asyncio.to_thread(self.dispatcher.show, self.cfg.title, body, icon_path)
