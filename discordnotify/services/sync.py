"""
discordnotify.services.sync — Settings Synchronizer
====================================================

Keeps the :class:`PreferenceIndex` in step with the user's notification
settings as the gateway reports them:

* **READY** carries a full snapshot.  The index is rebuilt from scratch.
* **USER_GUILD_SETTINGS_UPDATE** carries the complete new state of one
  guild and its channel overrides.  Stale memberships are removed, then the
  fresh state is applied.
* **GUILD_CREATE** after READY (a guild joined or coming back online) only
  matters when no explicit settings exist for it: the server-wide default
  decides.

Each event is applied inside :meth:`PreferenceIndex.batch`, so message
classification never sees a half-applied update.  The gateway client calls
:meth:`apply` synchronously from its raw-frame listener, which runs on the
event loop in frame arrival order; each delta is self-contained, so
last-applied wins.
"""

from __future__ import annotations

import logging

from discordnotify.engine.events import (
    GuildInfo,
    GuildSettings,
    ReadySnapshot,
    SettingsDelta,
)
from discordnotify.engine.preferences import NotificationLevel, PreferenceIndex

logger = logging.getLogger(__name__)

SyncEvent = ReadySnapshot | GuildSettings | GuildInfo


class SettingsSynchronizer:
    """Applies snapshots and deltas to a :class:`PreferenceIndex`."""

    def __init__(self, index: PreferenceIndex) -> None:
        self.index = index
        # Guilds with an explicit per-user settings record this session.
        self._explicit: set[int] = set()

    def apply(self, event: SyncEvent) -> None:
        """Dispatch *event* to the matching ``apply_*`` method."""
        if isinstance(event, ReadySnapshot):
            self.apply_snapshot(event)
        elif isinstance(event, GuildSettings):
            self.apply_update(event)
        elif isinstance(event, GuildInfo):
            self.apply_guild_default(event)
        else:
            logger.warning("Unknown sync event %r — ignoring", event)

    def apply_snapshot(self, snapshot: ReadySnapshot) -> int:
        """Rebuild the index from a READY snapshot.

        Settings entries for guilds missing from the snapshot's guild list
        are ignored.  Returns the number of guilds that ended up classified.
        """
        classified = 0
        with self.index.batch():
            self.index.clear()
            self._explicit.clear()
            for guild in snapshot.guilds:
                settings = snapshot.settings_for(guild.guild_id)
                if settings is not None:
                    self._apply_settings(settings)
                    self._explicit.add(guild.guild_id)
                    classified += 1
                elif guild.default_level == NotificationLevel.MENTIONS_ONLY:
                    self.index.add_mentions_only(guild.guild_id)
                    classified += 1
            stats = self.index.stats()

        logger.info(
            "Snapshot applied: %d guilds (%d classified) — %d muted, "
            "%d mentions-only, %d suppressing @everyone",
            len(snapshot.guilds), classified,
            stats["muted"], stats["mentions_only"], stats["suppress_everyone"],
        )
        return classified

    def apply_update(self, delta: SettingsDelta) -> None:
        """Replace one guild's settings (and its channel overrides)."""
        index = self.index
        with index.batch():
            index.discard_suppress_everyone(delta.guild_id)
            if not index.discard(delta.guild_id, NotificationLevel.MENTIONS_ONLY):
                index.discard(delta.guild_id, NotificationLevel.MUTED)
            index.set_guild_level(
                delta.guild_id, delta.level, delta.muted, delta.suppress_everyone,
            )
            for override in delta.channel_overrides:
                if not index.discard(override.channel_id, NotificationLevel.MUTED):
                    index.discard(override.channel_id, NotificationLevel.MENTIONS_ONLY)
                index.set_channel_level(override.channel_id, override.level, override.muted)
            self._explicit.add(delta.guild_id)

        logger.info(
            "Settings update for guild %d: level=%s muted=%s "
            "suppress_everyone=%s (%d channel overrides)",
            delta.guild_id, delta.level.name, delta.muted,
            delta.suppress_everyone, len(delta.channel_overrides),
        )

    def apply_guild_default(self, guild: GuildInfo) -> bool:
        """Apply a guild's server-wide default if no explicit settings exist.

        Returns True if the guild was classified as mentions-only.
        """
        with self.index.batch():
            if guild.guild_id in self._explicit:
                return False
            if guild.default_level != NotificationLevel.MENTIONS_ONLY:
                return False
            self.index.add_mentions_only(guild.guild_id)
        logger.debug("Guild %d defaults to mentions-only", guild.guild_id)
        return True

    def reset(self) -> None:
        """Forget all session state, index included."""
        with self.index.batch():
            self.index.clear()
            self._explicit.clear()

    def _apply_settings(self, settings: GuildSettings) -> None:
        self.index.set_guild_level(
            settings.guild_id, settings.level, settings.muted, settings.suppress_everyone,
        )
        for override in settings.channel_overrides:
            self.index.set_channel_level(override.channel_id, override.level, override.muted)
