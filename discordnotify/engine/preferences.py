"""
discordnotify.engine.preferences — In-Memory Notification Preference Index
===========================================================================

Holds the three classification sets the message classifier consults:

* **muted** — every notification is suppressed.
* **mentions_only** — only messages that @-mention the current user alert.
* **suppress_everyone** — @everyone / @here never alert (direct mentions
  still do).

Guild and channel snowflakes share the mute and mentions-only sets; Discord
ids are globally unique so there is no collision between the two.

The index lives for exactly one gateway session.  It is rebuilt from the
READY snapshot, patched by ``USER_GUILD_SETTINGS_UPDATE`` and dropped on
disconnect — nothing is persisted.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)

__all__ = ["NotificationLevel", "PreferenceIndex"]


class NotificationLevel(enum.IntEnum):
    """Discord ``message_notifications`` values as the classifier sees them.

    The gateway sends ``0`` (all messages), ``1`` (only mentions),
    ``2`` (nothing) and ``3`` (inherit from the server).  ``3`` and any
    unknown value collapse to :attr:`DEFAULT`.
    """

    DEFAULT = 0
    MENTIONS_ONLY = 1
    MUTED = 2

    @classmethod
    def from_wire(cls, value: object) -> NotificationLevel:
        try:
            return cls(int(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.DEFAULT


class PreferenceIndex:
    """Thread-safe classification sets for guilds and channels.

    Every read and write takes the same re-entrant lock, so a reader never
    observes a half-applied update.  Multi-step updates (remove stale, then
    insert fresh) wrap themselves in :meth:`batch` to hold the lock across
    all steps.

    Usage:
        index = PreferenceIndex()
        index.set_guild_level(guild_id, NotificationLevel.MUTED, False, False)
        index.classify(guild_id)       # NotificationLevel.MUTED

        with index.batch():
            index.remove_all(channel_id)
            index.set_channel_level(channel_id, NotificationLevel.DEFAULT, True)
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._muted: set[int] = set()
        self._mentions_only: set[int] = set()
        self._suppress_everyone: set[int] = set()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def classify(self, snowflake: int | None) -> NotificationLevel:
        """Return the classification of a guild or channel id.

        Unknown ids (and ``None``, used for DMs) classify as default.
        """
        with self._lock:
            if snowflake in self._muted:
                return NotificationLevel.MUTED
            if snowflake in self._mentions_only:
                return NotificationLevel.MENTIONS_ONLY
        return NotificationLevel.DEFAULT

    def is_suppressing_everyone(self, guild_id: int | None) -> bool:
        with self._lock:
            return guild_id in self._suppress_everyone

    def stats(self) -> dict[str, int]:
        """Set sizes, for log lines."""
        with self._lock:
            return {
                "muted": len(self._muted),
                "mentions_only": len(self._mentions_only),
                "suppress_everyone": len(self._suppress_everyone),
            }

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    @contextmanager
    def batch(self) -> Iterator[PreferenceIndex]:
        """Hold the lock across several writes so they apply atomically."""
        with self._lock:
            yield self

    def set_guild_level(
        self,
        guild_id: int,
        level: NotificationLevel,
        muted: bool,
        suppress_everyone: bool,
    ) -> None:
        """Re-derive a guild's membership from its notification settings.

        A muted guild behaves like a mentions-only guild: the Discord client
        still surfaces mentions from muted servers.
        """
        with self._lock:
            self._muted.discard(guild_id)
            self._mentions_only.discard(guild_id)
            if muted or level == NotificationLevel.MENTIONS_ONLY:
                self._mentions_only.add(guild_id)
            elif level == NotificationLevel.MUTED:
                self._muted.add(guild_id)

            if suppress_everyone:
                self._suppress_everyone.add(guild_id)
            else:
                self._suppress_everyone.discard(guild_id)

    def set_channel_level(
        self, channel_id: int, level: NotificationLevel, muted: bool
    ) -> None:
        """Re-derive a channel's membership; a muted channel is silent."""
        with self._lock:
            self._muted.discard(channel_id)
            self._mentions_only.discard(channel_id)
            if muted or level == NotificationLevel.MUTED:
                self._muted.add(channel_id)
            elif level == NotificationLevel.MENTIONS_ONLY:
                self._mentions_only.add(channel_id)

    def add_mentions_only(self, snowflake: int) -> None:
        """Classify *snowflake* as mentions-only (clears any mute)."""
        with self._lock:
            self._muted.discard(snowflake)
            self._mentions_only.add(snowflake)

    def discard(self, snowflake: int, level: NotificationLevel) -> bool:
        """Remove *snowflake* from the set backing *level* only.

        Returns True if it was a member.  ``DEFAULT`` has no backing set.
        """
        with self._lock:
            if level == NotificationLevel.MUTED:
                target = self._muted
            elif level == NotificationLevel.MENTIONS_ONLY:
                target = self._mentions_only
            else:
                return False
            if snowflake in target:
                target.remove(snowflake)
                return True
            return False

    def discard_suppress_everyone(self, guild_id: int) -> bool:
        with self._lock:
            if guild_id in self._suppress_everyone:
                self._suppress_everyone.remove(guild_id)
                return True
            return False

    def remove_all(self, snowflake: int) -> bool:
        """Drop *snowflake* from every set.  Absent ids are a no-op."""
        with self._lock:
            removed = False
            for members in (self._muted, self._mentions_only, self._suppress_everyone):
                if snowflake in members:
                    members.remove(snowflake)
                    removed = True
            return removed

    def clear(self) -> None:
        with self._lock:
            self._muted.clear()
            self._mentions_only.clear()
            self._suppress_everyone.clear()
        logger.debug("Preference index cleared")
