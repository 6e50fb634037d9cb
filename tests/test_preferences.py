"""
tests/test_preferences.py — PreferenceIndex Unit Tests
========================================================

Covers level re-derivation for guilds and channels, the mute /
mentions-only mutual exclusion, suppress-everyone independence and removal.
"""

from __future__ import annotations

import itertools
import threading

import pytest

from discordnotify.engine.preferences import NotificationLevel, PreferenceIndex

LEVELS = list(NotificationLevel)


def _in_both(index: PreferenceIndex, snowflake: int) -> bool:
    return snowflake in index._muted and snowflake in index._mentions_only


class TestNotificationLevel:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (0, NotificationLevel.DEFAULT),
            (1, NotificationLevel.MENTIONS_ONLY),
            (2, NotificationLevel.MUTED),
            (3, NotificationLevel.DEFAULT),   # "inherit from server"
            ("1", NotificationLevel.MENTIONS_ONLY),
            (None, NotificationLevel.DEFAULT),
            ("garbage", NotificationLevel.DEFAULT),
        ],
    )
    def test_from_wire(self, raw, expected):
        assert NotificationLevel.from_wire(raw) is expected


class TestClassify:

    def test_unknown_id_is_default(self, index):
        assert index.classify(42) is NotificationLevel.DEFAULT

    def test_none_is_default(self, index):
        assert index.classify(None) is NotificationLevel.DEFAULT
        assert index.is_suppressing_everyone(None) is False


class TestSetGuildLevel:

    def test_muted_level(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, False, False)
        assert index.classify(1) is NotificationLevel.MUTED

    def test_mentions_only_level(self, index):
        index.set_guild_level(1, NotificationLevel.MENTIONS_ONLY, False, False)
        assert index.classify(1) is NotificationLevel.MENTIONS_ONLY

    def test_default_level(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, False, False)
        index.set_guild_level(1, NotificationLevel.DEFAULT, False, False)
        assert index.classify(1) is NotificationLevel.DEFAULT

    def test_muted_flag_means_mentions_only(self, index):
        """A muted guild still surfaces mentions."""
        index.set_guild_level(1, NotificationLevel.DEFAULT, True, False)
        assert index.classify(1) is NotificationLevel.MENTIONS_ONLY

    def test_muted_flag_wins_over_muted_level(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, True, False)
        assert index.classify(1) is NotificationLevel.MENTIONS_ONLY

    def test_suppress_everyone_set_and_cleared(self, index):
        index.set_guild_level(1, NotificationLevel.DEFAULT, False, True)
        assert index.is_suppressing_everyone(1)
        index.set_guild_level(1, NotificationLevel.DEFAULT, False, False)
        assert not index.is_suppressing_everyone(1)

    def test_suppress_everyone_independent_of_level(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, False, True)
        assert index.classify(1) is NotificationLevel.MUTED
        assert index.is_suppressing_everyone(1)


class TestSetChannelLevel:

    def test_muted_flag_means_silent(self, index):
        index.set_channel_level(5, NotificationLevel.DEFAULT, True)
        assert index.classify(5) is NotificationLevel.MUTED

    def test_muted_flag_wins_over_mentions_only(self, index):
        index.set_channel_level(5, NotificationLevel.MENTIONS_ONLY, True)
        assert index.classify(5) is NotificationLevel.MUTED

    def test_mentions_only(self, index):
        index.set_channel_level(5, NotificationLevel.MENTIONS_ONLY, False)
        assert index.classify(5) is NotificationLevel.MENTIONS_ONLY

    def test_back_to_default(self, index):
        index.set_channel_level(5, NotificationLevel.MUTED, False)
        index.set_channel_level(5, NotificationLevel.DEFAULT, False)
        assert index.classify(5) is NotificationLevel.DEFAULT

    def test_never_touches_suppress_everyone(self, index):
        index.set_guild_level(5, NotificationLevel.DEFAULT, False, True)
        index.set_channel_level(5, NotificationLevel.MUTED, False)
        assert index.is_suppressing_everyone(5)


class TestMutualExclusion:

    def test_no_id_in_both_sets_after_any_sequence(self, index):
        """Every pair of guild/channel updates leaves at most one membership."""
        ops = [
            lambda lvl, m: index.set_guild_level(7, lvl, m, False),
            lambda lvl, m: index.set_channel_level(7, lvl, m),
        ]
        for (op1, lvl1, m1), (op2, lvl2, m2) in itertools.product(
            itertools.product(ops, LEVELS, (False, True)), repeat=2,
        ):
            op1(lvl1, m1)
            op2(lvl2, m2)
            assert not _in_both(index, 7)

    def test_add_mentions_only_clears_mute(self, index):
        index.set_channel_level(9, NotificationLevel.MUTED, False)
        index.add_mentions_only(9)
        assert index.classify(9) is NotificationLevel.MENTIONS_ONLY
        assert not _in_both(index, 9)


class TestRemoval:

    def test_remove_all_resets_to_default(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, False, True)
        assert index.remove_all(1) is True
        assert index.classify(1) is NotificationLevel.DEFAULT
        assert not index.is_suppressing_everyone(1)

    def test_remove_all_absent_is_noop(self, index):
        assert index.remove_all(404) is False
        assert index.classify(404) is NotificationLevel.DEFAULT

    def test_discard_targets_one_set(self, index):
        index.set_guild_level(1, NotificationLevel.MENTIONS_ONLY, False, False)
        assert index.discard(1, NotificationLevel.MUTED) is False
        assert index.classify(1) is NotificationLevel.MENTIONS_ONLY
        assert index.discard(1, NotificationLevel.MENTIONS_ONLY) is True
        assert index.classify(1) is NotificationLevel.DEFAULT

    def test_discard_default_is_noop(self, index):
        assert index.discard(1, NotificationLevel.DEFAULT) is False

    def test_discard_suppress_everyone(self, index):
        index.set_guild_level(1, NotificationLevel.DEFAULT, False, True)
        assert index.discard_suppress_everyone(1) is True
        assert index.discard_suppress_everyone(1) is False

    def test_clear(self, index):
        index.set_guild_level(1, NotificationLevel.MUTED, False, True)
        index.set_channel_level(2, NotificationLevel.MENTIONS_ONLY, False)
        index.clear()
        assert index.stats() == {"muted": 0, "mentions_only": 0, "suppress_everyone": 0}


class TestLocking:

    def test_batch_blocks_readers(self, index):
        """A reader on another thread waits until the batch is released."""
        index.set_guild_level(1, NotificationLevel.MUTED, False, False)
        seen: list[NotificationLevel] = []
        entered = threading.Event()

        def _reader() -> None:
            entered.set()
            seen.append(index.classify(1))

        with index.batch():
            index.remove_all(1)
            reader = threading.Thread(target=_reader)
            reader.start()
            entered.wait(timeout=2)
            reader.join(timeout=0.1)
            assert reader.is_alive()  # still blocked on the lock
            index.set_guild_level(1, NotificationLevel.MENTIONS_ONLY, False, False)

        reader.join(timeout=2)
        assert seen == [NotificationLevel.MENTIONS_ONLY]

    def test_batch_is_reentrant(self, index):
        with index.batch():
            with index.batch():
                index.set_guild_level(1, NotificationLevel.MUTED, False, False)
        assert index.classify(1) is NotificationLevel.MUTED
