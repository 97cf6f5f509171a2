from types import SimpleNamespace

import discord
import pytest

from verifystate.datatypes.verification_datatypes import (
    VERIFICATION_COLUMNS,
    TableColumn,
    VerificationRecord,
    VerificationTier,
    composite_key,
    member_filter,
    member_key,
)


def _member(member_id=7, guild_id=3):
    return SimpleNamespace(id=member_id, guild=SimpleNamespace(id=guild_id))


def test_tier_values_match_discord_levels():
    assert [int(t) for t in VerificationTier] == [0, 1, 2, 3, 4, 5]
    for name in ("none", "low", "medium", "high", "highest"):
        level = getattr(discord.VerificationLevel, name)
        assert int(VerificationTier[name.upper()]) == level.value


@pytest.mark.parametrize("level", [discord.VerificationLevel.high, 3])
def test_from_guild_accepts_enum_and_int(level):
    guild = SimpleNamespace(verification_level=level)
    assert VerificationTier.from_guild(guild) is VerificationTier.HIGH


def test_satisfies():
    assert VerificationTier.HIGH.satisfies(VerificationTier.MEDIUM)
    assert VerificationTier.MEDIUM.satisfies(2)
    assert not VerificationTier.LOW.satisfies(VerificationTier.HIGHEST)
    assert VerificationTier.SKIPPED.satisfies(VerificationTier.HIGHEST)


def test_only_skipped_is_not_persistable():
    assert [t for t in VerificationTier if not t.is_persistable] == [VerificationTier.SKIPPED]


def test_composite_key():
    assert composite_key(1, 2) == "1:2"
    assert composite_key(1, 23) != composite_key(12, 3)


def test_record_for_member_and_row_shape():
    record = VerificationRecord.for_member(_member(), VerificationTier.LOW)

    assert record.key == "3:7"
    assert record.key_filter() == {"guildId": "3", "memberId": "7"}
    assert record.to_row() == {"guildId": "3", "memberId": "7", "level": 1}


def test_record_from_row():
    record = VerificationRecord.from_row({"guildId": 3, "memberId": "7", "level": 4})

    assert record == VerificationRecord("3", "7", VerificationTier.HIGHEST)


def test_record_from_row_rejects_unknown_level():
    with pytest.raises(ValueError):
        VerificationRecord.from_row({"guildId": "3", "memberId": "7", "level": 9})


def test_column_sql():
    assert [c.to_sql() for c in VERIFICATION_COLUMNS] == [
        "guildId TEXT NOT NULL",
        "memberId TEXT NOT NULL",
        "level INTEGER NOT NULL DEFAULT 0",
    ]
    assert TableColumn("note", "TEXT", default="it's").to_sql() == "note TEXT DEFAULT 'it''s'"


def test_member_key_and_filter_match_record():
    member = _member(member_id=7, guild_id=3)
    record = VerificationRecord.for_member(member, VerificationTier.HIGH)

    assert member_key(member) == record.key == "3:7"
    assert member_filter(member) == record.key_filter() == {"guildId": "3", "memberId": "7"}
