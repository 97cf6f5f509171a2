"""
Verification tiers and the row shape persisted for each guild member.

Database schema (one row per guild member):
- guildId TEXT NOT NULL
- memberId TEXT NOT NULL
- level INTEGER NOT NULL DEFAULT 0
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, Tuple

import discord

from verifystate.datatypes.discord_datatypes import GuildID, UserID


class VerificationTier(IntEnum):
    """Verification gate a member is guessed to have passed, weakest first."""

    NONE = 0
    """Has not completed verification."""
    LOW = 1
    """Verified email on their Discord account."""
    MEDIUM = 2
    """Registered on Discord for at least five minutes."""
    HIGH = 3
    """MEDIUM plus a member of the guild for at least ten minutes."""
    HIGHEST = 4
    """Verified phone number."""
    SKIPPED = 5
    """Holds a role, so verification no longer applies. Never stored."""

    @property
    def is_persistable(self) -> bool:
        return self is not VerificationTier.SKIPPED

    def satisfies(self, required: "VerificationTier | int") -> bool:
        """Return True if this tier meets ``required``. SKIPPED meets anything."""
        if self is VerificationTier.SKIPPED:
            return True
        return int(self) >= int(required)

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "VerificationTier":
        """Tier a guild requires, from ``guild.verification_level``.

        Accepts py-cord's ``discord.VerificationLevel`` enum as well as a bare
        integer.
        """
        level = guild.verification_level
        return cls(int(getattr(level, "value", level)))


def composite_key(guild_id: GuildID | str | int, member_id: UserID | str | int) -> str:
    """Cache key for a member: ``"<guild id>:<member id>"``."""
    return f"{guild_id}:{member_id}"


def member_key(member: discord.Member) -> str:
    """Cache key of ``member`` in its guild."""
    return composite_key(GuildID.from_guild(member.guild), UserID.from_user(member))


def member_filter(member: discord.Member) -> dict[str, str]:
    """Column filter matching every row stored for ``member``."""
    return {
        "guildId": str(GuildID.from_guild(member.guild)),
        "memberId": str(UserID.from_user(member)),
    }


@dataclass(slots=True, frozen=True)
class TableColumn:
    """Column definition accepted by ``TableStore.create_table``."""

    name: str
    sql_type: str
    nullable: bool = True
    default: Any = None

    def to_sql(self) -> str:
        parts = [self.name, self.sql_type]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.default is not None:
            default = self.default
            if isinstance(default, str):
                default = "'" + default.replace("'", "''") + "'"
            parts.append(f"DEFAULT {default}")
        return " ".join(parts)


VERIFICATION_COLUMNS: Tuple[TableColumn, ...] = (
    TableColumn("guildId", "TEXT", nullable=False),
    TableColumn("memberId", "TEXT", nullable=False),
    TableColumn("level", "INTEGER", nullable=False, default=0),
)

VERIFICATION_KEY_COLUMNS: Tuple[str, ...] = ("guildId", "memberId")


@dataclass(slots=True, frozen=True)
class VerificationRecord:
    """A single row of the verification table."""

    guild_id: str
    member_id: str
    level: VerificationTier = VerificationTier.NONE

    @classmethod
    def for_member(cls, member: discord.Member, level: VerificationTier) -> "VerificationRecord":
        return cls(
            guild_id=str(GuildID.from_guild(member.guild)),
            member_id=str(UserID.from_user(member)),
            level=level,
        )

    @property
    def key(self) -> str:
        return composite_key(self.guild_id, self.member_id)

    def key_filter(self) -> dict[str, str]:
        """Column filter matching this record's row."""
        return {"guildId": self.guild_id, "memberId": self.member_id}

    def to_row(self) -> dict[str, Any]:
        return {"guildId": self.guild_id, "memberId": self.member_id, "level": int(self.level)}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VerificationRecord":
        return cls(
            guild_id=str(row["guildId"]),
            member_id=str(row["memberId"]),
            level=VerificationTier(int(row["level"])),
        )
