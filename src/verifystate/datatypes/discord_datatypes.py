"""
Snowflake wrappers for the ids the verification table is keyed on.

The table stores guild and member ids as decimal text. Wrapping them keeps
a guild id from being passed where a member id belongs and normalises
``123``, ``"123"`` and ``" 123 "`` to the same key.
"""

from __future__ import annotations

from typing import Union

import discord

SnowflakeLike = Union[int, str, "_Snowflake"]


class _Snowflake:
    """Immutable decimal-string snowflake. Subclasses only compare equal to themselves."""

    __slots__ = ("_value",)

    def __init__(self, value: SnowflakeLike) -> None:
        """
        Raises:
            ValueError: For anything other than an int, a numeric string or
                an instance of the same class. ``bool`` is rejected.
        """
        self._value = self._normalise(value)

    @classmethod
    def _normalise(cls, value: object) -> str:
        if isinstance(value, cls):
            return value._value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            try:
                return str(int(value.strip()))
            except ValueError:
                raise ValueError(f"{cls.__name__} needs a numeric string, got {value!r}") from None
        raise ValueError(f"Cannot build {cls.__name__} from {type(value).__name__} {value!r}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        return int(self._value)

    __int__ = to_int

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, type(self)):
            return other._value == self._value
        if isinstance(other, (int, str)) and not isinstance(other, bool):
            return str(other) == self._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(_Snowflake):
    """Id of a Discord user or guild member."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class GuildID(_Snowflake):
    """Id of a Discord guild."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)
