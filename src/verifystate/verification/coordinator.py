"""Verification coordinator Cog.

Feeds Discord member events into the :class:`VerificationStore`:

- a member joining starts at NONE
- a member leaving is purged
- a member posting in a guild text channel has evidently passed the guild's
  verification gate, so the guild's required tier is stored for them

Every failure is logged against the member it happened for and never stops
the handling of other members. The cog also answers ``is_verified`` /
``get_verification_level`` for the rest of the bot.
"""

from __future__ import annotations

from typing import Callable, Optional

import discord
from discord.ext import commands

from verifystate.datatypes.verification_datatypes import VerificationTier
from verifystate.util.logger import get_logger
from verifystate.verification.events import PurgedListener, VerifiedListener
from verifystate.verification.verification_store import VerificationStore

logger = get_logger("verification_coordinator")


class VerificationCoordinator(commands.Cog):
    """Cog wiring member join/leave/message events to the verification store."""

    def __init__(self, discord_bot_instance, store: VerificationStore):
        """
        Parameters
        ----------
        discord_bot_instance:
            The Discord bot instance to attach this cog to.
        store:
            Initialized (or soon to be initialized) verification store.
        """
        self.bot = discord_bot_instance
        self.store = store
        logger.info("[VERIFICATION COORDINATOR] Verification coordinator cog loaded")

    def is_enabled(self) -> bool:
        return self.store.is_initialized

    def _error_has_occurred(self, when: str, member: discord.Member) -> None:
        logger.exception(
            "[VERIFICATION COORDINATOR] An error has occurred %s of member %s in guild %s",
            when, member.id, member.guild.id,
        )

    # ========== Discord events ==========

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        """Record that a member who can talk has passed the guild's verification."""
        guild = message.guild
        if guild is None or getattr(message.channel, "type", None) != discord.ChannelType.text:
            return
        if getattr(message.author, "bot", False) or not self.is_enabled():
            return

        required = VerificationTier.from_guild(guild)
        if required is VerificationTier.NONE:
            return

        member = await self._resolve_member(message)
        if member is None:
            return

        try:
            stored = await self.store.get_tier(member)
            if stored is VerificationTier.SKIPPED or stored == required:
                return
        except Exception:
            self._error_has_occurred("while checking verification level", member)

        try:
            await self.store.set_tier(member, required)
        except Exception:
            self._error_has_occurred("in attempt to store new verification level", member)

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        if not self.is_enabled():
            return

        try:
            await self.store.set_tier(member, VerificationTier.NONE)
        except Exception:
            self._error_has_occurred("in attempt to store new verification level", member)

    @commands.Cog.listener(name="on_member_remove")
    async def on_member_remove(self, member: discord.Member) -> None:
        if not self.is_enabled():
            return

        try:
            await self.store.purge_tier(member)
        except Exception:
            self._error_has_occurred("in attempt to purge verification level", member)

    # ========== Query surface ==========

    async def is_verified(self, member: discord.Member) -> bool:
        """Guess whether ``member`` has passed their guild's verification level."""
        if not self.is_enabled():
            return False

        tier = await self.store.get_tier(member)
        return tier.satisfies(VerificationTier.from_guild(member.guild))

    async def get_verification_level(self, member: discord.Member) -> Optional[VerificationTier]:
        """Guessed tier for ``member``, or None while the store is not ready."""
        if not self.is_enabled():
            return None

        return await self.store.get_tier(member)

    def on_verified(self, callback: VerifiedListener) -> Callable[[], None]:
        """Listen for members becoming verified on any guild. Returns an unsubscribe function."""
        return self.store.events.on_verified(callback)

    def on_purged(self, callback: PurgedListener) -> Callable[[], None]:
        """Listen for members being purged on any guild. Returns an unsubscribe function."""
        return self.store.events.on_purged(callback)

    def cog_unload(self) -> None:
        logger.info("[VERIFICATION COORDINATOR] Verification coordinator cog unloaded")

    # ========== Private Methods ==========

    async def _resolve_member(self, message: discord.Message) -> Optional[discord.Member]:
        author = message.author
        if hasattr(author, "roles"):
            return author

        guild = message.guild
        member = guild.get_member(author.id)
        if member is not None:
            return member

        try:
            return await guild.fetch_member(author.id)
        except discord.HTTPException as exc:
            logger.warning(
                "[VERIFICATION COORDINATOR] Could not fetch member %s in guild %s: %s",
                author.id, guild.id, exc,
            )
            return None


def setup(discord_bot_instance, store: VerificationStore) -> VerificationCoordinator:
    """
    Register the VerificationCoordinator with the bot.

    Parameters
    ----------
    discord_bot_instance:
        The Discord bot instance to add this cog to.
    store:
        The verification store the cog should drive.
    """
    coordinator = VerificationCoordinator(discord_bot_instance, store)
    discord_bot_instance.add_cog(coordinator)
    return coordinator
