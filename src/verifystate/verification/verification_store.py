"""
Cache-backed storage of each guild member's guessed verification tier.

Discord never tells a bot which verification gate a member has passed, so
the tier is inferred from what the member has been seen doing and kept in
a table with one row per (guild, member). Reads go through an in-memory
cache that lives as long as the store; writes go to the table first and
then to the cache.

Lookup order for :meth:`VerificationStore.get_tier`:
1. Guild has verification disabled -> NONE
2. Member holds any role besides @everyone -> SKIPPED (checked every call)
3. Cached tier
4. Stored tier (cached on the way out)
5. Nothing stored -> NONE is stored and returned

Concurrent cold lookups for the same member share one storage round trip.
A lookup overtaken by a purge of the same member neither caches what it read
nor writes the NONE default.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import discord

from verifystate.database.table_store import TableStore
from verifystate.datatypes.verification_datatypes import (
    VERIFICATION_COLUMNS,
    VERIFICATION_KEY_COLUMNS,
    VerificationRecord,
    VerificationTier,
    member_filter,
    member_key,
)
from verifystate.util.logger import get_logger
from verifystate.verification.errors import AlreadyInitialized, InvalidTier, NotInitialized
from verifystate.verification.events import VerificationEvents

DEFAULT_TABLE_NAME = "verify"


def _coerce_tier(tier: Any) -> VerificationTier:
    if isinstance(tier, bool):
        raise InvalidTier(tier, f"Verification tier must be an integer, got {tier!r}")
    try:
        return VerificationTier(tier)
    except (ValueError, TypeError) as exc:
        raise InvalidTier(tier, f"{tier!r} is not a verification tier") from exc


class VerificationStore:
    """
    Single source of truth for the (guild, member) -> tier relation.

    Lifecycle:
        1. Construct with a :class:`TableStore` and a table name
        2. ``await initialize()`` once; the table is created if missing
        3. Use ``get_tier`` / ``set_tier`` / ``purge_tier``

    Every data operation raises :class:`NotInitialized` before step 2.
    Storage errors are never retried or swallowed.
    """

    def __init__(self, table_store: TableStore, table_name: str = DEFAULT_TABLE_NAME) -> None:
        self._table_store = table_store
        self._table_name = table_name
        self._initialized = False
        self._cache: Dict[str, VerificationTier] = {}
        self._pending_lookups: Dict[str, asyncio.Task] = {}
        # Bumped on every purge so in-flight lookups can tell they were overtaken
        self._purge_generation: Dict[str, int] = {}
        self._logger = get_logger(f"verification_store.{table_name}")
        self.events = VerificationEvents()

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ========== Lifecycle ==========

    async def initialize(self) -> None:
        """
        Make sure the backing table exists and mark the store ready.

        Raises:
            AlreadyInitialized: On any call after the first successful one.
            StorageFailure: If the table cannot be checked or created.
        """
        if self._initialized:
            raise AlreadyInitialized()

        table_name = self._table_name

        if not await self._table_store.has_table(table_name):
            self._logger.debug("[VERIFICATION STORE] No table named %s found, creating it", table_name)
            try:
                await self._table_store.create_table(
                    table_name, VERIFICATION_COLUMNS, unique=VERIFICATION_KEY_COLUMNS
                )
            except Exception:
                self._logger.error("[VERIFICATION STORE] Unable to create table %s", table_name)
                raise
            self._logger.info("[VERIFICATION STORE] Table %s created", table_name)
        else:
            self._logger.info("[VERIFICATION STORE] Found table %s", table_name)

        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitialized()

    # ========== Core API ==========

    async def get_tier(self, member: discord.Member) -> VerificationTier:
        """
        Return the best guess of the verification tier ``member`` has passed.

        A storage miss stores NONE for the member (which may emit
        ``verified`` like any other :meth:`set_tier` call) before returning.

        Raises:
            NotInitialized: If :meth:`initialize` has not completed.
            StorageFailure: If the table could not be read or written.
        """
        self._require_initialized()

        if VerificationTier.from_guild(member.guild) is VerificationTier.NONE:
            return VerificationTier.NONE

        # Every member has the hidden @everyone role
        if len(member.roles) > 1:
            return VerificationTier.SKIPPED

        record_key = member_key(member)

        cached = self._cache.get(record_key)
        if cached is not None:
            return cached

        lookup = self._pending_lookups.get(record_key)
        if lookup is None:
            lookup = asyncio.create_task(self._load_tier(member))
            self._pending_lookups[record_key] = lookup
            lookup.add_done_callback(lambda done: self._forget_lookup(record_key, done))

        return await asyncio.shield(lookup)

    async def set_tier(self, member: discord.Member, tier: VerificationTier | int) -> None:
        """
        Store ``tier`` for ``member``, replacing whatever was stored before.

        Emits ``verified`` when ``tier`` equals the tier the guild requires.

        Raises:
            NotInitialized: If :meth:`initialize` has not completed.
            InvalidTier: For SKIPPED or anything that is not a tier.
            StorageFailure: If the write fails; the cache is left untouched.
        """
        self._require_initialized()

        tier = _coerce_tier(tier)
        if not tier.is_persistable:
            raise InvalidTier(
                tier,
                "SKIPPED means verification was bypassed with a role and must not be stored",
            )

        record = VerificationRecord.for_member(member, tier)
        await self._table_store.upsert(self._table_name, record.key_filter(), record.to_row())
        self._cache[record.key] = tier

        self._logger.debug(
            "[VERIFICATION STORE] Stored tier %s for member %s in guild %s",
            tier.name, record.member_id, record.guild_id,
        )

        if tier == VerificationTier.from_guild(member.guild):
            await self.events.emit_verified(member, tier)

    async def purge_tier(self, member: discord.Member) -> None:
        """
        Forget everything stored for ``member`` and emit ``purged``.

        Raises:
            NotInitialized: If :meth:`initialize` has not completed.
            StorageFailure: If the delete fails; the cache is left untouched.
        """
        self._require_initialized()

        record_key = member_key(member)
        key_filter = member_filter(member)

        self._bump_purge_generation(record_key)
        deleted = await self._table_store.delete(self._table_name, key_filter)
        self._cache.pop(record_key, None)
        self._bump_purge_generation(record_key)
        # Later get_tier calls must not join a lookup that started before the purge
        self._pending_lookups.pop(record_key, None)

        self._logger.debug(
            "[VERIFICATION STORE] Purged %d row(s) for member %s in guild %s",
            deleted, key_filter["memberId"], key_filter["guildId"],
        )

        await self.events.emit_purged(member)

    def cached_tier(self, member: discord.Member) -> Optional[VerificationTier]:
        """Peek at the cache without touching storage."""
        return self._cache.get(member_key(member))

    # ========== Private Methods ==========

    async def _load_tier(self, member: discord.Member) -> VerificationTier:
        """Read the stored tier, falling back to storing NONE."""
        record_key = member_key(member)
        key_filter = member_filter(member)
        generation = self._purge_generation.get(record_key, 0)

        row = await self._table_store.query_first(self._table_name, key_filter)

        # A set_tier that finished while we were reading wins
        written = self._cache.get(record_key)
        if written is not None:
            return written

        if self._purge_generation.get(record_key, 0) != generation:
            self._logger.debug(
                "[VERIFICATION STORE] Member %s in guild %s was purged during lookup, not caching",
                key_filter["memberId"], key_filter["guildId"],
            )
            return VerificationTier.NONE

        if row is not None:
            try:
                tier = VerificationRecord.from_row(row).level
            except (KeyError, TypeError, ValueError):
                tier = None
            if tier is not None and tier.is_persistable:
                self._cache[record_key] = tier
                return tier
            self._logger.warning(
                "[VERIFICATION STORE] Ignoring unusable stored level %r for member %s in guild %s",
                row.get("level"), key_filter["memberId"], key_filter["guildId"],
            )

        await self.set_tier(member, VerificationTier.NONE)
        return VerificationTier.NONE

    def _bump_purge_generation(self, record_key: str) -> None:
        # Only lookups in flight compare generations
        if record_key in self._pending_lookups:
            self._purge_generation[record_key] = self._purge_generation.get(record_key, 0) + 1

    def _forget_lookup(self, record_key: str, done: asyncio.Task) -> None:
        if self._pending_lookups.get(record_key) is done:
            del self._pending_lookups[record_key]
        # Retrieve the exception so a lookup abandoned by every caller is not reported as unhandled
        if not done.cancelled():
            done.exception()
