"""
Listener registry for the two verification events.

``verified(member, tier)`` fires when a stored tier matches the tier the
member's guild requires; ``purged(member)`` fires when a member's record is
removed. Listeners run in subscription order on the emitting task. A
listener may be a plain function or a coroutine function; coroutines are
awaited before the next listener runs. A failing listener is logged and
skipped.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, List, Literal, Union

import discord

from verifystate.datatypes.verification_datatypes import VerificationTier
from verifystate.util.logger import get_logger

logger = get_logger("verification_events")

VerifiedListener = Callable[[discord.Member, VerificationTier], Union[None, Awaitable[None]]]
PurgedListener = Callable[[discord.Member], Union[None, Awaitable[None]]]
EventKind = Literal["verified", "purged"]


class VerificationEvents:
    """Subscribe to and emit ``verified`` / ``purged`` notifications."""

    def __init__(self) -> None:
        self._verified: List[VerifiedListener] = []
        self._purged: List[PurgedListener] = []

    # ========== Subscription ==========

    def on_verified(self, callback: VerifiedListener) -> Callable[[], None]:
        """
        Call ``callback(member, tier)`` whenever a member becomes verified.

        Returns:
            A function that removes the listener again. Calling it more than
            once is harmless.
        """
        self._verified.append(callback)
        return lambda: self.remove_verified_listener(callback)

    def on_purged(self, callback: PurgedListener) -> Callable[[], None]:
        """
        Call ``callback(member)`` whenever a member's record is purged.

        Returns:
            A function that removes the listener again.
        """
        self._purged.append(callback)
        return lambda: self.remove_purged_listener(callback)

    def remove_verified_listener(self, callback: VerifiedListener) -> bool:
        return _remove(self._verified, callback)

    def remove_purged_listener(self, callback: PurgedListener) -> bool:
        return _remove(self._purged, callback)

    def listener_count(self, kind: EventKind) -> int:
        if kind == "verified":
            return len(self._verified)
        if kind == "purged":
            return len(self._purged)
        raise ValueError(f"Unknown event kind: {kind!r}")

    # ========== Emission ==========

    async def emit_verified(self, member: discord.Member, tier: VerificationTier) -> None:
        for listener in list(self._verified):
            await self._dispatch("verified", listener, member, tier)

    async def emit_purged(self, member: discord.Member) -> None:
        for listener in list(self._purged):
            await self._dispatch("purged", listener, member)

    async def _dispatch(self, kind: EventKind, listener: Callable[..., Any], *args: Any) -> None:
        try:
            result = listener(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "[VERIFICATION EVENTS] %s listener %r raised", kind, listener
            )


def _remove(listeners: list, callback: Callable[..., Any]) -> bool:
    try:
        listeners.remove(callback)
    except ValueError:
        return False
    return True
