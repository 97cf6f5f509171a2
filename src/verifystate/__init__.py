"""
verifystate - verification tier tracking for Discord guilds

Discord does not tell bots which verification gate a member has cleared.
verifystate keeps a best-effort guess per guild member, persists it in
SQLite and announces when a member becomes verified or leaves.

Core Components:

- **Verification Store**: cache-backed persistence of each member's tier
  with ``verified`` and ``purged`` events
- **Coordinator Cog**: turns member join/leave/message events into store
  updates and answers ``is_verified`` queries
- **Table Store**: generic table access over a single aiosqlite connection

Usage:
    from verifystate.main import main
    main()
"""
from __future__ import annotations

from importlib import metadata as importlib_metadata


try:
    __version__ = importlib_metadata.version("verifystate")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - running from a checkout
    __version__ = "0.0.0"


def get_version() -> str:
    """Return the installed distribution version, or the source-tree fallback."""
    return __version__


__all__ = ["get_version", "__version__"]
