"""
Verification state tracking.

- **verification_store.py**: cache-backed persistence of each member's
  guessed verification tier, with ``verified`` and ``purged`` events.
- **events.py**: typed listener registry for those two events.
- **coordinator.py**: py-cord cog that feeds member join/leave/message
  events into the store and answers ``is_verified`` queries.
"""
