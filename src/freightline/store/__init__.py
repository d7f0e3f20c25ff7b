"""Object stores backing the promotion engine's capabilities."""

from __future__ import annotations

from freightline.store.memory import InMemoryStore

__all__ = ["InMemoryStore"]
