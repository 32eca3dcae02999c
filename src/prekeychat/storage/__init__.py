"""prekeychat storage module."""

from .protocol_store import ProtocolStore, InMemoryProtocolStore

__all__ = [
    "ProtocolStore",
    "InMemoryProtocolStore",
]
