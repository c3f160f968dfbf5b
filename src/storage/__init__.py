"""Transactional SQLite store for branch, snapshot and merge state."""

from src.storage.database import IN_MEMORY, Database, decode_value, encode_value

__all__ = [
    'IN_MEMORY',
    'Database',
    'decode_value',
    'encode_value',
]
