"""Immutable content snapshots of branch state."""

from src.snapshots.snapshot_engine import SnapshotEngine, canonical_json, compute_content_hash

__all__ = [
    'SnapshotEngine',
    'canonical_json',
    'compute_content_hash',
]
