"""Snapshot capture and retrieval.

This module provides the SnapshotEngine class which stores immutable content
snapshots of a branch's state. Content is supplied by the external generator;
the engine only hashes, deduplicates and persists it.
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Union

from src.core.errors import NotFoundError, ValidationError
from src.core.utils import new_id, utc_now
from src.models.snapshot import Snapshot, SnapshotContent
from src.storage.database import Database

logger = logging.getLogger(__name__)


def canonical_json(value: Any) -> str:
    """Serialize a JSON value with sorted keys and compact separators."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_content_hash(content: SnapshotContent) -> str:
    """Stable SHA-256 over the normalized snapshot content.

    Key order of code files and config objects does not affect the hash;
    scenario order does.

    Args:
        content: Snapshot content to hash

    Returns:
        Hex digest of the canonical content
    """
    normalized = canonical_json({
        'code_files': content.code_files,
        'scenarios': content.scenarios,
        'config': content.config,
    })
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class SnapshotEngine:
    """Captures and stores immutable snapshots of branch content.

    A capture whose content hash equals the branch head's hash returns the
    existing head instead of creating a duplicate. Captures on merged or
    archived branches are rejected.

    Example:
        >>> engine = SnapshotEngine(db)
        >>> snapshot = engine.capture_snapshot(branch_id, {"code_files": {...}})
        >>> engine.get_head_snapshot(branch_id).id == snapshot.id
        True
    """

    def __init__(self, db: Database):
        self.db = db

    def capture_snapshot(
        self,
        branch_id: str,
        content: Union[SnapshotContent, Dict[str, Any]],
    ) -> Snapshot:
        """Capture content as the branch's new head snapshot.

        Args:
            branch_id: Branch to capture on
            content: SnapshotContent or generator payload
                ``{code_files|codeFiles, scenarios, config}``

        Returns:
            The new snapshot, or the existing head when content is unchanged

        Raises:
            NotFoundError: If the branch does not exist
            ValidationError: If the branch is read-only or content is malformed
            PersistenceError: If the store fails
        """
        if isinstance(content, SnapshotContent):
            content.validate()
            snapshot_content = content.copy()
        else:
            snapshot_content = SnapshotContent.from_payload(content)

        content_hash = compute_content_hash(snapshot_content)

        with self.db.transaction():
            branch = self.db.get_branch(branch_id)
            if branch is None:
                raise NotFoundError("Branch", branch_id)
            if branch.status.is_read_only:
                raise ValidationError(
                    f"Branch '{branch.name}' is {branch.status.value} and read-only"
                )

            if branch.head_snapshot_id:
                head = self.db.get_snapshot(branch.head_snapshot_id)
                if head is not None and head.content_hash == content_hash:
                    logger.debug(
                        f"Content unchanged on branch {branch_id}; reusing snapshot {head.id}"
                    )
                    return head

            now = utc_now()
            snapshot = Snapshot(
                id=new_id(),
                branch_id=branch_id,
                captured_at=now,
                content_hash=content_hash,
                content=snapshot_content,
            )
            self.db.insert_snapshot(snapshot)
            self.db.set_branch_head(branch_id, snapshot.id, now)

        logger.info(f"Captured snapshot {snapshot.id} on branch {branch_id}")
        return snapshot

    def get_snapshot(self, snapshot_id: str) -> Snapshot:
        """Return a snapshot by id.

        Raises:
            NotFoundError: If the snapshot does not exist
        """
        snapshot = self.db.get_snapshot(snapshot_id)
        if snapshot is None:
            raise NotFoundError("Snapshot", snapshot_id)
        return snapshot

    def get_head_snapshot(self, branch_id: str) -> Optional[Snapshot]:
        """Return the most recent snapshot of a branch (None if it has none).

        Raises:
            NotFoundError: If the branch does not exist
        """
        branch = self.db.get_branch(branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        if branch.head_snapshot_id:
            return self.db.get_snapshot(branch.head_snapshot_id)
        return self.db.get_latest_snapshot(branch_id)

    def list_snapshots(self, branch_id: str) -> List[Snapshot]:
        """Return every snapshot of a branch, oldest first."""
        if self.db.get_branch(branch_id) is None:
            raise NotFoundError("Branch", branch_id)
        return self.db.list_snapshots(branch_id)
