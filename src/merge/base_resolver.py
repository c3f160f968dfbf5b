"""Common-ancestor (base) snapshot resolution for merge requests.

Branch lineage is a single-parent tree, so the base of a merge is found on
the fork points of the two branches' parent chains:

    - target is an ancestor of source: the snapshot the source-side child of
      the target was forked from
    - siblings/cousins: the earlier of the two fork snapshots taken from the
      lowest common ancestor branch
    - source is an ancestor of target: rejected
"""

import logging
from typing import List

from src.core.errors import ValidationError
from src.models.branch import Branch
from src.storage.database import Database

logger = logging.getLogger(__name__)


def _chain(branch: Branch, ancestors: List[Branch]) -> List[Branch]:
    return [branch] + list(ancestors)


def _fork_snapshot(branch: Branch) -> str:
    if not branch.forked_from_snapshot_id:
        raise ValidationError(
            f"Branch '{branch.name}' has no recorded fork snapshot; cannot resolve merge base"
        )
    return branch.forked_from_snapshot_id


def resolve_base_snapshot(
    db: Database,
    source: Branch,
    target: Branch,
    source_ancestors: List[Branch],
    target_ancestors: List[Branch],
) -> str:
    """Return the nearest common ancestor snapshot id of two branches.

    Args:
        db: Store used to order fork snapshots
        source: Branch whose changes are merged
        target: Branch receiving the changes
        source_ancestors: Source lineage, nearest parent first
        target_ancestors: Target lineage, nearest parent first

    Returns:
        Base snapshot id

    Raises:
        ValidationError: Same branch, different suites, or the source is an
            ancestor of the target
    """
    if source.id == target.id:
        raise ValidationError("Source and target branch must differ")
    if source.suite_id != target.suite_id:
        raise ValidationError(
            f"Branches belong to different suites ({source.suite_id}, {target.suite_id})"
        )

    source_chain = _chain(source, source_ancestors)
    target_chain = _chain(target, target_ancestors)
    source_ids = [b.id for b in source_chain]
    target_ids = [b.id for b in target_chain]

    if source.id in target_ids:
        raise ValidationError(
            f"Cannot merge '{source.name}' into its descendant '{target.name}'"
        )

    if target.id in source_ids:
        child = source_chain[source_ids.index(target.id) - 1]
        base_id = _fork_snapshot(child)
        logger.debug(
            f"Base for '{source.name}' -> '{target.name}': fork of '{child.name}' ({base_id})"
        )
        return base_id

    common = next((b for b in source_chain if b.id in target_ids), None)
    if common is None:
        raise ValidationError(
            f"Branches '{source.name}' and '{target.name}' share no ancestor"
        )

    source_child = source_chain[source_ids.index(common.id) - 1]
    target_child = target_chain[target_ids.index(common.id) - 1]
    source_fork = _fork_snapshot(source_child)
    target_fork = _fork_snapshot(target_child)

    source_seq = db.get_snapshot_seq(source_fork)
    target_seq = db.get_snapshot_seq(target_fork)
    if source_seq is None or target_seq is None:
        raise ValidationError(f"Fork snapshot of branches under '{common.name}' is missing")

    base_id = source_fork if source_seq <= target_seq else target_fork
    logger.debug(
        f"Base for '{source.name}' -> '{target.name}': earlier fork from '{common.name}' ({base_id})"
    )
    return base_id
