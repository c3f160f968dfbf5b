"""Merge request lifecycle.

This module provides the MergeCoordinator class which creates merge
requests between two branches of a suite, records the conflicts found
between them, applies conflict resolutions and finally folds the source
branch's changes into the target branch as a new target snapshot.

Optimistic concurrency: a merge request remembers the target head its
diff was computed against, and execution is refused once that head has
moved.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from src.branching.branch_manager import BranchManager
from src.core.errors import (
    ConflictError,
    NotFoundError,
    StaleBranchError,
    ValidationError,
)
from src.core.utils import new_id, utc_now
from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.diff_engine import DiffEngine
from src.merge.base_resolver import resolve_base_snapshot
from src.merge.conflict_detector import detect_conflicts
from src.merge.content_merger import build_merged_content
from src.merge.resolution import parse_strategy, resolve_value
from src.models.branch import Branch, BranchStatus
from src.models.diff import ABSENT, Diff
from src.models.merge import (
    ConflictResolution,
    ConflictWithResolution,
    HistoryAction,
    MergeConflict,
    MergeHistoryEntry,
    MergeRequest,
    MergeRequestStatus,
    ResolutionStatus,
    ResolutionStrategy,
)
from src.models.snapshot import Snapshot
from src.snapshots.snapshot_engine import SnapshotEngine
from src.storage.database import Database

logger = logging.getLogger(__name__)


class MergeCoordinator:
    """Owns merge requests, conflicts, resolutions and merge history.

    Example:
        >>> coordinator = MergeCoordinator(db, branches, snapshots, diffs)
        >>> request = coordinator.create_merge_request(feature.id, main.id)
        >>> for item in coordinator.list_conflicts(request.id):
        ...     coordinator.resolve_conflict(item.conflict.id, "target")
        >>> merged = coordinator.execute_merge(request.id)
    """

    def __init__(
        self,
        db: Database,
        branches: BranchManager,
        snapshots: SnapshotEngine,
        diffs: DiffEngine,
        diff_timeout: Optional[float] = None,
    ):
        """Initialize merge coordinator.

        Args:
            db: Transactional store
            branches: Branch lineage lookups
            snapshots: Snapshot capture and lookup
            diffs: Diff computation
            diff_timeout: Seconds after which a diff is cancelled (None = never)
        """
        self.db = db
        self.branches = branches
        self.snapshots = snapshots
        self.diffs = diffs
        self.diff_timeout = diff_timeout

    def _token(self, cancel_token: Optional[CancellationToken]) -> Optional[CancellationToken]:
        if cancel_token is not None:
            return cancel_token
        if self.diff_timeout:
            return CancellationToken(timeout=self.diff_timeout)
        return None

    def _require_request(self, merge_request_id: str) -> MergeRequest:
        request = self.db.get_merge_request(merge_request_id)
        if request is None:
            raise NotFoundError("MergeRequest", merge_request_id)
        return request

    @staticmethod
    def _check_not_terminal(request: MergeRequest) -> None:
        if request.status.is_terminal:
            raise ValidationError(
                f"Merge request {request.id} is already {request.status.value}"
            )

    def _require_head(self, branch: Branch) -> Snapshot:
        head = self.snapshots.get_head_snapshot(branch.id)
        if head is None:
            raise ValidationError(f"Branch '{branch.name}' has no snapshot")
        return head

    def _append_history(
        self,
        merge_request_id: str,
        action: HistoryAction,
        actor: Optional[str],
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.db.append_history(MergeHistoryEntry(
            id=new_id(),
            merge_request_id=merge_request_id,
            action=action,
            actor=actor,
            timestamp=utc_now(),
            detail=detail or {},
        ))

    def create_merge_request(
        self,
        source_branch_id: str,
        target_branch_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MergeRequest:
        """Propose merging source into target and detect conflicts.

        The base snapshot is resolved from branch lineage; the request is
        created in CONFLICT state when both sides changed a path divergently,
        otherwise OPEN.

        Args:
            source_branch_id: Branch whose changes are merged
            target_branch_id: Branch receiving the changes
            title: Optional title (defaults to "Merge <source> into <target>")
            description: Optional description
            created_by: Optional actor
            cancel_token: Optional token cancelling the diff computation

        Returns:
            The new merge request

        Raises:
            NotFoundError: If either branch does not exist
            ValidationError: Same branch, different suites, inactive branch or
                a source that is an ancestor of the target
            StaleBranchError: If a head moved while the diffs were computed
            DiffCancelledError: If the diff is cancelled or times out
        """
        source = self.branches.get_branch(source_branch_id)
        target = self.branches.get_branch(target_branch_id)

        for role, branch in (("Source", source), ("Target", target)):
            if branch.status != BranchStatus.ACTIVE:
                raise ValidationError(
                    f"{role} branch '{branch.name}' is {branch.status.value}; "
                    f"only active branches can be merged"
                )

        base_id = resolve_base_snapshot(
            self.db,
            source,
            target,
            self.branches.get_ancestors(source.id),
            self.branches.get_ancestors(target.id),
        )
        base = self.snapshots.get_snapshot(base_id)
        source_head = self._require_head(source)
        target_head = self._require_head(target)

        # Diffs run outside the write transaction; heads are re-checked below
        token = self._token(cancel_token)
        diff_source = self.diffs.diff(base.id, source_head.id, token)
        diff_target = self.diffs.diff(base.id, target_head.id, token)
        detected = detect_conflicts(
            base.content, source_head.content, target_head.content, diff_source, diff_target
        )

        with self.db.transaction():
            for branch, expected in ((source, source_head.id), (target, target_head.id)):
                current = self.branches.get_branch(branch.id)
                if current.head_snapshot_id != expected:
                    raise StaleBranchError(branch.id, expected, current.head_snapshot_id)

            now = utc_now()
            request = MergeRequest(
                id=new_id(),
                suite_id=source.suite_id,
                source_branch_id=source.id,
                target_branch_id=target.id,
                base_snapshot_id=base.id,
                source_head_snapshot_id=source_head.id,
                target_head_snapshot_id=target_head.id,
                status=MergeRequestStatus.CONFLICT if detected else MergeRequestStatus.OPEN,
                title=title or f"Merge {source.name} into {target.name}",
                created_at=now,
                updated_at=now,
                description=description,
                created_by=created_by,
            )
            self.db.insert_merge_request(request)

            conflict_ids = []
            for found in detected:
                conflict = MergeConflict(
                    id=new_id(),
                    merge_request_id=request.id,
                    path=found.path,
                    kind=found.kind,
                    base_value=found.base_value,
                    source_value=found.source_value,
                    target_value=found.target_value,
                )
                self.db.insert_conflict(conflict)
                conflict_ids.append(conflict.id)

            self._append_history(request.id, HistoryAction.CREATED, created_by, {
                'base_snapshot_id': base.id,
                'source_head_snapshot_id': source_head.id,
                'target_head_snapshot_id': target_head.id,
            })
            if conflict_ids:
                self._append_history(
                    request.id,
                    HistoryAction.CONFLICT_DETECTED,
                    created_by,
                    {'conflict_ids': conflict_ids},
                )

        logger.info(
            f"Created merge request {request.id} ({source.name} -> {target.name}), "
            f"status {request.status.value}, {len(conflict_ids)} conflict(s)"
        )
        return request

    def resolve_conflict(
        self,
        conflict_id: str,
        strategy: Union[ResolutionStrategy, str],
        custom_value: Any = ABSENT,
        resolved_by: Optional[str] = None,
    ) -> ConflictResolution:
        """Settle a conflict with a strategy.

        Resolving an already-resolved conflict records a new resolution; the
        latest one is used at merge time. Once every conflict of the request
        is resolved the request returns to OPEN.

        Args:
            conflict_id: Conflict to settle
            strategy: source, target, both or custom
            custom_value: Value for the custom strategy (None deletes a code file)
            resolved_by: Optional actor

        Returns:
            The recorded resolution

        Raises:
            NotFoundError: If the conflict does not exist
            ValidationError: Unknown strategy, bad custom value or a merged/closed request
            IncompatibleResolutionError: If the strategy cannot settle the conflict
        """
        strategy = parse_strategy(strategy)

        with self.db.transaction():
            conflict = self.db.get_conflict(conflict_id)
            if conflict is None:
                raise NotFoundError("MergeConflict", conflict_id)
            request = self._require_request(conflict.merge_request_id)
            if request.status.is_terminal:
                raise ValidationError(
                    f"Merge request {request.id} is {request.status.value}; "
                    f"its conflicts can no longer be resolved"
                )

            value = resolve_value(conflict, strategy, custom_value)

            resolution = ConflictResolution(
                id=new_id(),
                conflict_id=conflict.id,
                strategy=strategy,
                resolved_value=value,
                resolved_by=resolved_by,
                resolved_at=utc_now(),
            )
            self.db.insert_resolution(resolution)
            self.db.set_conflict_status(conflict.id, ResolutionStatus.RESOLVED)
            self._append_history(request.id, HistoryAction.RESOLVED, resolved_by, {
                'conflict_id': conflict.id,
                'path': conflict.path,
                'kind': conflict.kind.value,
                'strategy': strategy.value,
            })

            pending = [c for c in self.db.list_conflicts(request.id) if not c.is_resolved]
            if not pending and request.status == MergeRequestStatus.CONFLICT:
                request.status = MergeRequestStatus.OPEN
                request.updated_at = utc_now()
                self.db.update_merge_request(request)
                logger.info(f"All conflicts of merge request {request.id} resolved")

        logger.info(
            f"Resolved conflict {conflict.id} at {conflict.path or '<root>'} "
            f"with strategy '{strategy.value}'"
        )
        return resolution

    def execute_merge(self, merge_request_id: str, merged_by: Optional[str] = None) -> Snapshot:
        """Fold the source changes into the target as a new target snapshot.

        Args:
            merge_request_id: Merge request to execute
            merged_by: Optional actor

        Returns:
            The merged snapshot captured on the target branch

        Raises:
            NotFoundError: If the request does not exist
            ValidationError: If the request is merged or closed, or the target
                is no longer writable
            ConflictError: If conflicts remain unresolved (lists their ids)
            StaleBranchError: If the target head moved since creation
            DiffCancelledError: If the source diff is cancelled or times out
        """
        request = self._require_request(merge_request_id)
        self._check_not_terminal(request)

        # Base and source head are fixed at creation; diff before taking the write lock
        diff_source = self.diffs.diff(
            request.base_snapshot_id, request.source_head_snapshot_id, self._token(None)
        )

        with self.db.transaction():
            request = self._require_request(merge_request_id)
            self._check_not_terminal(request)

            target = self.branches.get_branch(request.target_branch_id)
            if target.head_snapshot_id != request.target_head_snapshot_id:
                raise StaleBranchError(
                    target.id, request.target_head_snapshot_id, target.head_snapshot_id
                )
            if target.status != BranchStatus.ACTIVE:
                raise ValidationError(
                    f"Target branch '{target.name}' is {target.status.value}"
                )

            conflicts = self.db.list_conflicts(request.id)
            pending = [c.id for c in conflicts if not c.is_resolved]
            if pending:
                raise ConflictError(request.id, pending)

            source_head = self.snapshots.get_snapshot(request.source_head_snapshot_id)
            target_head = self.snapshots.get_snapshot(request.target_head_snapshot_id)

            resolved = []
            for conflict in conflicts:
                resolution = self.db.get_latest_resolution(conflict.id)
                if resolution is None:
                    raise ConflictError(request.id, [conflict.id])
                resolved.append((conflict, resolution.resolved_value))

            merged_content = build_merged_content(
                target_head.content, source_head.content, diff_source, resolved
            )
            merged = self.snapshots.capture_snapshot(target.id, merged_content)

            now = utc_now()
            request.status = MergeRequestStatus.MERGED
            request.merged_by = merged_by
            request.merged_at = now
            request.merged_snapshot_id = merged.id
            request.updated_at = now
            self.db.update_merge_request(request)
            self._append_history(request.id, HistoryAction.MERGED, merged_by, {
                'merged_snapshot_id': merged.id,
            })

        logger.info(
            f"Merged request {request.id} into branch {target.name} as snapshot {merged.id}"
        )
        return merged

    def close_merge_request(self, merge_request_id: str, actor: Optional[str] = None) -> MergeRequest:
        """Close a merge request without merging.

        Raises:
            NotFoundError: If the request does not exist
            ValidationError: If the request is already merged or closed
        """
        with self.db.transaction():
            request = self._require_request(merge_request_id)
            if request.status == MergeRequestStatus.MERGED:
                raise ValidationError(f"Merge request {request.id} is already merged")
            if request.status == MergeRequestStatus.CLOSED:
                raise ValidationError(f"Merge request {request.id} is already closed")

            request.status = MergeRequestStatus.CLOSED
            request.updated_at = utc_now()
            self.db.update_merge_request(request)
            self._append_history(request.id, HistoryAction.CLOSED, actor)

        logger.info(f"Closed merge request {request.id}")
        return request

    def get_merge_request(self, merge_request_id: str) -> MergeRequest:
        return self._require_request(merge_request_id)

    def list_merge_requests(
        self,
        suite_id: str,
        status: Optional[Union[MergeRequestStatus, str]] = None,
    ) -> List[MergeRequest]:
        """List a suite's merge requests, newest first."""
        if isinstance(status, str):
            try:
                status = MergeRequestStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown merge request status {status!r}", 'status')
        return self.db.list_merge_requests(suite_id, status)

    def list_conflicts(self, merge_request_id: str) -> List[ConflictWithResolution]:
        """List conflicts of a request, each with its latest resolution."""
        self._require_request(merge_request_id)
        return [
            ConflictWithResolution(conflict, self.db.get_latest_resolution(conflict.id))
            for conflict in self.db.list_conflicts(merge_request_id)
        ]

    def get_conflict(self, conflict_id: str) -> ConflictWithResolution:
        """Return one conflict with its latest resolution.

        Raises:
            NotFoundError: If the conflict does not exist
        """
        conflict = self.db.get_conflict(conflict_id)
        if conflict is None:
            raise NotFoundError("MergeConflict", conflict_id)
        return ConflictWithResolution(conflict, self.db.get_latest_resolution(conflict.id))

    def get_history(self, merge_request_id: str) -> List[MergeHistoryEntry]:
        self._require_request(merge_request_id)
        return self.db.list_history(merge_request_id)

    def get_diff(
        self,
        from_snapshot_id: str,
        to_snapshot_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Diff:
        return self.diffs.diff(from_snapshot_id, to_snapshot_id, self._token(cancel_token))

    def compare_branches(
        self,
        source_branch_id: str,
        target_branch_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Diff:
        """Diff the head snapshot of one branch against another's.

        Changes read from the source head to the target head. Unlike a merge
        request nothing is persisted and no base snapshot is involved.

        Args:
            source_branch_id: Branch whose head is the "from" side
            target_branch_id: Branch whose head is the "to" side
            cancel_token: Optional cancellation/deadline token

        Returns:
            Diff between the two heads

        Raises:
            NotFoundError: If either branch does not exist
            ValidationError: If the branches belong to different suites
            DiffCancelledError: If the diff is cancelled or times out
        """
        source = self.branches.get_branch(source_branch_id)
        target = self.branches.get_branch(target_branch_id)
        if source.suite_id != target.suite_id:
            raise ValidationError(
                f"Cannot compare branches of different suites "
                f"({source.suite_id} vs {target.suite_id})"
            )

        source_head = self._require_head(source)
        target_head = self._require_head(target)
        logger.debug(f"Comparing branch {source.name} with {target.name}")
        return self.diffs.diff(source_head.id, target_head.id, self._token(cancel_token))
