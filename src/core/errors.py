"""Typed exception hierarchy for suite branching errors.

This module defines all custom exceptions used by the branching, snapshot,
diff and merge components. All exceptions inherit from BranchingError base
class for easy catching and include descriptive messages with context to
help with debugging.
"""

from typing import List, Optional


class BranchingError(Exception):
    """Base exception for all suite-branching errors.

    Use this to catch any application-level error from the engine.
    """
    pass


class ValidationError(BranchingError):
    """Raised when input or a requested state transition is invalid."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        if field_name:
            full_message = f"Validation error in field '{field_name}': {message}"
        else:
            full_message = f"Validation error: {message}"
        super().__init__(full_message)
        self.field_name = field_name
        self.original_message = message


class NotFoundError(BranchingError):
    """Raised when a branch, snapshot, merge request or conflict id is unknown."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(BranchingError):
    """Raised when a merge is executed while conflicts are still pending.

    Attributes:
        merge_request_id: Merge request that could not be executed
        conflict_ids: Ids of every MergeConflict still unresolved
    """

    def __init__(self, merge_request_id: str, conflict_ids: List[str]):
        ids = ", ".join(conflict_ids)
        super().__init__(
            f"Merge request {merge_request_id} has {len(conflict_ids)} "
            f"unresolved conflict(s): {ids}"
        )
        self.merge_request_id = merge_request_id
        self.conflict_ids = list(conflict_ids)


class StaleBranchError(BranchingError):
    """Raised when the target branch head moved since the merge request was created."""

    def __init__(self, branch_id: str, expected_head: Optional[str], actual_head: Optional[str]):
        super().__init__(
            f"Branch {branch_id} head changed from {expected_head} to {actual_head}; "
            f"recreate the merge request"
        )
        self.branch_id = branch_id
        self.expected_head = expected_head
        self.actual_head = actual_head


class IncompatibleResolutionError(BranchingError):
    """Raised when a resolution strategy cannot settle the given conflict."""

    def __init__(self, conflict_id: str, reason: str):
        super().__init__(f"Cannot resolve conflict {conflict_id}: {reason}")
        self.conflict_id = conflict_id
        self.reason = reason


class PersistenceError(BranchingError):
    """Raised when the underlying store fails.

    Attributes:
        operation: Store operation that failed
        reason: Underlying driver error text
    """

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Persistence operation '{operation}' failed: {reason}")
        self.operation = operation
        self.reason = reason


class DiffCancelledError(BranchingError):
    """Raised when a diff computation is cancelled or exceeds its deadline."""

    def __init__(self, message: str = "Diff computation cancelled"):
        super().__init__(message)


class ConfigError(BranchingError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class FilesystemError(BranchingError):
    """Raised when a configuration or payload file cannot be read or written."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason
