"""Shared building blocks for the suite branching engine."""

from src.core.errors import (
    BranchingError,
    ConfigError,
    ConflictError,
    DiffCancelledError,
    FilesystemError,
    IncompatibleResolutionError,
    NotFoundError,
    PersistenceError,
    StaleBranchError,
    ValidationError,
)

__all__ = [
    'BranchingError',
    'ConfigError',
    'ConflictError',
    'DiffCancelledError',
    'FilesystemError',
    'IncompatibleResolutionError',
    'NotFoundError',
    'PersistenceError',
    'StaleBranchError',
    'ValidationError',
]
