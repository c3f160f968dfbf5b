"""Mapping of engine errors to CLI exit codes."""

from src.core.errors import (
    BranchingError,
    ConflictError,
    DiffCancelledError,
    IncompatibleResolutionError,
    NotFoundError,
    PersistenceError,
    StaleBranchError,
    ValidationError,
)
from src.cli.models import ExitCode

# Checked in order; the first matching class wins
ERROR_EXIT_CODES = (
    (ValidationError, ExitCode.VALIDATION_ERROR),
    (NotFoundError, ExitCode.NOT_FOUND),
    (ConflictError, ExitCode.CONFLICTS),
    (StaleBranchError, ExitCode.STALE_BRANCH),
    (IncompatibleResolutionError, ExitCode.INCOMPATIBLE_RESOLUTION),
    (PersistenceError, ExitCode.PERSISTENCE_ERROR),
    (DiffCancelledError, ExitCode.CANCELLED),
)


def exit_code_for(error: BranchingError) -> ExitCode:
    """Return the exit code reported for an engine error.

    Args:
        error: Engine error raised by a command

    Returns:
        Matching ExitCode (GENERAL_ERROR for config and file errors)
    """
    for error_class, code in ERROR_EXIT_CODES:
        if isinstance(error, error_class):
            return code
    return ExitCode.GENERAL_ERROR
