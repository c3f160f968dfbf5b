"""Data models for CLI operations.

This module defines the exit codes of the suite-branching command and the
options shared by all of its subcommands.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from src.core.config import DEFAULT_CONFIG_PATH


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    Each engine error maps to its own code so scripts can react to it:
    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): Unexpected failure, configuration or file errors
    - VALIDATION_ERROR (2): Bad input (duplicate name, invalid transition, ...)
    - NOT_FOUND (3): Unknown branch, snapshot, merge request or conflict
    - CONFLICTS (4): Merge attempted with unresolved conflicts
    - STALE_BRANCH (5): Target branch moved since the merge request was created
    - INCOMPATIBLE_RESOLUTION (6): Strategy cannot settle the conflict
    - PERSISTENCE_ERROR (7): Underlying store failure
    - CANCELLED (8): Diff computation cancelled or timed out

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    VALIDATION_ERROR = 2
    NOT_FOUND = 3
    CONFLICTS = 4
    STALE_BRANCH = 5
    INCOMPATIBLE_RESOLUTION = 6
    PERSISTENCE_ERROR = 7
    CANCELLED = 8


@dataclass
class CliOptions:
    """Global options given before the subcommand.

    Attributes:
        config_path: YAML configuration file
        database_path: Database override (takes precedence over config and env)
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        no_color: Disable colored output
    """
    config_path: str = DEFAULT_CONFIG_PATH
    database_path: Optional[str] = None
    verbosity: int = 0
    no_color: bool = False
