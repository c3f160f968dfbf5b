"""Command-line interface for test-suite branching and merge.

This package provides the `suite-branching` CLI tool that drives the
engine: branch lifecycle, snapshot capture, diffs and merge requests, with
rich terminal output and exit codes mapped from engine errors.
"""

from .errors import ERROR_EXIT_CODES, exit_code_for
from .models import CliOptions, ExitCode
from .output import OutputHandler

__all__ = [
    'CliOptions',
    'ERROR_EXIT_CODES',
    'ExitCode',
    'OutputHandler',
    'exit_code_for',
]
