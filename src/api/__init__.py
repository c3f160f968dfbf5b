"""Public entry point of the suite branching engine."""

from src.api.suite_branching import SuiteBranching

__all__ = [
    'SuiteBranching',
]
