"""Test fixtures for branching and merge tests.

This module provides snapshot content fixtures:
- Base/source/target triples of a generated test file
- Named scenarios and a default suite config
- Builders for SnapshotContent
"""

from .suite_content import (
    CHECKOUT_SCENARIO,
    CHECKOUT_TEST_BASE,
    DEFAULT_SUITE_CONFIG,
    LOGIN_SCENARIO,
    REFUND_SCENARIO,
    checkout_suite_content,
    make_content,
)

__all__ = [
    "CHECKOUT_SCENARIO",
    "CHECKOUT_TEST_BASE",
    "DEFAULT_SUITE_CONFIG",
    "LOGIN_SCENARIO",
    "REFUND_SCENARIO",
    "checkout_suite_content",
    "make_content",
]
