"""Integration tests for suite branching.

These tests drive the SuiteBranching facade end to end over real SQLite
stores (in-memory and file-backed under tmp_path): branch lifecycles,
three-way merges, rollback on failure, concurrent merges and state that
survives reopening the store.
"""
