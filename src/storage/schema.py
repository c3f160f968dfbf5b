"""SQLite schema for branch, snapshot and merge state.

Every table carries an integer ``seq`` rowid so that ordering (snapshot
capture order, history order, latest resolution) never depends on clock
resolution.
"""

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS branches (
    seq                     INTEGER PRIMARY KEY AUTOINCREMENT,
    id                      TEXT NOT NULL UNIQUE,
    suite_id                TEXT NOT NULL,
    name                    TEXT NOT NULL,
    parent_branch_id        TEXT REFERENCES branches(id),
    is_default              INTEGER NOT NULL DEFAULT 0,
    status                  TEXT NOT NULL DEFAULT 'active',
    head_snapshot_id        TEXT,
    forked_from_snapshot_id TEXT,
    description             TEXT,
    created_by              TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL,
    UNIQUE (suite_id, name)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_branches_one_default
    ON branches(suite_id) WHERE is_default = 1;
CREATE INDEX IF NOT EXISTS idx_branches_parent ON branches(parent_branch_id);

CREATE TABLE IF NOT EXISTS snapshots (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT NOT NULL UNIQUE,
    branch_id    TEXT NOT NULL,
    captured_at  TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    code_files   TEXT NOT NULL,
    scenarios    TEXT NOT NULL,
    config       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snapshots_branch ON snapshots(branch_id);

CREATE TABLE IF NOT EXISTS merge_requests (
    seq                     INTEGER PRIMARY KEY AUTOINCREMENT,
    id                      TEXT NOT NULL UNIQUE,
    suite_id                TEXT NOT NULL,
    source_branch_id        TEXT NOT NULL,
    target_branch_id        TEXT NOT NULL,
    base_snapshot_id        TEXT NOT NULL,
    source_head_snapshot_id TEXT NOT NULL,
    target_head_snapshot_id TEXT NOT NULL,
    status                  TEXT NOT NULL,
    title                   TEXT NOT NULL,
    description             TEXT,
    created_by              TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL,
    merged_by               TEXT,
    merged_at               TEXT,
    merged_snapshot_id      TEXT
);

CREATE INDEX IF NOT EXISTS idx_merge_requests_suite ON merge_requests(suite_id);
CREATE INDEX IF NOT EXISTS idx_merge_requests_source ON merge_requests(source_branch_id);
CREATE INDEX IF NOT EXISTS idx_merge_requests_target ON merge_requests(target_branch_id);

CREATE TABLE IF NOT EXISTS merge_conflicts (
    seq               INTEGER PRIMARY KEY AUTOINCREMENT,
    id                TEXT NOT NULL UNIQUE,
    merge_request_id  TEXT NOT NULL REFERENCES merge_requests(id),
    path              TEXT NOT NULL,
    kind              TEXT NOT NULL,
    base_value        TEXT,
    source_value      TEXT,
    target_value      TEXT,
    resolution_status TEXT NOT NULL DEFAULT 'pending',
    UNIQUE (merge_request_id, kind, path)
);

CREATE TABLE IF NOT EXISTS conflict_resolutions (
    seq            INTEGER PRIMARY KEY AUTOINCREMENT,
    id             TEXT NOT NULL UNIQUE,
    conflict_id    TEXT NOT NULL REFERENCES merge_conflicts(id),
    strategy       TEXT NOT NULL,
    resolved_value TEXT,
    resolved_by    TEXT,
    resolved_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_resolutions_conflict ON conflict_resolutions(conflict_id);

CREATE TABLE IF NOT EXISTS merge_history (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL UNIQUE,
    merge_request_id TEXT NOT NULL REFERENCES merge_requests(id),
    action           TEXT NOT NULL,
    actor            TEXT,
    timestamp        TEXT NOT NULL,
    detail           TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_history_request ON merge_history(merge_request_id);

CREATE TRIGGER IF NOT EXISTS merge_history_no_update
BEFORE UPDATE ON merge_history
BEGIN
    SELECT RAISE(ABORT, 'merge_history is append-only');
END;

CREATE TRIGGER IF NOT EXISTS merge_history_no_delete
BEFORE DELETE ON merge_history
BEGIN
    SELECT RAISE(ABORT, 'merge_history is append-only');
END;

CREATE TRIGGER IF NOT EXISTS snapshots_immutable
BEFORE UPDATE ON snapshots
BEGIN
    SELECT RAISE(ABORT, 'snapshots are immutable');
END;
"""
