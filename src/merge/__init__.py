"""Merge requests, conflict detection and resolution."""

from src.merge.base_resolver import resolve_base_snapshot
from src.merge.conflict_detector import DetectedConflict, detect_conflicts
from src.merge.content_merger import build_merged_content
from src.merge.merge_coordinator import MergeCoordinator
from src.merge.resolution import (
    STRATEGY_HANDLERS,
    merge_code_both,
    parse_strategy,
    resolve_value,
)

__all__ = [
    'DetectedConflict',
    'MergeCoordinator',
    'STRATEGY_HANDLERS',
    'build_merged_content',
    'detect_conflicts',
    'merge_code_both',
    'parse_strategy',
    'resolve_base_snapshot',
    'resolve_value',
]
