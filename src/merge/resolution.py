"""Conflict resolution strategies.

Each member of ResolutionStrategy has exactly one handler in
STRATEGY_HANDLERS; the module refuses to import if a member is missing.

The ``both`` strategy keeps the edits of both sides using a three-way line
merge (merge3). It only applies to code conflicts whose edits do not
overlap; a single config or scenario value cannot hold two values.
"""

import json
import logging
from typing import Any, Callable, Dict, List

from merge3 import Merge3

from src.core.errors import IncompatibleResolutionError, ValidationError
from src.diff_engine.line_diff import join_lines, split_lines
from src.models.diff import ABSENT
from src.models.merge import ConflictKind, MergeConflict, ResolutionStrategy

logger = logging.getLogger(__name__)

StrategyHandler = Callable[[MergeConflict, Any], Any]


def merge_code_both(conflict: MergeConflict) -> str:
    """Combine the source and target edits of a code conflict.

    Args:
        conflict: Code conflict with base, source and target text

    Returns:
        Merged file text

    Raises:
        IncompatibleResolutionError: If a side removed the file or the edits
            touch overlapping line ranges
    """
    if conflict.source_value is ABSENT or conflict.target_value is ABSENT:
        raise IncompatibleResolutionError(
            conflict.id, "one side removed the file; its edits cannot be combined"
        )

    base_lines = split_lines(conflict.base_value) if conflict.base_value is not ABSENT else []
    source_lines = split_lines(conflict.source_value)
    target_lines = split_lines(conflict.target_value)

    m3 = Merge3(base_lines, source_lines, target_lines)

    merged: List[str] = []
    for region in m3.merge_regions():
        kind = region[0]
        if kind == 'unchanged':
            merged.extend(base_lines[region[1]:region[2]])
        elif kind in ('a', 'same'):
            merged.extend(source_lines[region[1]:region[2]])
        elif kind == 'b':
            merged.extend(target_lines[region[1]:region[2]])
        elif kind == 'conflict':
            base_start, base_end = region[1], region[2]
            raise IncompatibleResolutionError(
                conflict.id,
                f"source and target edit overlapping lines "
                f"{base_start + 1}-{max(base_end, base_start + 1)} of {conflict.path}",
            )
        else:
            raise IncompatibleResolutionError(conflict.id, f"unexpected merge region {kind!r}")

    logger.debug(f"Combined both sides of {conflict.path} into {len(merged)} lines")
    return join_lines(merged)


def _resolve_source(conflict: MergeConflict, custom_value: Any) -> Any:
    return conflict.source_value


def _resolve_target(conflict: MergeConflict, custom_value: Any) -> Any:
    return conflict.target_value


def _resolve_both(conflict: MergeConflict, custom_value: Any) -> Any:
    if conflict.kind != ConflictKind.CODE:
        raise IncompatibleResolutionError(
            conflict.id,
            f"'both' cannot combine two values of a single {conflict.kind.value} "
            f"key path ({conflict.path or '<root>'})",
        )
    return merge_code_both(conflict)


def _resolve_custom(conflict: MergeConflict, custom_value: Any) -> Any:
    if custom_value is ABSENT:
        raise ValidationError("The custom strategy requires a value", 'custom_value')

    if conflict.kind == ConflictKind.CODE:
        if custom_value is None:
            return ABSENT
        if not isinstance(custom_value, str):
            raise ValidationError(
                f"Custom value for code conflict {conflict.path} must be text or None",
                'custom_value',
            )
        return custom_value

    try:
        json.dumps(custom_value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Custom value for {conflict.kind.value} conflict is not valid JSON: {e}",
            'custom_value',
        ) from e
    return custom_value


STRATEGY_HANDLERS: Dict[ResolutionStrategy, StrategyHandler] = {
    ResolutionStrategy.SOURCE: _resolve_source,
    ResolutionStrategy.TARGET: _resolve_target,
    ResolutionStrategy.BOTH: _resolve_both,
    ResolutionStrategy.CUSTOM: _resolve_custom,
}

_missing = set(ResolutionStrategy) - set(STRATEGY_HANDLERS)
if _missing:
    raise ImportError(f"No resolution handler for: {sorted(s.value for s in _missing)}")


def parse_strategy(strategy: Any) -> ResolutionStrategy:
    """Coerce a strategy name or enum member to ResolutionStrategy.

    Raises:
        ValidationError: If the name is not a known strategy
    """
    if isinstance(strategy, ResolutionStrategy):
        return strategy
    try:
        return ResolutionStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in ResolutionStrategy)
        raise ValidationError(
            f"Unknown resolution strategy {strategy!r} (expected one of: {valid})",
            'strategy',
        )


def resolve_value(
    conflict: MergeConflict,
    strategy: ResolutionStrategy,
    custom_value: Any = ABSENT,
) -> Any:
    """Compute the final value of a conflict under a strategy.

    Args:
        conflict: Conflict to settle
        strategy: Resolution strategy
        custom_value: Value for the custom strategy (ABSENT when not given)

    Returns:
        Resolved value (ABSENT removes the file or key)

    Raises:
        IncompatibleResolutionError: Strategy cannot settle this conflict
        ValidationError: Custom value missing or of the wrong kind
    """
    handler = STRATEGY_HANDLERS[strategy]
    return handler(conflict, custom_value)
