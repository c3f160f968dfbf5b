"""Snapshot data models."""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from src.core.errors import ValidationError


@dataclass
class SnapshotContent:
    """Content bundle supplied by the external generator.

    Attributes:
        code_files: Generated code keyed by file path
        scenarios: Ordered list of scenario definitions (JSON values)
        config: Suite configuration (JSON object)
    """
    code_files: Dict[str, str] = field(default_factory=dict)
    scenarios: List[Any] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SnapshotContent":
        """Build content from a generator payload.

        Accepts both ``code_files`` and the generator's ``codeFiles`` key.

        Raises:
            ValidationError: If the payload is not shaped as expected
        """
        if not isinstance(payload, dict):
            raise ValidationError(
                f"Snapshot payload must be an object, got {type(payload).__name__}"
            )

        code_files = payload.get('code_files', payload.get('codeFiles', {}))
        scenarios = payload.get('scenarios', [])
        config = payload.get('config', {})

        content = cls(
            code_files=code_files if code_files is not None else {},
            scenarios=scenarios if scenarios is not None else [],
            config=config if config is not None else {},
        )
        content.validate()
        return content

    def validate(self) -> None:
        """Check field types.

        Raises:
            ValidationError: If any field has the wrong shape or holds a
                value JSON cannot encode (dates, NaN, sets)
        """
        if not isinstance(self.code_files, dict):
            raise ValidationError("code_files must be a mapping of path to text", 'code_files')
        for path, text in self.code_files.items():
            if not isinstance(path, str) or not path:
                raise ValidationError(f"Invalid code file path: {path!r}", 'code_files')
            if not isinstance(text, str):
                raise ValidationError(f"Code file {path} must contain text", 'code_files')
        if not isinstance(self.scenarios, list):
            raise ValidationError("scenarios must be an ordered list", 'scenarios')
        if not isinstance(self.config, dict):
            raise ValidationError("config must be a JSON object", 'config')
        for field_name in ('scenarios', 'config'):
            try:
                json.dumps(getattr(self, field_name), allow_nan=False)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"{field_name} must hold only JSON values: {e}", field_name
                ) from e

    def copy(self) -> "SnapshotContent":
        return SnapshotContent(
            code_files=dict(self.code_files),
            scenarios=copy.deepcopy(self.scenarios),
            config=copy.deepcopy(self.config),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code_files': dict(self.code_files),
            'scenarios': copy.deepcopy(self.scenarios),
            'config': copy.deepcopy(self.config),
        }


@dataclass(frozen=True)
class Snapshot:
    """Immutable captured state of a branch at one point in time.

    Attributes:
        id: Snapshot identifier
        branch_id: Branch the snapshot was captured on
        captured_at: ISO 8601 capture timestamp
        content_hash: SHA-256 over the canonical content
        content: Captured code, scenarios and config
    """
    id: str
    branch_id: str
    captured_at: str
    content_hash: str
    content: SnapshotContent

    @property
    def code_files(self) -> Dict[str, str]:
        return self.content.code_files

    @property
    def scenarios(self) -> List[Any]:
        return self.content.scenarios

    @property
    def config(self) -> Dict[str, Any]:
        return self.content.config

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'branch_id': self.branch_id,
            'captured_at': self.captured_at,
            'content_hash': self.content_hash,
        }
        if include_content:
            data.update(self.content.to_dict())
        return data
