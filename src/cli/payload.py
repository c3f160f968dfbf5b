"""Reading snapshot payloads and custom resolution values from the command line."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.core.errors import FilesystemError, ValidationError
from src.models.diff import ABSENT

logger = logging.getLogger(__name__)


def read_text_file(file_path: str) -> str:
    """Read a UTF-8 text file.

    Raises:
        FilesystemError: If the file cannot be read
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        raise FilesystemError(file_path, 'read', 'File not found')
    except PermissionError:
        raise FilesystemError(file_path, 'read', 'Permission denied')
    except OSError as e:
        raise FilesystemError(file_path, 'read', str(e))


def parse_document(text: str, source: str, as_json: bool = False) -> Any:
    """Parse JSON (when as_json) or YAML text.

    Raises:
        ValidationError: If the text is not valid
    """
    if as_json:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {source}: {e}")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {source}: {e}")


def load_payload(file_path: str) -> Dict[str, Any]:
    """Load a snapshot payload ``{codeFiles, scenarios, config}`` from a file.

    Files ending in ``.json`` are parsed as JSON, anything else as YAML.

    Raises:
        FilesystemError: If the file cannot be read
        ValidationError: If the content is not a mapping
    """
    text = read_text_file(file_path)
    payload = parse_document(text, file_path, as_json=Path(file_path).suffix.lower() == '.json')
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(
            f"Snapshot payload in {file_path} must be a mapping, got {type(payload).__name__}"
        )
    logger.debug(f"Loaded snapshot payload from {file_path}")
    return payload


def parse_custom_value(
    value: Optional[str],
    value_file: Optional[str],
    raw_text: bool,
) -> Any:
    """Turn ``--value``/``--value-file`` into a custom resolution value.

    ``--value`` is always JSON (``null`` deletes a code file). A file is
    taken verbatim when raw_text is set (code conflicts), else parsed as
    JSON or YAML.

    Returns:
        The parsed value, or ABSENT when neither option was given

    Raises:
        ValidationError: If both options are given or parsing fails
    """
    if value is not None and value_file is not None:
        raise ValidationError("Use either --value or --value-file, not both", 'custom_value')
    if value is not None:
        return parse_document(value, '--value', as_json=True)
    if value_file is not None:
        text = read_text_file(value_file)
        if raw_text:
            return text
        return parse_document(text, value_file, as_json=Path(value_file).suffix.lower() == '.json')
    return ABSENT
