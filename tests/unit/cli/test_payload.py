"""Unit tests for cli.payload and cli.errors modules."""

import json

import pytest

from src.cli.errors import exit_code_for
from src.cli.models import ExitCode
from src.cli.payload import load_payload, parse_custom_value
from src.core.errors import (
    ConfigError,
    ConflictError,
    DiffCancelledError,
    FilesystemError,
    IncompatibleResolutionError,
    NotFoundError,
    PersistenceError,
    StaleBranchError,
    ValidationError,
)
from src.models.diff import ABSENT


class TestLoadPayload:
    """Test cases for load_payload."""

    def test_json_payload(self, tmp_path):
        payload_file = tmp_path / "snapshot.json"
        payload_file.write_text(json.dumps({"codeFiles": {"t.py": "x"}, "config": {"a": 1}}))

        payload = load_payload(str(payload_file))

        assert payload == {"codeFiles": {"t.py": "x"}, "config": {"a": 1}}

    def test_yaml_payload(self, tmp_path):
        payload_file = tmp_path / "snapshot.yaml"
        payload_file.write_text("scenarios:\n  - name: login\nconfig:\n  timeout: 30\n")

        payload = load_payload(str(payload_file))

        assert payload == {"scenarios": [{"name": "login"}], "config": {"timeout": 30}}

    def test_empty_file_is_empty_payload(self, tmp_path):
        payload_file = tmp_path / "snapshot.yaml"
        payload_file.write_text("")

        assert load_payload(str(payload_file)) == {}

    def test_non_mapping_rejected(self, tmp_path):
        payload_file = tmp_path / "snapshot.json"
        payload_file.write_text("[1, 2]")

        with pytest.raises(ValidationError, match="must be a mapping"):
            load_payload(str(payload_file))

    def test_invalid_json_rejected(self, tmp_path):
        payload_file = tmp_path / "snapshot.json"
        payload_file.write_text("{not json")

        with pytest.raises(ValidationError, match="Invalid JSON"):
            load_payload(str(payload_file))

    def test_missing_file_raises_filesystem_error(self, tmp_path):
        with pytest.raises(FilesystemError, match="File not found"):
            load_payload(str(tmp_path / "missing.json"))


class TestParseCustomValue:
    """Test cases for parse_custom_value."""

    def test_no_value_is_absent(self):
        assert parse_custom_value(None, None, raw_text=False) is ABSENT

    def test_inline_value_is_json(self):
        assert parse_custom_value('{"seconds": 50}', None, raw_text=False) == {"seconds": 50}

    def test_inline_null_is_none(self):
        assert parse_custom_value("null", None, raw_text=True) is None

    def test_inline_value_must_be_json(self):
        with pytest.raises(ValidationError):
            parse_custom_value("not json", None, raw_text=False)

    def test_raw_file_is_verbatim(self, tmp_path):
        """Code resolutions read the file as-is."""
        value_file = tmp_path / "merged.py"
        value_file.write_text("def test_x():\n    pass\n")

        value = parse_custom_value(None, str(value_file), raw_text=True)

        assert value == "def test_x():\n    pass\n"

    def test_structured_file_is_parsed(self, tmp_path):
        value_file = tmp_path / "value.yaml"
        value_file.write_text("name: firefox\nheadless: false\n")

        value = parse_custom_value(None, str(value_file), raw_text=False)

        assert value == {"name": "firefox", "headless": False}

    def test_both_options_rejected(self, tmp_path):
        with pytest.raises(ValidationError, match="not both"):
            parse_custom_value("1", str(tmp_path / "x"), raw_text=False)


class TestExitCodeFor:
    """Test cases for exit_code_for."""

    @pytest.mark.parametrize("error, expected", [
        (ValidationError("bad"), ExitCode.VALIDATION_ERROR),
        (NotFoundError("Branch", "b-1"), ExitCode.NOT_FOUND),
        (ConflictError("mr-1", ["c-1"]), ExitCode.CONFLICTS),
        (StaleBranchError("b-1", "s-1", "s-2"), ExitCode.STALE_BRANCH),
        (IncompatibleResolutionError("c-1", "overlap"), ExitCode.INCOMPATIBLE_RESOLUTION),
        (PersistenceError("commit", "locked"), ExitCode.PERSISTENCE_ERROR),
        (DiffCancelledError(), ExitCode.CANCELLED),
        (ConfigError("bad"), ExitCode.GENERAL_ERROR),
        (FilesystemError("/x", "read"), ExitCode.GENERAL_ERROR),
    ])
    def test_error_maps_to_exit_code(self, error, expected):
        assert exit_code_for(error) == expected
