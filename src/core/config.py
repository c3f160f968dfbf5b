"""YAML configuration loading and validation.

This module handles loading and saving engine configuration from
``.suite-branching/config.yaml``. Every key is optional; missing keys take
the values in ConfigLoader.DEFAULTS. Two environment variables (read after
loading a ``.env`` file with python-dotenv) override the file:

    SUITE_BRANCHING_DB: database_path
    SUITE_BRANCHING_ACTOR: default_actor
"""

import copy
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from src.core.errors import ConfigError, FilesystemError

DEFAULT_CONFIG_DIR = '.suite-branching'
DEFAULT_CONFIG_PATH = os.path.join(DEFAULT_CONFIG_DIR, 'config.yaml')

ENV_DATABASE_PATH = 'SUITE_BRANCHING_DB'
ENV_ACTOR = 'SUITE_BRANCHING_ACTOR'


@dataclass
class SuiteBranchingConfig:
    """Engine configuration.

    Attributes:
        database_path: SQLite file (":memory:" for a throwaway store)
        default_branch_name: Name of auto-created default branches
        default_config: Config of a new default branch's initial snapshot
        diff_timeout_seconds: Deadline for one diff computation (None = none)
        default_actor: Actor recorded when a command names none
    """
    database_path: str = os.path.join(DEFAULT_CONFIG_DIR, 'branching.db')
    default_branch_name: str = 'main'
    default_config: Dict[str, Any] = field(default_factory=dict)
    diff_timeout_seconds: Optional[float] = None
    default_actor: Optional[str] = None


class ConfigLoader:
    """Handles configuration file loading, validation, and saving.

    Configuration file structure:
        database_path: ".suite-branching/branching.db"
        default_branch_name: "main"
        default_config:
          retries: 1
        diff_timeout_seconds: 30
        default_actor: "ci-bot"
    """

    DEFAULTS = {
        'database_path': os.path.join(DEFAULT_CONFIG_DIR, 'branching.db'),
        'default_branch_name': 'main',
        'default_config': {},
        'diff_timeout_seconds': None,
        'default_actor': None,
    }

    @classmethod
    def load(cls, config_path: str = DEFAULT_CONFIG_PATH, apply_env: bool = True) -> SuiteBranchingConfig:
        """Load configuration from a YAML file.

        A missing file yields the defaults.

        Args:
            config_path: Path to the YAML configuration file
            apply_env: Apply SUITE_BRANCHING_* environment overrides

        Returns:
            SuiteBranchingConfig with parsed configuration

        Raises:
            FilesystemError: If the file exists but cannot be read
            ConfigError: If configuration is invalid or malformed
        """
        config_dict: Dict[str, Any] = {}
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            content = ''
        except PermissionError:
            raise FilesystemError(config_path, 'read', 'Permission denied')
        except OSError as e:
            raise FilesystemError(config_path, 'read', str(e))

        if content.strip():
            try:
                loaded = yaml.safe_load(content)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML syntax: {str(e)}")

            if loaded is not None:
                if not isinstance(loaded, dict):
                    raise ConfigError(
                        f"Configuration must be a YAML dictionary, got {type(loaded).__name__}"
                    )
                config_dict = loaded

        config = cls._parse_config(config_dict)
        if apply_env:
            cls._apply_env_overrides(config)
        return config

    @classmethod
    def save(cls, config_path: str, config: SuiteBranchingConfig) -> None:
        """Save configuration to a YAML file.

        Raises:
            FilesystemError: If file cannot be written
        """
        config_dict = {
            'database_path': config.database_path,
            'default_branch_name': config.default_branch_name,
            'default_config': config.default_config,
            'diff_timeout_seconds': config.diff_timeout_seconds,
            'default_actor': config.default_actor,
        }

        yaml_str = yaml.safe_dump(
            config_dict,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )

        config_dir = os.path.dirname(config_path)
        if config_dir:
            try:
                os.makedirs(config_dir, exist_ok=True)
            except OSError as e:
                raise FilesystemError(config_dir, 'create_directory', str(e))

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                f.write(yaml_str)
        except PermissionError:
            raise FilesystemError(config_path, 'write', 'Permission denied')
        except OSError as e:
            raise FilesystemError(config_path, 'write', str(e))

    @classmethod
    def _parse_config(cls, config_dict: Dict[str, Any]) -> SuiteBranchingConfig:
        """Validate a raw configuration dictionary.

        Raises:
            ConfigError: If a field has the wrong type or value
        """
        unknown = set(config_dict) - set(cls.DEFAULTS)
        if unknown:
            raise ConfigError(f"Unknown fields: {', '.join(sorted(unknown))}")

        values = {key: config_dict.get(key, default) for key, default in cls.DEFAULTS.items()}

        database_path = values['database_path']
        if not isinstance(database_path, str) or not database_path.strip():
            raise ConfigError("Field 'database_path' must be a non-empty string", 'database_path')

        branch_name = values['default_branch_name']
        if not isinstance(branch_name, str) or not branch_name.strip():
            raise ConfigError(
                "Field 'default_branch_name' must be a non-empty string", 'default_branch_name'
            )

        default_config = values['default_config']
        if default_config is None:
            default_config = {}
        if not isinstance(default_config, dict):
            raise ConfigError("Field 'default_config' must be a mapping", 'default_config')

        timeout = values['diff_timeout_seconds']
        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError):
                raise ConfigError(
                    f"Field 'diff_timeout_seconds' must be a number, got {timeout!r}",
                    'diff_timeout_seconds'
                )
            if timeout <= 0:
                raise ConfigError(
                    f"Field 'diff_timeout_seconds' must be positive, got {timeout}",
                    'diff_timeout_seconds'
                )

        actor = values['default_actor']
        if actor is not None:
            actor = str(actor)

        return SuiteBranchingConfig(
            database_path=database_path,
            default_branch_name=branch_name.strip(),
            default_config=copy.deepcopy(default_config),
            diff_timeout_seconds=timeout,
            default_actor=actor,
        )

    @staticmethod
    def _apply_env_overrides(config: SuiteBranchingConfig) -> None:
        load_dotenv()
        database_path = os.getenv(ENV_DATABASE_PATH)
        if database_path:
            config.database_path = database_path
        actor = os.getenv(ENV_ACTOR)
        if actor:
            config.default_actor = actor
