#!/usr/bin/env python3

import os
import sys
import json
import tomllib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml
import yaml

from .domain.cleaning import ActionThresholds, RepoCleaningInfo
from .exit_codes import ConfigError
from .infra.git_client import GitCredentials

logger = logging.getLogger("gitjanitor")

LOG_FORMAT = "[%(asctime)s]-[%(levelname)s] - %(message)s"

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_dir() -> Path:
    return Path.home() / '.gitjanitor'


def get_config_path(explicit: Optional[Union[str, Path]] = None) -> Path:
    """Get the path to the configuration file.

    Checks in order:
    1. An explicit path (the ``--config`` option)
    2. GITJANITOR_CONFIG environment variable
    3. ~/.gitjanitor/ directory
    """
    if explicit:
        return Path(explicit).expanduser()

    # Check for environment variable override
    if 'GITJANITOR_CONFIG' in os.environ:
        path = Path(os.environ['GITJANITOR_CONFIG']).expanduser()
        if path.exists():
            return path

    config_dir = get_config_dir()
    for filename in CONFIG_FILENAMES:
        path = config_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # If no file exists, return default path for saving
    return config_dir / 'config.json'


def _read_file(path: Path) -> Dict[str, Any]:
    """Parse a JSON, TOML or YAML file by its suffix."""
    suffix = path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(path, 'rb') as f:
                data = tomllib.load(f)
        elif suffix in ['.yaml', '.yml']:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        else:
            # Default to JSON format
            with open(path, 'r') as f:
                data = json.load(f)
    except (OSError, ValueError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from file.

    Defaults are merged with the file's content and then with
    ``GITJANITOR_*`` environment overrides.

    Raises:
        ConfigError: If an explicitly given file is missing or a file cannot be parsed
    """
    config_path = get_config_path(path)

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        config = merge_configs(config, _read_file(config_path))
        logger.debug(f"Loaded config from {config_path}")
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def save_config(config: Dict[str, Any], path: Optional[Union[str, Path]] = None) -> Path:
    """Save configuration to file. Returns the path written."""
    config_path = get_config_path(path)

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.suffix.lower() == '.toml':
        # tomllib is read-only
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif config_path.suffix.lower() in ['.yaml', '.yml']:
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        # Default to JSON format
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "retries": 3,
        "retry_delay_seconds": 0,
        "git_timeout_seconds": 300,
        "parallel": 1,
        "credentials": {
            "username": "",
            "password": "",
            "secrets_file": "",
        },
        "email": {
            "enabled": False,
            "smtp_server": "",
            "smtp_port": 587,
            "username": "",
            "password": "",
            "from_email": "",
            "use_tls": True,
            "timeout_seconds": 30,
        },
        "logging": {
            "level": "INFO",
            "format": LOG_FORMAT,
            "file": "",
        },
        "repos": [],
    }


def generate_config_example() -> Dict[str, Any]:
    """Default configuration with one sample repository filled in."""
    config = get_default_config()
    config["repos"] = [
        {
            "directory": "~/gitjanitor/example",
            "remote_uri": "https://example.com/org/example.git",
            "excluded_branches": ["main", "master", "develop"],
            "stale_branch_inactivity_days": 60,
            "stale_tag_days": 30,
            "notification_before_action_days": 7,
            "recipients": [],
        }
    ]
    return config


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: GITJANITOR_SECTION_KEY
    For example: GITJANITOR_EMAIL_SMTP_PORT=2525
    """
    env_prefix = "GITJANITOR_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                # Lists (repos) are not addressable from the environment
                if not isinstance(current_level[matched_key], (dict, list)):
                    current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # Path conflict, e.g., env var is longer but we found a non-dict value
                break

    return config


def configure_logging(config: Optional[Dict[str, Any]] = None, verbose: bool = False) -> None:
    """
    Install the gitjanitor log handlers.

    Log lines go to stderr, and additionally to ``logging.file`` when set.
    """
    settings = (config or {}).get("logging", {}) or {}
    level_name = "DEBUG" if verbose else str(settings.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown logging level: {level_name}")

    formatter = logging.Formatter(settings.get("format") or LOG_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.get("file"):
        log_path = Path(settings["file"]).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def read_secrets_file(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read a secrets file holding ``username`` and ``password``.

    YAML and JSON files are parsed by suffix; anything else is read as
    ``key=value`` (or ``key: value``) lines, ``#`` and ``!`` starting comments.
    """
    path = Path(path).expanduser()
    if path.suffix.lower() in ['.yaml', '.yml', '.json', '.toml']:
        data = _read_file(path)
        return {str(k): str(v) for k, v in data.items() if v is not None}

    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"Failed to read config secrets because: {e}") from e

    secrets = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line[0] in '#!':
            continue
        for sep in ('=', ':'):
            if sep in line:
                key, value = line.split(sep, 1)
                secrets[key.strip()] = value.strip()
                break
    return secrets


def load_credentials(config: Dict[str, Any]) -> Optional[GitCredentials]:
    """
    Resolve git credentials.

    GITJANITOR_GIT_USERNAME / GITJANITOR_GIT_PASSWORD win over the
    ``credentials`` section, whose inline values win over ``secrets_file``.

    Returns:
        GitCredentials, or None if no username is configured
    """
    section = config.get("credentials", {}) or {}
    username = section.get("username", "")
    password = section.get("password", "")

    secrets_file = section.get("secrets_file")
    if secrets_file:
        secrets = read_secrets_file(secrets_file)
        if not secrets.get("username"):
            raise ConfigError("Secrets file missing username information")
        if not secrets.get("password"):
            raise ConfigError("Secrets file missing password information")
        username = username or secrets["username"]
        password = password or secrets["password"]

    username = os.environ.get("GITJANITOR_GIT_USERNAME", username)
    password = os.environ.get("GITJANITOR_GIT_PASSWORD", password)

    if not username:
        return None
    if not password:
        raise ConfigError(f"No password configured for git user {username}")
    return GitCredentials(username=username, password=password)


def _non_negative_int(entry: Dict[str, Any], key: str, where: str) -> int:
    value = entry.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{where}: '{key}' must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"{where}: '{key}' must be >= 0, got {value}")
    return value


def _string_list(entry: Dict[str, Any], key: str, where: str) -> List[str]:
    value = entry.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}: '{key}' must be a list of strings")
    return value


def build_repo_infos(config: Dict[str, Any]) -> List[RepoCleaningInfo]:
    """
    Validate the ``repos`` section and build one RepoCleaningInfo per entry.

    Raises:
        ConfigError: On a missing or malformed repository entry
    """
    repos = config.get("repos")
    if not isinstance(repos, list):
        raise ConfigError("'repos' must be a list of repository entries")

    infos = []
    seen = set()
    for index, entry in enumerate(repos):
        where = f"repos[{index}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where}: repository entry must be a mapping")

        for key in ("directory", "remote_uri"):
            if not entry.get(key) or not isinstance(entry[key], str):
                raise ConfigError(f"{where}: '{key}' is required")

        thresholds = ActionThresholds(
            stale_branch_days=_non_negative_int(entry, "stale_branch_inactivity_days", where),
            stale_tag_days=_non_negative_int(entry, "stale_tag_days", where),
            warn_before_days=_non_negative_int(entry, "notification_before_action_days", where),
        )

        repo_id = str(entry.get("id") or entry["remote_uri"])
        if repo_id in seen:
            raise ConfigError(f"{where}: duplicate repository id {repo_id}")
        seen.add(repo_id)

        for problem in thresholds.problems():
            logger.warning(f"Repo {repo_id}: {problem}")

        infos.append(RepoCleaningInfo(
            repo_id=repo_id,
            repo_dir=str(Path(entry["directory"]).expanduser()),
            remote_uri=entry["remote_uri"],
            thresholds=thresholds,
            excluded_branches=frozenset(_string_list(entry, "excluded_branches", where)),
            recipients=tuple(_string_list(entry, "recipients", where)),
        ))

    return infos


def validate_config(config: Dict[str, Any]) -> List[RepoCleaningInfo]:
    """
    Check the global settings and the repository entries.

    Returns:
        The repositories the config describes

    Raises:
        ConfigError: On the first problem found
    """
    retries = config.get("retries")
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
        raise ConfigError(f"'retries' must be an integer >= 1, got {retries!r}")

    parallel = config.get("parallel", 1)
    if isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1:
        raise ConfigError(f"'parallel' must be an integer >= 1, got {parallel!r}")

    for key in ("retry_delay_seconds", "git_timeout_seconds"):
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ConfigError(f"'{key}' must be a number >= 0, got {value!r}")

    load_credentials(config)
    return build_repo_infos(config)
