# repoviewer/config/loader.py
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, get_origin

from pydantic import ValidationError
from loguru import logger

from .schema import AppConfig
from .paths import get_user_config_file

ENV_PREFIX = "REPOVIEWER_"

_cached_config: Optional[AppConfig] = None


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    """Reads the user file; a corrupted one is moved aside to ``config.json.corrupted``."""
    if not config_path.exists():
        logger.info("User config file not found. Using default settings.")
        return {}

    logger.info(f"Loading user configuration from: {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.error(f"Failed to load user config file {config_path}: {e}")
        try:
            backup_path = config_path.with_suffix(".json.corrupted")
            if backup_path.exists(): backup_path.unlink(missing_ok=True)
            config_path.rename(backup_path)
            logger.info(f"Backed up corrupted config to: {backup_path}")
        except OSError as backup_err:
            logger.error(f"Failed to backup corrupted config: {backup_err}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Config file {config_path} does not contain a JSON object. Using defaults.")
        return {}
    return data


def _env_overrides() -> Dict[str, Any]:
    """
    REPOVIEWER_<FIELD> variables override file values, e.g. REPOVIEWER_TREE_DEPTH=3.
    List fields take comma-separated values. Pydantic does the type coercion.
    """
    overrides: Dict[str, Any] = {}
    for name, field_info in AppConfig.model_fields.items():
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if get_origin(field_info.annotation) is list:
            overrides[name] = [p.strip() for p in raw.split(",") if p.strip()]
        else:
            overrides[name] = raw
        logger.debug(f"Config override from environment: {name}={raw!r}")
    return overrides


def load_config() -> AppConfig:
    """Loads the application configuration: defaults < user file < environment."""
    global _cached_config
    if _cached_config:
        return _cached_config

    loaded_data = _read_config_file(get_user_config_file())
    env_data = _env_overrides()

    try:
        config = AppConfig(**{**loaded_data, **env_data})
        logger.info("Configuration loaded successfully.")
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        logger.warning("Falling back to default configuration.")
        config = AppConfig()
    _cached_config = config
    return config


def save_config(config: AppConfig) -> bool:
    """Writes the configuration with an atomic temp-file replace. Returns False on failure."""
    global _cached_config
    config_path = get_user_config_file()
    logger.info(f"Saving configuration to: {config_path}")
    temp_file_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            dir=config_path.parent,
            prefix=f".{config_path.name}_tmp",
            suffix=".json",
            delete=False
        ) as temp_f:
            temp_file_path = Path(temp_f.name)
            temp_f.write(config.model_dump_json(indent=4))
            temp_f.flush()
            os.fsync(temp_f.fileno())

        os.replace(temp_file_path, config_path)
        temp_file_path = None
        _cached_config = config
        logger.info("Configuration saved successfully.")
        return True
    except OSError as e:
        logger.error(f"Failed to save configuration to {config_path}: {e}")
        return False
    finally:
        if temp_file_path and temp_file_path.exists():
            logger.warning(f"Cleaning up leftover temporary config file: {temp_file_path}")
            try: temp_file_path.unlink()
            except OSError as unlink_err: logger.error(f"Failed to remove temporary config file {temp_file_path}: {unlink_err}")


def update_config(**changes: Any) -> Optional[AppConfig]:
    """
    Applies ``changes`` on top of the saved file (not the environment) and saves.
    Raises ValidationError for invalid values; nothing is written in that case.
    Returns None when the file could not be written.
    """
    try:
        current = AppConfig(**_read_config_file(get_user_config_file()))
    except ValidationError as e:
        logger.warning(f"Saved configuration is invalid, starting from defaults: {e}")
        current = AppConfig()
    updated = AppConfig(**{**current.model_dump(), **changes})
    if not save_config(updated):
        return None
    reset_config_cache()
    return get_config()


def get_config() -> AppConfig:
    """Returns the cached configuration object, loading if necessary."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Forgets the cached configuration so the next get_config() re-reads the file."""
    global _cached_config
    _cached_config = None
