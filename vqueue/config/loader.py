import os
import yaml
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from .models import AppConfig

# Environment interface of the container image.
ENV_BASE_DIR = "BASE_DIR"
ENV_INPUT_FLAGS = "FFMPEG_INPUT_FLAGS"
ENV_OUTPUT_FLAGS = "FFMPEG_OUTPUT_FLAGS"


def load_config(config_path: Optional[Path], must_exist: bool = True) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model.

    With must_exist=False a missing file yields the defaults, so the pipeline
    can run from environment variables and CLI options alone.
    """
    if config_path is None or not config_path.exists():
        if must_exist:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return AppConfig()

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return AppConfig(**data)


def _merge(config: AppConfig, updates: Dict[str, Any]) -> AppConfig:
    data = config.model_dump()
    for key, value in updates.items():
        if isinstance(value, dict):
            section = dict(data.get(key) or {})
            section.update(value)
            data[key] = section
        else:
            data[key] = value
    return AppConfig(**data)


def apply_environment(config: AppConfig, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Overlays BASE_DIR / FFMPEG_INPUT_FLAGS / FFMPEG_OUTPUT_FLAGS when set."""
    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    transcoder: Dict[str, Any] = {}

    if env.get(ENV_BASE_DIR):
        updates["base_dir"] = Path(env[ENV_BASE_DIR])
    if ENV_INPUT_FLAGS in env:
        transcoder["input_flags"] = env[ENV_INPUT_FLAGS]
    if ENV_OUTPUT_FLAGS in env:
        transcoder["output_flags"] = env[ENV_OUTPUT_FLAGS]
    if transcoder:
        updates["transcoder"] = transcoder

    return _merge(config, updates) if updates else config


def apply_overrides(
    config: AppConfig,
    base_dir: Optional[Path] = None,
    input_flags: Optional[str] = None,
    output_flags: Optional[str] = None,
    shutdown_mode: Optional[str] = None,
    log_path: Optional[Path] = None,
    debug: bool = False,
) -> AppConfig:
    """Applies CLI options on top of file and environment values."""
    updates: Dict[str, Any] = {}
    transcoder: Dict[str, Any] = {}
    general: Dict[str, Any] = {}

    if base_dir is not None: updates["base_dir"] = base_dir
    if input_flags is not None: transcoder["input_flags"] = input_flags
    if output_flags is not None: transcoder["output_flags"] = output_flags
    if shutdown_mode is not None: general["shutdown_mode"] = shutdown_mode
    if log_path is not None: general["log_path"] = str(log_path)
    if debug: general["debug"] = True

    if transcoder:
        updates["transcoder"] = transcoder
    if general:
        updates["general"] = general

    return _merge(config, updates) if updates else config
