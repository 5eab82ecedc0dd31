from pathlib import Path
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vqueue.domain.models import DirectoryLayout

SHUTDOWN_MODES = ("finish", "terminate")


def split_flags(value: Union[str, List[str], None]) -> List[str]:
    """Splits a whitespace-separated flag string into tokens (lists pass through)."""
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(token) for token in value]


class TranscoderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    executable: str = "ffmpeg"
    input_flags: List[str] = Field(default_factory=list)
    output_flags: List[str] = Field(default_factory=list)
    output_extension: str = ".mp4"

    @field_validator("input_flags", "output_flags", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return split_flags(v)

    @field_validator("output_extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:
        v = v.strip()
        if not v or v == ".":
            raise ValueError("output_extension must not be empty")
        return v if v.startswith(".") else f".{v}"


class GeneralConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    shutdown_mode: str = "finish"
    terminate_timeout_s: float = Field(default=5.0, gt=0)
    debug: bool = False
    log_path: Optional[str] = None

    @field_validator("shutdown_mode")
    @classmethod
    def validate_shutdown_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in SHUTDOWN_MODES:
            raise ValueError(f"Unsupported shutdown_mode: {v}. Use one of {list(SHUTDOWN_MODES)}")
        return mode


class AppConfig(BaseModel):
    """User-facing configuration, read once at startup."""
    model_config = ConfigDict(frozen=True)

    base_dir: Optional[Path] = None
    staging_dir_name: str = "upload"
    transcoder: TranscoderConfig = Field(default_factory=TranscoderConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)

    @field_validator("staging_dir_name")
    @classmethod
    def validate_staging_name(cls, v: str) -> str:
        if not v or "/" in v or v in {".", "..", "queue", "working", "finished"}:
            raise ValueError(f"Invalid staging_dir_name: {v!r}")
        return v


class PipelineSettings(BaseModel):
    """Resolved, immutable settings handed to every pipeline component.

    Built once after the directory layout exists and the transcoder
    executable has been located on PATH.
    """
    model_config = ConfigDict(frozen=True)

    layout: DirectoryLayout
    executable: Path
    input_flags: List[str] = Field(default_factory=list)
    output_flags: List[str] = Field(default_factory=list)
    output_extension: str = ".mp4"
    shutdown_mode: str = "finish"
    terminate_timeout_s: float = 5.0

    @classmethod
    def from_config(cls, config: AppConfig, layout: DirectoryLayout, executable: Path) -> "PipelineSettings":
        return cls(
            layout=layout,
            executable=executable,
            input_flags=list(config.transcoder.input_flags),
            output_flags=list(config.transcoder.output_flags),
            output_extension=config.transcoder.output_extension,
            shutdown_mode=config.general.shutdown_mode,
            terminate_timeout_s=config.general.terminate_timeout_s,
        )
