"""Environment-based configuration for imgrecognition."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from IMGRECOGNITION_* environment variables.

    Read once at process start and treated as immutable afterwards.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMGRECOGNITION_",
        case_sensitive=False,
        frozen=True,
        protected_namespaces=(),
    )

    # Authentication (None = disabled)
    api_key: str | None = None

    # Model files
    model_dir: str = "/model"
    graph_file: str = "inception5h.onnx"
    labels_file: str = "imagenet_comp_graph_label_strings.txt"
    model_repo_id: str | None = None
    input_port: str = "input"
    output_port: str = "output"

    # Preprocessing (must match the bound classification model)
    input_size: int = Field(default=224, ge=1)
    mean: float = 117.0
    channels: int = 3

    # Ranking
    top_k: int = Field(default=5, ge=1)

    # ONNX Runtime
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    ort_log_severity: int = Field(default=3, ge=0, le=4)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)
    fetch_timeout: float = Field(default=30.0, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("channels")
    @classmethod
    def _check_channels(cls, value: int) -> int:
        if value not in (1, 3):
            raise ValueError("channels must be 1 (grayscale) or 3 (RGB)")
        return value


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
