"""Tests for environment-based settings."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from imgrecognition.config import Settings, get_settings


def test_defaults_match_inception() -> None:
    with patch.dict(os.environ, {}, clear=True):
        settings = get_settings()
    assert (settings.input_size, settings.mean, settings.channels, settings.top_k) == (224, 117.0, 3, 5)
    assert (settings.input_port, settings.output_port) == ("input", "output")


def test_env_overrides() -> None:
    with patch.dict(os.environ, {"IMGRECOGNITION_CHANNELS": "1", "IMGRECOGNITION_INPUT_SIZE": "299"}):
        settings = get_settings()
    assert settings.channels == 1
    assert settings.input_size == 299


@pytest.mark.parametrize("channels", [0, 2, 4])
def test_unsupported_channel_count_rejected(channels: int) -> None:
    with pytest.raises(ValidationError, match="channels must be 1"):
        Settings(channels=channels)


def test_settings_are_immutable() -> None:
    settings = Settings()
    with pytest.raises(ValidationError):
        settings.top_k = 10  # type: ignore[misc]
