"""Tests for the command-line entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from imgrecognition.cli import EXIT_FAILURE, EXIT_USAGE, main
from imgrecognition.errors import FetchError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

URL = "http://images.test/apple.jpg"


@pytest.fixture(autouse=True)
def _model_env(monkeypatch: pytest.MonkeyPatch, model_dir: Path) -> None:
    monkeypatch.setenv("IMGRECOGNITION_MODEL_DIR", str(model_dir))
    monkeypatch.setenv("IMGRECOGNITION_GRAPH_FILE", "color.onnx")
    monkeypatch.setenv("IMGRECOGNITION_LABELS_FILE", "labels.txt")


def test_missing_url_is_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == EXIT_USAGE
    assert "usage: imgrecognition <image_url>" in capsys.readouterr().err


@patch("imgrecognition.cli.fetch_image")
def test_prints_top_five(
    mock_fetch: MagicMock, make_jpeg: Callable[..., bytes], capsys: pytest.CaptureFixture[str]
) -> None:
    mock_fetch.return_value = make_jpeg((255, 0, 0))

    assert main([URL]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == f"url: {URL}"
    assert len(lines) == 6
    assert lines[1].startswith("label: red, probability: ")
    assert all(line.startswith("label: ") and line.endswith("%") for line in lines[1:])
    percent = float(lines[1].rsplit(" ", 1)[1].rstrip("%"))
    assert percent > 50.0


@patch("imgrecognition.cli.fetch_image")
def test_fetch_failure_exits_nonzero(mock_fetch: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
    mock_fetch.side_effect = FetchError("connection refused")

    assert main([URL]) == EXIT_FAILURE
    assert "unable to get image from url: connection refused" in caplog.text


@patch("imgrecognition.cli.fetch_image")
def test_missing_model_exits_nonzero(
    mock_fetch: MagicMock,
    make_jpeg: Callable[..., bytes],
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    mock_fetch.return_value = make_jpeg()
    monkeypatch.setenv("IMGRECOGNITION_GRAPH_FILE", "absent.onnx")

    assert main([URL]) == EXIT_FAILURE
    assert "unable to load model" in caplog.text


@patch("imgrecognition.cli.fetch_image")
def test_bad_image_exits_nonzero(mock_fetch: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
    mock_fetch.return_value = b"<html>not an image</html>"

    assert main([URL]) == EXIT_FAILURE
    assert "unable to make a tensor from image" in caplog.text
