"""Shared fixtures: a tiny colour classifier and generated JPEGs."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
import onnx
import pytest
from onnx import TensorProto, helper, numpy_helper
from PIL import Image

from imgrecognition.config import Settings

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

COLOR_LABELS: list[str] = ["red", "green", "blue", "not red", "not green", "not blue"]

# Per-channel mean -> logits. Column j scores label j.
_COLOR_WEIGHTS = 0.1 * np.array(
    [
        [1.0, 0.0, 0.0, -1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, 0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0, 0.0, 0.0, -1.0],
    ],
    dtype=np.float32,
)


def build_color_classifier(
    weights: np.ndarray = _COLOR_WEIGHTS,
    input_size: int = 224,
    input_port: str = "input",
    output_port: str = "output",
) -> onnx.ModelProto:
    """[1, S, S, 3] -> spatial mean -> linear -> softmax -> [1, classes]."""
    num_classes = weights.shape[1]
    nodes = [
        helper.make_node("ReduceMean", [input_port], ["channel_mean"], axes=[1, 2], keepdims=0),
        helper.make_node("MatMul", ["channel_mean", "weights"], ["logits"]),
        helper.make_node("Softmax", ["logits"], [output_port], axis=1),
    ]
    graph = helper.make_graph(
        nodes,
        "color_classifier",
        [helper.make_tensor_value_info(input_port, TensorProto.FLOAT, [1, input_size, input_size, 3])],
        [helper.make_tensor_value_info(output_port, TensorProto.FLOAT, [1, num_classes])],
        initializer=[numpy_helper.from_array(weights.astype(np.float32), name="weights")],
    )
    return helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)], ir_version=8)


def encode_jpeg(color: tuple[int, ...] | int = (255, 0, 0), size: tuple[int, int] = (64, 48), mode: str = "RGB") -> bytes:
    """Encode a solid-colour image as JPEG."""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="JPEG", quality=95)
    return buf.getvalue()


@pytest.fixture()
def make_jpeg() -> Callable[..., bytes]:
    return encode_jpeg


@pytest.fixture()
def color_classifier() -> onnx.ModelProto:
    return build_color_classifier()


@pytest.fixture()
def model_dir(tmp_path: Path, color_classifier: onnx.ModelProto) -> Path:
    """A model directory holding the colour classifier and its labels."""
    onnx.save(color_classifier, str(tmp_path / "color.onnx"))
    (tmp_path / "labels.txt").write_text("\n".join(COLOR_LABELS) + "\n")
    return tmp_path


def _make_settings(model_dir: Path, **overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "model_dir": str(model_dir),
        "graph_file": "color.onnx",
        "labels_file": "labels.txt",
        "intra_op_threads": 1,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def settings_factory(model_dir: Path) -> Callable[..., Settings]:
    """Build settings bound to the fixture model directory, with overrides."""

    def factory(**overrides: object) -> Settings:
        return _make_settings(model_dir, **overrides)

    return factory


@pytest.fixture()
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    return settings_factory()


@pytest.fixture()
def color_labels() -> list[str]:
    return list(COLOR_LABELS)


@pytest.fixture()
def build_classifier() -> Callable[..., onnx.ModelProto]:
    return build_color_classifier
