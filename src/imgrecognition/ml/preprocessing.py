"""Image preprocessing graph.

Turns encoded JPEG bytes into the float tensor the classifier expects:

    bytes -> decode (Pillow, fixed channel count) -> uint8 [H, W, C]
          -> Cast(float32) -> Unsqueeze(0) -> Resize(bilinear) -> Sub(mean)
          -> float32 [1, size, size, C]

Everything after decoding is an ONNX graph executed by the inference engine.
Resize uses the ``asymmetric`` coordinate transform, which is the classic
non-aligned-corner bilinear resize.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

import numpy as np
import onnx
from onnx import TensorProto, helper
from PIL import Image, UnidentifiedImageError

from imgrecognition.errors import GraphConstructionError, ImageDecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

ONNX_OPSET: int = 13
ONNX_IR_VERSION: int = 8

INPUT_PORT: str = "image"
OUTPUT_PORT: str = "normalized"

_PIL_MODES: dict[int, str] = {1: "L", 3: "RGB"}


@dataclass(frozen=True)
class PreprocessConfig:
    """Classifier-specific preprocessing constants.

    These must match the bound classification model; the defaults fit the
    Inception graph (224x224 input, mean 117, RGB).
    """

    input_size: int = 224
    mean: float = 117.0
    channels: int = 3


class PreprocessGraph(NamedTuple):
    """A finalized preprocessing graph and its port names."""

    graph: onnx.ModelProto
    input: str
    output: str


class PreprocessGraphBuilder:
    """Builds a fresh preprocessing graph on every call to :meth:`build`."""

    def __init__(self, config: PreprocessConfig | None = None) -> None:
        self.config = config or PreprocessConfig()

    def build(self) -> PreprocessGraph:
        """Construct and validate the normalization graph.

        Raises:
            GraphConstructionError: If the configuration is unusable or the
                graph fails ONNX validation.
        """
        size = self.config.input_size
        channels = self.config.channels
        if size < 1:
            raise GraphConstructionError(f"input_size must be positive, got {size}")
        if channels not in _PIL_MODES:
            raise GraphConstructionError(f"channels must be 1 or 3, got {channels}")

        initializers = [
            helper.make_tensor("batch_axis", TensorProto.INT64, [1], [0]),
            helper.make_tensor("size", TensorProto.INT64, [4], [1, channels, size, size]),
            helper.make_tensor("mean", TensorProto.FLOAT, [], [self.config.mean]),
        ]

        nodes = [
            helper.make_node("Cast", [INPUT_PORT], ["pixels_float"], name="cast", to=TensorProto.FLOAT),
            helper.make_node("Unsqueeze", ["pixels_float", "batch_axis"], ["batched"], name="make_batch"),
            helper.make_node("Transpose", ["batched"], ["batched_nchw"], name="to_nchw", perm=[0, 3, 1, 2]),
            helper.make_node(
                "Resize",
                ["batched_nchw", "", "", "size"],
                ["resized_nchw"],
                name="resize",
                mode="linear",
                coordinate_transformation_mode="asymmetric",
            ),
            helper.make_node("Transpose", ["resized_nchw"], ["resized"], name="to_nhwc", perm=[0, 2, 3, 1]),
            helper.make_node("Sub", ["resized", "mean"], [OUTPUT_PORT], name="subtract_mean"),
        ]

        graph = helper.make_graph(
            nodes,
            "preprocess",
            [helper.make_tensor_value_info(INPUT_PORT, TensorProto.UINT8, ["height", "width", channels])],
            [helper.make_tensor_value_info(OUTPUT_PORT, TensorProto.FLOAT, [1, size, size, channels])],
            initializer=initializers,
        )
        model = helper.make_model(
            graph,
            opset_imports=[helper.make_opsetid("", ONNX_OPSET)],
            ir_version=ONNX_IR_VERSION,
            producer_name="imgrecognition",
        )

        try:
            onnx.checker.check_model(model, full_check=True)
        except (onnx.checker.ValidationError, onnx.shape_inference.InferenceError) as exc:
            raise GraphConstructionError(f"preprocessing graph is invalid: {exc}") from exc

        logger.debug("Built preprocessing graph (size=%d, mean=%s, channels=%d)", size, self.config.mean, channels)
        return PreprocessGraph(graph=model, input=INPUT_PORT, output=OUTPUT_PORT)


def decode_image(image_bytes: bytes, channels: int = 3, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Decode JPEG bytes into an HxWxC uint8 array.

    Grayscale, CMYK, palette and alpha images are converted so the result
    always has ``channels`` channels.

    Raises:
        ImageDecodeError: If the bytes are not a decodable JPEG or the image
            exceeds ``max_pixels``.
    """
    mode = _PIL_MODES.get(channels)
    if mode is None:
        raise ImageDecodeError(f"channels must be 1 or 3, got {channels}")

    try:
        with Image.open(io.BytesIO(image_bytes), formats=["JPEG"]) as img:
            width, height = img.size
            if max_pixels is not None and width * height > max_pixels:
                raise ImageDecodeError(f"image is {width}x{height}, above the {max_pixels} pixel limit")
            pixels = np.asarray(img.convert(mode), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageDecodeError(f"cannot decode image as JPEG: {exc}") from exc

    if channels == 1:
        pixels = pixels[:, :, np.newaxis]
    return np.ascontiguousarray(pixels)
