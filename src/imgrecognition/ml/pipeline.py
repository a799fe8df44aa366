"""Classification pipeline: normalize -> classify -> rank, for one image."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import numpy as np

from imgrecognition.errors import ExecutionError, RecognitionError
from imgrecognition.ml.engine import InferenceEngine
from imgrecognition.ml.preprocessing import PreprocessConfig, PreprocessGraphBuilder, decode_image
from imgrecognition.ml.ranking import top_k

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray

    from imgrecognition.config import Settings
    from imgrecognition.ml.model_store import ClassificationModel
    from imgrecognition.ml.ranking import Label

logger = logging.getLogger(__name__)


@contextmanager
def _stage(name: str) -> Iterator[None]:
    try:
        yield
    except RecognitionError as exc:
        if exc.stage is None:
            exc.stage = name
        logger.error("Stage %s failed: %s", exc.stage, exc)
        raise


class ClassificationPipeline:
    """Runs a single image through preprocessing, the classifier and ranking.

    The model is shared and never mutated. The preprocessing graph and every
    session are built per call, so concurrent calls need no locking.
    """

    def __init__(self, model: ClassificationModel, settings: Settings) -> None:
        self.model = model
        self.top_k = settings.top_k
        self.max_image_pixels = settings.max_image_pixels
        self.config = PreprocessConfig(
            input_size=settings.input_size,
            mean=settings.mean,
            channels=settings.channels,
        )
        self._builder = PreprocessGraphBuilder(self.config)
        self._engine = InferenceEngine(settings)

    def classify(self, image_bytes: bytes) -> list[Label]:
        """Classify encoded JPEG bytes and return the top-K labels.

        Raises:
            RecognitionError: From whichever stage failed, with ``stage`` set.
        """
        with _stage("build_preprocess"):
            prep = self._builder.build()

        with _stage("normalize"):
            pixels = decode_image(image_bytes, self.config.channels, self.max_image_pixels)
            (normalized,) = self._engine.run(prep.graph, {prep.input: pixels}, [prep.output])

        with _stage("classify"):
            probabilities = self._infer(normalized)

        with _stage("rank"):
            labels = top_k(self.model.labels, probabilities, self.top_k)

        logger.info("Top label %s (%.4f)", labels[0].name, labels[0].probability)
        return labels

    def _infer(self, normalized: NDArray[np.generic]) -> NDArray[np.generic]:
        (output,) = self._engine.run(
            self.model.graph,
            {self.model.input_port: normalized},
            [self.model.output_port],
        )
        if output.ndim != 2 or output.shape[0] != 1:
            raise ExecutionError(f"expected classifier output shaped [1, classes], got {list(output.shape)}")
        if not np.isfinite(output).all():
            raise ExecutionError("classifier output contains non-finite probabilities")
        return output[0]
