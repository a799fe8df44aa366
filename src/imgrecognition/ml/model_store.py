"""Model store: locate, download and load the pretrained classifier.

The classification graph and its label vocabulary are read once at startup
from ``model_dir``. Missing files are fetched from a HuggingFace repository
when ``model_repo_id`` is configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import onnx
from google.protobuf.message import DecodeError
from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError, HFValidationError, LocalEntryNotFoundError

from imgrecognition.errors import ModelLoadError
from imgrecognition.ml.labels import LabelTable

if TYPE_CHECKING:
    from imgrecognition.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationModel:
    """A loaded classifier: serialized graph, ports and vocabulary.

    Shared read-only across requests; sessions are created per run.
    """

    name: str
    graph: bytes
    labels: LabelTable
    input_port: str
    output_port: str


class ModelStore:
    """Resolves model files on disk (or the Hub) and loads them."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_dir = Path(settings.model_dir)

    # -- Public API ---------------------------------------------------------

    def ensure_downloaded(self, filename: str) -> Path:
        """Return the local path of ``filename``, downloading it if needed.

        Raises:
            ModelLoadError: If the file is absent and cannot be downloaded.
        """
        path = self._model_dir / filename
        if path.exists():
            return path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ModelLoadError(f"model file not found: {path}")

        try:
            self._model_dir.mkdir(parents=True, exist_ok=True)
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=filename,
                    local_dir=str(self._model_dir),
                )
            )
        except (HfHubHTTPError, HFValidationError, LocalEntryNotFoundError, OSError) as exc:
            raise ModelLoadError(f"cannot download {filename} from {repo_id}: {exc}") from exc

        logger.info("Downloaded %s to %s", filename, downloaded)
        return downloaded

    def load(self) -> ClassificationModel:
        """Load the classification graph and label table.

        Raises:
            ModelLoadError: If either file is missing or corrupt, or the graph
                lacks the configured input/output ports.
        """
        settings = self._settings
        graph_path = self.ensure_downloaded(settings.graph_file)
        labels_path = self.ensure_downloaded(settings.labels_file)

        try:
            graph = graph_path.read_bytes()
        except OSError as exc:
            raise ModelLoadError(f"cannot read graph file {graph_path}: {exc}") from exc
        self._check_ports(graph, graph_path)

        labels = LabelTable.from_file(labels_path)
        model = ClassificationModel(
            name=graph_path.stem,
            graph=graph,
            labels=labels,
            input_port=settings.input_port,
            output_port=settings.output_port,
        )
        logger.info("Loaded model %s (%d classes)", model.name, len(labels))
        return model

    # -- Internal -----------------------------------------------------------

    def _check_ports(self, graph: bytes, path: Path) -> None:
        try:
            proto = onnx.load_model_from_string(graph)
        except DecodeError as exc:
            raise ModelLoadError(f"{path} is not a valid ONNX graph: {exc}") from exc

        inputs = {node.name for node in proto.graph.input}
        outputs = {node.name for node in proto.graph.output}
        if self._settings.input_port not in inputs:
            raise ModelLoadError(f"{path} has no input port '{self._settings.input_port}'")
        if self._settings.output_port not in outputs:
            raise ModelLoadError(f"{path} has no output port '{self._settings.output_port}'")
