"""Graph execution on ONNX Runtime.

Each run opens a session bound to one graph, executes a single forward pass
and releases the session. Graphs are immutable and may outlive any number of
sessions; sessions never outlive their run.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import onnx
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import (
    EPFail,
    ExecutionMode,
    Fail,
    InvalidArgument,
    InvalidGraph,
    InvalidProtobuf,
    NoSuchFile,
    RuntimeException,
)
from onnxruntime.capi.onnxruntime_pybind11_state import (
    NotImplemented as OrtNotImplemented,
)

from imgrecognition.errors import ExecutionError, SessionError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    import numpy as np
    from numpy.typing import NDArray

    from imgrecognition.config import Settings

logger = logging.getLogger(__name__)

_ORT_ERRORS = (
    EPFail,
    Fail,
    InvalidArgument,
    InvalidGraph,
    InvalidProtobuf,
    NoSuchFile,
    OrtNotImplemented,
    RuntimeException,
)

PROVIDERS: list[str] = ["CPUExecutionProvider"]


class InferenceEngine:
    """Runs ONNX graphs against bound input tensors."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._session_options = self._build_session_options()

    @contextmanager
    def open_session(self, graph: onnx.ModelProto | bytes) -> Iterator[InferenceSession]:
        """Create a session for ``graph`` and release it when the block exits.

        Raises:
            SessionError: If the runtime rejects the graph.
        """
        payload = graph.SerializeToString() if isinstance(graph, onnx.ModelProto) else graph
        try:
            session = InferenceSession(payload, sess_options=self._session_options, providers=PROVIDERS)
        except _ORT_ERRORS as exc:
            raise SessionError(f"cannot load graph into a session: {exc}") from exc

        try:
            yield session
        finally:
            del session
            logger.debug("Session released")

    def run(
        self,
        graph: onnx.ModelProto | bytes,
        feeds: Mapping[str, NDArray[np.generic]],
        outputs: Sequence[str],
    ) -> list[NDArray[np.generic]]:
        """Execute one forward pass and return the requested output tensors.

        Raises:
            SessionError: If the graph cannot be loaded.
            ExecutionError: If a port does not exist on the graph or the
                runtime fails (shape or type mismatch).
        """
        with self.open_session(graph) as session:
            self._check_ports(session, feeds, outputs)
            try:
                results = session.run(list(outputs), dict(feeds))
            except (*_ORT_ERRORS, ValueError) as exc:
                raise ExecutionError(f"graph execution failed: {exc}") from exc
        return list(results)

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _check_ports(session: InferenceSession, feeds: Mapping[str, object], outputs: Sequence[str]) -> None:
        input_names = {node.name for node in session.get_inputs()}
        output_names = {node.name for node in session.get_outputs()}

        unknown_inputs = sorted(set(feeds) - input_names)
        if unknown_inputs:
            raise ExecutionError(f"graph has no input port(s) {unknown_inputs}; available: {sorted(input_names)}")
        missing_inputs = sorted(input_names - set(feeds))
        if missing_inputs:
            raise ExecutionError(f"input port(s) {missing_inputs} are not bound")
        unknown_outputs = sorted(set(outputs) - output_names)
        if unknown_outputs:
            raise ExecutionError(f"graph has no output port(s) {unknown_outputs}; available: {sorted(output_names)}")

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.log_severity_level = self._settings.ort_log_severity
        return opts
