from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)

# ORT-format models (converted for mobile/minimal builds) load the same way.
ORT_SUFFIXES = {".onnx", ".ort"}


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    - providers: execution providers in priority order; None lets ORT choose
    - output_name: predictions output; defaults to the first graph output
    - expected_shape: (rows, columns) the decoder will reshape to; checked per call
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    expected_shape: Optional[Tuple[int, int]] = None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for a single-image YOLOv5 export.

    `infer` takes a (1, 3, H, W) float32 blob and returns the predictions as a
    float32 (1, rows, columns) array, the layout `decode` consumes.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`."
            ) from e

        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(str(model_path))
        if model_path.suffix.lower() not in ORT_SUFFIXES:
            logger.warning("Unexpected ONNX model extension %s", model_path.suffix)

        providers = list(cfg.providers) if cfg.providers is not None else None
        session = ort.InferenceSession(str(model_path), sess_options=ort.SessionOptions(), providers=providers)
        self._bind(session, cfg, model_path)

    @classmethod
    def from_session(
        cls, session: Any, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()
    ) -> "OnnxRuntimeBackend":
        """Wrap an already created `InferenceSession` (or anything with its interface)."""
        backend = cls.__new__(cls)
        backend._bind(session, cfg, None)
        return backend

    def _bind(self, session: Any, cfg: OnnxRuntimeBackendConfig, model_path: Optional[Path]) -> None:
        self.session = session
        self.model_path = model_path
        self.expected_shape = cfg.expected_shape
        self.input_name = cfg.input_name or session.get_inputs()[0].name
        self.output_name = cfg.output_name or session.get_outputs()[0].name
        logger.info(
            "ONNX session ready (model=%s, input=%s, output=%s, providers=%s)",
            model_path,
            self.input_name,
            self.output_name,
            tuple(session.get_providers()),
        )

    def infer(self, blob: np.ndarray) -> np.ndarray:
        (preds,) = self.session.run([self.output_name], {self.input_name: blob})
        preds = np.asarray(preds, dtype=np.float32)

        if preds.ndim == 2:
            preds = preds[None, ...]
        if preds.ndim != 3 or preds.shape[0] != 1:
            raise ValueError(f"Expected predictions shaped (1, rows, columns), got {preds.shape}")
        if self.expected_shape is not None and tuple(preds.shape[1:]) != tuple(self.expected_shape):
            raise ValueError(
                f"Model output {tuple(preds.shape[1:])} does not match expected rows x columns {self.expected_shape}"
            )
        return preds
