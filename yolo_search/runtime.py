from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .postprocess import ScaleTransform, YoloPostConfig, YoloPostprocessor
from .preprocess import PreprocessResult, prepare_input
from .types import Detection


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


BACKEND_BY_SUFFIX = {
    ".onnx": "onnxruntime",
    ".ort": "onnxruntime",
    ".pt": "torchscript",
    ".ptl": "torchscript",
    ".torchscript": "torchscript",
}


def backend_for(model_path: PathLike) -> str:
    suffix = Path(model_path).suffix.lower()
    try:
        return BACKEND_BY_SUFFIX[suffix]
    except KeyError:
        raise ValueError(
            f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
        ) from None


class DetectionPipeline:
    """
    Plug-and-play pipeline: stretch resize -> inference -> decode + NMS.

    Takes BGR images (OpenCV-style) and returns `Detection`s in image pixel
    coordinates. Calls are serialised since inference sessions are not assumed
    to be reentrant.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        input_size: Tuple[int, int] = (640, 640),
        post_cfg: YoloPostConfig = YoloPostConfig(),
        class_names: Optional[Sequence[str]] = None,
    ):
        self._infer_fn = infer_fn
        self._lock = threading.Lock()
        self.backend = backend
        self.backend_name = backend_name
        self.input_size = input_size
        self.post = YoloPostprocessor(post_cfg, class_names=class_names)

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        return prepare_input(image_bgr, self.input_size)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        prep = self.preprocess(image_bgr)
        with self._lock:
            preds = self._infer_fn(prep.blob)
        transform = ScaleTransform.for_image(prep.orig_size, prep.input_size)
        detections = self.post.process(preds, transform)
        logger.debug("Image %dx%d -> %d detections", prep.orig_size[0], prep.orig_size[1], len(detections))
        return detections


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = None,
    input_size: Tuple[int, int] = (640, 640),
    post_cfg: YoloPostConfig = YoloPostConfig(),
    class_names: Optional[Sequence[str]] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    torch_device: str = "cpu",
    torch_output_index: int = 0,
) -> DetectionPipeline:
    """
    Create a pipeline for a model on disk.

        pipe = load_pipeline("models/yolov5n.onnx")

    Args:
        model_path: path to the exported model
        backend: "onnxruntime" or "torchscript"; None infers it from the extension
        root: base directory for a relative model_path (default: current directory)
    """

    resolved = Path(model_path)
    if root is not None and not resolved.is_absolute():
        resolved = Path(root) / resolved
    chosen = (backend or backend_for(resolved)).lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_name=onnx_output_name,
                expected_shape=(post_cfg.num_rows, post_cfg.num_columns),
            ),
        )
        return DetectionPipeline(
            ort_backend.infer,
            backend=ort_backend,
            backend_name="onnxruntime",
            input_size=input_size,
            post_cfg=post_cfg,
            class_names=class_names,
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, output_index=torch_output_index),
        )
        return DetectionPipeline(
            ts_backend.infer,
            backend=ts_backend,
            backend_name="torchscript",
            input_size=input_size,
            post_cfg=post_cfg,
            class_names=class_names,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
