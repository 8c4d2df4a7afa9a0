"""
YOLOv5 post-processing and object-class media search.

Decoding and suppression only need NumPy; image loading uses OpenCV and the
inference backends (ONNX Runtime, TorchScript) are optional.
"""

from .types import Detection, Rect
from .geometry import iou, standard_iou
from .nms import NMSConfig, nms, suppress
from .postprocess import OutputShapeError, ScaleTransform, YoloPostConfig, YoloPostprocessor, decode
from .labels import LabelSet, load_class_names
from .preprocess import prepare_input
from .runtime import DetectionPipeline, backend_for, load_pipeline
from .search import MediaReadError, MediaSearcher, matching_detections, read_media_frame

__all__ = [
    "Detection",
    "Rect",
    "iou",
    "standard_iou",
    "NMSConfig",
    "nms",
    "suppress",
    "OutputShapeError",
    "ScaleTransform",
    "YoloPostConfig",
    "YoloPostprocessor",
    "decode",
    "LabelSet",
    "load_class_names",
    "prepare_input",
    "DetectionPipeline",
    "load_pipeline",
    "backend_for",
    "MediaReadError",
    "MediaSearcher",
    "matching_detections",
    "read_media_frame",
]
