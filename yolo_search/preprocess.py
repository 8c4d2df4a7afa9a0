from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    input_size: Tuple[int, int]


def prepare_input(image_bgr: np.ndarray, input_size: Tuple[int, int] = (640, 640)) -> PreprocessResult:
    """
    Stretch an OpenCV BGR image to the model input size and build an NCHW blob.

    No letterboxing and no mean/std normalisation: pixels are only scaled to
    [0, 1], which is what the YOLOv5 mobile export expects.

    Returns:
        blob: float32 array shaped (1, 3, input_h, input_w), RGB order
        orig_size: (width, height) of the source image
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for prepare_input(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    in_w, in_h = input_size
    h, w = image_bgr.shape[:2]

    img = image_bgr
    if (w, h) != (in_w, in_h):
        img = cv2.resize(image_bgr, (in_w, in_h), interpolation=cv2.INTER_LINEAR)

    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

    return PreprocessResult(blob=blob, orig_size=(w, h), input_size=(in_w, in_h))
