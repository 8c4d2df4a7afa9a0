from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .nms import OVERLAP_FUNCTIONS, suppress
from .types import Detection, Rect

logger = logging.getLogger(__name__)

# Box params (cx, cy, w, h) followed by objectness, then per-class scores.
BOX_COLUMNS = 4
SCORE_COLUMN = 4
CLASS_OFFSET = 5

ArrayLike = Union[np.ndarray, Sequence[float]]


class OutputShapeError(ValueError):
    """Raised when a raw output buffer does not match the configured rows x columns."""


@dataclass(frozen=True)
class ScaleTransform:
    """
    Maps model-space box edges to view pixel space:

        final_x = offset_x + view_scale_x * (img_scale_x * edge_x)
        final_y = offset_y + view_scale_y * (img_scale_y * edge_y)
    """

    img_scale_x: float
    img_scale_y: float
    view_scale_x: float = 1.0
    view_scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @classmethod
    def for_image(
        cls,
        image_size: Tuple[int, int],
        input_size: Tuple[int, int] = (640, 640),
        view_size: Optional[Tuple[int, int]] = None,
    ) -> "ScaleTransform":
        """
        Build the transform for an image of `image_size` (width, height) that was
        stretched to `input_size` for inference, and is displayed in a view of
        `view_size` (defaults to the image itself, i.e. identity view transform).

        The view scale follows the longer image side and the image is centred.
        """

        img_w, img_h = (float(v) for v in image_size)
        in_w, in_h = (float(v) for v in input_size)
        if img_w <= 0 or img_h <= 0:
            raise ValueError(f"image_size must be positive, got {image_size}")
        if in_w <= 0 or in_h <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")

        view_w, view_h = (img_w, img_h) if view_size is None else (float(v) for v in view_size)

        f32 = np.float32
        view_scale_x = f32(view_w) / f32(img_w) if img_w > img_h else f32(view_h) / f32(img_h)
        view_scale_y = f32(view_h) / f32(img_h) if img_h > img_w else f32(view_w) / f32(img_w)
        offset_x = (f32(view_w) - view_scale_x * f32(img_w)) / f32(2)
        offset_y = (f32(view_h) - view_scale_y * f32(img_h)) / f32(2)

        return cls(
            img_scale_x=float(f32(img_w) / f32(in_w)),
            img_scale_y=float(f32(img_h) / f32(in_h)),
            view_scale_x=float(view_scale_x),
            view_scale_y=float(view_scale_y),
            offset_x=float(offset_x),
            offset_y=float(offset_y),
        )


@dataclass(frozen=True)
class YoloPostConfig:
    """
    Post-processing settings for a YOLOv5 export with a (rows, 5 + classes) output.
    Defaults match the 640x640 COCO model.
    """

    num_rows: int = 25200
    num_classes: int = 80
    detection_threshold: float = 0.30
    nms_threshold: float = 0.30
    nms_limit: int = 15
    overlap: str = "legacy"

    def __post_init__(self) -> None:
        if self.num_rows <= 0:
            raise ValueError("num_rows must be > 0")
        if self.num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        if self.nms_limit < 0:
            raise ValueError("nms_limit must be >= 0")
        if self.overlap not in OVERLAP_FUNCTIONS:
            raise ValueError(f"overlap must be one of {sorted(OVERLAP_FUNCTIONS)}, got {self.overlap!r}")

    @property
    def num_columns(self) -> int:
        return self.num_classes + CLASS_OFFSET


def _as_rows(outputs: ArrayLike, num_rows: int, num_columns: int) -> np.ndarray:
    p = np.asarray(outputs, dtype=np.float32)
    expected = num_rows * num_columns
    if p.size != expected:
        raise OutputShapeError(
            f"Expected {num_rows}x{num_columns}={expected} output values, got {p.size} (shape {p.shape})."
        )
    return p.reshape(num_rows, num_columns)


def _best_class(class_scores: np.ndarray) -> np.ndarray:
    """
    Running-max scan over class columns, vectorised: a column wins only by
    strictly exceeding the current best, starting from column 0. Ties keep the
    lowest index and NaN never wins; a NaN first column pins the row to class 0.
    """

    nan = np.isnan(class_scores)
    ids = np.argmax(np.where(nan, -np.inf, class_scores), axis=1)
    ids[nan[:, 0]] = 0
    return ids


def decode(
    outputs: ArrayLike,
    transform: ScaleTransform,
    *,
    detection_threshold: float = 0.30,
    num_classes: int = 80,
    num_rows: int = 25200,
) -> List[Detection]:
    """
    Decode a raw YOLOv5 output buffer into candidate detections.

    A row becomes a candidate only when its objectness is strictly greater than
    `detection_threshold`. The class is the first column holding the maximum
    class score. Edges are remapped with `transform` and truncated toward zero.
    Candidates come back in row order; nothing is sorted or suppressed here.

    Arg:
        outputs: flat buffer of num_rows * (num_classes + 5) floats, or the same
            values shaped (rows, cols) / (1, rows, cols)
        transform: model space -> view pixel space mapping
    """

    rows = _as_rows(outputs, num_rows, num_classes + CLASS_OFFSET)

    f32 = np.float32
    keep = np.nonzero(rows[:, SCORE_COLUMN] > f32(detection_threshold))[0]
    if keep.size == 0:
        logger.debug("No rows above detection threshold %.3f", detection_threshold)
        return []

    kept = rows[keep]
    cx, cy, w, h = (kept[:, k] for k in range(BOX_COLUMNS))
    half = f32(2)

    left = f32(transform.img_scale_x) * (cx - w / half)
    top = f32(transform.img_scale_y) * (cy - h / half)
    right = f32(transform.img_scale_x) * (cx + w / half)
    bottom = f32(transform.img_scale_y) * (cy + h / half)

    sx, sy = f32(transform.view_scale_x), f32(transform.view_scale_y)
    ox, oy = f32(transform.offset_x), f32(transform.offset_y)
    # astype(int) truncates toward zero.
    edges = np.stack(
        [ox + sx * left, oy + sy * top, ox + sx * right, oy + sy * bottom],
        axis=1,
    ).astype(np.int64)

    class_ids = _best_class(kept[:, CLASS_OFFSET:])
    scores = kept[:, SCORE_COLUMN]

    candidates = [
        Detection(
            class_index=int(cls_id),
            score=float(score),
            rect=Rect(int(x1), int(y1), int(x2), int(y2)),
        )
        for (x1, y1, x2, y2), score, cls_id in zip(edges, scores, class_ids)
    ]
    logger.debug("Decoded %d candidates from %d rows", len(candidates), num_rows)
    return candidates


class YoloPostprocessor:
    """
    Decoder + suppressor for one model. Holds the model's configuration (and
    optionally its label list) so nothing depends on process-global state.
    """

    def __init__(self, cfg: YoloPostConfig = YoloPostConfig(), class_names: Optional[Sequence[str]] = None):
        if class_names is not None and len(class_names) != cfg.num_classes:
            raise ValueError(
                f"class_names has {len(class_names)} entries but the model has {cfg.num_classes} classes"
            )
        self.cfg = cfg
        self.class_names = list(class_names) if class_names is not None else None

    def decode(self, outputs: ArrayLike, transform: ScaleTransform) -> List[Detection]:
        return decode(
            outputs,
            transform,
            detection_threshold=self.cfg.detection_threshold,
            num_classes=self.cfg.num_classes,
            num_rows=self.cfg.num_rows,
        )

    def process(self, outputs: ArrayLike, transform: ScaleTransform) -> List[Detection]:
        """Decode `outputs` and run NMS, returning at most `nms_limit` detections."""

        candidates = self.decode(outputs, transform)
        return suppress(
            candidates,
            self.cfg.nms_limit,
            self.cfg.nms_threshold,
            overlap_fn=OVERLAP_FUNCTIONS[self.cfg.overlap],
        )

    def label_for(self, detection: Detection) -> Optional[str]:
        if self.class_names is None:
            return None
        return self.class_names[detection.class_index]
