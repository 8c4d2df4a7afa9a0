from __future__ import annotations

import numpy as np

from .types import Rect


def iou(a: Rect, b: Rect) -> float:
    """
    Overlap ratio used by the gallery detector's NMS.

    Note this is not textbook IoU: the "intersection" takes the max of both
    boxes for all four edges. Kept as-is so suppression decisions match the
    reference app; see `standard_iou` for the geometric version.

    Computed in float32 like the reference.
    """

    area_a = (a.right - a.left) * (a.bottom - a.top)
    if area_a <= 0:
        return 0.0

    area_b = (b.right - b.left) * (b.bottom - b.top)
    if area_b <= 0:
        return 0.0

    min_x = np.float32(max(a.left, b.left))
    min_y = np.float32(max(a.top, b.top))
    max_x = np.float32(max(a.right, b.right))
    max_y = np.float32(max(a.bottom, b.bottom))
    inter = max(max_y - min_y, np.float32(0.0)) * max(max_x - min_x, np.float32(0.0))

    denom = np.float32(area_a + area_b) - inter
    if denom == 0:
        return 0.0
    return float(inter / denom)


def standard_iou(a: Rect, b: Rect) -> float:
    """Geometric intersection-over-union of two rectangles."""

    area_a = a.area
    area_b = b.area
    if area_a <= 0 or area_b <= 0:
        return 0.0

    inter_w = max(0, min(a.right, b.right) - max(a.left, b.left))
    inter_h = max(0, min(a.bottom, b.bottom) - max(a.top, b.top))
    inter = inter_w * inter_h

    denom = area_a + area_b - inter
    if denom <= 0:
        return 0.0
    return inter / denom
