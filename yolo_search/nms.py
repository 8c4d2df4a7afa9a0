from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

import numpy as np

from .geometry import iou, standard_iou
from .types import Detection, Rect

logger = logging.getLogger(__name__)

OverlapFn = Callable[[Rect, Rect], float]

OVERLAP_FUNCTIONS: Dict[str, OverlapFn] = {
    "legacy": iou,
    "standard": standard_iou,
}


@dataclass(frozen=True)
class NMSConfig:
    overlap_threshold: float = 0.30
    limit: int = 15
    # "legacy" reproduces the gallery app's overlap formula, "standard" is true IoU.
    overlap: str = "legacy"

    def __post_init__(self) -> None:
        if self.overlap not in OVERLAP_FUNCTIONS:
            raise ValueError(f"overlap must be one of {sorted(OVERLAP_FUNCTIONS)}, got {self.overlap!r}")


def suppress(
    candidates: Sequence[Detection],
    limit: int,
    overlap_threshold: float,
    *,
    overlap_fn: OverlapFn = iou,
) -> List[Detection]:
    """
    Greedy non-max suppression.

    Candidates are visited by descending score (stable for equal scores). Each
    surviving candidate is selected and deactivates every later candidate whose
    overlap with it exceeds `overlap_threshold`. Stops once `limit` boxes are
    selected or nothing is left active. The input sequence is not modified.
    """

    if limit <= 0 or not candidates:
        return []

    boxes = sorted(candidates, key=lambda d: d.score, reverse=True)
    threshold = float(np.float32(overlap_threshold))

    selected: List[Detection] = []
    active = [True] * len(boxes)
    num_active = len(boxes)

    for i, box_a in enumerate(boxes):
        if not active[i]:
            continue
        active[i] = False
        num_active -= 1

        selected.append(box_a)
        if len(selected) >= limit or num_active <= 0:
            break

        for j in range(i + 1, len(boxes)):
            if not active[j]:
                continue
            if overlap_fn(box_a.rect, boxes[j].rect) > threshold:
                active[j] = False
                num_active -= 1
                if num_active <= 0:
                    break

        if num_active <= 0:
            break

    logger.debug("NMS kept %d of %d candidates", len(selected), len(boxes))
    return selected


def nms(candidates: Sequence[Detection], cfg: NMSConfig = NMSConfig()) -> List[Detection]:
    return suppress(
        candidates,
        cfg.limit,
        cfg.overlap_threshold,
        overlap_fn=OVERLAP_FUNCTIONS[cfg.overlap],
    )
