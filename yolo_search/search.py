from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

import numpy as np

from .labels import LabelSet
from .types import Detection

PathLike = Union[str, Path]

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff"}
VIDEO_SUFFIXES = {".mp4", ".mov", ".mkv", ".avi", ".webm", ".3gp", ".m4v"}

# Minimum detection score for a media item to count as a match.
DEFAULT_MATCH_THRESHOLD = 0.1


class MediaReadError(RuntimeError):
    """Raised when an image or video cannot be decoded."""


def is_image(path: PathLike) -> bool:
    return Path(path).suffix.lower() in IMAGE_SUFFIXES


def is_video(path: PathLike) -> bool:
    return Path(path).suffix.lower() in VIDEO_SUFFIXES


def read_media_frame(path: PathLike) -> np.ndarray:
    """
    Decode an image, or the first frame of a video, as a BGR array.
    """
    import cv2

    p = Path(path)
    if is_video(p):
        cap = cv2.VideoCapture(str(p))
        try:
            if not cap.isOpened():
                raise MediaReadError(f"Could not open video: {p}")
            ok, frame = cap.read()
        finally:
            cap.release()
        if not ok or frame is None:
            raise MediaReadError(f"Could not read a frame from video: {p}")
        return frame

    img = cv2.imread(str(p), cv2.IMREAD_COLOR)
    if img is None:
        raise MediaReadError(f"Could not read image at path: {p}")
    return img


def matching_detections(
    detections: Iterable[Detection],
    class_index: int,
    min_score: float = DEFAULT_MATCH_THRESHOLD,
) -> List[Detection]:
    """Detections of `class_index` whose score is strictly above `min_score`."""
    return [d for d in detections if d.class_index == class_index and d.score > min_score]


class MediaSearcher:
    """
    Finds gallery media containing an object of a queried class.

    `detector` is any callable mapping a BGR image to detections, normally a
    `DetectionPipeline`.
    """

    def __init__(
        self,
        detector: Callable[[np.ndarray], List[Detection]],
        labels: LabelSet,
        *,
        min_score: float = DEFAULT_MATCH_THRESHOLD,
        reader: Callable[[PathLike], np.ndarray] = read_media_frame,
    ):
        self.detector = detector
        self.labels = labels
        self.min_score = min_score
        self.reader = reader

    def resolve_query(self, query: str) -> Optional[int]:
        query = query.strip()
        if not query:
            return None
        return self.labels.index_of(query)

    def matches(self, path: PathLike, class_index: int) -> bool:
        frame = self.reader(path)
        detections = self.detector(frame)
        return bool(matching_detections(detections, class_index, self.min_score))

    def search(self, paths: Sequence[PathLike], query: str) -> List[Path]:
        """
        Return the paths whose media contain `query`, in input order.

        An empty or unknown query yields no results. Files that are neither
        images nor videos are skipped; files that fail to decode are logged
        and skipped.
        """

        class_index = self.resolve_query(query)
        if class_index is None:
            logger.info("Query %r does not match any class label", query)
            return []

        found: List[Path] = []
        for raw in paths:
            path = Path(raw)
            if not (is_image(path) or is_video(path)):
                logger.debug("Skipping non-media file %s", path)
                continue
            try:
                hit = self.matches(path, class_index)
            except MediaReadError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            if hit:
                found.append(path)

        logger.info("Query %r (class %d) matched %d of %d files", query, class_index, len(found), len(paths))
        return found
