from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned pixel rectangle. `left <= right` and `top <= bottom` are
    expected but not enforced; degenerate rectangles report a non-positive area.
    """

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class Detection:
    """
    A candidate or final detection in view pixel space.

    `score` is the row's objectness value, not the class probability.
    """

    class_index: int
    score: float
    rect: Rect

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.rect.as_xyxy()
