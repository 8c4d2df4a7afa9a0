from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

PathLike = Union[str, Path]


def _parse_names_block(lines: Sequence[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names or ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        if not left.isdigit():
            continue
        names[int(left)] = right.strip().strip("'").strip('"')
    return names


def load_class_names(path: PathLike) -> List[str]:
    """
    Load the model's class labels.

    Two formats are accepted:

    - `classes.txt`: one label per line, line N is class N
    - metadata YAML with a `names:` block of `id: label` entries

        names:
          0: person
          1: bicycle
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Class names file not found: {p}")

    lines = p.read_text(encoding="utf-8").splitlines()
    if any(line.strip() == "names:" for line in lines):
        mapping = _parse_names_block(lines)
        if not mapping:
            raise ValueError(f"No class names found in {p}")
        expected = list(range(len(mapping)))
        if sorted(mapping) != expected:
            raise ValueError(f"Class ids in {p} must be contiguous from 0")
        return [mapping[i] for i in expected]

    # Trailing blank lines are ignored, interior ones keep their slot.
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        raise ValueError(f"No class names found in {p}")
    return [line.strip() for line in lines]


class LabelSet:
    """Ordered, index-addressable class labels."""

    def __init__(self, names: Sequence[str], *, casefold: bool = False):
        if not names:
            raise ValueError("LabelSet needs at least one label")
        self._names = list(names)
        self.casefold = casefold

    @classmethod
    def from_file(cls, path: PathLike, *, casefold: bool = False) -> "LabelSet":
        return cls(load_class_names(path), casefold=casefold)

    def _key(self, label: str) -> str:
        return label.casefold() if self.casefold else label

    def index_of(self, label: str) -> Optional[int]:
        """Index of the first label equal to `label`, or None."""
        key = self._key(label)
        for i, name in enumerate(self._names):
            if self._key(name) == key:
                return i
        return None

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def __getitem__(self, index: int) -> str:
        return self._names[index]

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)
