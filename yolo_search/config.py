from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .nms import OVERLAP_FUNCTIONS
from .postprocess import YoloPostConfig
from .search import DEFAULT_MATCH_THRESHOLD

BACKENDS = ("onnxruntime", "torchscript")


@dataclass(frozen=True)
class SearchConfig:
    schema_version: int
    model_path: str
    classes_path: str
    backend: Optional[str] = None
    input_size: Tuple[int, int] = (640, 640)
    num_rows: int = 25200
    detection_threshold: float = 0.30
    nms_threshold: float = 0.30
    nms_limit: int = 15
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    overlap: str = "legacy"

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("search config schema_version must be 1")
        if not self.model_path:
            raise ValueError("model_path must not be empty")
        if not self.classes_path:
            raise ValueError("classes_path must not be empty")
        if self.backend is not None and self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {list(BACKENDS)}")
        if len(self.input_size) != 2 or any(v <= 0 for v in self.input_size):
            raise ValueError("input_size must be two positive integers")
        if self.num_rows <= 0:
            raise ValueError("num_rows must be > 0")
        for key in ("detection_threshold", "nms_threshold", "match_threshold"):
            value = getattr(self, key)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{key} must be in [0, 1]")
        if self.nms_limit < 0:
            raise ValueError("nms_limit must be >= 0")
        if self.overlap not in OVERLAP_FUNCTIONS:
            raise ValueError(f"overlap must be one of {sorted(OVERLAP_FUNCTIONS)}")

    def post_config(self, num_classes: int) -> YoloPostConfig:
        return YoloPostConfig(
            num_rows=self.num_rows,
            num_classes=num_classes,
            detection_threshold=self.detection_threshold,
            nms_threshold=self.nms_threshold,
            nms_limit=self.nms_limit,
            overlap=self.overlap,
        )


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_str(payload: Dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def load_search_config(path: Path) -> SearchConfig:
    if not path.exists():
        raise FileNotFoundError(f"Search config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid search config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Search config must be a JSON object")

    allowed = {
        "schema_version",
        "model_path",
        "classes_path",
        "backend",
        "input_size",
        "num_rows",
        "detection_threshold",
        "nms_threshold",
        "nms_limit",
        "match_threshold",
        "overlap",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown search config keys: {unknown}")

    kwargs: Dict[str, Any] = {
        "schema_version": _require_int(payload, "schema_version"),
        "model_path": _require_str(payload, "model_path"),
        "classes_path": _require_str(payload, "classes_path"),
    }
    for key in ("backend", "overlap"):
        if key in payload:
            kwargs[key] = _require_str(payload, key)
    for key in ("num_rows", "nms_limit"):
        if key in payload:
            kwargs[key] = _require_int(payload, key)
    for key in ("detection_threshold", "nms_threshold", "match_threshold"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)
    if "input_size" in payload:
        size = payload["input_size"]
        if (
            not isinstance(size, list)
            or len(size) != 2
            or any(isinstance(v, bool) or not isinstance(v, int) for v in size)
        ):
            raise ValueError("input_size must be a [width, height] list of integers")
        kwargs["input_size"] = (size[0], size[1])

    config = SearchConfig(**kwargs)

    # Relative model/label paths are taken relative to the config file.
    base = path.resolve().parent
    return _with_base(config, base)


def _with_base(config: SearchConfig, base: Path) -> SearchConfig:
    model_path = Path(config.model_path)
    classes_path = Path(config.classes_path)
    return replace(
        config,
        model_path=str(model_path if model_path.is_absolute() else base / model_path),
        classes_path=str(classes_path if classes_path.is_absolute() else base / classes_path),
    )
