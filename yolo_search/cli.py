from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .config import BACKENDS, SearchConfig, load_search_config
from .labels import LabelSet
from .logging_utils import add_logging_args, configure_logging
from .runtime import DetectionPipeline, load_pipeline
from .search import MediaReadError, MediaSearcher, read_media_frame

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yolo-search",
        description="Find photos/videos containing an object class using a YOLOv5 detector.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Search config JSON.")
    parser.add_argument("--model", type=str, default=None, help="Model file (.onnx, .ort, .pt, .ptl, .torchscript).")
    parser.add_argument("--classes", type=str, default=None, help="classes.txt or metadata YAML.")
    parser.add_argument("--backend", choices=BACKENDS, default=None, help="Force an inference backend.")
    add_logging_args(parser)

    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Print detections for one image as JSON lines.")
    detect.add_argument("image", type=Path)

    search = sub.add_parser("search", help="Print media paths containing QUERY.")
    search.add_argument("query", type=str)
    search.add_argument("paths", type=Path, nargs="+", help="Files or directories (searched recursively).")
    search.add_argument("--min-score", type=float, default=None, help="Match score threshold.")
    search.add_argument("--ignore-case", action="store_true", help="Case-insensitive label matching.")
    return parser


def resolve_config(args: argparse.Namespace) -> SearchConfig:
    if args.config is not None:
        config = load_search_config(args.config)
    else:
        if not args.model or not args.classes:
            raise ValueError("Pass --config, or both --model and --classes.")
        config = SearchConfig(schema_version=1, model_path=args.model, classes_path=args.classes)

    overrides = {}
    if args.model:
        overrides["model_path"] = args.model
    if args.classes:
        overrides["classes_path"] = args.classes
    if args.backend:
        overrides["backend"] = args.backend
    if getattr(args, "min_score", None) is not None:
        overrides["match_threshold"] = args.min_score
    return replace(config, **overrides) if overrides else config


def iter_media_paths(paths: Iterable[Path]) -> Iterator[Path]:
    for p in paths:
        if p.is_dir():
            yield from sorted(child for child in p.rglob("*") if child.is_file())
        else:
            yield p


def _build_pipeline(config: SearchConfig, labels: LabelSet) -> DetectionPipeline:
    return load_pipeline(
        config.model_path,
        backend=config.backend,
        root=None,
        input_size=config.input_size,
        post_cfg=config.post_config(num_classes=len(labels)),
        class_names=labels.names,
    )


def run_detect(config: SearchConfig, image: Path) -> int:
    labels = LabelSet.from_file(config.classes_path)
    pipeline = _build_pipeline(config, labels)
    frame = read_media_frame(image)
    for det in pipeline(frame):
        record = {
            "class_index": det.class_index,
            "label": labels[det.class_index],
            "score": round(det.score, 6),
            "box": list(det.as_xyxy()),
        }
        print(json.dumps(record))
    return 0


def run_search(config: SearchConfig, query: str, paths: Sequence[Path], ignore_case: bool = False) -> int:
    labels = LabelSet.from_file(config.classes_path, casefold=ignore_case)
    pipeline = _build_pipeline(config, labels)
    searcher = MediaSearcher(pipeline, labels, min_score=config.match_threshold)
    for path in searcher.search(list(iter_media_paths(paths)), query):
        print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        config = resolve_config(args)
    except (ValueError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    try:
        if args.command == "detect":
            return run_detect(config, args.image)
        return run_search(config, args.query, args.paths, ignore_case=args.ignore_case)
    except (ValueError, FileNotFoundError, ImportError) as exc:
        # Unknown model extension, unusable label file, model/output mismatch.
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except MediaReadError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
