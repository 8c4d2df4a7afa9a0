from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)

LITE_SUFFIXES = {".ptl"}


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available); lite-interpreter models are CPU only
    - output_index: YOLOv5 exports return (predictions, ...); select this element
    """

    device: str = "cpu"
    output_index: int = 0


class TorchScriptBackend:
    """
    TorchScript backend for YOLOv5 exports.

    Full TorchScript files (.pt/.torchscript) load with `torch.jit.load`; mobile
    lite-interpreter files (.ptl) load through the lite interpreter.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.output_index = cfg.output_index
        self.lite = self.model_path.suffix.lower() in LITE_SUFFIXES

        if self.lite:
            from torch.jit.mobile import _load_for_lite_interpreter  # type: ignore

            self.device = torch.device("cpu")
            self.model = _load_for_lite_interpreter(str(self.model_path))
        else:
            self.device = torch.device(cfg.device)
            model = torch.jit.load(str(self.model_path), map_location=self.device)
            model.eval()
            self.model = model
        logger.info("Loaded TorchScript model %s (lite=%s, device=%s)", self.model_path, self.lite, self.device)

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device).float().contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]

        if hasattr(y, "detach"):
            y = y.detach()
        return y.to("cpu").numpy()
