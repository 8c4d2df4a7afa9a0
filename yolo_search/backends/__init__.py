"""
Optional inference backends for yolo_search.

Backends live in a separate module so decoding and suppression stay usable
without installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
