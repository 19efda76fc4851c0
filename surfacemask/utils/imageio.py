"""Image file I/O for the command line — decoding and mask export via Pillow."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
from numpy.typing import NDArray
from PIL import Image


def load_rgb(path: str | Path) -> NDArray[np.uint8]:
    """Decode an image file into an H×W×3 uint8 array."""
    with Image.open(path) as img:
        return np.array(img.convert("RGB"))


def mask_to_png_bytes(mask: NDArray[np.uint8]) -> bytes:
    """Encode a single-channel 0/255 mask as PNG."""
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(mask, dtype=np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def save_mask_png(mask: NDArray[np.uint8], path: str | Path) -> Path:
    out = Path(path)
    out.write_bytes(mask_to_png_bytes(mask))
    return out
