"""Lossless PNG output for composed canvases."""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from cropgrid.preprocessing.loader import expand_path

logger = logging.getLogger(__name__)


def _to_bgr(image: np.ndarray) -> np.ndarray:
    """Reorder RGB(A) channels to OpenCV's BGR(A)."""
    if image.ndim == 2:
        return image
    elif image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    elif image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    else:
        raise ValueError(f"Unsupported number of channels: {image.shape[2]}")


def encode_png(image: np.ndarray) -> bytes:
    """Encode an RGB(A) uint8/uint16 array as PNG bytes at its own bit depth."""
    if image.dtype not in (np.uint8, np.uint16):
        raise ValueError(f"PNG output needs uint8 or uint16 data, got {image.dtype}")
    if image.size == 0:
        raise ValueError(f"Cannot encode an empty image of shape {image.shape}")

    ok, buffer = cv2.imencode('.png', _to_bgr(image))
    if not ok:
        raise ValueError(f"PNG encoding failed for image of shape {image.shape}")

    return buffer.tobytes()


def save_png(image: np.ndarray, output_path: Union[str, Path]) -> Path:
    """Write an image as PNG to exactly the given path, whatever its suffix.

    Args:
        image: uint8 or uint16 array, shape (H, W), (H, W, 3) or (H, W, 4), RGB(A) order
        output_path: Destination path (~ is expanded); parent directories are created

    Returns:
        The resolved path written

    Raises:
        ValueError: If the image cannot be encoded as PNG
        OSError: If the file cannot be written
    """
    data = encode_png(image)

    output_path = expand_path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)

    logger.debug(f"Saved {image.shape[1]}x{image.shape[0]} {image.dtype} PNG: {output_path}")

    return output_path
