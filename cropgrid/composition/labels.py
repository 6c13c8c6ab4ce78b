"""Sequence labels stamped onto tiles before they are composed."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class LabelStyle:
    """How sequence labels are drawn."""

    offset: Tuple[int, int] = (10, 15)  # (x, y) of the text baseline origin, from the tile's top-left
    color: Tuple[int, int, int, int] = (200, 100, 0, 255)  # 8-bit RGBA accent
    font_face: int = cv2.FONT_HERSHEY_PLAIN
    font_scale: float = 1.0
    thickness: int = 1


def format_sequence_label(index: int) -> str:
    """1-based, zero-padded, 2-digit label for a 0-based tile index."""
    return f"{index + 1:02d}"


def _scale_color(color: Tuple[int, int, int, int], image: np.ndarray) -> Tuple[float, ...]:
    """Convert an 8-bit RGBA color to the image's dtype and channel count."""
    if image.dtype == np.uint16:
        scaled = tuple(float(c) * 257.0 for c in color)
    elif np.issubdtype(image.dtype, np.floating):
        scaled = tuple(float(c) / 255.0 for c in color)
    else:
        scaled = tuple(float(c) for c in color)

    return scaled[:image.shape[2]]


def draw_label(image: np.ndarray, text: str, style: LabelStyle) -> np.ndarray:
    """Draw text onto the image in place.

    Args:
        image: Tile of shape (H, W, 3) or (H, W, 4), RGB(A) channel order
        text: Label text
        style: LabelStyle

    Returns:
        The same array, for chaining
    """
    if not image.flags.c_contiguous:
        raise ValueError("Labels can only be drawn on C-contiguous arrays")

    cv2.putText(
        image,
        text,
        style.offset,
        style.font_face,
        style.font_scale,
        _scale_color(style.color, image),
        style.thickness,
        cv2.LINE_8,
    )

    return image


def label_tiles(images: Sequence[np.ndarray], style: Optional[LabelStyle] = None) -> List[np.ndarray]:
    """Stamp each tile with its 1-based sequence number ("01", "02", ...).

    Tiles are mutated in place; the returned list holds the same arrays.
    """
    style = style or LabelStyle()

    labeled = []
    for idx, image in enumerate(images):
        text = format_sequence_label(idx)
        labeled.append(draw_label(image, text, style))
        logger.debug(f"Labeled tile {idx + 1} with '{text}'")

    return labeled
