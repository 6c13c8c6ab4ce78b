"""Debug visualization and output utilities."""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from cropgrid.border_detection.detector import CropRegion
from cropgrid.output.writer import save_png

logger = logging.getLogger(__name__)


def save_debug_image(
    image: np.ndarray,
    output_path: Union[str, Path],
    description: Optional[str] = None
) -> None:
    """Save debug image as lossless PNG.

    Args:
        image: Image array as float32 [0,1], uint8 or uint16, RGB(A)
        output_path: Path to save debug image (should include step number prefix)
        description: Optional description to log
    """
    output_path = Path(output_path)

    # Float images are written as 16-bit
    if image.dtype == np.float32 or image.dtype == np.float64:
        image = (np.clip(image, 0.0, 1.0) * 65535).astype(np.uint16)

    # Force .png extension
    if output_path.suffix.lower() != '.png':
        output_path = output_path.with_suffix('.png')

    save_png(image, output_path)

    if description:
        logger.debug(f"Saved debug image: {output_path} - {description}")
    else:
        logger.debug(f"Saved debug image: {output_path}")


def save_debug_text(
    text: str,
    output_path: Union[str, Path],
    description: Optional[str] = None
) -> None:
    """Save debug text output.

    Args:
        text: Text content to save
        output_path: Path to save text file
        description: Optional description to log
    """
    output_path = Path(output_path)

    # Ensure parent directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Write text file
    output_path.write_text(text)

    if description:
        logger.debug(f"Saved debug text: {output_path} - {description}")
    else:
        logger.debug(f"Saved debug text: {output_path}")


def format_row_signal(signal: np.ndarray, region: CropRegion) -> str:
    """One line per row: index, ratio, and whether the row was kept."""
    lines = ["row\tratio\tkept"]
    for y, ratio in enumerate(signal):
        kept = region.begin <= y < region.end
        lines.append(f"{y}\t{ratio:.4f}\t{'yes' if kept else 'no'}")
    return "\n".join(lines) + "\n"


def draw_crop_region(
    image: np.ndarray,
    region: CropRegion,
    line_thickness: int = 1
) -> np.ndarray:
    """Draw the crop boundaries on a copy of the image.

    The kept band is outlined in green, discarded rows are dimmed.

    Args:
        image: Image array, uint8 or uint16, RGB(A)
        region: Crop region detected for this image
        line_thickness: Thickness of boundary lines

    Returns:
        Annotated copy of the image, same dtype
    """
    img_viz = image.copy()
    peak = 65535 if image.dtype == np.uint16 else 255

    # Dim discarded rows, alpha untouched
    img_viz[:region.begin, :, :3] //= 3
    img_viz[region.end:, :, :3] //= 3

    color = (0, peak, 0, peak)[:image.shape[2]]
    width = image.shape[1]

    cv2.line(img_viz, (0, region.begin), (width - 1, region.begin), color, line_thickness)
    cv2.line(img_viz, (0, region.end - 1), (width - 1, region.end - 1), color, line_thickness)

    return img_viz
