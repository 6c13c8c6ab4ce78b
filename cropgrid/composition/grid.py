"""Grid composition: paste cropped images into uniform cells of one canvas."""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridLayout:
    """Canvas geometry derived from the tile sizes and the column count."""

    columns: int
    rows: int
    cell_width: int
    cell_height: int

    @property
    def canvas_width(self) -> int:
        return self.cell_width * self.columns

    @property
    def canvas_height(self) -> int:
        return self.cell_height * self.rows

    def cell_origin(self, index: int) -> Tuple[int, int]:
        """Top-left (x, y) of the cell holding tile `index`, in row-major order."""
        return (
            (index % self.columns) * self.cell_width,
            (index // self.columns) * self.cell_height,
        )


def effective_columns(columns: int, count: int) -> int:
    """Column count actually used: non-positive values or a single image force 1."""
    if columns <= 0 or count == 1:
        return 1
    return columns


def compute_grid_layout(sizes: Sequence[Tuple[int, int]], columns: int) -> GridLayout:
    """Compute the grid layout for a batch of tiles.

    Every cell is as wide as the widest tile and as tall as the tallest one, so
    every tile fits its cell without scaling.

    Args:
        sizes: (width, height) of each tile, in placement order
        columns: Requested column count

    Returns:
        GridLayout

    Raises:
        ValueError: If sizes is empty
    """
    if not sizes:
        raise ValueError("Cannot lay out an empty set of images")

    columns = effective_columns(columns, len(sizes))
    cell_width = max(width for width, _ in sizes)
    cell_height = max(height for _, height in sizes)
    rows = math.ceil(len(sizes) / columns)

    return GridLayout(
        columns=columns,
        rows=rows,
        cell_width=cell_width,
        cell_height=cell_height,
    )


def compose_grid(
    images: Sequence[np.ndarray],
    columns: int,
    layout: Optional[GridLayout] = None
) -> np.ndarray:
    """Paste images top-left aligned into the cells of a new canvas.

    Pixels are copied as-is (no resampling, no alpha blending). Cell area not
    covered by a tile keeps the zero background.

    Args:
        images: Tiles of shape (H, W, C), all with the same dtype and channel count
        columns: Requested column count (<= 0 or a single image means 1)
        layout: Layout already computed for these tiles; derived from them if None

    Returns:
        Canvas of shape (rows * cell_height, columns * cell_width, C)

    Raises:
        ValueError: If images is empty or the tiles disagree on dtype/channels
    """
    if len(images) == 0:
        raise ValueError("No images provided")

    channels = {img.shape[2] for img in images}
    dtypes = {img.dtype for img in images}
    if len(channels) != 1 or len(dtypes) != 1:
        raise ValueError(
            f"All images must share dtype and channel count, got dtypes={dtypes}, channels={channels}"
        )

    if layout is None:
        layout = compute_grid_layout([(img.shape[1], img.shape[0]) for img in images], columns)

    canvas = np.zeros(
        (layout.canvas_height, layout.canvas_width, channels.pop()),
        dtype=dtypes.pop(),
    )

    for idx, img in enumerate(images):
        x, y = layout.cell_origin(idx)
        h, w = img.shape[:2]
        canvas[y:y + h, x:x + w] = img
        logger.debug(f"Placed image {idx + 1} ({w}x{h}) at ({x}, {y})")

    logger.info(
        f"Composed {len(images)} image(s) into {layout.columns}x{layout.rows} grid: "
        f"canvas {layout.canvas_width}x{layout.canvas_height}, "
        f"cell {layout.cell_width}x{layout.cell_height}"
    )

    return canvas


def tile_bounds(layout: GridLayout, sizes: Sequence[Tuple[int, int]]) -> List[Tuple[int, int, int, int]]:
    """Canvas bounding box (x1, y1, x2, y2) of each placed tile."""
    bounds = []
    for idx, (width, height) in enumerate(sizes):
        x, y = layout.cell_origin(idx)
        bounds.append((x, y, x + width, y + height))
    return bounds
