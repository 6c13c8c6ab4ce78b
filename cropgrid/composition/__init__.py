"""Grid composition and tile labeling."""

from cropgrid.composition.grid import (
    GridLayout,
    compose_grid,
    compute_grid_layout,
    effective_columns,
    tile_bounds,
)
from cropgrid.composition.labels import (
    LabelStyle,
    draw_label,
    format_sequence_label,
    label_tiles,
)

__all__ = [
    "GridLayout",
    "compose_grid",
    "compute_grid_layout",
    "effective_columns",
    "tile_bounds",
    "LabelStyle",
    "draw_label",
    "format_sequence_label",
    "label_tiles",
]
