"""Border detection: locate and strip uniform top/bottom border rows."""

from cropgrid.border_detection.detector import (
    BorderDetection,
    CropRegion,
    PurityMode,
    ScanMode,
    apply_crop,
    compute_row_signal,
    crop_borders,
    crop_with_detection,
    detect_borders,
    find_crop_region,
    is_pure,
)

__all__ = [
    "BorderDetection",
    "CropRegion",
    "PurityMode",
    "ScanMode",
    "apply_crop",
    "compute_row_signal",
    "crop_borders",
    "crop_with_detection",
    "detect_borders",
    "find_crop_region",
    "is_pure",
]
