"""Detect uniform top/bottom border rows in scanned or screenshotted images.

Each row is summarised by a single ratio: impure pixels over pure pixels.
"Pure" depends on the purity predicate:
- "gray": red, green and blue are exactly equal (black/white/gray borders of any shade)
- "black": red + green + blue is zero (true-black borders only)

High ratios mean "content", low ratios mean "border". The scan uses run-length
hysteresis: a boundary is only declared after `run_length` consecutive rows
agree, which absorbs anti-aliased edges and stray pixels bleeding into borders.

Two scan policies are available:
- "forward": find where content starts from the top, then keep going down until
  purity resumes for a full run. Content is assumed to extend to the bottom if
  it never does.
- "bidirectional": find the content edge from the top and, independently, from
  the bottom.
"""

import logging
from dataclasses import dataclass, field
from typing import Literal, Tuple

import numpy as np

logger = logging.getLogger(__name__)


PurityMode = Literal["gray", "black"]
ScanMode = Literal["forward", "bidirectional"]

PURITY_MODES = ("gray", "black")
SCAN_MODES = ("forward", "bidirectional")


@dataclass(frozen=True)
class CropRegion:
    """Half-open row interval [begin, end) into a source image."""

    begin: int
    end: int

    @property
    def height(self) -> int:
        return self.end - self.begin

    def is_identity(self, image_height: int) -> bool:
        return self.begin == 0 and self.end == image_height


@dataclass
class BorderDetection:
    """Result of border detection on one image."""

    region: CropRegion
    row_signal: np.ndarray  # shape (H,), float64, inf where a row has no pure pixels
    purity: str
    scan_mode: str
    threshold: float
    run_length: int
    is_full_frame: bool = field(default=False)  # True if no border was found, using full image


def _validate_image(image: np.ndarray) -> None:
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected image with shape (H, W, 3) or (H, W, 4), got {image.shape}"
        )


def is_pure(pixels: np.ndarray, purity: PurityMode = "gray") -> np.ndarray:
    """Evaluate the purity predicate per pixel.

    Args:
        pixels: Array of shape (..., C) with C >= 3. Channels beyond RGB (alpha) are ignored.
        purity: "gray" or "black"

    Returns:
        Boolean array of shape pixels.shape[:-1]
    """
    rgb = pixels[..., :3]

    if purity == "gray":
        return (rgb[..., 0] == rgb[..., 1]) & (rgb[..., 1] == rgb[..., 2])
    elif purity == "black":
        # Widen before summing so 8/16-bit channels cannot overflow
        return rgb.sum(axis=-1, dtype=np.float64) == 0
    else:
        raise ValueError(f"Unknown purity mode: {purity!r} (expected one of {PURITY_MODES})")


def compute_row_signal(image: np.ndarray, purity: PurityMode = "gray") -> np.ndarray:
    """Compute the impure/pure ratio for every row of the image.

    Rows with no pure pixels at all get np.inf, i.e. certainly content. No row
    ever produces NaN, including zero-width images.

    Args:
        image: Image array of shape (H, W, 3) or (H, W, 4)
        purity: Purity predicate to count pixels with

    Returns:
        float64 array of shape (H,)
    """
    _validate_image(image)

    pure_mask = is_pure(image, purity)
    pure = pure_mask.sum(axis=1).astype(np.float64)
    impure = image.shape[1] - pure

    signal = np.full(image.shape[0], np.inf, dtype=np.float64)
    np.divide(impure, pure, out=signal, where=pure > 0)

    return signal


def _leading_edge(signal: np.ndarray, threshold: float, run_length: int) -> int:
    """Offset where content starts, scanning from index 0.

    Counts consecutive rows with ratio > threshold. When the count reaches
    run_length at index i, the edge is i - run_length (never below 0).
    Returns 0 if no such run exists.
    """
    counter = 0
    for idx, ratio in enumerate(signal):
        if ratio > threshold:
            counter += 1
        else:
            counter = 0

        if counter >= run_length:
            return max(idx - run_length, 0)

    return 0


def _trailing_edge(
    signal: np.ndarray,
    start: int,
    threshold: float,
    run_length: int,
) -> int:
    """End of content when scanning down from `start` until purity resumes.

    Counts consecutive rows with ratio < threshold. When the count reaches
    run_length at index i, the end is i - run_length. Returns len(signal) if
    purity never resumes for a full run.
    """
    counter = 0
    for idx in range(start, len(signal)):
        if signal[idx] < threshold:
            counter += 1
        else:
            counter = 0

        if counter >= run_length:
            return idx - run_length

    return len(signal)


def find_crop_region(
    signal: np.ndarray,
    threshold: float = 1.0,
    run_length: int = 15,
    scan_mode: ScanMode = "forward",
) -> CropRegion:
    """Locate the content rows in a row signal.

    Args:
        signal: Row signal from compute_row_signal, shape (H,)
        threshold: Ratio separating border-like rows (below) from content-like rows (above)
        run_length: Number of consecutive agreeing rows needed to declare a boundary
        scan_mode: "forward" or "bidirectional"

    Returns:
        CropRegion. Degenerate results (end <= begin) become the identity [0, H).

    Raises:
        ValueError: If threshold <= 0, run_length < 1, or scan_mode is unknown
    """
    if threshold <= 0:
        raise ValueError(f"threshold must be > 0, got {threshold}")
    if run_length < 1:
        raise ValueError(f"run_length must be >= 1, got {run_length}")

    height = len(signal)

    if scan_mode == "forward":
        begin = _leading_edge(signal, threshold, run_length)
        end = _trailing_edge(signal, begin, threshold, run_length)
    elif scan_mode == "bidirectional":
        begin = _leading_edge(signal, threshold, run_length)
        end = height - _leading_edge(signal[::-1], threshold, run_length)
    else:
        raise ValueError(f"Unknown scan mode: {scan_mode!r} (expected one of {SCAN_MODES})")

    if end <= begin:
        logger.debug(
            f"Degenerate crop begin={begin}, end={end}; keeping full height {height}"
        )
        return CropRegion(0, height)

    return CropRegion(begin, end)


def detect_borders(
    image: np.ndarray,
    purity: PurityMode = "gray",
    threshold: float = 1.0,
    run_length: int = 15,
    scan_mode: ScanMode = "forward",
) -> BorderDetection:
    """Detect top/bottom border rows in an image.

    Args:
        image: Image array of shape (H, W, 3) or (H, W, 4), any numeric dtype
        purity: Purity predicate, "gray" or "black"
        threshold: Purity-ratio threshold T (> 0)
        run_length: Run-length threshold R in rows (>= 1)
        scan_mode: "forward" or "bidirectional"

    Returns:
        BorderDetection with the crop region and the row signal it came from
    """
    signal = compute_row_signal(image, purity)
    region = find_crop_region(signal, threshold, run_length, scan_mode)

    height = image.shape[0]
    is_full_frame = region.is_identity(height)

    logger.info(
        f"Border detection ({purity}/{scan_mode}): begin={region.begin}, end={region.end} "
        f"of {height} rows"
    )

    return BorderDetection(
        region=region,
        row_signal=signal,
        purity=purity,
        scan_mode=scan_mode,
        threshold=threshold,
        run_length=run_length,
        is_full_frame=is_full_frame,
    )


def apply_crop(image: np.ndarray, region: CropRegion) -> np.ndarray:
    """Copy rows [begin, end) of the image at full width into a new array."""
    return image[region.begin:region.end].copy()


def crop_with_detection(
    image: np.ndarray,
    purity: PurityMode = "gray",
    threshold: float = 1.0,
    run_length: int = 15,
    scan_mode: ScanMode = "forward",
) -> Tuple[np.ndarray, BorderDetection]:
    """Detect borders and crop, keeping the full detection (row signal included)."""
    detection = detect_borders(
        image,
        purity=purity,
        threshold=threshold,
        run_length=run_length,
        scan_mode=scan_mode,
    )
    cropped = apply_crop(image, detection.region)

    logger.info(f"Crop width={cropped.shape[1]}, crop height={cropped.shape[0]}")

    return cropped, detection


def crop_borders(
    image: np.ndarray,
    purity: PurityMode = "gray",
    threshold: float = 1.0,
    run_length: int = 15,
    scan_mode: ScanMode = "forward",
) -> Tuple[np.ndarray, CropRegion]:
    """Detect borders and return the cropped image with the region used.

    The input image is never modified; the result is a fresh array.
    """
    cropped, detection = crop_with_detection(image, purity, threshold, run_length, scan_mode)
    return cropped, detection.region
