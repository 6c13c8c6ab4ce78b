"""Image discovery and loading for GIF, PNG, JPEG and BMP inputs."""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.gif', '.png', '.jpg', '.jpeg', '.bmp')

# Pillow modes that carry more than 8 bits per sample
_HIGH_BIT_MODES = ('I;16', 'I;16L', 'I;16B', 'I;16N', 'I')


class ImageMetadata:
    """Metadata extracted from loaded image."""

    def __init__(
        self,
        original_size: Tuple[int, int],
        format: str,
        bit_depth: int,
        mode: str = "RGBA"
    ) -> None:
        self.original_size = original_size  # (width, height)
        self.format = format
        self.bit_depth = bit_depth
        self.mode = mode


def expand_path(path: Union[str, Path]) -> Path:
    """Expand a leading ~ to the user's home directory."""
    return Path(str(path).strip()).expanduser()


def is_supported(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def collect_image_files(
    input_files: Optional[str] = None,
    input_dir: Optional[Union[str, Path]] = None
) -> List[Path]:
    """Resolve the batch of image files to process.

    Explicit files come first, in the order given; blank entries are skipped.
    Files found under input_dir follow, walked recursively in lexical order and
    filtered by extension. Duplicates are kept.

    Args:
        input_files: Comma-separated list of image paths
        input_dir: Directory to walk for images

    Returns:
        List of image paths

    Raises:
        FileNotFoundError: If input_dir does not exist or is not a directory
    """
    files: List[Path] = []

    if input_files:
        for entry in input_files.split(','):
            if not entry.strip():
                continue
            files.append(expand_path(entry))

    if input_dir:
        root = expand_path(input_dir)
        if not root.is_dir():
            raise FileNotFoundError(f"Input directory not found: {input_dir}")

        found = [p for p in root.rglob('*') if p.is_file() and is_supported(p)]
        found.sort(key=lambda p: p.relative_to(root).parts)
        files.extend(found)

        logger.info(f"Found {len(found)} image(s) in {root}")

    return files


def _to_rgba16(img: Image.Image) -> Tuple[np.ndarray, int]:
    """Convert a decoded PIL image to a uint16 RGBA array.

    Returns:
        Tuple of (array with shape (H, W, 4), source bit depth)
    """
    if img.mode in _HIGH_BIT_MODES:
        gray = np.clip(np.array(img), 0, 65535).astype(np.uint16)
        alpha = np.full_like(gray, 65535)
        return np.stack([gray, gray, gray, alpha], axis=-1), 16

    rgba = np.array(img.convert('RGBA'), dtype=np.uint16)
    # 0..255 -> 0..65535, exact for every 8-bit value
    return rgba * 257, 8


def _read_png16(path: Path) -> Optional[Tuple[np.ndarray, str]]:
    """Decode a 16-bit PNG with OpenCV, which keeps every channel at full depth.

    Pillow opens 16-bit RGB(A) PNGs as 8-bit RGB(A) and drops the low byte.

    Returns:
        Tuple of (uint16 RGBA array, source mode), or None if the file is not a
        16-bit PNG that OpenCV can decode
    """
    data = np.frombuffer(path.read_bytes(), dtype=np.uint8)
    if data.size == 0:
        return None

    decoded = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
    if decoded is None or decoded.dtype != np.uint16:
        return None

    if decoded.ndim == 2:
        rgb = np.stack([decoded, decoded, decoded], axis=-1)
        alpha = np.full_like(decoded, 65535)
        return np.dstack([rgb, alpha]), 'I;16'
    elif decoded.shape[2] == 3:
        rgb = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
        alpha = np.full(decoded.shape[:2], 65535, dtype=np.uint16)
        return np.dstack([rgb, alpha]), 'RGB;16'
    else:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA), 'RGBA;16'


def load_image(path: Union[str, Path]) -> Tuple[np.ndarray, ImageMetadata]:
    """Load an image and normalize it to 16-bit RGBA.

    Every image reaching the border detector has the same channel precision,
    so purity checks compare like with like.

    Args:
        path: Path to image file (~ is expanded)

    Returns:
        Tuple of (uint16 RGBA array with shape (H, W, 4), metadata)

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If file format is not supported
        OSError: If the file cannot be decoded
    """
    path_obj = expand_path(path)

    if not path_obj.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    ext = path_obj.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported image format: {ext}")

    try:
        deep_png = _read_png16(path_obj) if ext == '.png' else None
        if deep_png is not None:
            arr, mode = deep_png
            original_size = (arr.shape[1], arr.shape[0])
            format_name = 'PNG'
            bit_depth = 16
        else:
            with Image.open(path_obj) as img:
                img.load()
                original_size = img.size
                format_name = img.format or ext.lstrip('.').upper()
                mode = img.mode
                arr, bit_depth = _to_rgba16(img)
    except OSError as e:
        logger.error(f"Read image file error: {path_obj}: {e}")
        raise

    metadata = ImageMetadata(
        original_size=original_size,
        format=format_name,
        bit_depth=bit_depth,
        mode=mode
    )

    logger.info(f"Loaded {format_name}: {path_obj} ({arr.shape[1]}x{arr.shape[0]}, {bit_depth}-bit {mode})")

    return arr, metadata
