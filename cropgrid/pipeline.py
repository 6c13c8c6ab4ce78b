"""Main pipeline orchestrator: load, crop borders, label, compose."""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from cropgrid.border_detection.detector import BorderDetection, CropRegion, crop_with_detection
from cropgrid.composition.grid import GridLayout, compose_grid, compute_grid_layout, tile_bounds
from cropgrid.composition.labels import LabelStyle, label_tiles
from cropgrid.preprocessing.loader import ImageMetadata, load_image

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """All tunable parameters in one place."""

    # Border detection
    purity: str = "gray"  # "gray" (R==G==B) or "black" (R+G+B==0)
    scan_mode: str = "forward"  # "forward" or "bidirectional"
    purity_threshold: float = 1.0  # impure/pure ratio above which a row is content
    run_length: int = 15  # consecutive rows needed to declare a boundary

    # Composition
    columns: int = 2
    label_tiles: bool = True
    label_style: LabelStyle = field(default_factory=LabelStyle)

    # Execution
    workers: int = 0  # 0 = one per CPU


@dataclass
class CroppedImage:
    """One input after border removal."""

    path: Path
    image: np.ndarray
    metadata: ImageMetadata
    detection: BorderDetection

    @property
    def region(self) -> CropRegion:
        return self.detection.region


@dataclass
class PipelineResult:
    """Result of pipeline processing."""

    canvas: np.ndarray
    layout: GridLayout
    tiles: List[CroppedImage]
    tile_bounds: List[Tuple[int, int, int, int]]
    processing_time: float
    steps_completed: List[str]

    @property
    def regions(self) -> List[CropRegion]:
        return [tile.region for tile in self.tiles]

    @property
    def metadata(self) -> List[ImageMetadata]:
        return [tile.metadata for tile in self.tiles]


def _effective_workers(workers: int, count: int) -> int:
    if workers <= 0:
        workers = os.cpu_count() or 4
    return max(1, min(workers, count))


class Pipeline:
    """Crop borders from a batch of images and compose them into a grid."""

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        """Initialize pipeline with configuration.

        Args:
            config: Pipeline configuration. If None, uses defaults.
        """
        self.config = config or PipelineConfig()
        self.step_times: dict = {}

    def crop_image(self, image: np.ndarray) -> Tuple[np.ndarray, BorderDetection]:
        """Run border detection with this pipeline's settings and crop the image."""
        return crop_with_detection(
            image,
            purity=self.config.purity,
            threshold=self.config.purity_threshold,
            run_length=self.config.run_length,
            scan_mode=self.config.scan_mode,
        )

    def load_and_crop(
        self,
        path: Union[str, Path],
        overlay_path: Optional[Path] = None
    ) -> CroppedImage:
        """Load one file and strip its borders.

        If overlay_path is given, the source image with the crop region drawn
        on it is saved there.
        """
        image, metadata = load_image(path)
        cropped, detection = self.crop_image(image)

        if overlay_path is not None:
            from cropgrid.utils.debug import draw_crop_region, save_debug_image
            save_debug_image(
                draw_crop_region(image, detection.region),
                overlay_path,
                f"Crop region [{detection.region.begin}, {detection.region.end})"
            )

        return CroppedImage(
            path=Path(path),
            image=cropped,
            metadata=metadata,
            detection=detection,
        )

    def crop_batch(
        self,
        input_paths: Sequence[Union[str, Path]],
        debug_dir: Optional[Path] = None
    ) -> List[CroppedImage]:
        """Load and crop every image in parallel, preserving input order.

        Any load or decode error aborts the whole batch. With debug_dir, each
        source image's crop overlay is saved as NN_<stem>_region.png.
        """
        n_workers = _effective_workers(self.config.workers, len(input_paths))
        logger.debug(f"Cropping {len(input_paths)} image(s) with {n_workers} worker(s)")

        if debug_dir:
            overlay_paths = [
                debug_dir / f"{idx:02d}_{Path(path).stem}_region.png"
                for idx, path in enumerate(input_paths, 1)
            ]
        else:
            overlay_paths = [None] * len(input_paths)

        with ThreadPoolExecutor(max_workers=n_workers) as ex:
            return list(ex.map(self.load_and_crop, input_paths, overlay_paths))

    def process(
        self,
        input_paths: Sequence[Union[str, Path]],
        debug_output_dir: Optional[str] = None
    ) -> PipelineResult:
        """Process a batch of images into one grid canvas.

        Args:
            input_paths: Image paths, in placement order
            debug_output_dir: Optional directory for debug output

        Returns:
            PipelineResult with the composed canvas and per-image crop info

        Raises:
            ValueError: If input_paths is empty
        """
        if not input_paths:
            raise ValueError("Input files can't be empty")

        start_time = time.time()
        steps_completed: List[str] = []
        debug_dir: Optional[Path] = None

        if debug_output_dir:
            debug_dir = Path(debug_output_dir)
            debug_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Processing {len(input_paths)} image(s)")

        # Step 1: Load + crop (parallel; composition waits for all of them)
        step_start = time.time()
        tiles = self.crop_batch(input_paths, debug_dir)
        self.step_times['crop'] = time.time() - step_start
        steps_completed.append('crop')
        logger.info(f"Crop time: {self.step_times['crop']:.3f}s")

        if debug_dir:
            self._save_crop_debug(tiles, debug_dir)

        images = [tile.image for tile in tiles]

        # Step 2: Labels (mutates the cropped tiles, never the canvas)
        if self.config.label_tiles:
            step_start = time.time()
            label_tiles(images, self.config.label_style)
            self.step_times['label'] = time.time() - step_start
            steps_completed.append('label')

        # Step 3: Compose
        step_start = time.time()
        sizes = [(img.shape[1], img.shape[0]) for img in images]
        layout = compute_grid_layout(sizes, self.config.columns)
        canvas = compose_grid(images, self.config.columns, layout)
        self.step_times['compose'] = time.time() - step_start
        steps_completed.append('compose')
        logger.info(f"Compose time: {self.step_times['compose']:.3f}s")

        if debug_dir:
            from cropgrid.utils.debug import save_debug_image
            save_debug_image(canvas, debug_dir / "grid.png", "Composed grid")

        total_time = time.time() - start_time
        logger.info(f"Total processing time: {total_time:.3f}s")

        return PipelineResult(
            canvas=canvas,
            layout=layout,
            tiles=tiles,
            tile_bounds=tile_bounds(layout, sizes),
            processing_time=total_time,
            steps_completed=steps_completed,
        )

    def _save_crop_debug(self, tiles: Sequence[CroppedImage], debug_dir: Path) -> None:
        from cropgrid.utils.debug import format_row_signal, save_debug_image, save_debug_text

        for idx, tile in enumerate(tiles, 1):
            prefix = f"{idx:02d}_{tile.path.stem}"
            save_debug_image(
                tile.image,
                debug_dir / f"{prefix}_cropped.png",
                f"Cropped rows [{tile.region.begin}, {tile.region.end})"
            )
            save_debug_text(
                format_row_signal(tile.detection.row_signal, tile.region),
                debug_dir / f"{prefix}_row_signal.txt",
                "Row signal"
            )

        logger.info(f"Debug output saved to: {debug_dir}")
