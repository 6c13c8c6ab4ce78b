"""Command-line interface for cropgrid."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from cropgrid.border_detection.detector import PURITY_MODES, SCAN_MODES
from cropgrid.output.writer import save_png
from cropgrid.pipeline import Pipeline, PipelineConfig
from cropgrid.preprocessing.loader import collect_image_files, load_image

# Load environment variables from .env
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)

logger = logging.getLogger(__name__)


def _detector_options(func):
    """Border detection options shared by every command."""
    func = click.option(
        '--run-length',
        type=click.IntRange(min=1),
        default=15,
        show_default=True,
        help='Consecutive rows that must agree before a border edge is declared'
    )(func)
    func = click.option(
        '--threshold',
        type=click.FloatRange(min=0, min_open=True),
        default=1.0,
        show_default=True,
        help='Impure/pure pixel ratio above which a row counts as content'
    )(func)
    func = click.option(
        '--scan',
        'scan_mode',
        type=click.Choice(SCAN_MODES),
        default='forward',
        show_default=True,
        help='Scan from the top only, or from top and bottom independently'
    )(func)
    func = click.option(
        '--purity',
        type=click.Choice(PURITY_MODES),
        default='gray',
        show_default=True,
        help='Border pixels are gray (R==G==B) or strictly black (R+G+B==0)'
    )(func)
    return func


@click.group(context_settings={'auto_envvar_prefix': 'CROPGRID'})
@click.version_option(version='0.1.0')
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging'
)
def main(verbose: bool) -> None:
    """cropgrid - Strip uniform borders from scans and screenshots, then tile them into one grid."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@main.command()
@click.option(
    '--input',
    '-i',
    'input_files',
    type=str,
    envvar='CROPGRID_INPUT',
    help='A comma separated list of image files'
)
@click.option(
    '--input-dir',
    '-d',
    type=str,
    envvar='CROPGRID_INPUT_DIR',
    help='Input image directory (walked recursively)'
)
@click.option(
    '--output',
    '-o',
    'output_file',
    type=str,
    envvar='CROPGRID_OUTPUT',
    required=True,
    help='Output PNG file'
)
@click.option(
    '--col',
    '-c',
    'columns',
    type=int,
    envvar='CROPGRID_COL',
    default=2,
    show_default=True,
    help='Images per grid row (non-positive or a single image means 1)'
)
@_detector_options
@click.option(
    '--label/--no-label',
    default=True,
    show_default=True,
    help='Stamp each tile with its sequence number'
)
@click.option(
    '--workers',
    type=int,
    default=0,
    show_default=True,
    help='Parallel border detection workers (0 = one per CPU)'
)
@click.option(
    '--debug',
    'debug_dir',
    type=click.Path(file_okay=False),
    help='Save cropped tiles and row signals to this directory'
)
@click.pass_context
def compose(
    ctx: click.Context,
    input_files: Optional[str],
    input_dir: Optional[str],
    output_file: str,
    columns: int,
    purity: str,
    scan_mode: str,
    threshold: float,
    run_length: int,
    label: bool,
    workers: int,
    debug_dir: Optional[str]
) -> None:
    """Crop borders from images and append them into one grid image."""
    if not input_files and not input_dir:
        click.echo(ctx.get_help(), err=True)
        ctx.exit(1)

    try:
        image_files = collect_image_files(input_files, input_dir)
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)

    if not image_files:
        logger.error("Input files can't be empty")
        sys.exit(1)

    config = PipelineConfig(
        purity=purity,
        scan_mode=scan_mode,
        purity_threshold=threshold,
        run_length=run_length,
        columns=columns,
        label_tiles=label,
        workers=workers,
    )
    pipeline = Pipeline(config)

    try:
        result = pipeline.process(image_files, debug_output_dir=debug_dir)
        written = save_png(result.canvas, output_file)
    except (OSError, ValueError) as e:
        logger.error(f"Failed: {e}", exc_info=logging.getLogger().isEnabledFor(logging.DEBUG))
        sys.exit(1)

    logger.info(f"\n{'=' * 60}")
    logger.info(f"COMPLETE: {len(result.tiles)} image(s) in a {result.layout.columns}x{result.layout.rows} grid")
    logger.info(f"  Canvas: {result.layout.canvas_width}x{result.layout.canvas_height}")
    logger.info(f"  Processing time: {result.processing_time:.3f}s")
    logger.info(f"  Output: {written}")
    logger.info(f"{'=' * 60}")


@main.command()
@click.argument('input_paths', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@_detector_options
@click.option(
    '--debug',
    'debug_dir',
    type=click.Path(file_okay=False),
    help='Save crop overlays to this directory'
)
def detect(
    input_paths: tuple,
    purity: str,
    scan_mode: str,
    threshold: float,
    run_length: int,
    debug_dir: Optional[str]
) -> None:
    """Report the rows each image would be cropped to, without composing.

    INPUT_PATHS: One or more image files
    """
    pipeline = Pipeline(PipelineConfig(
        purity=purity,
        scan_mode=scan_mode,
        purity_threshold=threshold,
        run_length=run_length,
    ))

    for input_path in input_paths:
        try:
            image, _ = load_image(input_path)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {input_path}: {e}")
            sys.exit(1)

        _, detection = pipeline.crop_image(image)
        region = detection.region
        status = "full frame" if detection.is_full_frame else f"cropped {image.shape[0] - region.height} row(s)"
        click.echo(f"{input_path}: rows [{region.begin}, {region.end}) of {image.shape[0]} ({status})")

        if debug_dir:
            from cropgrid.utils.debug import draw_crop_region, save_debug_image
            overlay = draw_crop_region(image, region)
            save_debug_image(
                overlay,
                Path(debug_dir) / f"{Path(input_path).stem}_region.png",
                f"Crop region [{region.begin}, {region.end})"
            )


if __name__ == '__main__':
    main()
