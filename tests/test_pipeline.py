"""Integration tests for the crop-and-compose pipeline and the CLI."""

import logging
from pathlib import Path

import cv2
import numpy as np
import pytest
from click.testing import CliRunner
from PIL import Image

from cropgrid.border_detection.detector import CropRegion
from cropgrid.cli import main
from cropgrid.pipeline import Pipeline, PipelineConfig, PipelineResult


BORDER_RGB = (128, 128, 128)
CONTENT_RGB = (200, 50, 10)


def _create_scan(
    path: Path,
    content_height: int,
    width: int = 50,
    border: int = 10,
) -> Path:
    """Write a PNG with gray border bands above and below a colored content band."""
    array = np.empty((content_height + 2 * border, width, 3), dtype=np.uint8)
    array[:] = BORDER_RGB
    array[border:border + content_height] = CONTENT_RGB
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(array).save(path)
    return path


@pytest.fixture
def three_scans(tmp_path: Path) -> list:
    """Three scans whose content heights are 100, 120 and 90 rows."""
    return [
        _create_scan(tmp_path / "scans" / f"img{i}.png", height)
        for i, height in enumerate([100, 120, 90])
    ]


class TestPipeline:
    """Test the pipeline on synthetic scans."""

    def test_crop_and_compose(self, three_scans: list) -> None:
        pipeline = Pipeline(PipelineConfig(run_length=5, label_tiles=False))

        result = pipeline.process(three_scans)

        assert isinstance(result, PipelineResult)
        assert result.canvas.shape == (240, 100, 4)
        assert result.canvas.dtype == np.uint16
        assert result.regions == [CropRegion(9, 109), CropRegion(9, 129), CropRegion(9, 99)]
        assert result.layout.cell_width == 50
        assert result.layout.cell_height == 120
        assert result.tile_bounds == [(0, 0, 50, 100), (50, 0, 100, 120), (0, 120, 50, 210)]
        assert result.steps_completed == ['crop', 'compose']

    def test_tiles_placed_in_input_order(self, three_scans: list) -> None:
        pipeline = Pipeline(PipelineConfig(run_length=5, label_tiles=False, workers=3))

        result = pipeline.process(three_scans)

        assert [tile.path for tile in result.tiles] == [Path(p) for p in three_scans]
        content = np.array(CONTENT_RGB, dtype=np.uint16) * 257
        # Row 0 of each tile is the last border row kept above the content
        assert np.all(result.canvas[1:100, 0:50, :3] == content)
        assert np.all(result.canvas[1:120, 50:100, :3] == content)
        assert np.all(result.canvas[121:210, 0:50, :3] == content)
        # Empty fourth cell
        assert np.all(result.canvas[120:240, 50:100] == 0)

    def test_labels_change_tiles(self, three_scans: list) -> None:
        plain = Pipeline(PipelineConfig(run_length=5, label_tiles=False)).process(three_scans)
        labeled = Pipeline(PipelineConfig(run_length=5, label_tiles=True)).process(three_scans)

        assert 'label' in labeled.steps_completed
        assert labeled.canvas.shape == plain.canvas.shape
        assert not np.array_equal(labeled.canvas[0:20, 0:40], plain.canvas[0:20, 0:40])
        np.testing.assert_array_equal(labeled.canvas[120:240, 50:100], plain.canvas[120:240, 50:100])

    def test_bidirectional_scan(self, three_scans: list) -> None:
        config = PipelineConfig(run_length=5, label_tiles=False, scan_mode="bidirectional")

        result = Pipeline(config).process(three_scans)

        assert result.regions[0] == CropRegion(9, 111)

    def test_single_image_forces_one_column(self, three_scans: list) -> None:
        pipeline = Pipeline(PipelineConfig(run_length=5, columns=3, label_tiles=False))

        result = pipeline.process(three_scans[:1])

        assert result.layout.columns == 1
        assert result.canvas.shape == (100, 50, 4)

    def test_missing_file_aborts_batch(self, three_scans: list, tmp_path: Path) -> None:
        pipeline = Pipeline(PipelineConfig(run_length=5))

        with pytest.raises(FileNotFoundError):
            pipeline.process(three_scans + [tmp_path / "missing.png"])

    def test_undecodable_file_aborts_batch(self, three_scans: list, tmp_path: Path) -> None:
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"garbage")

        with pytest.raises(OSError):
            Pipeline().process([three_scans[0], broken])

    def test_empty_input(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            Pipeline().process([])

    def test_debug_output(self, three_scans: list, tmp_path: Path) -> None:
        debug_dir = tmp_path / "debug"

        Pipeline(PipelineConfig(run_length=5)).process(three_scans, debug_output_dir=str(debug_dir))

        assert (debug_dir / "01_img0_cropped.png").exists()
        assert (debug_dir / "03_img2_cropped.png").exists()
        assert (debug_dir / "grid.png").exists()
        assert (debug_dir / "01_img0_region.png").exists()
        assert (debug_dir / "03_img2_region.png").exists()
        signal_lines = (debug_dir / "02_img1_row_signal.txt").read_text().splitlines()
        assert len(signal_lines) == 1 + 140
        assert signal_lines[1].endswith("no")
        assert signal_lines[10].endswith("yes")

    def test_crop_logged_once_per_image(self, three_scans: list, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            Pipeline(PipelineConfig(run_length=5)).process(three_scans)

        crop_lines = [r for r in caplog.records if r.getMessage().startswith("Crop width=")]
        assert len(crop_lines) == len(three_scans)

    def test_region_overlay_marks_kept_rows(self, three_scans: list, tmp_path: Path) -> None:
        debug_dir = tmp_path / "debug"

        Pipeline(PipelineConfig(run_length=5)).process(three_scans[:1], debug_output_dir=str(debug_dir))

        bgra = cv2.imread(str(debug_dir / "01_img0_region.png"), cv2.IMREAD_UNCHANGED)
        assert bgra.shape == (120, 50, 4)
        # Boundary lines are green at the first and last kept rows
        np.testing.assert_array_equal(bgra[9, 0, :3], [0, 65535, 0])
        np.testing.assert_array_equal(bgra[108, 0, :3], [0, 65535, 0])

    def test_step_times_recorded(self, three_scans: list) -> None:
        pipeline = Pipeline(PipelineConfig(run_length=5))
        pipeline.process(three_scans)

        assert set(pipeline.step_times) == {'crop', 'label', 'compose'}


class TestCli:
    """Test the command-line interface."""

    def test_compose_from_file_list(self, three_scans: list, tmp_path: Path) -> None:
        output = tmp_path / "out" / "grid.png"

        result = CliRunner().invoke(main, [
            'compose',
            '--input', ",".join(str(p) for p in three_scans),
            '--output', str(output),
            '--col', '2',
            '--run-length', '5',
        ])

        assert result.exit_code == 0, result.output
        canvas = cv2.imread(str(output), cv2.IMREAD_UNCHANGED)
        assert canvas.shape == (240, 100, 4)
        assert canvas.dtype == np.uint16

    def test_compose_from_directory(self, three_scans: list, tmp_path: Path) -> None:
        output = tmp_path / "grid.png"

        result = CliRunner().invoke(main, [
            'compose',
            '--input-dir', str(tmp_path / "scans"),
            '--output', str(output),
            '--col', '3',
            '--run-length', '5',
            '--no-label',
        ])

        assert result.exit_code == 0, result.output
        canvas = cv2.imread(str(output), cv2.IMREAD_UNCHANGED)
        assert canvas.shape == (120, 150, 4)

    def test_environment_configuration(self, three_scans: list, tmp_path: Path) -> None:
        output = tmp_path / "env.png"

        result = CliRunner().invoke(
            main,
            ['compose', '--run-length', '5'],
            env={
                'CROPGRID_INPUT': ",".join(str(p) for p in three_scans),
                'CROPGRID_OUTPUT': str(output),
                'CROPGRID_COL': '0',
            },
        )

        assert result.exit_code == 0, result.output
        canvas = cv2.imread(str(output), cv2.IMREAD_UNCHANGED)
        assert canvas.shape == (360, 50, 4)

    def test_no_inputs(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ['compose', '--output', str(tmp_path / "x.png")])
        assert result.exit_code == 1

    def test_empty_directory(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()

        result = CliRunner().invoke(main, [
            'compose', '--input-dir', str(tmp_path / "empty"), '--output', str(tmp_path / "x.png"),
        ])

        assert result.exit_code == 1
        assert not (tmp_path / "x.png").exists()

    def test_missing_file_is_fatal(self, three_scans: list, tmp_path: Path) -> None:
        output = tmp_path / "x.png"

        result = CliRunner().invoke(main, [
            'compose', '--input', f"{three_scans[0]},{tmp_path / 'gone.png'}", '--output', str(output),
        ])

        assert result.exit_code == 1
        assert not output.exists()

    def test_invalid_threshold_rejected(self, three_scans: list, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, [
            'compose', '--input', str(three_scans[0]), '--output', str(tmp_path / "x.png"),
            '--threshold', '0',
        ])

        assert result.exit_code == 2

    def test_detect_reports_regions(self, three_scans: list, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, [
            'detect', str(three_scans[1]), '--run-length', '5', '--debug', str(tmp_path / "dbg"),
        ])

        assert result.exit_code == 0, result.output
        assert "rows [9, 129) of 140" in result.output
        assert (tmp_path / "dbg" / "img1_region.png").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
