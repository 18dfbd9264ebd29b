"""
Unit tests for traptidy.utils module
"""

import logging

import pytest

from traptidy import utils


class TestLogging:

    def test_setup_logging_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = utils.setup_logging(log_level="DEBUG", log_file=str(log_file))

        logging.getLogger("traptidy.core").info("hello from core")
        for handler in logger.handlers:
            handler.flush()

        assert logger.name == "traptidy"
        assert logger.level == logging.DEBUG
        assert "hello from core" in log_file.read_text()

    def test_no_duplicate_handlers(self):
        utils.setup_logging()
        logger = utils.setup_logging()
        assert len(logger.handlers) == 1


class TestPaths:

    def test_create_output_directory(self, tmp_path):
        path = utils.create_output_directory(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_sanitize_filename(self):
        assert utils.sanitize_filename("richness by habitat") == "richness_by_habitat"
        assert utils.sanitize_filename("Urban/Cropland?") == "Urban_Cropland"

    def test_safe_file_path(self, tmp_path):
        path = utils.safe_file_path(tmp_path / "figures", "trap map", "png")
        assert path == tmp_path / "figures" / "trap_map.png"
        assert path.parent.is_dir()

    @pytest.mark.parametrize("filename, expected", [
        ("malaise_2022_species_table.tsv", "malaise_2022"),
        ("/data/Site A_abundance.tsv", "Site_A"),
        ("survey.tsv", "survey"),
    ])
    def test_extract_dataset_name(self, filename, expected):
        assert utils.extract_dataset_name(filename) == expected


class TestFormatting:

    @pytest.mark.parametrize("seconds, expected", [
        (45, "45s"),
        (90, "1.5m"),
        (3900, "1h 5m"),
    ])
    def test_format_elapsed_time(self, seconds, expected):
        assert utils.format_elapsed_time(seconds) == expected
