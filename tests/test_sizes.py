"""Tests for size parsing and upload helpers (api/shared/sizes.py)."""

import pytest

from api.shared import detect_dataset_type, format_upload_size, parse_size_gb


class TestParseSizeGb:
    @pytest.mark.parametrize(
        "size, expected",
        [
            ("2.4 MB", 0.0024),
            ("1.5 GB", 1.5),
            ("1.5GB", 1.5),
            ("750 KB", 0.00075),
            ("2 TB", 2000.0),
            ("300 mb", 0.3),
            ("12", 0.012),
            (".5 GB", 0.5),
            ("  4 G ", 4.0),
        ],
    )
    def test_parses_units(self, size, expected):
        assert parse_size_gb(size) == pytest.approx(expected)

    @pytest.mark.parametrize("size", ["", None, "big", "1.2.3 MB", "5 parsecs", "-3 MB"])
    def test_unparseable_counts_as_zero(self, size):
        assert parse_size_gb(size) == 0.0


class TestFormatUploadSize:
    def test_formats_megabytes_with_one_decimal(self):
        assert format_upload_size(1024 * 1024) == "1.0 MB"
        assert format_upload_size(1572864) == "1.5 MB"
        assert format_upload_size(0) == "0.0 MB"

    def test_small_files_round_down(self):
        assert format_upload_size(2048) == "0.0 MB"


class TestDetectDatasetType:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("readings.csv", "data"),
            ("READINGS.XLSX", "data"),
            ("payload.json", "structured"),
            ("heartbeat.wav", "audio"),
            ("track.mp3", "audio"),
            ("clip.mp4", "video"),
            ("notes.txt", "other"),
            ("Makefile", "other"),
            ("archive.tar.gz", "other"),
        ],
    )
    def test_maps_extensions(self, filename, expected):
        assert detect_dataset_type(filename) == expected
