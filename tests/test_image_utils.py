"""Tests for image_utils.py utility functions."""

import io
from datetime import datetime
from unittest.mock import patch

import pytest
from PIL import Image

from album_ingest.core.exceptions import CorruptImageError, UnsupportedContentTypeError
from album_ingest.core.image_utils import (
    MAX_CONTENT_BYTES,
    THUMBNAIL_MAX_SIZE,
    create_thumbnail,
    decode_image,
    extract_capture_time,
    extract_exif_data,
    require_allowed_type,
    sniff_file_type,
)
from album_ingest.testing import create_test_image

HEIC_HEADER = b"\x00\x00\x00\x18ftypheic\x00\x00\x00\x00mif1heic" + b"\x00" * 32

EXIF_MAKE = 0x010F
EXIF_DATETIME = 0x0132
GPS_IFD_POINTER = 0x8825
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2


class TestSniffFileType:
    """Type detection looks at bytes, never at names."""

    def test_jpeg(self):
        sniffed = sniff_file_type(create_test_image(20, 20, format="JPEG"))
        assert sniffed.extension == "jpg"
        assert sniffed.mime == "image/jpeg"
        assert sniffed.allowed

    def test_png(self):
        sniffed = sniff_file_type(create_test_image(20, 20, format="PNG"))
        assert sniffed.extension == "png"
        assert sniffed.mime == "image/png"

    def test_heic_brand(self):
        sniffed = sniff_file_type(HEIC_HEADER)
        assert sniffed.extension == "heic"
        assert sniffed.allowed

    def test_bmp_is_detected_but_not_allowed(self):
        sniffed = sniff_file_type(create_test_image(20, 20, format="BMP"))
        assert sniffed.extension == "bmp"
        assert not sniffed.allowed

    def test_unknown_bytes(self):
        assert sniff_file_type(b"just some text, no magic number") is None


class TestRequireAllowedType:
    def test_allowed_type_passes(self):
        assert require_allowed_type(create_test_image(format="PNG")).extension == "png"

    def test_disallowed_type_message(self):
        with pytest.raises(UnsupportedContentTypeError, match="Unsupported file type: bmp"):
            require_allowed_type(create_test_image(format="BMP"))

    def test_undetectable_type_message(self):
        with pytest.raises(UnsupportedContentTypeError, match="Could not determine file type"):
            require_allowed_type(b"")


class TestDecodeImage:
    def test_decodes_valid_image(self):
        image = decode_image(create_test_image(64, 32))
        assert image.size == (64, 32)

    def test_truncated_jpeg_is_corrupt(self):
        data = create_test_image(200, 200)
        with pytest.raises(CorruptImageError):
            decode_image(data[: len(data) // 2])

    def test_unidentifiable_bytes_are_corrupt(self):
        with pytest.raises(CorruptImageError):
            decode_image(b"\xff\xd8\xff" + b"\x00" * 64)

    def test_decompression_bomb_is_corrupt(self):
        """Pillow raises its bomb error outside the OSError/ValueError family."""
        with patch.object(Image, "MAX_IMAGE_PIXELS", 100):
            with pytest.raises(CorruptImageError):
                decode_image(create_test_image(100, 100))


class TestExifExtraction:
    def test_base_ifd_tags_are_extracted(self):
        data = create_test_image(
            40, 30, exif={EXIF_MAKE: "TestCam", EXIF_DATETIME: "2023:06:15 10:30:00"}
        )
        exif = extract_exif_data(Image.open(io.BytesIO(data)))

        assert exif["Make"] == "TestCam"
        assert exif["DateTime"] == "2023:06:15 10:30:00"

    def test_gps_tags_are_kept(self):
        exif = Image.Exif()
        exif[EXIF_MAKE] = "Canon"
        exif[GPS_IFD_POINTER] = {
            GPS_LATITUDE_REF: "N",
            GPS_LATITUDE: (35.0, 39.0, 29.0),
        }
        buffer = io.BytesIO()
        Image.new("RGB", (40, 30), "red").save(buffer, format="JPEG", exif=exif.tobytes())

        exif_data = extract_exif_data(Image.open(io.BytesIO(buffer.getvalue())))

        assert exif_data["Make"] == "Canon"
        assert exif_data["GPSLatitudeRef"] == "N"
        assert exif_data["GPSLatitude"] == pytest.approx([35.0, 39.0, 29.0])
        assert "GPSInfo" not in exif_data

    def test_image_without_exif(self):
        assert extract_exif_data(Image.open(io.BytesIO(create_test_image(20, 20)))) == {}

    def test_capture_time_prefers_original(self):
        exif = {"DateTime": "2023:01:01 00:00:00", "DateTimeOriginal": "2022:12:24 18:45:10"}
        assert extract_capture_time(exif) == datetime(2022, 12, 24, 18, 45, 10)

    def test_capture_time_falls_back_to_datetime(self):
        assert extract_capture_time({"DateTime": "2023:06:15 10:30:00"}) == datetime(
            2023, 6, 15, 10, 30, 0
        )

    def test_unparseable_capture_time(self):
        assert extract_capture_time({"DateTimeOriginal": "sometime"}) is None
        assert extract_capture_time({}) is None


class TestCreateThumbnail:
    """Thumbnails fit in the bounding square, keep their aspect ratio and are JPEG."""

    @pytest.mark.parametrize("size", [(1200, 800), (800, 1200), (401, 50), (4000, 4000)])
    def test_large_images_are_bounded(self, size):
        thumb = Image.open(io.BytesIO(create_thumbnail(decode_image(create_test_image(*size)))))

        assert thumb.format == "JPEG"
        assert max(thumb.size) == THUMBNAIL_MAX_SIZE
        source_ratio = size[0] / size[1]
        thumb_ratio = thumb.size[0] / thumb.size[1]
        assert abs(source_ratio - thumb_ratio) / source_ratio < 0.05

    def test_small_images_are_not_enlarged(self):
        thumb = Image.open(io.BytesIO(create_thumbnail(decode_image(create_test_image(120, 80)))))
        assert thumb.size == (120, 80)

    def test_transparent_png_becomes_rgb_jpeg(self):
        data = create_test_image(500, 500, format="PNG", mode="RGBA")
        thumb = Image.open(io.BytesIO(create_thumbnail(decode_image(data))))
        assert thumb.format == "JPEG"
        assert thumb.mode == "RGB"


def test_size_ceiling_is_fifty_mebibytes():
    assert MAX_CONTENT_BYTES == 50 * 1024 * 1024
