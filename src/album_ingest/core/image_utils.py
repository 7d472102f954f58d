"""Image inspection utilities: type sniffing, EXIF extraction, thumbnails."""

import io
import numbers
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

import filetype
from PIL import ExifTags, Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from .exceptions import CorruptImageError, UnsupportedContentTypeError

register_heif_opener()

ALLOWED_FILE_TYPES = frozenset({"jpg", "png", "heic", "heif"})
MAX_CONTENT_BYTES = 50 * 1024 * 1024
THUMBNAIL_MAX_SIZE = 400
THUMBNAIL_QUALITY = 80
THUMBNAIL_FORMAT = "JPEG"
THUMBNAIL_CONTENT_TYPE = "image/jpeg"

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825

# DecompressionBombError derives from Exception directly
DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    SyntaxError,
    ValueError,
    Image.DecompressionBombError,
)

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

_EXTENSION_ALIASES = {"jpeg": "jpg", "jpe": "jpg"}


@dataclass(frozen=True)
class SniffedType:
    """File type detected from the leading bytes of an object."""

    extension: str
    mime: str

    @property
    def allowed(self) -> bool:
        return self.extension in ALLOWED_FILE_TYPES


def sniff_file_type(data: bytes) -> Optional[SniffedType]:
    """
    Detect the file type from magic numbers, ignoring any declared type.

    Args:
        data: Object bytes (only the header is inspected)

    Returns:
        SniffedType, or None if the bytes match no known signature
    """
    kind = filetype.guess(data)
    if kind is None:
        return None
    extension = kind.extension.lower()
    return SniffedType(
        extension=_EXTENSION_ALIASES.get(extension, extension), mime=kind.mime
    )


def require_allowed_type(data: bytes) -> SniffedType:
    """Sniff ``data`` and raise unless it is one of the allowed image types."""
    sniffed = sniff_file_type(data)
    if sniffed is None:
        raise UnsupportedContentTypeError("Could not determine file type")
    if not sniffed.allowed:
        raise UnsupportedContentTypeError(f"Unsupported file type: {sniffed.extension}")
    return sniffed


def decode_image(data: bytes) -> "Image.Image":
    """
    Fully decode image bytes.

    Raises:
        CorruptImageError: If Pillow cannot identify or decode the data, or
            the decoded image has no usable dimensions
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except DECODE_ERRORS as exc:
        raise CorruptImageError(f"Image is corrupted or invalid: {exc}") from exc

    if not image.width or not image.height:
        raise CorruptImageError("Image is corrupted or invalid: invalid image dimensions")
    return image


def _json_safe(value: Any) -> Union[str, int, float, list]:
    """Convert an EXIF value into something a JSON column accepts."""
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8").rstrip("\x00")
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (str, int)):
        return value
    if isinstance(value, float):
        return value if value == value else str(value)
    if isinstance(value, numbers.Rational):
        if value.denominator == 0:
            return str(value)
        return float(value)
    if isinstance(value, Iterable) and not isinstance(value, dict):
        return [_json_safe(item) for item in value]
    return str(value)


def extract_exif_data(img: "Image.Image") -> Dict[str, Any]:
    """
    Extract the raw EXIF tag map.

    The base IFD, the Exif sub-IFD (where DateTimeOriginal lives) and the
    GPS sub-IFD are read; GPS tags are named through ``ExifTags.GPSTAGS``.
    An image without EXIF yields an empty dict.

    Args:
        img: Decoded PIL image

    Returns:
        Mapping of tag name to JSON-compatible value
    """
    exif = img.getexif()
    if not exif:
        return {}

    tags: Dict[int, Any] = dict(exif.items())
    tags.update(exif.get_ifd(EXIF_IFD_POINTER))

    exif_dict: Dict[str, Any] = {}
    for tag_id, value in tags.items():
        # sub-IFD pointers
        if tag_id in (EXIF_IFD_POINTER, GPS_IFD_POINTER) or isinstance(value, dict):
            continue
        exif_dict[str(ExifTags.TAGS.get(tag_id, tag_id))] = _json_safe(value)

    for tag_id, value in exif.get_ifd(GPS_IFD_POINTER).items():
        exif_dict[str(ExifTags.GPSTAGS.get(tag_id, tag_id))] = _json_safe(value)

    return exif_dict


def extract_capture_time(exif_data: Dict[str, Any]) -> Optional[datetime]:
    """Capture timestamp from DateTimeOriginal, falling back to DateTime."""
    for tag in ("DateTimeOriginal", "DateTime"):
        raw_value = exif_data.get(tag)
        if not isinstance(raw_value, str):
            continue
        try:
            return datetime.strptime(raw_value.strip(), EXIF_DATETIME_FORMAT)
        except ValueError:
            continue
    return None


def create_thumbnail(img: "Image.Image") -> bytes:
    """
    Render a JPEG thumbnail that fits inside THUMBNAIL_MAX_SIZE square.

    Aspect ratio is preserved and the image is never enlarged. The output
    format is always JPEG, whatever the input format.
    """
    thumbnail = img.copy()
    if thumbnail.mode not in ("RGB", "L"):
        thumbnail = thumbnail.convert("RGB")

    thumbnail.thumbnail(
        (THUMBNAIL_MAX_SIZE, THUMBNAIL_MAX_SIZE), Image.Resampling.LANCZOS
    )

    output_stream = io.BytesIO()
    thumbnail.save(output_stream, format=THUMBNAIL_FORMAT, quality=THUMBNAIL_QUALITY)
    return output_stream.getvalue()
