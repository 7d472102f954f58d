"""Core utilities and shared components for the ingestion pipeline."""

from .image_utils import (
    create_thumbnail,
    decode_image,
    extract_capture_time,
    extract_exif_data,
    require_allowed_type,
    sniff_file_type,
)
from .logging_config import (
    get_logger,
    set_debug_logging,
    setup_logger,
)
from .exceptions import (
    IngestionPipelineError,
    ConfigurationError,
    TransientError,
    StorageError,
    RecordNotReadyError,
    MalformedEventError,
    ContentRejectedError,
)
from .models import (
    ContentRecord,
    HandlerReport,
    ObjectCreatedRecord,
    PipelineConfig,
    UploadBatchRecord,
)

__all__ = [
    "PipelineConfig",
    "ContentRecord",
    "UploadBatchRecord",
    "ObjectCreatedRecord",
    "HandlerReport",
    "create_thumbnail",
    "decode_image",
    "extract_capture_time",
    "extract_exif_data",
    "require_allowed_type",
    "sniff_file_type",
    "setup_logger",
    "get_logger",
    "set_debug_logging",
    "IngestionPipelineError",
    "ConfigurationError",
    "TransientError",
    "StorageError",
    "RecordNotReadyError",
    "MalformedEventError",
    "ContentRejectedError",
]
