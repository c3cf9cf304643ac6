"""canoe: streaming multipart uploads and prefixed reads for S3."""

__version__ = "0.1.0"

from canoe.core.client import S3ClientManager, S3ClientProtocol
from canoe.core.exceptions import (
    CanoeConfigurationError,
    CanoeError,
    S3ConnectionError,
    StreamStateError,
)
from canoe.core.service import Canoe
from canoe.core.settings import MIN_PART_SIZE, CanoeSettings
from canoe.storage import (
    CombinedReader,
    CompletedPart,
    ObjectKeyList,
    PrefixReader,
    S3ObjectSource,
    S3WriteStream,
    UploadSession,
    UploadState,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Canoe",
    "CanoeSettings",
    "MIN_PART_SIZE",
    "S3ClientManager",
    "S3ClientProtocol",
    "CanoeError",
    "CanoeConfigurationError",
    "S3ConnectionError",
    "StreamStateError",
    # Storage
    "CombinedReader",
    "CompletedPart",
    "ObjectKeyList",
    "PrefixReader",
    "S3ObjectSource",
    "S3WriteStream",
    "UploadSession",
    "UploadState",
]
