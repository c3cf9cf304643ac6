"""Streaming primitives for canoe.

This module provides the multipart write stream, the prefix reader and
the combined reader it returns.
"""

from canoe.storage.combined import ByteSource, CombinedReader
from canoe.storage.reader import ObjectKeyList, PrefixReader, S3ObjectSource
from canoe.storage.writer import (
    CompletedPart,
    S3WriteStream,
    UploadSession,
    UploadState,
)

__all__ = [
    "ByteSource",
    "CombinedReader",
    "CompletedPart",
    "ObjectKeyList",
    "PrefixReader",
    "S3ObjectSource",
    "S3WriteStream",
    "UploadSession",
    "UploadState",
]
