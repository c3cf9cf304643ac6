"""Reading every object under a key prefix as one stream."""

import logging
from collections.abc import AsyncIterator, Iterable, Iterator
from typing import Any

from canoe.core.exceptions import StreamStateError
from canoe.core.settings import MAX_LIST_KEYS
from canoe.storage.combined import DEFAULT_CHUNK_SIZE, CombinedReader

logger = logging.getLogger(__name__)


class ObjectKeyList:
    """Ordered keys collected from a prefix listing.

    Keys can only be appended until :meth:`finalize` is called.
    """

    def __init__(self, keys: Iterable[str] = ()):
        self._keys: list[str] = list(keys)
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def append(self, key: str) -> None:
        if self._finalized:
            raise StreamStateError(
                f"Cannot append {key!r} to a finalized key list", state="finalized"
            )
        self._keys.append(key)

    def finalize(self) -> "ObjectKeyList":
        self._finalized = True
        return self

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __getitem__(self, index: int) -> str:
        return self._keys[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectKeyList):
            return self._keys == other._keys
        if isinstance(other, list):
            return self._keys == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ObjectKeyList({self._keys!r}, finalized={self._finalized})"


class S3ObjectSource:
    """An object body that is fetched on first read.

    Nothing is requested from S3 until :meth:`read` is called, so a chain of
    sources keeps at most one connection open.
    """

    def __init__(self, s3_client, bucket: str, key: str, **params: Any):
        """Initialize the source.

        Args:
            s3_client: The S3 client to use
            bucket: The bucket holding the object
            key: The object key
            **params: Extra arguments for ``get_object``
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.key = key
        self.params = params
        self._body = None
        self._closed = False

    @property
    def opened(self) -> bool:
        return self._body is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, amt: int | None = None) -> bytes:
        if self._closed:
            return b""
        if self._body is None:
            logger.debug(f"Fetching s3://{self.bucket}/{self.key}")
            response = await self.s3_client.get_object(
                Bucket=self.bucket,
                Key=self.key,
                **self.params,
            )
            self._body = response["Body"]
        return await self._body.read(amt)

    def close(self) -> None:
        if self._body is not None and not self._closed:
            self._body.close()
        self._closed = True

    def __repr__(self) -> str:
        return f"S3ObjectSource('s3://{self.bucket}/{self.key}')"


class PrefixReader:
    """Lists a prefix and reads the matching objects in listing order.

    Keys are kept in the order S3 returns them (lexicographic for
    ``list_objects_v2``). The listing is fully drained before the reader is
    handed out, so a page failure never yields a partial stream.

    Example:
        reader = PrefixReader(s3_client)
        stream = await reader.open("logs", "2014/03/")
        data = await stream.read()
    """

    def __init__(
        self,
        s3_client,
        max_keys: int = MAX_LIST_KEYS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the prefix reader.

        Args:
            s3_client: The S3 client to use
            max_keys: Page size for ``list_objects_v2``
            chunk_size: Chunk size of the returned reader
        """
        self.s3_client = s3_client
        self.max_keys = max_keys
        self.chunk_size = chunk_size

    async def iter_keys(self, bucket: str, prefix: str) -> AsyncIterator[str]:
        """Yield keys under a prefix, page by page.

        Args:
            bucket: The bucket to list
            prefix: Key prefix to match

        Yields:
            Object keys in listing order
        """
        continuation_token = None
        page = 0

        while True:
            params = {
                "Bucket": bucket,
                "Prefix": prefix,
                "MaxKeys": self.max_keys,
            }
            if continuation_token:
                params["ContinuationToken"] = continuation_token

            response = await self.s3_client.list_objects_v2(**params)
            page += 1
            logger.debug(
                f"Listed page {page} of s3://{bucket}/{prefix}: "
                f"{response.get('KeyCount', 0)} key(s)"
            )

            for obj_summary in response.get("Contents", []):
                yield obj_summary["Key"]

            if not response.get("IsTruncated", False):
                break

            continuation_token = response.get("NextContinuationToken")
            if not continuation_token:
                break

    async def list_keys(self, bucket: str, prefix: str) -> ObjectKeyList:
        """Collect every key under a prefix.

        Raises:
            Exception: The listing error, from any page
        """
        keys = ObjectKeyList()
        async for key in self.iter_keys(bucket, prefix):
            keys.append(key)
        keys.finalize()
        logger.info(f"Found {len(keys)} object(s) under s3://{bucket}/{prefix}")
        return keys

    async def open(self, bucket: str, prefix: str, **params: Any) -> CombinedReader:
        """List a prefix and return a reader over the matching objects.

        Args:
            bucket: The bucket to read from
            prefix: Key prefix to match
            **params: Extra arguments for each ``get_object`` call

        Returns:
            A :class:`CombinedReader` over one lazy source per key
        """
        keys = await self.list_keys(bucket, prefix)
        sources = [
            S3ObjectSource(self.s3_client, bucket, key, **params) for key in keys
        ]
        return CombinedReader(sources, chunk_size=self.chunk_size)
