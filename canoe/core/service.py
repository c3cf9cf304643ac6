"""The Canoe facade: write streams and prefixed read streams over S3."""

import logging
from typing import Any

from canoe.core.callbacks import StreamCallback, invoke_callback
from canoe.core.settings import CanoeSettings
from canoe.storage.combined import CombinedReader
from canoe.storage.reader import ObjectKeyList, PrefixReader
from canoe.storage.writer import S3WriteStream

logger = logging.getLogger(__name__)


class Canoe:
    """Helper functionality for streaming to and from S3.

    Example:
        manager = S3ClientManager()
        async with manager.get_async_client() as s3:
            canoe = Canoe(s3)

            stream = canoe.create_write_stream("random-access-memories", "to-get-lucky.log")
            with open("for-good-fun.log", "rb") as f:
                await stream.write_from(f)
            await stream.close()

            reader = await canoe.create_prefixed_read_stream("stuff", "path/to/things/")
            async for chunk in reader:
                ...
    """

    def __init__(self, s3_client, settings: CanoeSettings | None = None):
        """Initialize Canoe.

        Args:
            s3_client: An S3 client (aiobotocore, or anything matching
                :class:`canoe.core.client.S3ClientProtocol`)
            settings: canoe settings (read from the environment if omitted)
        """
        self.s3_client = s3_client
        self.settings = settings or CanoeSettings()

    def create_write_stream(
        self,
        bucket: str,
        key: str,
        callback: StreamCallback | None = None,
        part_size: int | None = None,
        **params: Any,
    ) -> S3WriteStream:
        """Create a writable stream that uploads an object to S3.

        The multipart upload is started in the background and the stream is
        returned at once; writes wait until S3 has assigned the upload ID.
        Await :meth:`S3WriteStream.wait_ready` to observe an initiation error
        up front; it is raised by every later write as well.

        Args:
            bucket: Destination bucket
            key: Destination key
            callback: Called with ``(error, stream)`` once the stream is
                ready or has failed to start
            part_size: Part size in bytes (defaults to ``s3_part_size``)
            **params: Passed through to ``create_multipart_upload``

        Returns:
            The started write stream
        """
        stream = S3WriteStream(
            self.s3_client,
            bucket,
            key,
            part_size=part_size or self.settings.s3_part_size,
            callback=callback,
            **params,
        )
        return stream.start()

    def prefix_reader(self) -> PrefixReader:
        return PrefixReader(
            self.s3_client,
            max_keys=self.settings.s3_list_max_keys,
            chunk_size=self.settings.s3_read_chunk_size,
        )

    async def list_keys(self, bucket: str, prefix: str) -> ObjectKeyList:
        """List every key under a prefix."""
        return await self.prefix_reader().list_keys(bucket, prefix)

    async def create_prefixed_read_stream(
        self,
        bucket: str,
        prefix: str,
        callback: StreamCallback | None = None,
        **params: Any,
    ) -> CombinedReader:
        """Stream the objects under a prefix, one after another.

        Args:
            bucket: The bucket to read from
            prefix: Key prefix to match
            callback: Called with ``(error, reader)`` once listing settles
            **params: Passed through to each ``get_object`` call

        Returns:
            A reader over the concatenated objects

        Raises:
            Exception: The listing error, unchanged
        """
        try:
            reader = await self.prefix_reader().open(bucket, prefix, **params)
        except Exception as e:
            logger.error(f"Failed to list s3://{bucket}/{prefix}: {e}")
            await invoke_callback(callback, e, None)
            raise

        await invoke_callback(callback, None, reader)
        return reader
