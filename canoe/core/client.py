"""S3 client factory and the client protocol canoe relies on."""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Protocol, runtime_checkable

from aiobotocore.client import AioBaseClient
from aiobotocore.session import get_session
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from canoe.core.exceptions import S3ConnectionError
from canoe.core.settings import CanoeSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class S3ClientProtocol(Protocol):
    """Protocol for the S3 operations canoe delegates to.

    An aiobotocore S3 client satisfies it, and so does
    :class:`canoe.testing.InMemoryS3`.
    """

    async def create_multipart_upload(
        self, Bucket: str, Key: str, **kwargs
    ) -> dict[str, Any]:
        """Start a multipart upload."""
        ...

    async def upload_part(
        self,
        Bucket: str,
        Key: str,
        UploadId: str,
        PartNumber: int,
        Body: bytes,
        **kwargs,
    ) -> dict[str, Any]:
        """Upload one part of a multipart upload."""
        ...

    async def complete_multipart_upload(
        self,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: dict[str, Any],
        **kwargs,
    ) -> dict[str, Any]:
        """Assemble the uploaded parts into the final object."""
        ...

    async def abort_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, **kwargs
    ) -> dict[str, Any]:
        """Abort a multipart upload and discard its parts."""
        ...

    async def list_objects_v2(self, Bucket: str, **kwargs) -> dict[str, Any]:
        """List objects in S3."""
        ...

    async def get_object(self, Bucket: str, Key: str, **kwargs) -> dict[str, Any]:
        """Get an object from S3."""
        ...


def adjust_endpoint_url(endpoint_url: str | None) -> str | None:
    """Normalize a custom endpoint URL.

    Args:
        endpoint_url: The S3 endpoint URL

    Returns:
        The URL without a trailing slash, or None
    """
    if not endpoint_url:
        return None
    return endpoint_url.rstrip("/")


class S3ClientManager:
    """Creates aiobotocore S3 clients from :class:`CanoeSettings`.

    Example:
        manager = S3ClientManager(CanoeSettings())
        async with manager.get_async_client() as s3:
            canoe = Canoe(s3)
    """

    def __init__(self, settings: CanoeSettings | None = None):
        """Initialize the client manager.

        Args:
            settings: canoe settings (read from the environment if omitted)
        """
        self.settings = settings or CanoeSettings()
        self._session = None
        self._endpoint_url = adjust_endpoint_url(self.settings.aws_url)
        self._client_config = Config(
            s3={"addressing_style": "path"},
            retries={
                "max_attempts": self.settings.aws_retry_attempts,
                "mode": "standard",
            },
        )

    @property
    def endpoint_url(self) -> str | None:
        return self._endpoint_url

    @asynccontextmanager
    async def get_async_client(self) -> AsyncGenerator[AioBaseClient, None]:
        """Get an async S3 client within a context manager.

        Errors raised by S3 operations inside the block propagate untouched;
        only failures to build the client are wrapped.

        Yields:
            An aiobotocore S3 client

        Raises:
            S3ConnectionError: If client creation fails
        """
        if self._session is None:
            self._session = get_session()

        async with AsyncExitStack() as stack:
            try:
                client = await stack.enter_async_context(
                    self._session.create_client(
                        "s3",
                        region_name=self.settings.aws_default_region,
                        aws_access_key_id=self.settings.aws_access_key_id,
                        aws_secret_access_key=self.settings.aws_secret_access_key,
                        endpoint_url=self._endpoint_url,
                        config=self._client_config,
                    )
                )
            except (BotoCoreError, ValueError) as e:
                raise S3ConnectionError(
                    original_error=e,
                    endpoint=self._endpoint_url,
                ) from e

            logger.debug(
                f"Created S3 client for endpoint {self._endpoint_url or 'AWS'}"
            )
            yield client
