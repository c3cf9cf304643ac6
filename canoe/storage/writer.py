"""Multipart uploads exposed as an async writable stream."""

import asyncio
import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO

from canoe.core.callbacks import StreamCallback, invoke_callback
from canoe.core.exceptions import CanoeConfigurationError, StreamStateError
from canoe.core.settings import MIN_PART_SIZE

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    """Lifecycle of a multipart upload session."""

    INITIATING = "initiating"
    OPEN = "open"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class CompletedPart:
    """A part acknowledged by S3."""

    part_number: int
    etag: str

    def to_dict(self) -> dict:
        """Convert to the shape ``complete_multipart_upload`` expects."""
        return {"ETag": self.etag, "PartNumber": self.part_number}


@dataclass
class UploadSession:
    """Bookkeeping for one multipart upload.

    Attributes:
        bucket: Destination bucket
        key: Destination key
        upload_id: Identifier assigned by S3 when the upload starts
        buffer: Bytes written but not yet sent as a part
        parts: Parts acknowledged so far, in upload order
        state: Current lifecycle state
    """

    bucket: str
    key: str
    upload_id: str | None = None
    buffer: bytearray = field(default_factory=bytearray)
    parts: list[CompletedPart] = field(default_factory=list)
    state: UploadState = UploadState.INITIATING

    @property
    def location(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @property
    def next_part_number(self) -> int:
        return len(self.parts) + 1

    def assign_upload_id(self, upload_id: str) -> None:
        """Record the upload ID and open the session for writes."""
        if self.upload_id is not None:
            raise StreamStateError(
                f"Upload ID already assigned for {self.location}",
                state=self.state.value,
            )
        self.upload_id = upload_id
        self.state = UploadState.OPEN

    def record_part(self, etag: str) -> CompletedPart:
        """Append the next part with its ETag."""
        part = CompletedPart(part_number=self.next_part_number, etag=etag)
        self.parts.append(part)
        return part

    def completion_payload(self) -> dict:
        """Build the ``MultipartUpload`` argument listing every part."""
        return {"Parts": [part.to_dict() for part in self.parts]}


class S3WriteStream:
    """An async writable stream backed by an S3 multipart upload.

    Bytes written are buffered and sent as parts of ``part_size`` bytes.
    ``close()`` sends whatever is left as the final part and completes the
    upload. Writes issued before S3 has assigned the upload ID wait for it.

    Example:
        stream = S3WriteStream(s3_client, "logs", "2014/app.log")
        stream.start()
        await stream.write(b"hello")
        await stream.close()

    Or as a context manager, which aborts the upload if the block raises:

        async with S3WriteStream(s3_client, "logs", "app.log") as stream:
            await stream.write_from(open("app.log", "rb"))
    """

    def __init__(
        self,
        s3_client,
        bucket: str,
        key: str,
        part_size: int = MIN_PART_SIZE,
        callback: StreamCallback | None = None,
        **params: Any,
    ):
        """Initialize the stream. No request is made until :meth:`start`.

        Args:
            s3_client: The S3 client to use
            bucket: Destination bucket
            key: Destination key
            part_size: Size of every part except the last
            callback: Called with ``(error, stream)`` once initiation settles
            **params: Extra arguments for ``create_multipart_upload``
                (``ContentType``, ``Metadata``, ...)

        Raises:
            CanoeConfigurationError: If ``part_size`` is below the S3 minimum
        """
        if part_size < MIN_PART_SIZE:
            raise CanoeConfigurationError(
                f"part_size must be at least {MIN_PART_SIZE} bytes, got {part_size}"
            )
        self.s3_client = s3_client
        self.part_size = part_size
        self.params = params
        self._session = UploadSession(bucket=bucket, key=key)
        self._callback = callback
        self._lock = asyncio.Lock()
        self._init_task: asyncio.Task | None = None
        self._init_error: BaseException | None = None
        self._ready = asyncio.Event()
        self._bytes_written = 0

    @property
    def bucket(self) -> str:
        return self._session.bucket

    @property
    def key(self) -> str:
        return self._session.key

    @property
    def upload_id(self) -> str | None:
        return self._session.upload_id

    @property
    def state(self) -> UploadState:
        return self._session.state

    @property
    def parts(self) -> tuple[CompletedPart, ...]:
        return tuple(self._session.parts)

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    def start(self) -> "S3WriteStream":
        """Schedule the ``create_multipart_upload`` call.

        Must be called from a running event loop. Calling it again is a no-op.

        Raises:
            StreamStateError: If the stream was aborted before it started
        """
        if self._init_task is None:
            self._ensure_state("start", UploadState.INITIATING)
            self._init_task = asyncio.ensure_future(self._initiate())
        return self

    async def _initiate(self) -> None:
        session = self._session
        logger.debug(f"Initiating multipart upload for {session.location}")
        try:
            response = await self.s3_client.create_multipart_upload(
                Bucket=session.bucket,
                Key=session.key,
                **self.params,
            )
        except asyncio.CancelledError:
            session.state = UploadState.FAILED
            logger.warning(f"Initiation of {session.location} was cancelled")
            raise
        except Exception as e:
            self._init_error = e
            session.state = UploadState.FAILED
            logger.error(f"Failed to initiate multipart upload for {session.location}: {e}")
        else:
            session.assign_upload_id(response["UploadId"])
            logger.debug(f"Upload {session.upload_id} opened for {session.location}")
        finally:
            self._ready.set()

        # _ready is set first; the callback may write to the stream
        try:
            if self._init_error is not None:
                await invoke_callback(self._callback, self._init_error, None)
            else:
                await invoke_callback(self._callback, None, self)
        except Exception as e:
            logger.error(f"Callback for {session.location} raised: {e}")

    async def _await_initiation(self) -> None:
        self.start()
        await self._ready.wait()

    async def _wait_open(self, action: str, *allowed: UploadState) -> None:
        await self._await_initiation()
        if self._init_error is not None and self._session.state is UploadState.FAILED:
            raise self._init_error
        self._ensure_state(action, *allowed)

    async def wait_ready(self) -> "S3WriteStream":
        """Wait until S3 has assigned the upload ID.

        Returns:
            The stream itself

        Raises:
            Exception: The error ``create_multipart_upload`` failed with
        """
        await self._await_initiation()
        if self._init_error is not None:
            raise self._init_error
        return self

    def _ensure_state(self, action: str, *allowed: UploadState) -> None:
        state = self._session.state
        if state not in allowed:
            raise StreamStateError(
                f"Cannot {action} {self._session.location}: stream is {state.value}",
                state=state.value,
            )

    async def _upload_part(self, chunk: bytes) -> CompletedPart:
        session = self._session
        part_number = session.next_part_number
        logger.debug(
            f"Uploading part {part_number} ({len(chunk)} bytes) of {session.location}"
        )
        try:
            response = await self.s3_client.upload_part(
                Bucket=session.bucket,
                Key=session.key,
                UploadId=session.upload_id,
                PartNumber=part_number,
                Body=chunk,
            )
        except asyncio.CancelledError:
            # the chunk already left the buffer, so the upload can only be aborted
            session.state = UploadState.FAILED
            logger.warning(f"Part {part_number} of {session.location} was cancelled")
            raise
        except Exception as e:
            session.state = UploadState.FAILED
            logger.error(f"Part {part_number} of {session.location} failed: {e}")
            raise
        return session.record_part(response["ETag"])

    async def write(self, data: bytes) -> int:
        """Write bytes to the stream.

        Full parts are uploaded before this returns, so a slow part upload
        holds back later writes.

        Args:
            data: The bytes to write

        Returns:
            Number of bytes accepted

        Raises:
            StreamStateError: If the stream is closed, aborted or failed
        """
        async with self._lock:
            await self._wait_open("write to", UploadState.OPEN)

            buffer = self._session.buffer
            buffer.extend(data)
            self._bytes_written += len(data)
            while len(buffer) >= self.part_size:
                chunk = bytes(buffer[: self.part_size])
                del buffer[: self.part_size]
                await self._upload_part(chunk)
            return len(data)

    async def write_from(
        self,
        source: BinaryIO | AsyncIterable[bytes],
        chunk_size: int | None = None,
    ) -> int:
        """Copy a binary file object or an async iterable of bytes into the stream.

        Returns:
            Number of bytes written
        """
        total = 0
        if hasattr(source, "__aiter__"):
            async for chunk in source:
                total += await self.write(chunk)
            return total

        chunk_size = chunk_size or self.part_size
        while True:
            chunk = await asyncio.to_thread(source.read, chunk_size)
            if not chunk:
                break
            total += await self.write(chunk)
        return total

    async def close(self) -> dict:
        """Upload the remaining bytes and complete the upload.

        An empty stream still uploads one empty part. If the completion call
        fails the stream stays ``completing`` and ``close()`` may be called
        again to retry it, or :meth:`abort` to give up.

        Returns:
            The ``complete_multipart_upload`` response

        Raises:
            StreamStateError: If the stream is already closed, aborted or failed
        """
        async with self._lock:
            await self._wait_open("close", UploadState.OPEN, UploadState.COMPLETING)

            session = self._session
            if session.state is UploadState.OPEN:
                session.state = UploadState.COMPLETING
                if session.buffer or not session.parts:
                    chunk = bytes(session.buffer)
                    session.buffer.clear()
                    await self._upload_part(chunk)

            try:
                response = await self.s3_client.complete_multipart_upload(
                    Bucket=session.bucket,
                    Key=session.key,
                    UploadId=session.upload_id,
                    MultipartUpload=session.completion_payload(),
                )
            except Exception as e:
                logger.error(f"Failed to complete upload {session.upload_id}: {e}")
                raise

            session.state = UploadState.COMPLETED
            logger.info(
                f"Uploaded {self._bytes_written} bytes to {session.location} "
                f"in {len(session.parts)} part(s)"
            )
            return response

    async def abort(self) -> dict | None:
        """Abort the multipart upload, discarding any uploaded parts.

        Returns:
            The ``abort_multipart_upload`` response, or None when S3 never
            assigned an upload ID

        Raises:
            StreamStateError: If the upload was already completed or aborted
        """
        async with self._lock:
            session = self._session
            if self._init_task is None:
                self._ensure_state("abort", UploadState.INITIATING)
                session.state = UploadState.ABORTED
                return None

            await self._await_initiation()
            if session.upload_id is None:
                # initiation failed or was cancelled; there is nothing to release
                self._ensure_state("abort", UploadState.FAILED)
                session.state = UploadState.ABORTED
                return None

            self._ensure_state(
                "abort",
                UploadState.OPEN,
                UploadState.COMPLETING,
                UploadState.FAILED,
            )
            response = await self.s3_client.abort_multipart_upload(
                Bucket=session.bucket,
                Key=session.key,
                UploadId=session.upload_id,
            )
            session.state = UploadState.ABORTED
            session.buffer.clear()
            logger.warning(f"Aborted upload {session.upload_id} for {session.location}")
            return response

    async def __aenter__(self) -> "S3WriteStream":
        return await self.wait_ready()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.close()
        elif self._session.state not in (UploadState.COMPLETED, UploadState.ABORTED):
            await self.abort()

    def __repr__(self) -> str:
        return (
            f"S3WriteStream({self._session.location!r}, "
            f"state={self._session.state.value!r}, parts={len(self._session.parts)})"
        )
