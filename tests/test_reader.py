"""Tests for storage/reader module and prefixed read streams."""

from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError

from canoe.core.exceptions import StreamStateError
from canoe.core.service import Canoe
from canoe.storage.reader import ObjectKeyList, PrefixReader, S3ObjectSource
from canoe.testing.utils import create_test_settings

BUCKET = "test-bucket"


async def put_objects(s3, objects: dict[str, bytes]) -> None:
    for key, body in objects.items():
        await s3.put_object(Bucket=BUCKET, Key=key, Body=body)


def get_object_keys(s3) -> list[str]:
    return [kwargs["Key"] for name, kwargs in s3.calls if name == "get_object"]


class TestObjectKeyList:
    """Tests for ObjectKeyList."""

    def test_append_and_iterate(self):
        """Test keys keep insertion order."""
        keys = ObjectKeyList()
        keys.append("b")
        keys.append("a")

        assert list(keys) == ["b", "a"]
        assert len(keys) == 2
        assert keys[0] == "b"
        assert keys == ["b", "a"]

    def test_append_after_finalize(self):
        """Test a finalized list rejects appends."""
        keys = ObjectKeyList(["a"]).finalize()

        assert keys.finalized
        with pytest.raises(StreamStateError):
            keys.append("b")
        assert list(keys) == ["a"]


class TestS3ObjectSource:
    """Tests for lazily fetched object sources."""

    @pytest.mark.asyncio
    async def test_fetches_on_first_read(self, mock_s3):
        """Test no request is made before the first read."""
        await put_objects(mock_s3, {"obj": b"content"})
        mock_s3.calls.clear()
        source = S3ObjectSource(mock_s3, BUCKET, "obj")

        assert not source.opened
        assert mock_s3.calls == []

        assert await source.read(3) == b"con"
        assert await source.read(100) == b"tent"
        assert await source.read(100) == b""
        assert get_object_keys(mock_s3) == ["obj"]

    @pytest.mark.asyncio
    async def test_close_before_read(self, mock_s3):
        """Test a source closed before reading never fetches."""
        source = S3ObjectSource(mock_s3, BUCKET, "obj")

        source.close()

        assert source.closed
        assert await source.read() == b""
        assert mock_s3.calls == []

    @pytest.mark.asyncio
    async def test_missing_object(self, mock_s3):
        """Test fetch errors pass through unchanged."""
        source = S3ObjectSource(mock_s3, BUCKET, "missing")

        with pytest.raises(ClientError) as exc_info:
            await source.read()

        assert exc_info.value.response["Error"]["Code"] == "NoSuchKey"


class TestPrefixReader:
    """Tests for PrefixReader."""

    @pytest.mark.asyncio
    async def test_list_keys_in_service_order(self, mock_s3):
        """Test keys come back in listing order, prefix-filtered."""
        await put_objects(
            mock_s3,
            {"logs/b": b"", "logs/a": b"", "logs/c": b"", "other/x": b""},
        )

        keys = await PrefixReader(mock_s3).list_keys(BUCKET, "logs/")

        assert keys == ["logs/a", "logs/b", "logs/c"]
        assert keys.finalized

    @pytest.mark.asyncio
    async def test_list_keys_follows_pages(self, mock_s3):
        """Test pagination is driven to the end."""
        await put_objects(mock_s3, {f"logs/{i}": b"" for i in range(5)})

        keys = await PrefixReader(mock_s3, max_keys=2).list_keys(BUCKET, "logs/")

        assert keys == [f"logs/{i}" for i in range(5)]
        list_calls = [kwargs for name, kwargs in mock_s3.calls if name == "list_objects_v2"]
        assert [c["ContinuationToken"] for c in list_calls] == [None, "2", "4"]

    @pytest.mark.asyncio
    async def test_iter_keys(self, mock_s3):
        """Test keys can be consumed lazily."""
        await put_objects(mock_s3, {"p/1": b"", "p/2": b""})

        keys = [key async for key in PrefixReader(mock_s3, max_keys=1).iter_keys(BUCKET, "p/")]

        assert keys == ["p/1", "p/2"]

    @pytest.mark.asyncio
    async def test_open_is_lazy(self, mock_s3):
        """Test opening the reader fetches no object yet."""
        await put_objects(mock_s3, {"logs/a": b"aaa", "logs/b": b"bbb"})

        reader = await PrefixReader(mock_s3).open(BUCKET, "logs/")

        assert len(reader) == 2
        assert get_object_keys(mock_s3) == []

        assert await reader.read(1) == b"a"
        assert get_object_keys(mock_s3) == ["logs/a"]

    @pytest.mark.asyncio
    async def test_later_page_failure_discards_keys(self, mock_s3):
        """Test a failing page fails the whole open without fetching."""
        await put_objects(mock_s3, {f"logs/{i}": b"x" for i in range(4)})
        original = mock_s3.list_objects_v2

        async def failing_second_page(**kwargs):
            if kwargs.get("ContinuationToken"):
                raise ClientError(
                    {"Error": {"Code": "InternalError", "Message": "oops"}},
                    "ListObjectsV2",
                )
            return await original(**kwargs)

        mock_s3.list_objects_v2 = failing_second_page

        with pytest.raises(ClientError):
            await PrefixReader(mock_s3, max_keys=2).open(BUCKET, "logs/")

        assert get_object_keys(mock_s3) == []


class TestPrefixedReadStream:
    """Tests for Canoe.create_prefixed_read_stream."""

    @pytest.mark.asyncio
    async def test_concatenates_objects(self, canoe_client, mock_s3):
        """Test objects are streamed fully and in key order."""
        objects = {
            "logs/2014-03-01": b"first day\n",
            "logs/2014-03-02": b"second day\n" * 100,
            "logs/2014-03-03": b"third day\n",
        }
        await put_objects(mock_s3, objects)

        reader = await canoe_client.create_prefixed_read_stream(BUCKET, "logs/")
        data = b"".join([chunk async for chunk in reader])

        assert data == b"".join(objects[key] for key in sorted(objects))
        assert get_object_keys(mock_s3) == sorted(objects)

    @pytest.mark.asyncio
    async def test_chunk_size_from_settings(self, mock_s3):
        """Test the reader uses the configured chunk size."""
        await put_objects(mock_s3, {"p/a": b"0123456789", "p/b": b"xyz"})
        canoe = Canoe(mock_s3, create_test_settings(s3_read_chunk_size=4))

        reader = await canoe.create_prefixed_read_stream(BUCKET, "p/")
        chunks = [chunk async for chunk in reader]

        assert chunks == [b"0123", b"4567", b"89", b"xyz"]

    @pytest.mark.asyncio
    async def test_page_size_from_settings(self, mock_s3):
        """Test the listing uses the configured page size."""
        await put_objects(mock_s3, {f"p/{i}": b"" for i in range(3)})
        canoe = Canoe(mock_s3, create_test_settings(s3_list_max_keys=1))

        keys = await canoe.list_keys(BUCKET, "p/")

        assert list(keys) == ["p/0", "p/1", "p/2"]
        assert mock_s3.call_names().count("list_objects_v2") == 3

    @pytest.mark.asyncio
    async def test_empty_prefix_ends_immediately(self, canoe_client, mock_s3):
        """Test a prefix without objects yields no bytes."""
        await put_objects(mock_s3, {"other/x": b"data"})

        reader = await canoe_client.create_prefixed_read_stream(BUCKET, "logs/")

        assert reader.exhausted
        assert await reader.read() == b""
        assert get_object_keys(mock_s3) == []

    @pytest.mark.asyncio
    async def test_listing_error_raises_and_notifies(self, canoe_client):
        """Test a listing error reaches both the caller and the callback."""
        calls = []

        with pytest.raises(ClientError) as exc_info:
            await canoe_client.create_prefixed_read_stream(
                "no-such-bucket",
                "logs/",
                callback=lambda err, reader: calls.append((err, reader)),
            )

        assert exc_info.value.response["Error"]["Code"] == "NoSuchBucket"
        assert calls == [(exc_info.value, None)]

    @pytest.mark.asyncio
    async def test_callback_receives_reader(self, canoe_client, mock_s3):
        """Test the callback gets the same reader that is returned."""
        await put_objects(mock_s3, {"logs/a": b"a"})
        calls = []

        reader = await canoe_client.create_prefixed_read_stream(
            BUCKET, "logs/", callback=lambda err, r: calls.append((err, r))
        )

        assert calls == [(None, reader)]

    @pytest.mark.asyncio
    async def test_fetch_failure_mid_sequence(self, canoe_client, mock_s3):
        """Test a failed fetch ends the stream after earlier objects."""
        await put_objects(
            mock_s3, {"logs/a": b"alpha", "logs/b": b"beta", "logs/c": b"gamma"}
        )
        original = mock_s3.get_object

        async def failing_get(**kwargs):
            if kwargs["Key"] == "logs/b":
                raise ClientError(
                    {"Error": {"Code": "AccessDenied", "Message": "denied"}},
                    "GetObject",
                )
            return await original(**kwargs)

        mock_s3.get_object = AsyncMock(side_effect=failing_get)
        reader = await canoe_client.create_prefixed_read_stream(BUCKET, "logs/")

        assert await reader.read(100) == b"alpha"
        with pytest.raises(ClientError):
            await reader.read(100)
        assert await reader.read(100) == b""

        fetched = [call.kwargs["Key"] for call in mock_s3.get_object.await_args_list]
        assert fetched == ["logs/a", "logs/b"]

    @pytest.mark.asyncio
    async def test_get_object_params_pass_through(self, canoe_client, mock_s3):
        """Test extra params reach every get_object call."""
        await put_objects(mock_s3, {"logs/a": b"a", "logs/b": b"b"})

        reader = await canoe_client.create_prefixed_read_stream(
            BUCKET, "logs/", RequestPayer="requester"
        )
        await reader.read()

        payers = [
            kwargs.get("RequestPayer")
            for name, kwargs in mock_s3.calls
            if name == "get_object"
        ]
        assert payers == ["requester", "requester"]
