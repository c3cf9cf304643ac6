"""Testing utilities for canoe."""

from unittest import IsolatedAsyncioTestCase

from canoe.core.service import Canoe
from canoe.core.settings import CanoeSettings
from canoe.testing.mocks import InMemoryS3


def create_test_settings(**overrides) -> CanoeSettings:
    """Create canoe settings for testing.

    Args:
        **overrides: Settings to override

    Returns:
        CanoeSettings instance pointing at a local endpoint
    """
    values = {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "aws_default_region": "us-east-1",
        "aws_url": "http://localhost:4566",
    }
    values.update(overrides)
    return CanoeSettings(**values)


class S3TestCase(IsolatedAsyncioTestCase):
    """Base test case class for code built on canoe.

    This class provides:
    - An in-memory S3 mock with the test bucket created
    - Test settings
    - A ``Canoe`` instance bound to both

    Example:
        >>> class TestExport(S3TestCase):
        ...     async def test_export_writes_object(self):
        ...         await export_report(self.canoe, self.bucket_name, "report.csv")
        ...         self.assertObjectEqual("report.csv", b"id,total\\n")
    """

    bucket_name: str = "test-bucket"

    def setUp(self) -> None:
        """Set up test fixtures."""
        super().setUp()
        self.s3_client = InMemoryS3()
        self.s3_client._ensure_bucket(self.bucket_name)
        self.settings = create_test_settings()
        self.canoe = Canoe(self.s3_client, self.settings)

    def tearDown(self) -> None:
        """Clean up after test."""
        self.s3_client.clear()
        super().tearDown()

    async def put_objects(self, objects: dict[str, bytes]) -> None:
        """Store several objects in the test bucket.

        Args:
            objects: Mapping of key to object bytes
        """
        for key, body in objects.items():
            await self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
            )

    def assertObjectEqual(self, key: str, expected: bytes) -> None:
        """Assert an object in the test bucket holds exactly ``expected``."""
        actual = self.s3_client.get_object_bytes(self.bucket_name, key)
        self.assertIsNotNone(actual, f"Object {key!r} does not exist")
        self.assertEqual(actual, expected)

    def assertNoPendingUploads(self) -> None:
        """Assert every multipart upload was completed or aborted."""
        pending = [
            upload["Key"]
            for upload in self.s3_client._uploads.values()
            if upload["Bucket"] == self.bucket_name
        ]
        self.assertEqual(pending, [], f"Multipart uploads left open: {pending}")
