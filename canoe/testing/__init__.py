"""Testing utilities for canoe.

Usage in conftest.py:
    from canoe.testing import InMemoryS3, mock_s3_client

    @pytest.fixture
    def s3_client():
        with mock_s3_client() as client:
            yield client

Or use provided fixtures directly:
    pytest_plugins = ["canoe.testing.fixtures"]
"""

from canoe.testing.mocks import InMemoryBody, InMemoryS3, mock_s3_client
from canoe.testing.utils import S3TestCase, create_test_settings

__all__ = [
    "InMemoryBody",
    "InMemoryS3",
    "mock_s3_client",
    "create_test_settings",
    "S3TestCase",
]
