"""Pytest fixtures for canoe testing.

To use these fixtures, add to your conftest.py:

    pytest_plugins = ["canoe.testing.fixtures"]
"""

import pytest

from canoe.core.service import Canoe
from canoe.core.settings import CanoeSettings
from canoe.testing.mocks import InMemoryS3
from canoe.testing.utils import create_test_settings


@pytest.fixture
def s3_test_bucket() -> str:
    """Provide test bucket name."""
    return "test-bucket"


@pytest.fixture
def canoe_settings() -> CanoeSettings:
    """Provide test settings for canoe."""
    return create_test_settings()


@pytest.fixture
def mock_s3(s3_test_bucket: str) -> InMemoryS3:
    """Provide an in-memory S3 mock with the test bucket created."""
    s3 = InMemoryS3()
    s3._ensure_bucket(s3_test_bucket)
    yield s3
    s3.clear()


@pytest.fixture
def canoe_client(mock_s3: InMemoryS3, canoe_settings: CanoeSettings) -> Canoe:
    """Provide a Canoe instance backed by the in-memory mock."""
    return Canoe(mock_s3, canoe_settings)
