"""Shared fixtures for canoe tests."""

from canoe.testing.fixtures import (  # noqa: F401
    canoe_client,
    canoe_settings,
    mock_s3,
    s3_test_bucket,
)
