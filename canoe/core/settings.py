"""Settings for canoe, loaded from the environment or a .env file."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# S3 rejects non-final multipart parts smaller than this.
MIN_PART_SIZE = 5 * 1024 * 1024
# S3 never returns more than this many keys per listing page.
MAX_LIST_KEYS = 1000


class CanoeSettings(BaseSettings):
    """Runtime configuration.

    AWS credentials follow the usual ``AWS_*`` variable names. When they are
    left unset, botocore falls back to its own credential chain.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_default_region: str = "us-east-1"
    aws_url: str | None = None
    aws_retry_attempts: int = Field(default=3, ge=0)

    s3_part_size: int = Field(default=MIN_PART_SIZE, ge=MIN_PART_SIZE)
    s3_read_chunk_size: int = Field(default=64 * 1024, gt=0)
    s3_list_max_keys: int = Field(default=MAX_LIST_KEYS, gt=0, le=MAX_LIST_KEYS)
