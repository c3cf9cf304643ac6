"""Custom exceptions for canoe.

Errors returned by S3 itself (``botocore.exceptions.ClientError`` and
friends) are never wrapped: they reach the caller exactly as the client
raised them. The classes below cover the failures canoe detects locally.
"""


class CanoeError(Exception):
    """Base exception for all canoe errors.

    All canoe exceptions inherit from this class, making it easy
    to catch all library-specific errors.
    """

    def __init__(self, message: str, hint: str | None = None):
        """Initialize the exception.

        Args:
            message: The error message
            hint: Optional hint for resolving the error
        """
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class StreamStateError(CanoeError):
    """Raised when a stream operation is not valid in the current state.

    Writing to a stream that was closed, aborted, or whose part upload
    failed ends up here.
    """

    def __init__(self, message: str, state: str | None = None):
        """Initialize the state error.

        Args:
            message: The error message
            state: Name of the state the stream was in
        """
        self.state = state

        hint = None
        if state == "failed":
            hint = "A part upload failed or was cancelled. Call abort() to release the upload."
        elif state in ("completed", "aborted"):
            hint = "Create a new write stream for another upload."

        super().__init__(message, hint)


class S3ConnectionError(CanoeError):
    """Raised when an S3 client cannot be created.

    This exception wraps underlying connection errors with helpful
    context about what might be wrong.
    """

    def __init__(
        self,
        message: str | None = None,
        original_error: Exception | None = None,
        endpoint: str | None = None,
    ):
        """Initialize the connection error.

        Args:
            message: Custom error message (optional)
            original_error: The original exception that caused this error
            endpoint: The S3 endpoint URL being connected to
        """
        self.original_error = original_error
        self.endpoint = endpoint

        if message:
            final_message = message
            hint = None
        elif original_error:
            final_message, hint = self._format_error(original_error, endpoint)
        else:
            final_message = "Failed to connect to S3"
            hint = "Check your AWS credentials and network connection."

        super().__init__(final_message, hint)

    def _format_error(
        self, error: Exception, endpoint: str | None
    ) -> tuple[str, str | None]:
        """Format the error message based on the underlying error."""
        error_str = str(error)

        if "Could not connect" in error_str or "Connection refused" in error_str:
            if endpoint and "localhost" in endpoint:
                return (
                    f"Could not connect to S3 at {endpoint}",
                    "If using LocalStack, ensure it's running: docker run -d -p 4566:4566 localstack/localstack",
                )
            return (
                f"Could not connect to S3 at {endpoint or 'AWS'}",
                "Check your network connection and AWS_URL setting.",
            )

        if "InvalidAccessKeyId" in error_str:
            return (
                "Invalid AWS access key ID",
                "Check your AWS_ACCESS_KEY_ID environment variable.",
            )

        if "SignatureDoesNotMatch" in error_str:
            return (
                "AWS signature mismatch",
                "Check your AWS_SECRET_ACCESS_KEY environment variable.",
            )

        return (f"S3 connection error: {error}", None)


class CanoeConfigurationError(CanoeError):
    """Raised when canoe configuration is invalid."""

    def __init__(
        self,
        message: str | None = None,
        missing_fields: list[str] | None = None,
    ):
        """Initialize the configuration error.

        Args:
            message: Custom error message
            missing_fields: List of missing configuration fields
        """
        self.missing_fields = missing_fields or []

        if missing_fields:
            fields_str = ", ".join(missing_fields)
            message = f"Missing required configuration: {fields_str}"
            hint = "Set these as environment variables or in your .env file."
        else:
            hint = "Check your canoe configuration."

        super().__init__(message or "Invalid canoe configuration", hint)
