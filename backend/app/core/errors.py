"""Error taxonomy shared by the grant service and the upload client."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required key/URL missing or invalid at startup. Fatal."""


class UploadError(Exception):
    """Base class for failures of a single upload attempt.

    ``title``/``description`` are safe to show to the user; ``str(exc)`` may
    carry upstream details and is meant for logs only.
    """

    title = "Upload failed"
    description = "Your file could not be uploaded. Please try again."

    def __init__(self, message: str, *, title: str | None = None, description: str | None = None) -> None:
        super().__init__(message)
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description


class GrantAcquisitionError(UploadError):
    title = "Authentication failed"
    description = "Could not authorize the upload. Please try again."

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(f"Authentication request failed: {message}")
        self.status_code = status_code
        self.body = body


class UploadValidationError(UploadError):
    title = "File size too large"

    def __init__(self, message: str, *, limit_bytes: int, size: int) -> None:
        limit_mb = limit_bytes // (1024 * 1024)
        super().__init__(
            message,
            description=f"Please upload a file that is less than {limit_mb}MB in size",
        )
        self.limit_bytes = limit_bytes
        self.size = size


class UpstreamUploadError(UploadError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GrantReuseError(UpstreamUploadError):
    """A grant was offered for a second transmission."""
