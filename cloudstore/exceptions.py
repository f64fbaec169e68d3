"""Exceptions raised by the cloud storage client."""

from __future__ import annotations

import json
from typing import Any


class CloudStoreError(Exception):
    """Base exception for all cloud storage client errors."""


class CloudStoreConfigError(CloudStoreError):
    """Configuration is missing, unreadable or invalid."""


class CloudStoreValidationError(CloudStoreError, ValueError):
    """User input was rejected before any request was built."""


class CloudStoreRequestError(CloudStoreError):
    """A request could not be constructed.

    Raised for local faults that never reach the network: a malformed URL,
    a body that cannot be serialized, or a local file that cannot be read.
    """


class CloudStoreFileNotFoundError(CloudStoreRequestError):
    """Local file to upload does not exist."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"File not found: {file_path}")


class CloudStoreDownloadError(CloudStoreRequestError):
    """Downloaded content could not be saved locally."""


class CloudStoreNetworkError(CloudStoreError):
    """The HTTP exchange did not complete (DNS, connection, timeout)."""

    def __init__(self, method: str, url: str, cause: Exception | str):
        self.method = method
        self.url = url
        super().__init__(f"request failed [{method} {url}]: {cause}")


class CloudStoreInvalidResponseError(CloudStoreError):
    """A successful response carried a body that could not be decoded."""


class CloudStoreAPIError(CloudStoreError):
    """The server answered with a failure status (>= 400).

    This is the only error type used for completed HTTP exchanges.
    """

    def __init__(
        self,
        status_code: int,
        message: str = "",
        details: str = "",
        method: str = "",
        url: str = "",
    ):
        self.status_code = status_code
        self.message = message
        self.details = details
        self.method = method
        self.url = url
        super().__init__(self._render())

    def _render(self) -> str:
        base = f"API error ({self.status_code})"
        if self.method and self.url:
            base = f"{base} [{self.method} {self.url}]"
        if self.details:
            return f"{base}: {self.message} - {self.details}"
        if self.message:
            return f"{base}: {self.message}"
        return base

    def __str__(self) -> str:
        return self._render()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {
            "statusCode": self.status_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.method:
            result["method"] = self.method
        if self.url:
            result["url"] = self.url
        return result

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: bytes | str,
        method: str,
        url: str,
        reason: str = "",
    ) -> CloudStoreAPIError:
        """Build an error from a failed response.

        The body is interpreted as a JSON object with optional ``message``
        and ``details`` fields. Anything else is used verbatim as the
        message, falling back to the status line when the body is empty.

        Args:
            status_code: HTTP status code of the response
            body: Raw response body
            method: HTTP method of the request
            url: Fully resolved request URL
            reason: Reason phrase of the response (e.g. "Not Found")

        Returns:
            CloudStoreAPIError carrying status, method and URL
        """
        if isinstance(body, bytes):
            text = body.decode("utf-8", errors="replace")
        else:
            text = body

        fields = _parse_error_fields(text)
        if fields is not None:
            message, details = fields
            return cls(status_code, message, details, method, url)

        message = text or f"{status_code} {reason}".strip()
        return cls(status_code, message, "", method, url)


def _parse_error_fields(text: str) -> tuple[str, str] | None:
    """Extract (message, details) from a JSON error body, or None."""
    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    message = data.get("message")
    if message is None:
        message = data.get("error")
    details = data.get("details")

    for value in (message, details):
        if value is not None and not isinstance(value, str):
            return None

    return message or "", details or ""
