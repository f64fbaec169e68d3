"""Unit tests for the exception types."""

import pytest

from cloudstore.exceptions import (
    CloudStoreAPIError,
    CloudStoreDownloadError,
    CloudStoreError,
    CloudStoreFileNotFoundError,
    CloudStoreNetworkError,
    CloudStoreRequestError,
)

URL = "http://host/api/files/123"


class TestAPIErrorRendering:
    """Tests for the rendered form of CloudStoreAPIError."""

    def test_full_rendering(self):
        error = CloudStoreAPIError(500, "boom", "stack overflow", "POST", URL)
        assert str(error) == f"API error (500) [POST {URL}]: boom - stack overflow"

    def test_without_details(self):
        error = CloudStoreAPIError(403, "Access denied", method="DELETE", url=URL)
        assert str(error) == f"API error (403) [DELETE {URL}]: Access denied"

    def test_without_request_info(self):
        """Test that the bracketed part is omitted without method and URL."""
        assert str(CloudStoreAPIError(400, "bad")) == "API error (400): bad"

    def test_bare_status(self):
        assert str(CloudStoreAPIError(502)) == "API error (502)"

    def test_to_dict(self):
        error = CloudStoreAPIError(404, "gone", "really", "GET", URL)
        assert error.to_dict() == {
            "statusCode": 404,
            "message": "gone",
            "details": "really",
            "method": "GET",
            "url": URL,
        }

    def test_is_cloudstore_error(self):
        assert isinstance(CloudStoreAPIError(500), CloudStoreError)


class TestAPIErrorFromResponse:
    """Tests for building errors from failed responses."""

    def test_json_message_round_trip(self):
        """Test the rendered form of a JSON 404 error."""
        error = CloudStoreAPIError.from_response(
            404, b'{"message":"File not found"}', "GET", URL
        )
        assert error.status_code == 404
        assert error.message == "File not found"
        assert str(error) == f"API error (404) [GET {URL}]: File not found"

    def test_json_message_and_details(self):
        error = CloudStoreAPIError.from_response(
            400, '{"message":"Invalid input","details":"size too large"}', "POST", URL
        )
        assert error.details == "size too large"
        assert str(error).endswith(": Invalid input - size too large")

    def test_body_status_code_is_overridden(self):
        """Test that the real HTTP status wins over one in the body."""
        error = CloudStoreAPIError.from_response(
            409, b'{"status":200,"message":"Conflict"}', "PUT", URL
        )
        assert error.status_code == 409

    def test_error_field_used_as_message(self):
        error = CloudStoreAPIError.from_response(
            401, b'{"error":"Unauthorized"}', "GET", URL
        )
        assert error.message == "Unauthorized"

    def test_plain_text_body(self):
        error = CloudStoreAPIError.from_response(
            502, b"Bad gateway from proxy", "GET", URL
        )
        assert error.message == "Bad gateway from proxy"
        assert error.details == ""

    def test_json_array_body_is_plain_text(self):
        error = CloudStoreAPIError.from_response(500, b"[1, 2]", "GET", URL)
        assert error.message == "[1, 2]"

    def test_empty_body_uses_status_line(self):
        error = CloudStoreAPIError.from_response(
            404, b"", "GET", URL, reason="Not Found"
        )
        assert error.message == "404 Not Found"
        assert str(error) == f"API error (404) [GET {URL}]: 404 Not Found"


class TestOtherErrors:
    """Tests for the remaining error types."""

    def test_network_error_message(self):
        error = CloudStoreNetworkError("GET", URL, "connection refused")
        assert str(error) == f"request failed [GET {URL}]: connection refused"
        assert error.method == "GET"
        assert error.url == URL

    def test_file_not_found(self):
        error = CloudStoreFileNotFoundError("/tmp/missing.txt")
        assert str(error) == "File not found: /tmp/missing.txt"
        assert isinstance(error, CloudStoreRequestError)

    def test_download_error_is_request_error(self):
        with pytest.raises(CloudStoreRequestError):
            raise CloudStoreDownloadError("disk full")
