"""API client for the cloud storage service."""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import posixpath
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from urllib.parse import unquote

import httpx

from .config import ClientConfig
from .exceptions import (
    CloudStoreAPIError,
    CloudStoreDownloadError,
    CloudStoreFileNotFoundError,
    CloudStoreInvalidResponseError,
    CloudStoreNetworkError,
    CloudStoreRequestError,
    CloudStoreValidationError,
)
from .validation import (
    is_uuid,
    validate_email,
    validate_filename,
    validate_page_number,
    validate_page_size,
    validate_path,
    validate_username,
    validate_uuid,
)

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_NAME = "download"
DOWNLOAD_CHUNK_SIZE = 8192

# Matches filename="quoted" and filename=bare as well as the filename* form
_CONTENT_DISPOSITION_FILENAME = re.compile(
    r'filename(\*)?\s*=\s*(?:"([^"]+)"|([^;]+))', re.IGNORECASE
)


def extract_filename_from_content_disposition(header: str) -> str:
    """Extract the filename parameter from a Content-Disposition header.

    Handles ``filename="name.ext"``, ``filename=name.ext`` and the RFC 5987
    ``filename*=UTF-8''name.ext`` form. When both are present, ``filename*``
    wins.

    Args:
        header: Raw header value

    Returns:
        The unsanitized filename, or an empty string if none is present
    """
    if not header:
        return ""

    matches = list(_CONTENT_DISPOSITION_FILENAME.finditer(header))
    if not matches:
        return ""

    match = next((m for m in matches if m.group(1)), matches[0])
    value = (match.group(2) or match.group(3) or "").strip().strip('"')
    if match.group(1) and "''" in value:
        charset, value = value.split("''", 1)
        try:
            value = unquote(value, encoding=charset or "utf-8", errors="replace")
        except LookupError:
            value = unquote(value, errors="replace")
    return value


def sanitize_filename(filename: str) -> str:
    """Reduce a server-supplied filename to a safe basename.

    Directory components (with either separator) are dropped, remaining
    ``..`` sequences and control characters become ``_``, and names that
    end up empty, ``.`` or ``..`` become ``download``.

    Examples:
        >>> sanitize_filename('../../etc/passwd')
        'passwd'
        >>> sanitize_filename('..')
        'download'
    """
    name = posixpath.basename(filename.replace("\\", "/").rstrip("/"))
    if name in ("", ".", ".."):
        return DEFAULT_DOWNLOAD_NAME

    name = name.replace("..", "_")
    name = "".join("_" if ord(ch) < 32 else ch for ch in name)
    return name or DEFAULT_DOWNLOAD_NAME


def filename_from_request_path(path: str) -> str:
    """Derive a filename from the last segment of an API path.

    ``/api/files/123`` gives ``123``; a trailing ``download`` segment (as in
    ``/api/files/123/download``) or an empty path gives ``download``.
    """
    request_path = path.split("?", 1)[0]
    segments = [segment for segment in request_path.split("/") if segment]
    if not segments or segments[-1] == DEFAULT_DOWNLOAD_NAME:
        return DEFAULT_DOWNLOAD_NAME
    return sanitize_filename(segments[-1])


def resolve_download_destination(output_path: str | Path | None, filename: str) -> Path:
    """Work out where a downloaded file should be written.

    Args:
        output_path: Existing directory, directory path ending in a separator
            (created if missing), explicit file path, or empty for the
            current working directory
        filename: Sanitized filename used when no explicit file is given

    Returns:
        Destination file path

    Raises:
        CloudStoreDownloadError: If the parent directory cannot be created
    """
    if not output_path:
        return Path(filename)

    destination = Path(output_path)
    if destination.is_dir():
        return destination / filename

    # A trailing separator names a directory even if it does not exist yet
    if str(output_path).endswith(("/", os.sep)):
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CloudStoreDownloadError(
                f"failed to create output directory: {e}"
            ) from e
        return destination / filename

    parent = destination.parent
    if str(parent) not in ("", "."):
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CloudStoreDownloadError(
                f"failed to create output directory: {e}"
            ) from e
    return destination


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial download %s: %s", path, e)


class CloudStoreClient:
    """Client for interacting with the cloud storage API.

    One instance serves one CLI invocation. All requests carry the single
    credential header derived from ``config.credential``.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            config: Resolved base URL, credential and timeout
            transport: Optional httpx transport (used by tests to mock the server)
        """
        self.config = config
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> CloudStoreClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================
    # Request plumbing
    # =========================

    def build_url(self, path: str, params: dict[str, Any] | None = None) -> str:
        """Join the base URL and an API path.

        Args:
            path: API path, with or without a leading slash
            params: Optional query parameters; ``None`` values are dropped

        Returns:
            The fully resolved URL

        Raises:
            CloudStoreRequestError: If the result is not a valid http(s) URL
        """
        if not path.startswith("/"):
            path = "/" + path
        full_url = self.base_url + path

        try:
            url = httpx.URL(full_url)
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            raise CloudStoreRequestError(f"invalid URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise CloudStoreRequestError(f"invalid URL: {full_url}")

        if params:
            filtered = {k: v for k, v in params.items() if v is not None}
            if filtered:
                url = url.copy_merge_params(filtered)
        return str(url)

    def _headers(self, accept: str, content_type: str | None = None) -> dict[str, str]:
        headers = {"Accept": accept}
        if content_type:
            headers["Content-Type"] = content_type
        headers.update(self.config.credential.auth_headers())
        return headers

    def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        """Send a request, mapping transport failures to CloudStoreNetworkError."""
        logger.debug("%s %s", request.method, request.url)
        try:
            response = self._get_client().send(request, stream=stream)
        except httpx.RequestError as e:
            raise CloudStoreNetworkError(request.method, str(request.url), e) from e
        logger.debug(
            "%s %s -> %s", request.method, request.url, response.status_code
        )
        return response

    def _check_status(self, response: httpx.Response, method: str, url: str) -> None:
        """Raise CloudStoreAPIError for any status >= 400.

        The body must already have been read.
        """
        if response.status_code < 400:
            return
        error = CloudStoreAPIError.from_response(
            response.status_code,
            response.content,
            method,
            url,
            reason=response.reason_phrase,
        )
        logger.debug("API error: %s", error)
        raise error

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CloudStoreInvalidResponseError(
                f"failed to decode response: {e}"
            ) from e

    def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """Make a JSON API request.

        Args:
            method: HTTP method
            path: API path relative to the base URL
            body: Optional JSON-serializable request body
            params: Optional query parameters
            expect_json: Decode the response body; when False it is discarded

        Returns:
            Decoded JSON response (None for an empty body or when
            ``expect_json`` is False)

        Raises:
            CloudStoreRequestError: If the URL or body is invalid
            CloudStoreNetworkError: If no response was received
            CloudStoreAPIError: If the server returned status >= 400
            CloudStoreInvalidResponseError: If the response is not valid JSON
        """
        url = self.build_url(path, params)

        content = None
        if body is not None:
            try:
                content = json.dumps(body).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise CloudStoreRequestError(
                    f"failed to serialize request body: {e}"
                ) from e

        request = self._get_client().build_request(
            method,
            url,
            content=content,
            headers=self._headers("application/json", "application/json"),
        )
        response = self._send(request)
        self._check_status(response, method, url)

        if not expect_json:
            return None
        return self._decode_json(response)

    # =========================
    # HTTP Methods
    # =========================

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """Make a GET request."""
        return self._request("GET", path, params=params, expect_json=expect_json)

    def post(self, path: str, body: Any = None, expect_json: bool = True) -> Any:
        """Make a POST request with an optional JSON body."""
        return self._request("POST", path, body=body, expect_json=expect_json)

    def put(self, path: str, body: Any, expect_json: bool = True) -> Any:
        """Make a PUT request with a JSON body."""
        return self._request("PUT", path, body=body, expect_json=expect_json)

    def delete(self, path: str, params: dict[str, Any] | None = None) -> None:
        """Make a DELETE request. The response body is discarded."""
        self._request("DELETE", path, params=params, expect_json=False)

    # =========================
    # Upload / Download
    # =========================

    def upload_file(
        self,
        path: str,
        file_path: str | Path,
        folder_path: str | None = None,
        filename: str | None = None,
    ) -> Any:
        """Upload a local file as multipart/form-data.

        The ``file`` part always carries the local file's basename. The
        optional ``folderPath`` and ``filename`` text fields are sent only
        when non-empty; ``filename`` is a display-name hint for the server.

        Args:
            path: Upload endpoint path, e.g. "/api/files/upload"
            file_path: Local file to upload
            folder_path: Optional destination folder (e.g. "/photos/2024")
            filename: Optional filename override

        Returns:
            Decoded JSON response, or None for an empty body

        Raises:
            CloudStoreFileNotFoundError: If the local file does not exist
            CloudStoreRequestError: If the file cannot be read
            CloudStoreNetworkError: If no response was received
            CloudStoreAPIError: If the server returned status >= 400
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise CloudStoreFileNotFoundError(str(file_path))

        url = self.build_url(path)

        try:
            with open(file_path, "rb") as f:
                file_content = f.read()
        except OSError as e:
            raise CloudStoreRequestError(f"failed to open file: {e}") from e

        mime_type, _ = mimetypes.guess_type(file_path.name)
        files = {
            "file": (
                file_path.name,
                file_content,
                mime_type or "application/octet-stream",
            )
        }
        data = {}
        if folder_path:
            data["folderPath"] = folder_path
        if filename:
            data["filename"] = filename

        request = self._get_client().build_request(
            "POST",
            url,
            files=files,
            data=data or None,
            headers=self._headers("application/json"),
        )
        # Buffer the form so the length is known before sending
        body = request.read()
        request.headers["Content-Length"] = str(len(body))

        logger.debug("Uploading %s (%d bytes)", file_path, len(file_content))
        response = self._send(request)
        self._check_status(response, "POST", url)
        return self._decode_json(response)

    def download_file(
        self,
        path: str,
        output_path: str | Path | None = "",
        params: dict[str, Any] | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
        fallback_filename: str | None = None,
    ) -> Path:
        """Download a file and stream it to disk.

        The saved name comes from the Content-Disposition header, then
        ``fallback_filename``, then the last segment of ``path``, then
        ``download``. See
        :func:`resolve_download_destination` for how ``output_path`` is
        interpreted.

        Args:
            path: Download endpoint path, e.g. "/api/files/{id}/download"
            output_path: Directory, file path, or empty for the current directory
            params: Optional query parameters
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)
            fallback_filename: Name to use when the response carries none

        Returns:
            Path where the file was saved

        Raises:
            CloudStoreNetworkError: If the transfer did not complete
            CloudStoreAPIError: If the server returned status >= 400
            CloudStoreDownloadError: If the file could not be written
        """
        url = self.build_url(path, params)
        request = self._get_client().build_request(
            "GET", url, headers=self._headers("*/*")
        )
        response = self._send(request, stream=True)

        try:
            if response.status_code >= 400:
                try:
                    response.read()
                except httpx.HTTPError as e:
                    raise CloudStoreNetworkError("GET", url, e) from e
                self._check_status(response, "GET", url)

            header_name = extract_filename_from_content_disposition(
                response.headers.get("Content-Disposition", "")
            )
            if header_name:
                filename = sanitize_filename(header_name)
            elif fallback_filename:
                filename = sanitize_filename(fallback_filename)
            else:
                filename = filename_from_request_path(path)

            destination = resolve_download_destination(output_path, filename)
            logger.debug("Saving download to %s", destination)
            self._write_stream(response, destination, url, progress_callback)
        finally:
            response.close()

        return destination

    @staticmethod
    def _write_stream(
        response: httpx.Response,
        destination: Path,
        url: str,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> None:
        """Stream a response body into ``destination``.

        A partially written file is removed on any failure.
        """
        try:
            out_file = open(destination, "wb")
        except OSError as e:
            raise CloudStoreDownloadError(f"failed to create output file: {e}") from e

        total_size = int(response.headers.get("Content-Length", 0) or 0)
        bytes_downloaded = 0
        try:
            with out_file:
                for chunk in response.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        out_file.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(bytes_downloaded, total_size)
        except OSError as e:
            _remove_partial(destination)
            raise CloudStoreDownloadError(f"failed to write file: {e}") from e
        except httpx.HTTPError as e:
            _remove_partial(destination)
            raise CloudStoreNetworkError("GET", url, e) from e

    # =========================
    # Auth Operations
    # =========================

    def login(self, username: str, password: str) -> Any:
        """Log in with username and password.

        Requests the "CLI" client type, which the server answers with
        longer-lived tokens.

        Returns:
            Response with accessToken, refreshToken, expiry and user info
        """
        validate_username(username)
        if not password:
            raise CloudStoreValidationError("password cannot be empty")
        return self.post(
            "/api/auth/login",
            {"username": username, "password": password, "clientType": "CLI"},
        )

    def register(self, username: str, email: str, password: str) -> Any:
        """Register a new user account."""
        validate_username(username)
        validate_email(email)
        if not password:
            raise CloudStoreValidationError("password cannot be empty")
        return self.post(
            "/api/auth/register",
            {"username": username, "email": email, "password": password},
        )

    def logout(self, refresh_token: str) -> None:
        """Invalidate a refresh token on the server."""
        self.post(
            "/api/auth/logout", {"refreshToken": refresh_token}, expect_json=False
        )

    def refresh(self, refresh_token: str) -> Any:
        """Exchange a refresh token for a new access token."""
        if not refresh_token:
            raise CloudStoreValidationError("refresh token cannot be empty")
        return self.post("/api/auth/refresh", {"refreshToken": refresh_token})

    def get_current_user(self) -> Any:
        """Get the authenticated user."""
        return self.get("/api/auth/me")

    # =========================
    # File Operations
    # =========================

    def upload(
        self,
        local_path: str | Path,
        folder_path: str | None = None,
        filename: str | None = None,
    ) -> Any:
        """Upload a file to the storage service.

        Args:
            local_path: Local file to upload
            folder_path: Optional destination folder (e.g. "/photos/2024")
            filename: Optional filename to store the file under

        Returns:
            File metadata of the stored file
        """
        if folder_path:
            validate_path(folder_path)
        if filename:
            validate_filename(filename)
        return self.upload_file("/api/files/upload", local_path, folder_path, filename)

    def list_files(
        self,
        page: int = 0,
        size: int = 20,
        sort: str | None = "createdAt,desc",
        content_type: str | None = None,
        folder_path: str | None = None,
    ) -> Any:
        """List files, one page at a time.

        Args:
            page: 0-based page number
            size: Page size (1-100)
            sort: Sort field and direction, e.g. "filename,asc"
            content_type: Filter by content type, e.g. "image/jpeg"
            folder_path: Filter by folder path

        Returns:
            Page response with 'content' and paging metadata
        """
        validate_page_number(page)
        validate_page_size(size)
        if folder_path:
            validate_path(folder_path)
        params = {
            "page": page,
            "size": size,
            "sort": sort or None,
            "contentType": content_type or None,
            "folderPath": folder_path or None,
        }
        return self.get("/api/files", params=params)

    def search_files(
        self,
        query: str,
        page: int = 0,
        size: int = 20,
        content_type: str | None = None,
        folder_path: str | None = None,
    ) -> Any:
        """Search files by name."""
        if not query or not query.strip():
            raise CloudStoreValidationError("search query cannot be empty")
        validate_page_number(page)
        validate_page_size(size)
        if folder_path:
            validate_path(folder_path)
        params = {
            "q": query,
            "page": page,
            "size": size,
            "contentType": content_type or None,
            "folderPath": folder_path or None,
        }
        return self.get("/api/files/search", params=params)

    def get_file_statistics(self) -> Any:
        """Get storage statistics for the current user."""
        return self.get("/api/files/statistics")

    def download(
        self,
        identifier: str,
        output_path: str | Path | None = "",
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Path:
        """Download a file by ID or by stored path.

        Args:
            identifier: File UUID, or the file's stored path
                (e.g. "/photos/2024/image.jpg")
            output_path: Directory, file path, or empty for the current directory
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)

        Returns:
            Path where the file was saved
        """
        if not identifier:
            raise CloudStoreValidationError("file identifier cannot be empty")
        if is_uuid(identifier):
            return self.download_file(
                f"/api/files/{identifier}/download",
                output_path,
                progress_callback=progress_callback,
            )
        return self.download_file(
            "/api/files/download-by-path",
            output_path,
            params={"filepath": identifier},
            progress_callback=progress_callback,
            fallback_filename=posixpath.basename(identifier.rstrip("/")),
        )

    def update_file(
        self,
        file_id: str,
        filename: str | None = None,
        folder_path: str | None = None,
    ) -> Any:
        """Rename a file and/or move it to another folder."""
        if not filename and not folder_path:
            raise CloudStoreValidationError(
                "at least one of filename or folder path must be provided"
            )
        validate_uuid(file_id)
        body: dict[str, str] = {}
        if filename:
            validate_filename(filename)
            body["filename"] = filename
        if folder_path:
            validate_path(folder_path)
            body["folderPath"] = folder_path
        return self.put(f"/api/files/{file_id}", body)

    def delete_file(self, file_id: str) -> None:
        """Delete a file."""
        validate_uuid(file_id)
        self.delete(f"/api/files/{file_id}")

    # =========================
    # Folder Operations
    # =========================

    def create_folder(self, path: str, description: str | None = None) -> Any:
        """Create a folder.

        Args:
            path: Absolute folder path, e.g. "/photos/2024"
            description: Optional folder description
        """
        validate_path(path)
        body: dict[str, str] = {"path": path}
        if description:
            body["description"] = description
        return self.post("/api/folders", body)

    def list_folders(self, parent_path: str | None = None) -> Any:
        """List folders, optionally only those below ``parent_path``."""
        if parent_path:
            validate_path(parent_path)
        return self.get("/api/folders", params={"parentPath": parent_path or None})

    def delete_folder(self, path: str) -> None:
        """Delete a folder."""
        validate_path(path)
        self.delete("/api/folders", params={"path": path})

    def get_folder_statistics(self, path: str) -> Any:
        """Get file count, storage used and content type breakdown of a folder."""
        validate_path(path)
        return self.get("/api/folders/statistics", params={"path": path})

    # =========================
    # API Key Operations
    # =========================

    def generate_api_key(self, name: str, expires_at: str | None = None) -> Any:
        """Generate a new API key.

        The key itself is only included in this response.

        Args:
            name: Display name of the key
            expires_at: Optional expiry in ISO 8601 / RFC 3339 form,
                e.g. "2025-12-31T23:59:59Z"
        """
        if not name or not name.strip():
            raise CloudStoreValidationError("API key name cannot be empty")
        body: dict[str, str] = {"name": name}
        if expires_at:
            try:
                datetime.fromisoformat(expires_at.replace("Z", "+00:00"))
            except ValueError as e:
                raise CloudStoreValidationError(
                    "invalid expiration date format "
                    "(use RFC3339, e.g., 2025-12-31T23:59:59Z)"
                ) from e
            body["expiresAt"] = expires_at
        return self.post("/api/auth/api-keys", body)

    def list_api_keys(self) -> Any:
        """List API keys of the current user."""
        return self.get("/api/auth/api-keys")

    def get_api_key(self, api_key_id: str) -> Any:
        """Get a single API key's metadata."""
        validate_uuid(api_key_id)
        return self.get(f"/api/auth/api-keys/{api_key_id}")

    def revoke_api_key(self, api_key_id: str) -> None:
        """Revoke an API key."""
        validate_uuid(api_key_id)
        self.delete(f"/api/auth/api-keys/{api_key_id}")

    # =========================
    # Batch Operations
    # =========================

    def get_batch_status(self, batch_id: str) -> Any:
        """Get status and progress of a batch job."""
        validate_uuid(batch_id)
        return self.get(f"/api/batches/{batch_id}/status")
