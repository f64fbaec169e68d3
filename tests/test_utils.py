"""Unit tests for formatting helpers and response models."""

from datetime import datetime, timezone

import pytest

from cloudstore.models import ApiKeyInfo, AuthTokens, FileInfo, FilePage, FolderInfo
from cloudstore.utils import format_size, format_timestamp, parse_timestamp, truncate


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
            (2048 * 1024**4, "2048.0 TB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected


class TestTimestamps:
    """Tests for timestamp parsing and display."""

    def test_parse_utc_suffix(self):
        parsed = parse_timestamp("2024-05-01T10:30:00Z")
        assert parsed == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)

    def test_parse_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_format(self):
        assert format_timestamp("2024-05-01T10:30:00") == "2024-05-01 10:30:00"

    def test_format_missing(self):
        assert format_timestamp(None) == "-"

    def test_format_unparseable_passthrough(self):
        assert format_timestamp("soon") == "soon"


class TestTruncate:
    """Tests for truncate."""

    def test_short_text_unchanged(self):
        assert truncate("short", 10) == "short"

    def test_long_text(self):
        assert truncate("a_very_long_filename.txt", 10) == "a_very_..."


class TestModels:
    """Tests for response parsing."""

    def test_file_info(self):
        info = FileInfo.from_dict(
            {
                "id": "abc",
                "filename": "a.txt",
                "contentType": "text/plain",
                "fileSize": 12,
                "folderPath": "/docs",
                "cloudinarySecureUrl": "https://cdn/a.txt",
                "extra": "ignored",
            }
        )
        assert info.filename == "a.txt"
        assert info.file_size == 12
        assert info.url == "https://cdn/a.txt"
        assert info.folder_path == "/docs"

    def test_file_page(self):
        page = FilePage.from_dict(
            {
                "content": [{"id": "1", "filename": "a"}, {"id": "2", "filename": "b"}],
                "pageable": {"pageNumber": 0, "pageSize": 2},
                "totalPages": 3,
                "totalElements": 5,
            }
        )
        assert [f.id for f in page.files] == ["1", "2"]
        assert page.page_size == 2
        assert page.total_elements == 5
        assert page.has_more

    def test_last_file_page(self):
        page = FilePage.from_dict(
            {"content": [], "pageable": {"pageNumber": 2}, "totalPages": 3}
        )
        assert not page.has_more

    def test_auth_tokens(self):
        tokens = AuthTokens.from_dict(
            {
                "accessToken": "at",
                "refreshToken": "rt",
                "expiresIn": 3600,
                "user": {"id": 7, "username": "alice", "email": "a@example.com"},
            }
        )
        assert tokens.access_token == "at"
        assert tokens.expires_in == 3600
        assert tokens.user is not None
        assert tokens.user.id == "7"

    def test_folder_and_api_key(self):
        folder = FolderInfo.from_dict({"path": "/docs", "fileCount": 4})
        assert folder.file_count == 4
        key = ApiKeyInfo.from_dict({"id": "k1", "name": "ci"})
        assert key.key is None
        assert key.active
