"""Data models for API responses.

Dataclasses parsed from the JSON the server returns. Unknown fields are
ignored and missing optional fields default to ``None`` so that small API
changes do not break the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class FileInfo:
    """A stored file."""

    id: str
    filename: str
    content_type: str = ""
    file_size: int = 0
    folder_path: Optional[str] = None
    url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileInfo:
        """Create from API response dict."""
        return cls(
            id=str(data.get("id", "")),
            filename=data.get("filename") or "",
            content_type=data.get("contentType") or "",
            file_size=int(data.get("fileSize") or 0),
            folder_path=data.get("folderPath"),
            url=data.get("cloudinarySecureUrl") or data.get("cloudinaryUrl"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class FilePage:
    """One page of a file listing."""

    files: list[FileInfo] = field(default_factory=list)
    page_number: int = 0
    page_size: int = 0
    total_pages: int = 0
    total_elements: int = 0

    @property
    def has_more(self) -> bool:
        """Check if there are more pages."""
        return self.page_number + 1 < self.total_pages

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilePage:
        """Create from a paged API response."""
        pageable = data.get("pageable") or {}
        if not isinstance(pageable, dict):
            pageable = {}
        files = [FileInfo.from_dict(item) for item in data.get("content") or []]
        return cls(
            files=files,
            page_number=int(pageable.get("pageNumber", data.get("number", 0)) or 0),
            page_size=int(pageable.get("pageSize", data.get("size", len(files))) or 0),
            total_pages=int(data.get("totalPages") or 0),
            total_elements=int(data.get("totalElements") or len(files)),
        )


@dataclass
class FolderInfo:
    """A virtual folder."""

    path: str
    description: Optional[str] = None
    file_count: int = 0
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FolderInfo:
        """Create from API response dict."""
        return cls(
            path=data.get("path") or "",
            description=data.get("description"),
            file_count=int(data.get("fileCount") or 0),
            created_at=data.get("createdAt"),
        )


@dataclass
class UserInfo:
    """A user account."""

    id: str
    username: str
    email: str = ""
    active: bool = True
    created_at: Optional[str] = None
    last_login_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserInfo:
        """Create from API response dict."""
        return cls(
            id=str(data.get("id", "")),
            username=data.get("username") or "",
            email=data.get("email") or "",
            active=bool(data.get("active", True)),
            created_at=data.get("createdAt"),
            last_login_at=data.get("lastLoginAt"),
        )


@dataclass
class AuthTokens:
    """Tokens returned by login or refresh."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_expires_in: int = 0
    user: Optional[UserInfo] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthTokens:
        """Create from API response dict."""
        user = data.get("user")
        return cls(
            access_token=data.get("accessToken") or "",
            refresh_token=data.get("refreshToken"),
            token_type=data.get("tokenType") or "Bearer",
            expires_in=int(data.get("expiresIn") or 0),
            refresh_expires_in=int(data.get("refreshExpiresIn") or 0),
            user=UserInfo.from_dict(user) if isinstance(user, dict) else None,
        )


@dataclass
class ApiKeyInfo:
    """API key metadata. ``key`` is only present right after generation."""

    id: str
    name: str
    active: bool = True
    key: Optional[str] = None
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    last_used_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApiKeyInfo:
        """Create from API response dict."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            active=bool(data.get("active", True)),
            key=data.get("key"),
            created_at=data.get("createdAt"),
            expires_at=data.get("expiresAt"),
            last_used_at=data.get("lastUsedAt"),
        )
