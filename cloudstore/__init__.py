"""Cloud Storage CLI - command-line client for the cloud storage API."""

__version__ = "0.1.0"

from .api import CloudStoreClient, sanitize_filename
from .config import ClientConfig, ConfigStore, Credential
from .exceptions import (
    CloudStoreAPIError,
    CloudStoreConfigError,
    CloudStoreDownloadError,
    CloudStoreError,
    CloudStoreFileNotFoundError,
    CloudStoreInvalidResponseError,
    CloudStoreNetworkError,
    CloudStoreRequestError,
    CloudStoreValidationError,
)
from .validation import (
    validate_email,
    validate_filename,
    validate_page_number,
    validate_page_size,
    validate_path,
    validate_username,
    validate_uuid,
)

__all__ = [
    "__version__",
    "CloudStoreClient",
    "ClientConfig",
    "ConfigStore",
    "Credential",
    "CloudStoreAPIError",
    "CloudStoreConfigError",
    "CloudStoreDownloadError",
    "CloudStoreError",
    "CloudStoreFileNotFoundError",
    "CloudStoreInvalidResponseError",
    "CloudStoreNetworkError",
    "CloudStoreRequestError",
    "CloudStoreValidationError",
    "sanitize_filename",
    "validate_email",
    "validate_filename",
    "validate_page_number",
    "validate_page_size",
    "validate_path",
    "validate_username",
    "validate_uuid",
]
