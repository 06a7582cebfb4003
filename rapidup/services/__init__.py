"""Services for rapidup."""
from .api_client import HTTPUploadClient
from .integrity import digest, digest_file, verify

__all__ = [
    "HTTPUploadClient",
    "digest",
    "digest_file",
    "verify",
]
