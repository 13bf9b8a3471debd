"""
Service account credentials for the record uploader.
"""

import logging
import os

from google.auth import credentials as auth_credentials
from google.oauth2 import service_account

# Uploading packets needs object write access only
STORAGE_SCOPES = ("https://www.googleapis.com/auth/devstorage.read_write",)


def get_credentials(credentials_path: str, scopes=STORAGE_SCOPES) -> auth_credentials.Credentials:
    """
    Load service account credentials scoped for Cloud Storage uploads.

    Args:
        credentials_path: Path to the service account JSON key file.

    Raises:
        RuntimeError: If the file is missing or is not a usable key.
    """
    if not credentials_path or not os.path.isfile(credentials_path):
        raise RuntimeError(f"Credentials file not found: {credentials_path!r}")

    try:
        creds = service_account.Credentials.from_service_account_file(
            credentials_path, scopes=list(scopes)
        )
    except (ValueError, OSError) as e:
        raise RuntimeError(f"Invalid service account key {credentials_path}: {e}") from e

    logging.info(f"Loaded upload credentials for {creds.service_account_email}")
    return creds
