"""Google credentials for the Compute Engine API.

Lookup order:

1. The authorized-user token file at ``gce_token_path`` (JSON, as written by
   ``gcloud auth application-default login``), refreshed before use.
2. Application default credentials.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

import google.auth
from google.auth.credentials import Credentials
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials as UserCredentials
from loguru import logger

from roachdeploy.exceptions import DriverInitError

log = logger.bind(provider="gce")

COMPUTE_SCOPE: Final[str] = "https://www.googleapis.com/auth/compute"

CONSENT_INSTRUCTIONS: Final[str] = (
    "no usable Google credentials found. Run "
    "`gcloud auth application-default login --scopes="
    f"{COMPUTE_SCOPE},https://www.googleapis.com/auth/cloud-platform` "
    "and copy the resulting file to the token path, or point "
    "GOOGLE_APPLICATION_CREDENTIALS at a service account key"
)


def _token_file_credentials(path: Path) -> Credentials | None:
    try:
        creds = UserCredentials.from_authorized_user_file(str(path), scopes=[COMPUTE_SCOPE])
    except ValueError as e:
        log.warning("ignoring unreadable token file {path}: {err}", path=path, err=e)
        return None

    try:
        creds.refresh(Request())
    except RefreshError as e:
        log.warning("token refresh failed for {path}, falling back: {err}", path=path, err=e)
        return None

    log.debug("using token file {path}", path=path)
    return creds


def load_credentials(token_path: str) -> Credentials:
    """Credentials for the Compute Engine API.

    Raises:
        DriverInitError: With consent-flow instructions if nothing works.
    """
    path = Path(token_path) if token_path else None
    if path is not None and path.is_file():
        if (creds := _token_file_credentials(path)) is not None:
            return creds

    try:
        creds, _ = google.auth.default(scopes=[COMPUTE_SCOPE])
    except DefaultCredentialsError as e:
        raise DriverInitError(CONSENT_INSTRUCTIONS) from e
    log.debug("using application default credentials")
    return creds
