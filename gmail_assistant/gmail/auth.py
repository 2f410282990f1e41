"""Gmail OAuth2 credential management and service construction.

The token and client-secrets files are opaque inputs: the token is loaded,
refreshed or (on first run) obtained through the installed-app browser flow,
then persisted for reuse.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import google.auth.transport.requests
import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]
from googleapiclient.discovery import Resource, build
from googleapiclient.http import HttpRequest

logger = logging.getLogger(__name__)

#: modify covers read/label/trash/send; settings.basic covers filters.
GMAIL_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.settings.basic",
]


class AuthError(Exception):
    """Raised when Gmail credentials cannot be loaded, refreshed, or obtained."""


def get_gmail_credentials(
    token_path: str | Path,
    credentials_path: str | Path,
    *,
    interactive: bool = True,
) -> Credentials:
    """Load Gmail OAuth2 credentials, refreshing or creating as needed.

    If ``token_path`` holds valid (or refreshable) credentials they are used
    directly.  Otherwise, when ``interactive`` is true, the installed-app flow
    opens a browser for consent.  The resulting credentials are written back
    to ``token_path``.

    Raises:
        AuthError: if no usable credentials can be produced.
    """
    token_path = Path(token_path)
    credentials_path = Path(credentials_path)
    creds: Credentials | None = None

    if token_path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), GMAIL_SCOPES)  # type: ignore[no-untyped-call]
        except (ValueError, OSError) as exc:
            logger.warning("Could not load token %s: %s", token_path, exc)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(google.auth.transport.requests.Request())
        except GoogleAuthError as exc:
            logger.warning("Token refresh failed: %s", exc)
            creds = None
    else:
        creds = None

    if creds is None:
        if not interactive:
            raise AuthError(
                f"No valid Gmail token at {token_path}. Run `gmail-assistant auth` first."
            )
        if not credentials_path.exists():
            raise AuthError(
                f"Credentials file not found: {credentials_path}. Download an OAuth 2.0 "
                "Desktop client JSON from Google Cloud Console (Gmail API enabled)."
            )
        try:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), GMAIL_SCOPES)
            creds = flow.run_local_server(port=0)
        except Exception as exc:  # noqa: BLE001
            raise AuthError(f"OAuth flow failed: {exc}") from exc

    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json(), encoding="utf-8")
    logger.info("Gmail token saved to %s", token_path)
    return creds


def build_gmail_service(credentials: Credentials) -> Resource:
    """Build a Gmail API v1 service that is safe to use from worker threads.

    httplib2 connections are not thread-safe, so every request gets its own
    ``AuthorizedHttp`` rather than sharing the one created by ``build``.
    """

    def _build_request(_http: Any, *args: Any, **kwargs: Any) -> HttpRequest:
        new_http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
        return HttpRequest(new_http, *args, **kwargs)

    authorized_http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
    return build(
        "gmail",
        "v1",
        http=authorized_http,
        requestBuilder=_build_request,
        cache_discovery=False,
    )
