from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import List, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.errors import HttpError

from tubeshelf.auth.base import AuthHealthResult, AuthHealthStatus
from tubeshelf.auth.errors import AuthFailed, AuthInvalid
from tubeshelf.env.paths import auth_client_secrets_file, auth_token_file
from tubeshelf.logger import get_logger
from tubeshelf.youtube.api_manager import is_quota_error
from tubeshelf.youtube.client import build_youtube_service

YOUTUBE_OAUTH_SCOPES: List[str] = ["https://www.googleapis.com/auth/youtube"]


class YouTubeOAuthProvider:
    """
    Google OAuth session backed by an authorized-user token file.

    Silent refresh uses the stored refresh token; only ensure_ready() may
    open a browser.
    """

    name = "youtube"

    def __init__(
        self,
        token_path: Optional[Path] = None,
        secrets_path: Optional[Path] = None,
        scopes: Optional[List[str]] = None,
    ) -> None:
        self._logger = get_logger("auth.youtube")
        self._token_path = token_path
        self._secrets_path = secrets_path
        self._scopes = scopes or YOUTUBE_OAUTH_SCOPES
        self._creds: Optional[Credentials] = None
        self._loaded = False

    @property
    def token_path(self) -> Path:
        return self._token_path or auth_token_file()

    @property
    def secrets_path(self) -> Path:
        return self._secrets_path or auth_client_secrets_file()

    # -----------------------------------------------------------------
    # SessionProvider
    # -----------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        creds = self._credentials()
        return creds is not None and (creds.valid or bool(creds.refresh_token))

    def get_access_token(self) -> Optional[str]:
        creds = self._credentials()
        if creds is None or not creds.valid:
            return None
        return creds.token

    async def refresh_token_silently(self) -> Optional[str]:
        creds = self._credentials()
        if creds is None or not creds.refresh_token:
            self._logger.debug("No refresh token available; cannot refresh silently")
            return None

        try:
            await asyncio.to_thread(creds.refresh, Request())
        except (RefreshError, TransportError) as e:
            self._logger.warning(f"Silent token refresh failed: {e}")
            return None

        self._logger.debug("Successfully refreshed OAuth token")
        self._persist_token(creds)
        return creds.token

    # -----------------------------------------------------------------
    # AuthProvider
    # -----------------------------------------------------------------

    def ensure_ready(self) -> None:
        """
        Ensures credentials exist and are valid (refresh if expired; interactive login if needed).
        Persists token to the auth directory.
        """
        _ = self._load_or_authenticate()

    def health_check(self) -> AuthHealthResult:
        """
        Validates OAuth by making a cheap authenticated request.
        Treats API quota exhaustion as OAuth OK.
        """
        self._logger.info("oauth.check.start")

        try:
            creds = self._load_or_refresh()
            youtube = build_youtube_service(creds.token)
            youtube.channels().list(part="id", mine=True, maxResults=1).execute()

            self._logger.info("oauth.check.ok")
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.OK,
                message="OAuth OK",
            )

        except AuthInvalid as e:
            self._logger.error("oauth.check.auth_invalid", exc_info=e)
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.AUTH_INVALID,
                message="OAuth INVALID - reauthentication required",
            )

        except HttpError as e:
            if is_quota_error(e):
                self._logger.warning("oauth.check.ok_quota_exhausted")
                return AuthHealthResult(
                    provider=self.name,
                    status=AuthHealthStatus.OK_API_QUOTA,
                    message="OAuth OK (API quota exhausted)",
                )
            if getattr(e.resp, "status", None) == 401:
                self._logger.error("oauth.check.auth_invalid", exc_info=e)
                return AuthHealthResult(
                    provider=self.name,
                    status=AuthHealthStatus.AUTH_INVALID,
                    message="OAuth INVALID - reauthentication required",
                )
            self._logger.error("oauth.check.failed", exc_info=e)
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.FAILED,
                message="OAuth check failed (API error)",
            )

        except Exception as e:
            self._logger.error("oauth.check.failed", exc_info=e)
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.FAILED,
                message="OAuth check failed (unexpected error)",
            )

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _credentials(self) -> Optional[Credentials]:
        if not self._loaded:
            self._creds = self._load_stored()
            self._loaded = True
        return self._creds

    def _load_stored(self) -> Optional[Credentials]:
        token_path = self.token_path
        if not token_path.exists():
            return None
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), self._scopes)
            self._logger.debug("Loaded existing OAuth credentials")
            return creds
        except (ValueError, OSError) as e:
            self._logger.warning(f"Failed to load existing credentials: {e}")
            return None

    def _load_or_refresh(self) -> Credentials:
        """Non-interactive: stored credentials, refreshed if expired."""
        creds = self._credentials()
        if creds is None:
            raise AuthInvalid(f"No stored OAuth token at {self.token_path}")

        if creds.valid:
            return creds

        if creds.refresh_token:
            try:
                self._logger.debug("Refreshing expired OAuth token...")
                creds.refresh(Request())
            except (RefreshError, TransportError) as e:
                self._logger.error(f"Failed to refresh token: {e}")
                raise AuthInvalid(str(e)) from e
            self._persist_token(creds)
            return creds

        raise AuthInvalid("Stored OAuth token expired and has no refresh token")

    def _load_or_authenticate(self) -> Credentials:
        try:
            return self._load_or_refresh()
        except AuthInvalid as e:
            self._logger.debug(f"Stored credentials unusable ({e}); starting login")

        secrets_path = self.secrets_path
        if not secrets_path.exists():
            raise AuthInvalid(f"Missing OAuth credentials JSON file: {secrets_path}")

        try:
            self._logger.debug("Starting OAuth authentication flow...")
            flow = InstalledAppFlow.from_client_secrets_file(
                str(secrets_path),
                self._scopes,
            )
            creds = flow.run_local_server(port=0)
        except Exception as e:
            self._logger.error(f"OAuth authentication failed: {e}")
            raise AuthFailed(str(e)) from e

        self._logger.debug("Successfully authenticated with OAuth")
        self._creds = creds
        self._loaded = True
        self._persist_token(creds)
        return creds

    def _persist_token(self, creds: Credentials) -> None:
        token_path = self.token_path
        try:
            token_path.write_text(creds.to_json(), encoding="utf-8")
            self._logger.debug("Saved OAuth token")
        except OSError as e:
            self._logger.warning(f"Could not save OAuth token: {e}")
            return

        try:
            os.chmod(token_path, 0o600)
        except OSError:
            self._logger.debug("Could not restrict OAuth token file permissions")
