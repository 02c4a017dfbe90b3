from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Optional

import requests
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from dailypli import config
from dailypli.auth.base import AuthHealthResult, AuthHealthStatus
from dailypli.errors import AuthError, QuotaExceededError
from dailypli.logger import get_logger
from dailypli.paths import auth_client_secrets_file, auth_token_file
from dailypli.providers.youtube.api_manager import RetryPolicy, Throttle, YouTubeGateway


class YouTubeOAuthProvider:
    """
    Credential source for scheduled runs.

    Order of preference:
    1) YOUTUBE_REFRESH_TOKEN (+ client id/secret) from the environment
    2) An authorized-user token file written by `dailypli auth login`

    Scheduled runs never fall back to an interactive login.
    """

    name = "youtube"

    def __init__(self, env: Any) -> None:
        self.env = env
        self._logger = get_logger("dailypli.auth.youtube")

    # -----------------------------------------------------------------
    # Credentials
    # -----------------------------------------------------------------

    def load_credentials(self) -> Credentials:
        if self.env.refresh_token:
            creds = self._credentials_from_env()
        else:
            creds = self._credentials_from_file(auth_token_file())

        if creds.valid:
            return creds

        if not creds.refresh_token:
            raise AuthError("OAuth token expired and no refresh token is available")

        try:
            self._logger.debug("Refreshing OAuth access token...")
            creds.refresh(Request())
            self._logger.debug("Successfully refreshed OAuth token")
        except RefreshError as e:
            self._logger.error(f"Failed to refresh token: {e}")
            raise AuthError(f"Token refresh failed: {e}") from e

        if not self.env.refresh_token:
            self._persist_token(auth_token_file(), creds)
        return creds

    def build_client(self) -> Any:
        creds = self.load_credentials()
        try:
            return build(
                config.YOUTUBE_API_SERVICE,
                config.YOUTUBE_API_VERSION,
                credentials=creds,
                cache_discovery=False,
            )
        except Exception as e:
            self._logger.error(f"Failed to build YouTube client: {e}")
            raise AuthError(f"Failed to build client: {e}") from e

    def _credentials_from_env(self) -> Credentials:
        if not self.env.client_id or not self.env.client_secret:
            raise AuthError(
                "YOUTUBE_REFRESH_TOKEN is set but YOUTUBE_CLIENT_ID / "
                "YOUTUBE_CLIENT_SECRET are missing"
            )
        self._logger.debug("Using OAuth credentials from environment")
        return Credentials(
            token=self.env.access_token or None,
            refresh_token=self.env.refresh_token,
            token_uri=config.GOOGLE_TOKEN_URI,
            client_id=self.env.client_id,
            client_secret=self.env.client_secret,
            scopes=config.YOUTUBE_OAUTH_SCOPES,
        )

    def _credentials_from_file(self, token_path: Path) -> Credentials:
        if not token_path.exists():
            raise AuthError(
                "No OAuth credentials: set YOUTUBE_REFRESH_TOKEN, or run "
                f"`dailypli auth login` to create {token_path}"
            )
        try:
            creds = Credentials.from_authorized_user_file(
                str(token_path), config.YOUTUBE_OAUTH_SCOPES
            )
        except (ValueError, OSError) as e:
            raise AuthError(f"Unreadable OAuth token file {token_path}: {e}") from e
        self._logger.debug("Loaded existing OAuth credentials")
        return creds

    # -----------------------------------------------------------------
    # One-time interactive setup
    # -----------------------------------------------------------------

    def login(self) -> Credentials:
        """
        Run the installed-app consent flow and store the resulting token.
        """
        secrets_path = auth_client_secrets_file()

        try:
            if secrets_path.exists():
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(secrets_path), config.YOUTUBE_OAUTH_SCOPES
                )
            elif self.env.client_id and self.env.client_secret:
                flow = InstalledAppFlow.from_client_config(
                    {
                        "installed": {
                            "client_id": self.env.client_id,
                            "client_secret": self.env.client_secret,
                            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                            "token_uri": config.GOOGLE_TOKEN_URI,
                            "redirect_uris": ["http://localhost"],
                        }
                    },
                    config.YOUTUBE_OAUTH_SCOPES,
                )
            else:
                raise AuthError(
                    f"Missing OAuth client: place {secrets_path} or set "
                    "YOUTUBE_CLIENT_ID / YOUTUBE_CLIENT_SECRET"
                )

            self._logger.debug("Starting OAuth authentication flow...")
            creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
        except AuthError:
            raise
        except Exception as e:
            self._logger.error(f"OAuth authentication failed: {e}")
            raise AuthError(f"OAuth flow failed: {e}") from e

        self._persist_token(auth_token_file(), creds)
        return creds

    def _persist_token(self, token_path: Path, creds: Credentials) -> None:
        try:
            token_path.write_text(creds.to_json(), encoding="utf-8")
            self._logger.debug(f"Saved OAuth token to {token_path}")
        except OSError as e:
            self._logger.warning(f"Failed to save OAuth token: {e}")
            return

        try:
            os.chmod(token_path, 0o600)
        except OSError as e:
            self._logger.debug(f"Could not set restrictive permissions: {e}")

    # -----------------------------------------------------------------
    # Diagnostics
    # -----------------------------------------------------------------

    def health_check(self) -> AuthHealthResult:
        """
        Validates OAuth by making a cheap authenticated request.
        Treats API quota exhaustion as OAuth OK.
        """
        self._logger.info("oauth.check.start")

        try:
            youtube = self.build_client()
        except AuthError as e:
            self._logger.error(f"oauth.check.auth_invalid: {e}")
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.AUTH_INVALID,
                message="OAuth INVALID - reauthentication required",
            )

        gateway = YouTubeGateway(youtube, RetryPolicy(max_attempts=1), Throttle(0))
        result = gateway.execute(
            "channels.list mine",
            lambda: youtube.channels().list(part="id", mine=True, maxResults=1),
        )

        if result.ok:
            self._logger.info("oauth.check.ok")
            return AuthHealthResult(
                provider=self.name, status=AuthHealthStatus.OK, message="OAuth OK"
            )

        if isinstance(result.error, QuotaExceededError):
            self._logger.warning("oauth.check.ok_quota_exhausted")
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.OK_API_QUOTA,
                message="OAuth OK (API quota exhausted)",
            )

        if isinstance(result.error, AuthError):
            self._logger.error(f"oauth.check.auth_invalid: {result.error}")
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.AUTH_INVALID,
                message="OAuth INVALID - reauthentication required",
            )

        self._logger.error(f"oauth.check.failed: {result.error}")
        return AuthHealthResult(
            provider=self.name,
            status=AuthHealthStatus.FAILED,
            message="OAuth check failed (unexpected error)",
        )

    def granted_scopes(self, timeout: int = 30) -> List[str]:
        """Ask Google's tokeninfo endpoint which scopes the access token carries."""
        creds = self.load_credentials()

        response = self._tokeninfo(creds.token, timeout)
        if response.status_code == 400 and creds.refresh_token:
            # Stale access token from the environment; refresh once and retry.
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise AuthError(f"Token refresh failed: {e}") from e
            response = self._tokeninfo(creds.token, timeout)

        if response.status_code != 200:
            raise AuthError(
                f"tokeninfo rejected the access token (HTTP {response.status_code})"
            )

        scope: Optional[str] = response.json().get("scope")
        return sorted(scope.split()) if scope else []

    @staticmethod
    def _tokeninfo(token: Optional[str], timeout: int) -> requests.Response:
        return requests.get(
            config.GOOGLE_TOKENINFO_URL,
            params={"access_token": token or ""},
            timeout=timeout,
        )
