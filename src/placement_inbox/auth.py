"""OAuth token lifecycle for Gmail access."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from .config import OAuthSettings
from .constants import AUTH_URI, SCOPES, TOKEN_REFRESH_MARGIN, TOKEN_URI
from .errors import AuthExchangeError, MissingRefreshTokenError, TokenRefreshError
from .models import Credential, RefreshedToken, TokenSet

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """google-auth reports expiry as naive UTC; attach the timezone."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class OAuthClient:
    """Stateless Google OAuth client.

    Nothing about a user is kept on the instance: every call takes the
    code or credential it works on, so one client can serve any number of
    users concurrently.
    """

    def __init__(self, settings: OAuthSettings) -> None:
        self.settings = settings

    def _client_config(self) -> dict:
        return {
            "web": {
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.settings.redirect_uri],
            }
        }

    def _flow(self) -> Flow:
        # No PKCE verifier: the callback is handled by a fresh Flow.
        return Flow.from_client_config(
            self._client_config(),
            scopes=SCOPES,
            redirect_uri=self.settings.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def build_authorization_url(self, user_id: str) -> str:
        """Return the Google consent URL for *user_id*.

        ``state`` carries the user id so the callback can be attributed
        without a session.  ``prompt=consent`` makes Google issue a refresh
        token on every connect, so reconnecting is always safe.
        """
        url, _state = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            state=user_id,
        )
        return url

    def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for access and refresh tokens."""
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except OAuth2Error as exc:
            raise AuthExchangeError(
                f"Authorization code was rejected ({exc.error}). Try connecting again."
            ) from exc

        creds = flow.credentials
        return TokenSet(
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expiry=_as_utc(creds.expiry),
        )

    def refresh_if_needed(
        self,
        credential: Credential,
        now: datetime | None = None,
    ) -> RefreshedToken | None:
        """Refresh the access token when it expires within TOKEN_REFRESH_MARGIN.

        Returns None, without touching the network, while the current token
        is still good.  An unknown expiry is treated as expired.
        """
        if not credential.refresh_token:
            raise MissingRefreshTokenError(credential.user_id)

        now = now or datetime.now(timezone.utc)
        expiry = _as_utc(credential.token_expiry)
        if expiry is not None and expiry - now >= TOKEN_REFRESH_MARGIN:
            return None

        logger.info("Refreshing access token for user %s", credential.user_id)
        creds = Credentials(
            token=None,
            refresh_token=credential.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            scopes=SCOPES,
        )
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            raise TokenRefreshError(
                f"Google refused to refresh the token for user {credential.user_id!r}: {exc}"
            ) from exc

        return RefreshedToken(access_token=creds.token, expiry=_as_utc(creds.expiry))
