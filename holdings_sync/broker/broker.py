"""Abstract base class for broker client implementations."""

from abc import ABC, abstractmethod
from typing import List, Optional

from .errors import CredentialError, RefreshError
from .models import AuthSession, BrokerId, RawHoldingRecord


class BrokerClient(ABC):
    """Abstract base class for broker client implementations.

    Implementations are stateless apart from their HTTP session: tokens are
    passed in by the caller and never cached on the client.
    """

    broker_id: BrokerId
    supports_refresh: bool = False

    @abstractmethod
    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        authorization_code: Optional[str] = None,
    ) -> AuthSession:
        """
        Exchange credentials for an access token.

        Args:
            client_id: Broker client/app id (or client code)
            client_secret: Broker client secret (or password)
            redirect_uri: OAuth redirect URI, for brokers that use one
            authorization_code: OAuth authorization code, for brokers that use one

        Returns:
            AuthSession with a non-empty access token

        Raises:
            CredentialError: If required inputs are missing
            AuthenticationError: If the broker rejects the credentials, is
                unreachable, or returns no usable token
        """
        pass

    @abstractmethod
    def fetch_holdings(self, access_token: str) -> List[RawHoldingRecord]:
        """
        Fetch holdings in the broker's native record shape.

        Args:
            access_token: Previously issued access token (may be stale)

        Returns:
            Raw holding records, possibly empty

        Raises:
            FetchError: If the token is rejected or the broker is unreachable
        """
        pass

    def authenticate_with_token(self, access_token: str, refresh_token: Optional[str] = None) -> AuthSession:
        """
        Use a token obtained outside this application (manual OAuth flow).

        The token is not validated here; the next fetch_holdings call is the
        validity check.
        """
        token = (access_token or "").strip()
        if not token:
            raise CredentialError(f"{self.broker_id.display_name}: access token is empty", self.broker_id)
        return AuthSession(access_token=token, refresh_token=refresh_token or None)

    def refresh_access_token(self, refresh_token: str) -> AuthSession:
        """
        Obtain a new access token from a refresh token (optional capability).

        Raises:
            RefreshError: If refresh is unsupported or rejected
        """
        raise RefreshError(
            f"{self.broker_id.display_name} does not support token refresh",
            self.broker_id,
        )

    def _require_credentials(self, client_id: str, client_secret: str) -> None:
        if not client_id or not client_secret:
            raise CredentialError(
                f"{self.broker_id.display_name}: please provide both Client ID and Client Secret",
                self.broker_id,
            )
