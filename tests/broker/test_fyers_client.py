"""Tests for the Fyers client."""

import hashlib

import pytest

from holdings_sync.broker.errors import AuthenticationError, AuthFailureReason, CredentialError, FetchError, RefreshError
from holdings_sync.broker.fyers import FyersClient, app_id_hash


def test_app_id_hash():
    """Test appIdHash is the SHA-256 of "id:secret"."""
    expected = hashlib.sha256(b"APP-100:secret").hexdigest()
    assert app_id_hash("APP-100", "secret") == expected


class TestFyersAuthenticate:
    """Tests for Fyers auth code validation."""

    def test_validate_authcode(self, mock_session, make_response):
        """Test the auth code is exchanged with the app id hash."""
        mock_session.post.return_value = make_response(200, {
            "s": "ok",
            "code": 200,
            "access_token": "fyers-token",
        })
        client = FyersClient(session=mock_session)

        session = client.authenticate("APP-100", "secret", authorization_code="auth-code")

        assert session.access_token == "fyers-token"
        body = mock_session.post.call_args.kwargs["json"]
        assert body["code"] == "auth-code"
        assert body["appIdHash"] == app_id_hash("APP-100", "secret")
        assert mock_session.post.call_args.args[0].endswith("/validate-authcode")

    def test_requires_code(self, mock_session):
        """Test the auth code is mandatory."""
        client = FyersClient(session=mock_session)
        with pytest.raises(CredentialError, match="auth code"):
            client.authenticate("APP-100", "secret")

    def test_error_status_is_rejected(self, mock_session, make_response):
        """Test s=error bodies are rejections."""
        mock_session.post.return_value = make_response(200, {
            "s": "error",
            "code": -413,
            "message": "invalid auth code",
        })
        client = FyersClient(session=mock_session)

        with pytest.raises(AuthenticationError, match="invalid auth code") as exc_info:
            client.authenticate("APP-100", "secret", authorization_code="bad")
        assert exc_info.value.reason == AuthFailureReason.REJECTED

    def test_refresh_not_supported(self, mock_session):
        """Test Fyers has no refresh capability."""
        client = FyersClient(session=mock_session)
        assert not client.supports_refresh
        with pytest.raises(RefreshError, match="does not support token refresh"):
            client.refresh_access_token("anything")


class TestFyersFetchHoldings:
    """Tests for Fyers holdings retrieval."""

    def test_fetch_holdings(self, mock_session, make_response):
        """Test holdings are read from the holdings list with a bare token."""
        mock_session.get.return_value = make_response(200, {
            "s": "ok",
            "holdings": [
                {"symbol": "NSE:SBIN-EQ", "quantity": 4, "costPrice": 520, "ltp": 600},
            ],
            "overall": {},
        })
        client = FyersClient(session=mock_session)

        records = client.fetch_holdings("fyers-token")

        assert records[0]["symbol"] == "NSE:SBIN-EQ"
        assert mock_session.get.call_args.kwargs["headers"] == {"Authorization": "fyers-token"}

    def test_expired_token_code(self, mock_session, make_response):
        """Test code -16 is reported as auth rejection."""
        mock_session.get.return_value = make_response(200, {
            "s": "error",
            "code": -16,
            "message": "Could not authenticate the user",
        })
        client = FyersClient(session=mock_session)

        with pytest.raises(FetchError) as exc_info:
            client.fetch_holdings("old")
        assert exc_info.value.auth_rejected

    def test_other_error(self, mock_session, make_response):
        """Test other errors are plain fetch failures."""
        mock_session.get.return_value = make_response(200, {"s": "error", "code": -99, "message": "busy"})
        client = FyersClient(session=mock_session)

        with pytest.raises(FetchError, match="busy") as exc_info:
            client.fetch_holdings("token")
        assert not exc_info.value.auth_rejected
