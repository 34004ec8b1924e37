"""Exceptions raised by broker clients."""

from enum import Enum
from typing import Optional

from .models import BrokerId


class BrokerError(Exception):
    """Base class for broker client failures."""

    def __init__(self, message: str, broker_id: Optional[BrokerId] = None):
        super().__init__(message)
        self.message = message
        self.broker_id = broker_id


class CredentialError(BrokerError):
    """Missing or malformed credentials, detected before any network call."""


class AuthFailureReason(str, Enum):
    """Why an authentication attempt failed."""

    REJECTED = "rejected"  # broker refused the credentials
    TRANSPORT = "transport"  # broker unreachable or server error
    MALFORMED = "malformed"  # broker answered without a usable token


class AuthenticationError(BrokerError):
    """The broker did not issue an access token."""

    def __init__(
        self,
        message: str,
        reason: AuthFailureReason = AuthFailureReason.REJECTED,
        broker_id: Optional[BrokerId] = None,
    ):
        super().__init__(message, broker_id)
        self.reason = reason


class RefreshError(BrokerError):
    """The refresh-token flow failed; a full authentication is required."""


class FetchError(BrokerError):
    """Holdings could not be retrieved."""

    def __init__(self, message: str, auth_rejected: bool = False, broker_id: Optional[BrokerId] = None):
        super().__init__(message, broker_id)
        self.auth_rejected = auth_rejected
