"""HTTP session helpers shared by the REST broker clients."""

import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

# Status codes that mean the broker refused the token or credentials
AUTH_REJECTED_STATUSES = (401, 403)


def build_session(max_retries: int = 3) -> requests.Session:
    """
    Create a requests session with JSON headers and transport retries.

    Args:
        max_retries: Maximum number of retry attempts for server errors

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    # Retry idempotent calls on server errors only
    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "Accept": "application/json",
        "Content-Type": "application/json",
    })
    return session


def json_or_none(response: requests.Response) -> Optional[Any]:
    """Decode a JSON body, returning None for empty or non-JSON bodies."""
    try:
        return response.json()
    except ValueError:
        logger.debug(f"Response from {getattr(response, 'url', '?')} is not JSON")
        return None


def error_message(payload: Any, default: str) -> str:
    """Pull a human readable message out of a broker error body."""
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if message:
                return str(message)
        for key in ("message", "error_description", "error"):
            if payload.get(key):
                return str(payload[key])
    return default
