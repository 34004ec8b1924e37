"""Unit tests for logging utilities."""

from holdings_sync.utils import mask_amount, mask_secret


def test_mask_amount_scales():
    """Test amounts are shown at a relative scale."""
    assert mask_amount(512.5) == "~₹512.50"
    assert mask_amount(25000) == "~₹25.00k"
    assert mask_amount(3500000) == "~₹3.50M"


def test_mask_amount_redacted():
    """Test amounts can be fully redacted."""
    assert mask_amount(25000, show_relative=False) == "[REDACTED]"


def test_mask_amount_currency():
    """Test a custom currency symbol."""
    assert mask_amount(1500, currency="$") == "~$1.50k"


def test_mask_secret():
    """Test only the tail of a secret is kept."""
    assert mask_secret("eyJhbGciOiJIUzI1NiJ9.payload") == "****load"
    assert mask_secret("short") == "*****"
    assert mask_secret(None) == "<empty>"
    assert mask_secret("") == "<empty>"
