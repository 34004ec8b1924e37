"""Logging utility functions."""

from typing import Optional


def mask_amount(amount: float, show_relative: bool = True, currency: str = "₹") -> str:
    """
    Mask financial amounts in logs to prevent exposure of sensitive values.

    Args:
        amount: The amount to mask
        show_relative: If True, show relative scale (e.g., "~₹X.XXk") instead of exact amount
        currency: Currency symbol to prefix

    Returns:
        Masked string representation (e.g., "~₹5.00k" instead of "₹5000.00")
    """
    if show_relative:
        if amount >= 1000000:
            return f"~{currency}{amount/1000000:.2f}M"
        elif amount >= 1000:
            return f"~{currency}{amount/1000:.2f}k"
        else:
            return f"~{currency}{amount:.2f}"
    else:
        return "[REDACTED]"


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """
    Mask a token or secret for logging, keeping only its last characters.

    Args:
        value: The secret to mask
        visible: Number of trailing characters to keep

    Returns:
        Masked string (e.g., "****abcd"), or "<empty>" for missing values
    """
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return "****" + value[-visible:]
