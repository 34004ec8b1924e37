"""Shared utilities."""

from .logging_utils import mask_amount, mask_secret

__all__ = ["mask_amount", "mask_secret"]
