"""Base exception for failures raised by the charge engine itself."""

from __future__ import annotations


class ChargeError(Exception):
    """Root of the errors the engine raises; business outcomes are never raised."""
