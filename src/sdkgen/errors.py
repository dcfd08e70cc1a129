"""Base exception for sdkgen."""

from __future__ import annotations


class SdkgenError(Exception):
    """Base exception for all sdkgen failures that propagate to callers."""
