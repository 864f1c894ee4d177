"""
Soaper Site API Layer.

This package handles HTTP transport and the token exchange that turns a
page path into playback URLs.
"""

from .client import SoaperClient
from .locator import MediaLocator

__all__ = ["MediaLocator", "SoaperClient"]
