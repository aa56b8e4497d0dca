"""
Twitter API Layer.

This package handles all communication with the Twitter web API.
"""

from .auth import GuestAuthenticator
from .client import TwitterAPIClient

__all__ = ["GuestAuthenticator", "TwitterAPIClient"]
