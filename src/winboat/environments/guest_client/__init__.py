"""Guest server client package.

Provides the HTTP client used to talk to the guest server running inside the
Windows guest.
"""

from .base import GuestClientProtocol
from .http_client import LOCALHOST, GuestApiClient, guest_url

__all__ = [
    "LOCALHOST",
    "GuestApiClient",
    "GuestClientProtocol",
    "guest_url",
]
