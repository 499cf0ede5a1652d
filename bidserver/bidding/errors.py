"""Domain errors raised by the bidding, account and live-channel services."""

from __future__ import annotations


class BiddingError(ValueError):
    """Base class for request-level failures that map to a client error."""


class InvalidFormat(BiddingError):
    """Raised when a price or other field is malformed; nothing is mutated."""


class NotFound(BiddingError):
    """Raised when a listing or user does not exist."""


class Conflict(BiddingError):
    """Raised when a listing id, username or email is already taken."""


class Unauthenticated(BiddingError):
    """Raised when a bearer credential is missing, malformed or expired."""


class InvalidCredentials(BiddingError):
    """Raised when a login email/password pair does not match."""
