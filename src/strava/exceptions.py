"""Strava API exceptions."""


class StravaException(Exception):
    """Base exception for Strava API errors."""

    pass


class ObjectNotFound(StravaException):
    """Raised when the requested activity is not found (404)."""

    pass


class AccessUnauthorized(StravaException):
    """Raised when the athlete token is rejected (401)."""

    pass


class RateLimitExceeded(StravaException):
    """Raised when rate limit is exceeded (429)."""

    pass
