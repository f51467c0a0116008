"""Sync engine error taxonomy.

- AuthenticationError: bad/missing webhook signature. Request rejected, never retried.
- TranslationError: malformed platform payload field. Item skipped, run continues.
- UpsertError: local store rejected or could not persist one record. Item counted as error.
- PlatformRequestError: outbound call to the platform failed.
- TokenExpiredError: OAuth access token rejected; triggers one refresh-and-retry.
- RateLimitedError: platform answered 429; the client retries with backoff.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    pass


class AuthenticationError(SyncError):
    pass


class TranslationError(SyncError):
    pass


class UpsertError(SyncError):
    pass


class PlatformRequestError(SyncError):
    """Outbound platform call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenExpiredError(PlatformRequestError):
    pass


class RateLimitedError(PlatformRequestError):
    """429 from the platform; retried after `retry_after` seconds when given."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after
