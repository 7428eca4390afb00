from __future__ import annotations


class HsdpClientError(Exception):
    """Base client error."""

    def unwrap(self):
        raise self


class AuthError(HsdpClientError):
    """Access token could not be obtained or refreshed."""

    def __init__(self, message: str, details: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.details = details
        self.status_code = status_code


class RequestTimeoutError(HsdpClientError):
    """No response arrived within the call deadline."""

    def __init__(self, message: str = "timeout", timeout_s: float | None = None):
        super().__init__(message)
        self.timeout_s = timeout_s


class TransportError(HsdpClientError):
    """Connection-level failure (refused, reset, protocol error)."""


class HttpError(HsdpClientError):
    """Response received with a non-2xx status.

    The message is the raw response body, verbatim.
    """

    def __init__(self, status_code: int, body: bytes, content_type: str | None = None):
        super().__init__(body.decode("utf-8", errors="replace"))
        self.status_code = status_code
        self.body = body
        self.content_type = content_type

    @property
    def text(self) -> str:
        return str(self)


class SerializationError(HsdpClientError):
    """Response body did not parse as its declared content type."""

    def __init__(self, message: str, raw: bytes, content_type: str | None = None):
        super().__init__(message)
        self.raw = raw
        self.content_type = content_type
