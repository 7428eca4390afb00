from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .errors import AuthError, HttpError, RequestTimeoutError, TransportError


@dataclass(frozen=True)
class Success:
    status_code: int
    body: bytes
    content_type: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def unwrap(self) -> Success:
        return self


# What HttpClient.execute hands back: the error kinds are returned, not raised.
# Both sides implement unwrap(), which raises the error or yields the Success.
Result = Success | AuthError | RequestTimeoutError | TransportError | HttpError
