from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

Pairs = Mapping[str, object] | Iterable[tuple[str, object]]


def to_pairs(value: Pairs | None) -> tuple[tuple[str, str], ...]:
    if not value:
        return ()
    items = value.items() if isinstance(value, Mapping) else value
    return tuple((str(k), str(v)) for k, v in items)


@dataclass(frozen=True)
class RequestDescriptor:
    """One HTTP call, described before it is executed.

    ``query`` and ``headers`` keep the order they were given in. ``base_url``
    overrides the client's base URL, so one client can serve several
    services. ``timeout_s`` overrides the client's default call timeout.
    """

    method: str
    path: str
    query: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    content_type: str | None = None
    timeout_s: float | None = None
    base_url: str | None = None

    def __post_init__(self) -> None:
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query", to_pairs(self.query))
        object.__setattr__(self, "headers", to_pairs(self.headers))
