from __future__ import annotations

import logging
import time

import httpx

from .auth import TokenRefresher
from .config_types import ClientConfig
from .deadline import DeadlineTransport, call_deadline
from .descriptor import RequestDescriptor
from .errors import AuthError, HttpError, RequestTimeoutError, TransportError
from .result import Result, Success

logger = logging.getLogger(__name__)


class HttpClient:
    """Executes authenticated requests and classifies their outcome.

    Every call makes exactly one network attempt. Redirects are not followed
    and nothing is retried; a 3xx comes back as an ``HttpError``.
    """

    def __init__(
            self,
            cfg: ClientConfig,
            token_refresher: TokenRefresher,
            *,
            transport: httpx.BaseTransport | None = None,
    ):
        self._cfg = cfg
        self._tokens = token_refresher
        headers = {"User-Agent": cfg.user_agent}
        headers.update(cfg.default_headers)
        self._client = httpx.Client(
            timeout=cfg.timeout_s,
            headers=headers,
            follow_redirects=False,
            trust_env=cfg.trust_env,
            transport=transport if transport is not None else DeadlineTransport(trust_env=cfg.trust_env),
        )

    @property
    def config(self) -> ClientConfig:
        return self._cfg

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def execute(self, descriptor: RequestDescriptor) -> Result:
        timeout_s = descriptor.timeout_s if descriptor.timeout_s is not None else self._cfg.timeout_s
        deadline = time.monotonic() + timeout_s

        try:
            token = self._tokens.current_token(timeout_s=timeout_s)
        except AuthError as e:
            return e
        except RequestTimeoutError:
            logger.debug("%s %s timed out waiting for an access token", descriptor.method, descriptor.path)
            return RequestTimeoutError("timeout", timeout_s)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return RequestTimeoutError("timeout", timeout_s)

        headers = httpx.Headers(list(descriptor.headers))
        if descriptor.content_type:
            headers["Content-Type"] = descriptor.content_type
        headers["Authorization"] = f"Bearer {token.access_token}"

        url = _join_url(descriptor.base_url or self._cfg.base_url, descriptor.path)
        started = time.monotonic()
        try:
            with call_deadline(deadline):
                request = self._client.build_request(
                    descriptor.method,
                    url,
                    params=list(descriptor.query) or None,
                    headers=headers,
                    content=descriptor.body,
                    timeout=httpx.Timeout(remaining),
                )
                response = self._client.send(request, stream=True)
                try:
                    body = _read_body(response, deadline)
                finally:
                    response.close()
        except httpx.TimeoutException as e:
            logger.debug("%s %s timed out after %.0f ms (%s)", descriptor.method, url,
                         (time.monotonic() - started) * 1000, e.__class__.__name__)
            return RequestTimeoutError("timeout", timeout_s)
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %r", descriptor.method, url, e)
            return TransportError(str(e) or e.__class__.__name__)

        logger.debug("%s %s -> %s (%.0f ms)", descriptor.method, url, response.status_code,
                     (time.monotonic() - started) * 1000)

        content_type = response.headers.get("Content-Type")
        if 200 <= response.status_code < 300:
            return Success(response.status_code, body, content_type, dict(response.headers))
        return HttpError(response.status_code, body, content_type)


def _join_url(base_url: str, path: str) -> str:
    if not base_url:
        return path
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _read_body(response: httpx.Response, deadline: float) -> bytes:
    # checked between chunks for transports that do not go through DeadlineTransport
    if time.monotonic() > deadline:
        raise httpx.ReadTimeout("timeout", request=response.request)
    chunks: list[bytes] = []
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise httpx.ReadTimeout("timeout", request=response.request)
    return b"".join(chunks)
