from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

import httpx

from .config_types import OAuthClientConfig
from .deadline import DeadlineTransport, call_deadline
from .errors import AuthError, RequestTimeoutError
from .oauth2 import Grant, Token

logger = logging.getLogger(__name__)

TOKEN_PATH = "/authorize/oauth2/token"
REVOKE_PATH = "/authorize/oauth2/revoke"
IAM_API_VERSION = "2"


class TokenRefresher(Protocol):
    def current_token(self, timeout_s: float | None = None) -> Token:
        ...


class StaticTokenRefresher:
    """Hands out a pre-issued token until it expires."""

    def __init__(self, token: Token, *, clock: Callable[[], float] = time.time):
        self._token = token
        self._clock = clock

    def current_token(self, timeout_s: float | None = None) -> Token:
        if self._token.is_expired(self._clock()):
            raise AuthError("access token expired and cannot be refreshed")
        return self._token


class _Refresh:
    """One in-flight refresh; everyone waiting on it sees the same outcome."""

    def __init__(self):
        self.done = threading.Event()
        self.token: Token | None = None
        self.error: AuthError | None = None

    def wait(self, timeout_s: float | None) -> Token:
        if not self.done.wait(timeout_s):
            raise RequestTimeoutError("timeout", timeout_s)
        if self.error is not None:
            raise self.error
        return self.token


class CachingTokenRefresher:
    """Holds one token and refreshes it through ``_fetch`` when it goes stale.

    Refreshes are single-flight: the first caller that finds the token stale
    starts a refresh on a worker thread, and every caller arriving before it
    finishes waits for that same refresh and gets its token or its error.
    Waiting is bounded by the caller's ``timeout_s``; an abandoned refresh
    still completes and its token is kept for later callers.
    Subclasses implement ``_fetch``.
    """

    def __init__(
            self,
            *,
            token: Token | None = None,
            expiry_margin_s: float = 60.0,
            clock: Callable[[], float] = time.time,
            on_refresh: Callable[[Token], None] | None = None,
    ):
        self._token = token
        self._margin = float(expiry_margin_s)
        self._clock = clock
        self._on_refresh = on_refresh
        self._lock = threading.Lock()
        self._generation = 0
        self._last_error: AuthError | None = None
        self._inflight: _Refresh | None = None

    def current_token(self, timeout_s: float | None = None) -> Token:
        generation = self._generation
        token = self._token
        if token is not None and not token.is_expired(self._clock(), self._margin):
            return token

        with self._lock:
            if self._generation != generation and self._inflight is None:
                # a refresh finished after we looked; take its outcome
                if self._last_error is not None:
                    raise self._last_error
                token = self._token
                if token is not None and not token.is_expired(self._clock()):
                    return token
            token = self._token
            if token is not None and not token.is_expired(self._clock(), self._margin):
                return token
            flight = self._start_locked(token)
        return flight.wait(timeout_s)

    def refresh(self, timeout_s: float | None = None) -> Token:
        """Force a refresh regardless of the held token's age."""
        with self._lock:
            flight = self._start_locked(self._token)
        return flight.wait(timeout_s)

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._last_error = None
            self._generation += 1

    def _start_locked(self, current: Token | None) -> _Refresh:
        if self._inflight is not None:
            return self._inflight
        flight = self._inflight = _Refresh()
        threading.Thread(target=self._run, args=(flight, current), name="token-refresh", daemon=True).start()
        return flight

    def _run(self, flight: _Refresh, current: Token | None) -> None:
        logger.debug("refreshing access token")
        token = error = None
        try:
            token = self._fetch(current)
            if token.is_expired(self._clock()):
                raise AuthError("token endpoint issued an already expired token")
        except AuthError as e:
            error = e
        except Exception as e:
            logger.debug("token refresh crashed", exc_info=True)
            error = AuthError(f"token refresh failed: {e}")
            error.__cause__ = e
        if error is not None:
            token = None

        with self._lock:
            if error is None:
                self._token = token
            self._last_error = error
            self._generation += 1
            self._inflight = None
        flight.token = token
        flight.error = error

        if token is not None and self._on_refresh is not None:
            try:
                self._on_refresh(token)
            except Exception:
                logger.warning("on_refresh callback failed", exc_info=True)
        flight.done.set()

    def _fetch(self, current: Token | None) -> Token:
        raise NotImplementedError


class IamTokenRefresher(CachingTokenRefresher):
    """Obtains tokens from the IAM OAuth2 token endpoint.

    A held refresh token is tried first; when IAM rejects it the primary
    grant is used. Without a grant only refresh tokens can be exchanged.
    """

    def __init__(
            self,
            cfg: OAuthClientConfig,
            grant: Grant | None = None,
            *,
            token: Token | None = None,
            clock: Callable[[], float] = time.time,
            on_refresh: Callable[[Token], None] | None = None,
            transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            token=token,
            expiry_margin_s=cfg.expiry_margin_s,
            clock=clock,
            on_refresh=on_refresh,
        )
        self._cfg = cfg
        self._grant = grant
        self._client = httpx.Client(
            base_url=cfg.iam_url.rstrip("/"),
            timeout=cfg.timeout_s,
            headers={
                "Api-Version": IAM_API_VERSION,
                "Accept": "application/json",
                "User-Agent": "hsdp-client/0.1.0",
            },
            auth=httpx.BasicAuth(cfg.client_id, cfg.client_secret),
            transport=transport if transport is not None else DeadlineTransport(),
        )

    def close(self) -> None:
        self._client.close()

    def login(self) -> Token:
        """Obtain a fresh token with the primary grant."""
        if self._grant is None:
            raise AuthError("no grant configured for login")
        with self._lock:
            self._token = None
            flight = self._start_locked(None)
        return flight.wait(None)

    def revoke(self) -> None:
        with self._lock:
            token = self._token
            self._token = None
            self._last_error = None
            self._generation += 1
        if token is None:
            return
        try:
            r = self._client.post(REVOKE_PATH, data={"token": token.access_token})
        except httpx.RequestError as e:
            raise AuthError(f"token revoke failed: {e}") from e
        if not 200 <= r.status_code < 300:
            raise AuthError(
                f"token revoke failed with {r.status_code}",
                details=r.text[:1000],
                status_code=r.status_code,
            )

    def _fetch(self, current: Token | None) -> Token:
        if current is not None and current.refresh_token:
            try:
                return self._request_token(
                    {"grant_type": "refresh_token", "refresh_token": current.refresh_token}
                )
            except AuthError as exc:
                if self._grant is None or exc.status_code is None or not 400 <= exc.status_code < 500:
                    raise
                logger.debug("refresh token rejected (%s), falling back to primary grant", exc.status_code)
        if self._grant is None:
            raise AuthError("no credentials available to obtain an access token")
        return self._request_token(self._grant.form())

    def _request_token(self, form: dict[str, str]) -> Token:
        grant_type = form.get("grant_type")
        try:
            with call_deadline(time.monotonic() + self._cfg.timeout_s):
                r = self._client.post(TOKEN_PATH, data=form)
        except httpx.TimeoutException as e:
            raise AuthError(f"token request ({grant_type}) timed out") from e
        except httpx.RequestError as e:
            raise AuthError(f"token request ({grant_type}) failed: {e}") from e

        if not 200 <= r.status_code < 300:
            raise AuthError(
                f"token request ({grant_type}) failed with {r.status_code}",
                details=r.text[:1000],
                status_code=r.status_code,
            )

        try:
            return Token.from_response(r.json(), issued_at=self._clock())
        except (TypeError, ValueError) as e:
            raise AuthError(f"malformed token response: {e}", details=r.text[:1000]) from e
