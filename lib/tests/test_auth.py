from __future__ import annotations

import base64
import threading
import time
from urllib.parse import parse_qs

import httpx
import pytest

from hsdp_client import (
    AuthError,
    CachingTokenRefresher,
    ClientConfig,
    ClientCredentialsGrant,
    HttpClient,
    IamTokenRefresher,
    OAuthClientConfig,
    PasswordGrant,
    RequestDescriptor,
    RequestTimeoutError,
    StaticTokenRefresher,
    Success,
    Token,
)


class _Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class _CountingRefresher(CachingTokenRefresher):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = 0

    def _fetch(self, current: Token | None) -> Token:
        self.calls += 1
        return Token(access_token=f"token-{self.calls}", expires_in=3600, issued_at=self._clock())


class _GatedRefresher(CachingTokenRefresher):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()

    def _fetch(self, current: Token | None) -> Token:
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        return Token(access_token=f"token-{self.calls}", expires_in=3600, issued_at=time.time())


def _iam(handler, grant=None, **kwargs) -> tuple[IamTokenRefresher, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    cfg = OAuthClientConfig(iam_url="https://iam.example.test", client_id="client", client_secret="secret")
    refresher = IamTokenRefresher(cfg, grant, transport=httpx.MockTransport(_record), **kwargs)
    return refresher, seen


def _form(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.content.decode())


def _token_response(access_token: str = "new-token", **extra) -> httpx.Response:
    return httpx.Response(
        200,
        json={"access_token": access_token, "token_type": "Bearer", "expires_in": 1799, **extra},
    )


def test_fresh_token_is_returned_without_refresh() -> None:
    clock = _Clock()
    held = Token(access_token="held", expires_in=3600, issued_at=clock.now)
    refresher = _CountingRefresher(token=held, clock=clock)

    assert refresher.current_token() is held
    assert refresher.calls == 0


def test_missing_token_triggers_one_refresh() -> None:
    refresher = _CountingRefresher(clock=_Clock())

    first = refresher.current_token()
    second = refresher.current_token()

    assert first is second
    assert first.access_token == "token-1"
    assert refresher.calls == 1


def test_token_within_expiry_margin_is_refreshed() -> None:
    clock = _Clock()
    held = Token(access_token="held", expires_in=3600, issued_at=clock.now)
    refresher = _CountingRefresher(token=held, clock=clock, expiry_margin_s=60)

    clock.now += 3600 - 30

    assert refresher.current_token().access_token == "token-1"
    assert refresher.calls == 1


def test_expired_token_refreshes_once_then_request_uses_new_token() -> None:
    clock = _Clock()
    refresher = _CountingRefresher(
        token=Token(access_token="old", expires_in=10, issued_at=clock.now - 100),
        clock=clock,
    )
    seen: list[httpx.Request] = []
    client = HttpClient(
        ClientConfig(base_url="https://idm.example.test"),
        refresher,
        transport=httpx.MockTransport(lambda r: seen.append(r) or httpx.Response(200)),
    )

    assert isinstance(client.execute(RequestDescriptor("GET", "/a")), Success)
    assert isinstance(client.execute(RequestDescriptor("GET", "/b")), Success)

    assert refresher.calls == 1
    assert [r.headers["Authorization"] for r in seen] == ["Bearer token-1", "Bearer token-1"]


def test_concurrent_callers_share_a_single_refresh() -> None:
    refresher = _GatedRefresher()
    results: list[Token] = []
    lock = threading.Lock()

    def _call() -> None:
        token = refresher.current_token()
        with lock:
            results.append(token)

    first = threading.Thread(target=_call)
    first.start()
    assert refresher.started.wait(5)

    others = [threading.Thread(target=_call) for _ in range(8)]
    for t in others:
        t.start()
    time.sleep(0.05)
    refresher.release.set()
    for t in [first, *others]:
        t.join(5)

    assert refresher.calls == 1
    assert len(results) == 9
    assert all(token is results[0] for token in results)


def test_short_lived_token_is_shared_with_waiting_callers() -> None:
    clock = _Clock()

    class _ShortLived(_GatedRefresher):
        def _fetch(self, current: Token | None) -> Token:
            super()._fetch(current)
            # shorter than the expiry margin, but not expired
            return Token(access_token="short", expires_in=30, issued_at=clock.now)

    refresher = _ShortLived(clock=clock, expiry_margin_s=60)
    results: list[Token] = []
    first = threading.Thread(target=lambda: results.append(refresher.current_token()))
    first.start()
    assert refresher.started.wait(5)
    second = threading.Thread(target=lambda: results.append(refresher.current_token()))
    second.start()
    time.sleep(0.05)
    refresher.release.set()
    first.join(5)
    second.join(5)

    assert refresher.calls == 1
    assert [t.access_token for t in results] == ["short", "short"]


def test_already_expired_token_from_endpoint_is_rejected() -> None:
    clock = _Clock()

    class _Expired(CachingTokenRefresher):
        def _fetch(self, current: Token | None) -> Token:
            return Token(access_token="stale", expires_in=0, issued_at=clock.now - 1)

    with pytest.raises(AuthError):
        _Expired(clock=clock).current_token()


def test_on_refresh_receives_new_token() -> None:
    received: list[Token] = []
    refresher = _CountingRefresher(clock=_Clock(), on_refresh=received.append)

    token = refresher.current_token()

    assert received == [token]


def test_static_refresher_fails_once_token_expires() -> None:
    clock = _Clock()
    refresher = StaticTokenRefresher(Token(access_token="abc", expires_in=10, issued_at=clock.now), clock=clock)

    assert refresher.current_token().access_token == "abc"
    clock.now += 11
    with pytest.raises(AuthError):
        refresher.current_token()


def test_password_grant_posts_form_with_basic_auth() -> None:
    clock = _Clock()
    refresher, seen = _iam(
        lambda r: _token_response(refresh_token="refresh-1", scope="auth_iam_introspect mail"),
        PasswordGrant("johndoe", "s3cret"),
        clock=clock,
    )

    token = refresher.current_token()

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/authorize/oauth2/token"
    assert request.headers["Api-Version"] == "2"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"client:secret").decode()
    assert _form(request) == {"grant_type": ["password"], "username": ["johndoe"], "password": ["s3cret"]}
    assert token.access_token == "new-token"
    assert token.refresh_token == "refresh-1"
    assert token.scope == ("auth_iam_introspect", "mail")
    assert token.expires_at == clock.now + 1799


def test_client_credentials_grant_sends_scopes() -> None:
    refresher, seen = _iam(lambda r: _token_response(), ClientCredentialsGrant(("cdr", "tdr")))

    refresher.current_token()

    assert _form(seen[0]) == {"grant_type": ["client_credentials"], "scope": ["cdr tdr"]}


def test_held_refresh_token_is_exchanged_first() -> None:
    clock = _Clock()
    held = Token(access_token="old", expires_in=10, issued_at=clock.now - 100, refresh_token="refresh-1")
    refresher, seen = _iam(lambda r: _token_response(), PasswordGrant("johndoe", "s3cret"), token=held, clock=clock)

    assert refresher.current_token().access_token == "new-token"
    assert len(seen) == 1
    assert _form(seen[0]) == {"grant_type": ["refresh_token"], "refresh_token": ["refresh-1"]}


def test_rejected_refresh_token_falls_back_to_grant() -> None:
    clock = _Clock()
    held = Token(access_token="old", expires_in=10, issued_at=clock.now - 100, refresh_token="revoked")

    def _handler(request: httpx.Request) -> httpx.Response:
        if _form(request)["grant_type"] == ["refresh_token"]:
            return httpx.Response(400, json={"error": "invalid_grant"})
        return _token_response()

    refresher, seen = _iam(_handler, PasswordGrant("johndoe", "s3cret"), token=held, clock=clock)

    assert refresher.current_token().access_token == "new-token"
    assert [_form(r)["grant_type"] for r in seen] == [["refresh_token"], ["password"]]


def test_rejected_credentials_raise_auth_error() -> None:
    refresher, _ = _iam(
        lambda r: httpx.Response(401, json={"error": "invalid_client"}),
        PasswordGrant("johndoe", "wrong"),
    )

    with pytest.raises(AuthError) as exc_info:
        refresher.current_token()

    assert exc_info.value.status_code == 401
    assert "invalid_client" in (exc_info.value.details or "")


def test_malformed_token_response_raises_auth_error() -> None:
    for response in (
            httpx.Response(200, content=b"<html>oops</html>"),
            httpx.Response(200, json={"token_type": "Bearer"}),
            httpx.Response(200, json={"access_token": "x", "expires_in": "soon"}),
    ):
        refresher, _ = _iam(lambda r, resp=response: resp, PasswordGrant("johndoe", "s3cret"))
        with pytest.raises(AuthError):
            refresher.current_token()


def test_network_failure_raises_auth_error() -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    refresher, _ = _iam(_refuse, PasswordGrant("johndoe", "s3cret"))

    with pytest.raises(AuthError):
        refresher.current_token()


def test_no_grant_and_no_refresh_token_raises_auth_error() -> None:
    refresher, seen = _iam(lambda r: _token_response())

    with pytest.raises(AuthError):
        refresher.current_token()
    assert seen == []


def test_auth_error_reaches_caller_of_execute() -> None:
    refresher, _ = _iam(lambda r: httpx.Response(401), PasswordGrant("johndoe", "wrong"))
    client = HttpClient(
        ClientConfig(base_url="https://idm.example.test"),
        refresher,
        transport=httpx.MockTransport(lambda r: httpx.Response(200)),
    )

    result = client.execute(RequestDescriptor("GET", "/x"))

    assert isinstance(result, AuthError)
    with pytest.raises(AuthError):
        result.unwrap()


def test_revoke_posts_token_and_forgets_it() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/revoke"):
            return httpx.Response(200)
        return _token_response()

    refresher, seen = _iam(_handler, PasswordGrant("johndoe", "s3cret"))
    refresher.login()

    refresher.revoke()
    refresher.current_token()

    assert [r.url.path for r in seen] == [
        "/authorize/oauth2/token",
        "/authorize/oauth2/revoke",
        "/authorize/oauth2/token",
    ]
    assert _form(seen[1]) == {"token": ["new-token"]}


def test_failed_refresh_is_shared_with_waiting_callers() -> None:
    class _Rejected(_GatedRefresher):
        def _fetch(self, current: Token | None) -> Token:
            super()._fetch(current)
            raise AuthError("invalid credentials", status_code=401)

    refresher = _Rejected()
    errors: list[Exception] = []
    lock = threading.Lock()

    def _call() -> None:
        try:
            refresher.current_token()
        except AuthError as e:
            with lock:
                errors.append(e)

    first = threading.Thread(target=_call)
    first.start()
    assert refresher.started.wait(5)
    others = [threading.Thread(target=_call) for _ in range(8)]
    for t in others:
        t.start()
    time.sleep(0.05)
    refresher.release.set()
    for t in [first, *others]:
        t.join(5)

    assert refresher.calls == 1
    assert len(errors) == 9
    assert all(e.status_code == 401 for e in errors)


def test_caller_after_failed_refresh_tries_again() -> None:
    class _FailsOnce(CachingTokenRefresher):
        calls = 0

        def _fetch(self, current: Token | None) -> Token:
            self.calls += 1
            if self.calls == 1:
                raise AuthError("temporarily unavailable")
            return Token(access_token="second", expires_in=3600, issued_at=time.time())

    refresher = _FailsOnce()

    with pytest.raises(AuthError):
        refresher.current_token()
    assert refresher.current_token().access_token == "second"


def test_stalled_token_endpoint_is_bounded_by_the_call_timeout() -> None:
    release = threading.Event()

    def _stall(request: httpx.Request) -> httpx.Response:
        release.wait(5)
        return _token_response()

    refresher, _ = _iam(_stall, PasswordGrant("johndoe", "s3cret"))
    client = HttpClient(
        ClientConfig(base_url="https://idm.example.test"),
        refresher,
        transport=httpx.MockTransport(lambda r: httpx.Response(200)),
    )

    started = time.monotonic()
    try:
        result = client.execute(RequestDescriptor("GET", "/x", timeout_s=0.2))
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert isinstance(result, RequestTimeoutError)
    assert elapsed < 1.0


def test_refresh_finishing_before_caller_takes_lock_is_not_repeated() -> None:
    class _Clock2(_Clock):
        hook = None

        def __call__(self) -> float:
            hook, self.hook = self.hook, None
            if hook is not None:
                hook()
            return self.now

    clock = _Clock2()

    class _ShortLived(CachingTokenRefresher):
        calls = 0

        def _fetch(self, current: Token | None) -> Token:
            self.calls += 1
            # shorter than the expiry margin, but not expired
            return Token(access_token=f"short-{self.calls}", expires_in=30, issued_at=clock.now)

    stale = Token(access_token="stale", expires_in=10, issued_at=clock.now - 100)
    refresher = _ShortLived(token=stale, clock=clock, expiry_margin_s=60)
    # another caller completes a refresh while this one is on the lock-free path
    clock.hook = lambda: refresher.current_token()

    token = refresher.current_token()

    assert refresher.calls == 1
    assert token.access_token == "short-1"


def test_rejected_token_is_not_handed_to_on_refresh() -> None:
    clock = _Clock()
    received: list[Token] = []

    class _Expired(CachingTokenRefresher):
        def _fetch(self, current: Token | None) -> Token:
            return Token(access_token="stale", expires_in=0, issued_at=clock.now - 1)

    with pytest.raises(AuthError):
        _Expired(clock=clock, on_refresh=received.append).current_token()
    assert received == []
