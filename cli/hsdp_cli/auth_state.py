from __future__ import annotations

import time
from dataclasses import dataclass

from .config import AppConfig


@dataclass
class AuthContext:
    state: str
    expires_in_s: float | None = None


def resolve_auth_context(cfg: AppConfig, *, now: float | None = None) -> AuthContext:
    """Describe the stored login without calling IAM."""
    if not cfg.iam_url:
        return AuthContext(state="no_iam_url")
    token = cfg.auth.to_token()
    if token is None:
        return AuthContext(state="no_token")

    now = time.time() if now is None else now
    expires_at = token.expires_at
    remaining = None if expires_at is None else expires_at - now
    if not token.is_expired(now):
        return AuthContext(state="authed", expires_in_s=remaining)
    if token.refresh_token and cfg.client_id:
        return AuthContext(state="refreshable", expires_in_s=remaining)
    return AuthContext(state="expired", expires_in_s=remaining)
