from __future__ import annotations

from uuid import UUID

from .config_types import JSON_UTF8
from .codecs import decode_model
from .descriptor import RequestDescriptor
from .models import HsdpModel
from .transport import HttpClient

USER_PATH = "/authorize/identity/User"
API_VERSION = "2"


class UserName(HsdpModel):
    family: str | None = None
    given: str | None = None


class PasswordStatus(HsdpModel):
    password_changed_on: str | None = None
    password_expires_on: str | None = None


class Membership(HsdpModel):
    organization_id: str
    organization_name: str | None = None
    roles: list[str] = []
    groups: list[str] = []


class AccountStatus(HsdpModel):
    last_login_time: str | None = None
    mfa_status: str | None = None
    phone_verified: bool | None = None
    email_verified: bool | None = None
    must_change_password: bool | None = None
    disabled: bool | None = None
    account_locked_on: str | None = None
    account_locked_until: str | None = None
    number_of_invalid_attempt: int | None = None
    last_invalid_attempted_on: str | None = None


class GrantedDelegation(HsdpModel):
    delegatee_id: str
    valid_from: str
    valid_until: str


class ReceivedDelegation(HsdpModel):
    delegator_id: str
    valid_from: str
    valid_until: str


class Delegations(HsdpModel):
    granted: list[GrantedDelegation] = []
    received: list[ReceivedDelegation] = []


class User(HsdpModel):
    id: UUID
    login_id: str
    preferred_language: str | None = None
    preferred_communication_channel: str | None = None
    email_address: str | None = None
    phone_number: str | None = None
    name: UserName | None = None
    managing_organization: UUID | None = None
    password_status: PasswordStatus | None = None
    memberships: list[Membership] = []
    account_status: AccountStatus | None = None
    consented_apps: list[str] = []
    delegations: Delegations | None = None


class UserSearchResponse(HsdpModel):
    total: int = 0
    entry: list[User] = []


class IamUser:
    """Identity (IDM) user endpoints."""

    def __init__(self, base_url: str, http_client: HttpClient):
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    def search_user(self, login_id: str, *, profile_type: str = "all") -> list[User]:
        """Look a user up by login id, email address or user UUID."""
        descriptor = RequestDescriptor(
            "GET",
            USER_PATH,
            query=[("userId", login_id), ("profileType", profile_type)],
            headers={"Api-Version": API_VERSION, "Accept": JSON_UTF8},
            base_url=self._base_url,
        )
        success = self._http.execute(descriptor).unwrap()
        return decode_model(UserSearchResponse, success).entry
