from .auth import CachingTokenRefresher, IamTokenRefresher, StaticTokenRefresher, TokenRefresher
from .client import HsdpClient
from .config_types import ClientConfig, OAuthClientConfig, ServiceEndpoints
from .descriptor import RequestDescriptor
from .errors import (
    AuthError,
    HsdpClientError,
    HttpError,
    RequestTimeoutError,
    SerializationError,
    TransportError,
)
from .oauth2 import ClientCredentialsGrant, PasswordGrant, Token
from .result import Result, Success
from .transport import HttpClient

__all__ = [
    "AuthError",
    "CachingTokenRefresher",
    "ClientConfig",
    "ClientCredentialsGrant",
    "HsdpClient",
    "HsdpClientError",
    "HttpClient",
    "HttpError",
    "IamTokenRefresher",
    "OAuthClientConfig",
    "PasswordGrant",
    "RequestDescriptor",
    "RequestTimeoutError",
    "Result",
    "SerializationError",
    "ServiceEndpoints",
    "StaticTokenRefresher",
    "Success",
    "Token",
    "TokenRefresher",
    "TransportError",
]
