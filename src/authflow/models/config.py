"""Flow configuration models.

A ``FlowConfig`` describes one OAuth2 client registration against one
authorization server. It is immutable and shared by reference with the
services that build requests from it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GrantType(str, Enum):
    """Supported OAuth2 grant types."""

    AUTHORIZATION_CODE = "authorization_code"
    AUTHORIZATION_CODE_PKCE = "authorization_code_pkce"
    IMPLICIT = "implicit"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"

    @property
    def response_type(self) -> str | None:
        """``response_type`` sent to the authorize endpoint, if any."""
        if self in (GrantType.AUTHORIZATION_CODE, GrantType.AUTHORIZATION_CODE_PKCE):
            return "code"
        if self is GrantType.IMPLICIT:
            return "token"
        return None

    @property
    def is_interactive(self) -> bool:
        """True if the grant needs the user to visit the authorize URL."""
        return self.response_type is not None

    @property
    def uses_pkce(self) -> bool:
        return self is GrantType.AUTHORIZATION_CODE_PKCE


class TokenRequestFormat(str, Enum):
    FORM = "form"
    JSON = "json"


class FlowConfig(BaseModel):
    """Client and server settings for an authorization flow."""

    model_config = ConfigDict(frozen=True)

    grant_type: GrantType
    client_id: str
    client_secret: str | None = None  # Confidential clients only
    authorize_endpoint: str | None = None
    token_endpoint: str | None = None
    redirect_uri: str | None = None
    scope: list[str] = Field(default_factory=list)
    extra_params: dict[str, str] = Field(default_factory=dict)

    # Client authentication and token request encoding
    client_secret_in_body: bool = False
    token_request_format: TokenRequestFormat = TokenRequestFormat.FORM

    @field_validator("scope", mode="before")
    @classmethod
    def split_scope_string(cls, v: Any) -> Any:
        """Accept a space-delimited scope string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        return v

    @property
    def uses_pkce(self) -> bool:
        return self.grant_type.uses_pkce

    @property
    def is_confidential(self) -> bool:
        return bool(self.client_secret)
