"""PKCE parameters carried by an authorization attempt (RFC 7636)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

S256 = "S256"

# RFC 7636 Section 4.1: 43-128 unreserved characters
_VERIFIER_RE = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


@dataclass(frozen=True)
class PKCEParameters:
    """Verifier/challenge pair for one attempt.

    The verifier never leaves the client until the token request, so it
    is kept out of ``repr``.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str
    code_challenge_method: str = S256

    def __post_init__(self) -> None:
        if not _VERIFIER_RE.match(self.code_verifier):
            raise ValueError(
                "code_verifier must be 43-128 unreserved characters (RFC 7636 Section 4.1)"
            )
        if not self.code_challenge:
            raise ValueError("code_challenge is required")
        if self.code_challenge_method != S256:
            raise ValueError(
                f"Unsupported code challenge method: {self.code_challenge_method}"
            )

    def authorize_params(self) -> dict[str, str]:
        """Query parameters sent on the authorize request."""
        return {
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }
