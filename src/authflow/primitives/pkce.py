"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 code verifier and S256 code challenge derivation to
prevent authorization code interception attacks.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from authflow.models.errors import PKCEError
from authflow.models.security import S256, PKCEParameters

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"


class PKCEManager:
    """Generates PKCE parameter pairs for authorization attempts.

    Uses the S256 challenge method only; ``plain`` offers no protection
    against an attacker who can read the authorize request.
    """

    def __init__(self, verifier_length: int = 128):
        if not 43 <= verifier_length <= 128:
            raise ValueError("verifier_length must be 43-128 characters")
        self.verifier_length = verifier_length

    def generate_parameters(self) -> PKCEParameters:
        """Generate a fresh verifier/challenge pair.

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = self.generate_code_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=derive_code_challenge(code_verifier),
                code_challenge_method=S256,
            )
        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    def generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: unreserved characters only,
        [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        return "".join(
            secrets.choice(VERIFIER_ALPHABET) for _ in range(self.verifier_length)
        )


def derive_code_challenge(code_verifier: str) -> str:
    """BASE64URL-ENCODE(SHA256(ASCII(code_verifier))) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
