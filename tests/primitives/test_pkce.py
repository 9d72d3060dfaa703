import base64
import hashlib

import pytest

from authflow.models.security import PKCEParameters
from authflow.primitives.pkce import VERIFIER_ALPHABET, PKCEManager, derive_code_challenge


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert RFC 7636 requirements
        assert len(params.code_verifier) == 128
        assert set(params.code_verifier) <= set(VERIFIER_ALPHABET)
        assert params.code_challenge_method == "S256"

        # Verify code_challenge is base64url(sha256(code_verifier))
        expected_challenge = (
            base64.urlsafe_b64encode(
                hashlib.sha256(params.code_verifier.encode("ascii")).digest()
            )
            .decode("ascii")
            .rstrip("=")
        )
        assert params.code_challenge == expected_challenge

    def test_generate_parameters_uniqueness(self) -> None:
        pkce_manager = PKCEManager()

        params1 = pkce_manager.generate_parameters()
        params2 = pkce_manager.generate_parameters()

        assert params1.code_verifier != params2.code_verifier
        assert params1.code_challenge != params2.code_challenge

    def test_rfc7636_appendix_b_vector(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        assert derive_code_challenge(verifier) == (
            "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        )

    @pytest.mark.parametrize("length", [42, 129])
    def test_verifier_length_outside_rfc_range_rejected(self, length) -> None:
        with pytest.raises(ValueError):
            PKCEManager(verifier_length=length)

    def test_verifier_repr_hides_secret(self) -> None:
        params = PKCEManager(verifier_length=43).generate_parameters()

        assert params.code_verifier not in repr(params)


class TestPKCEParameters:
    @pytest.mark.parametrize(
        "verifier",
        ["a" * 42, "a" * 129, "a" * 42 + "+", "a" * 42 + " "],
    )
    def test_invalid_verifier_rejected(self, verifier) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(code_verifier=verifier, code_challenge="c" * 43)

    def test_plain_method_rejected(self) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(
                code_verifier="a" * 43,
                code_challenge="a" * 43,
                code_challenge_method="plain",
            )

    def test_authorize_params(self) -> None:
        params = PKCEParameters(code_verifier="v" * 43, code_challenge="challenge")

        assert params.authorize_params() == {
            "code_challenge": "challenge",
            "code_challenge_method": "S256",
        }
