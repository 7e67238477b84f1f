import base64

import pytest

from twofactor_core.codec import KeyRepresentation, decode
from twofactor_core.config import CredentialConfig, VerificationConfig
from twofactor_core.credentials import (
    Credential,
    CredentialGenerator,
    ScratchCodes,
    is_weak_scratch_code,
    is_well_formed_scratch_code,
    validate_scratch_code,
)
from twofactor_core.errors import InvalidParameterError
from twofactor_core.otp_core import hotp


def scripted(values):
    """randbelow stand-in returning the given values in order"""
    it = iter(values)
    return lambda modulus: next(it)


class TestCredentialGenerator:

    def test_default_credential(self):
        credential = CredentialGenerator().generate()
        assert len(credential.secret) == 20
        assert credential.key_representation is KeyRepresentation.BASE32
        assert decode(credential.key, KeyRepresentation.BASE32) == credential.secret
        assert credential.verification_code == hotp(credential.secret, 0)

        codes = credential.scratch_codes.codes
        assert len(codes) == 5
        assert len(set(codes)) == 5
        assert all(0 <= c < 10 ** 8 for c in codes)

    def test_scratch_code_count_override(self):
        credential = CredentialGenerator().generate(scratch_code_count=12)
        assert len(set(credential.scratch_codes)) == 12

    def test_secret_size_follows_config(self):
        generator = CredentialGenerator(CredentialConfig(secret_bits=256))
        assert len(generator.generate_secret()) == 32

    def test_base64_representation(self):
        generator = CredentialGenerator(CredentialConfig(key_representation="BASE64"))
        credential = generator.generate()
        assert credential.key == base64.b64encode(credential.secret).decode("ascii")

    def test_verification_code_uses_configured_digits(self):
        generator = CredentialGenerator(verification_config=VerificationConfig(digits=8))
        credential = generator.generate()
        assert credential.verification_code == hotp(credential.secret, 0, 8)

    def test_duplicates_and_weak_codes_are_redrawn(self):
        generator = CredentialGenerator(
            CredentialConfig(scratch_code_count=4),
            randbelow=scripted([11111111, 42, 42, 12345678, 87654321, 7, 99, 100]),
        )
        assert generator.generate_scratch_codes().codes == (42, 7, 99, 100)

    def test_weak_code_policy_can_be_disabled(self):
        generator = CredentialGenerator(
            CredentialConfig(scratch_code_count=2, reject_weak_scratch_codes=False),
            randbelow=scripted([11111111, 12345678]),
        )
        assert generator.generate_scratch_codes().codes == (11111111, 12345678)

    def test_injected_entropy_source(self):
        generator = CredentialGenerator(token_bytes=lambda n: b"\x01" * n)
        assert generator.generate().secret == b"\x01" * 20

    def test_impossible_scratch_code_count(self):
        generator = CredentialGenerator(CredentialConfig(scratch_code_digits=1, scratch_code_count=2))
        with pytest.raises(InvalidParameterError):
            generator.generate_scratch_codes(6)

    def test_secret_never_in_repr(self):
        credential = CredentialGenerator().generate()
        text = repr(credential)
        assert credential.key not in text
        assert repr(credential.secret) not in text
        assert str(credential.scratch_codes.codes[0]) not in text


class TestCredentialConfig:

    @pytest.mark.parametrize("kwargs", [
        {"secret_bits": 72},
        {"secret_bits": 100},
        {"scratch_code_count": -1},
        {"scratch_code_digits": 0},
        {"scratch_code_digits": 2, "scratch_code_count": 51},
        {"key_representation": "HEX"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(InvalidParameterError):
            CredentialConfig(**kwargs)

    def test_minimum_secret(self):
        assert CredentialConfig(secret_bits=80).secret_size == 10


class TestScratchCodeValidation:

    def test_code_is_consumed_once(self):
        codes = ScratchCodes((12345670, 55501234, 90000001))
        first = validate_scratch_code(codes, 55501234)
        assert first.accepted
        assert first.remaining.codes == (12345670, 90000001)

        second = validate_scratch_code(first.remaining, 55501234)
        assert not second.accepted
        assert second.remaining == first.remaining

    def test_input_set_is_not_mutated(self):
        codes = ScratchCodes((12345670, 55501234))
        validate_scratch_code(codes, 12345670)
        assert codes.codes == (12345670, 55501234)

    def test_string_candidates_keep_leading_zeros(self):
        codes = ScratchCodes((42,))
        assert validate_scratch_code(codes, "00000042").accepted
        assert not validate_scratch_code(codes, "42").accepted
        assert validate_scratch_code(codes, 42).accepted

    @pytest.mark.parametrize("candidate", [None, "", "abcdefgh", 10 ** 8, -5, 4.2, True, "1234 5678"])
    def test_malformed_candidates(self, candidate):
        codes = ScratchCodes((12345670,))
        result = validate_scratch_code(codes, candidate)
        assert not result.accepted
        assert result.remaining is codes

    def test_empty_set(self):
        assert not validate_scratch_code(ScratchCodes(), 12345670)

    def test_formatted(self):
        assert ScratchCodes((42, 12345678)).formatted() == ("00000042", "12345678")


class TestScratchCodePolicy:

    @pytest.mark.parametrize("code", [0, 11111111, 99999999, 12345678, 87654321, 1234567])
    def test_weak_codes(self, code):
        # 1234567 is "01234567" once padded
        assert is_weak_scratch_code(code, 8)

    @pytest.mark.parametrize("code", [12345670, 13579246, 42, 90000001])
    def test_regular_codes(self, code):
        assert not is_weak_scratch_code(code, 8)

    def test_short_codes_are_never_weak(self):
        assert not is_weak_scratch_code(111, 3)

    def test_well_formed(self):
        assert is_well_formed_scratch_code(12345678)
        assert is_well_formed_scratch_code("00000042")
        assert not is_well_formed_scratch_code(100000000)
        assert not is_well_formed_scratch_code("123")
        assert not is_well_formed_scratch_code(False)


def test_credential_defaults():
    credential = Credential(secret=b"x" * 10)
    assert len(credential.scratch_codes) == 0
    assert credential.key_representation is KeyRepresentation.BASE32
