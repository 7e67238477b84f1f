import hashlib

import pyotp
import pytest

from twofactor_core.codec import KeyRepresentation, encode
from twofactor_core.config import HashAlgorithm, VerificationConfig
from twofactor_core.errors import InvalidParameterError
from twofactor_core.otp_core import (
    current_counter,
    dynamic_truncate,
    format_otpauth_uri,
    hotp,
    int_to_bytes,
    remaining_millis,
    totp,
)
from tests.conftest import RFC_SECRET, RFC_SECRET_B32

SHA256_SECRET = b"12345678901234567890123456789012"
SHA512_SECRET = b"1234567890123456789012345678901234567890123456789012345678901234"

# RFC 4226 appendix D
RFC4226_CODES = [
    "755224", "287082", "359152", "969429", "338314",
    "254676", "287922", "162583", "399871", "520489",
]


class TestHotp:

    @pytest.mark.parametrize("counter,expected", list(enumerate(RFC4226_CODES)))
    def test_rfc4226_vectors(self, counter, expected):
        assert hotp(RFC_SECRET, counter) == expected

    def test_eight_digit_codes(self):
        assert hotp(RFC_SECRET, 0, digits=8) == "84755224"
        assert hotp(RFC_SECRET, 1, digits=8) == "94287082"

    def test_is_deterministic(self):
        assert hotp(RFC_SECRET, 12345) == hotp(RFC_SECRET, 12345)

    def test_dynamic_truncation_rfc_example(self):
        digest = bytes.fromhex("1f8698690e02ca16618550ef7f19da8e945b555a")
        assert dynamic_truncate(digest) == 0x50EF7F19

    def test_counter_is_big_endian(self):
        assert int_to_bytes(1) == b"\x00" * 7 + b"\x01"
        assert int_to_bytes(2 ** 64 - 1) == b"\xff" * 8

    @pytest.mark.parametrize("algorithm,digest", [
        (HashAlgorithm.SHA1, hashlib.sha1),
        (HashAlgorithm.SHA256, hashlib.sha256),
        (HashAlgorithm.SHA512, hashlib.sha512),
    ])
    def test_matches_pyotp(self, algorithm, digest):
        secret = bytes(range(1, 33))
        reference = pyotp.HOTP(encode(secret, KeyRepresentation.BASE32), digits=8, digest=digest)
        for counter in (0, 1, 99, 2 ** 32 + 5):
            assert hotp(secret, counter, 8, algorithm) == reference.at(counter)

    @pytest.mark.parametrize("digits", [0, 10, -1])
    def test_rejects_digits_out_of_range(self, digits):
        with pytest.raises(InvalidParameterError):
            hotp(RFC_SECRET, 0, digits=digits)

    def test_rejects_empty_secret(self):
        with pytest.raises(InvalidParameterError):
            hotp(b"", 0)

    @pytest.mark.parametrize("algorithm", ["MD5", "", None, 1])
    def test_rejects_unsupported_algorithm(self, algorithm):
        with pytest.raises(InvalidParameterError):
            hotp(RFC_SECRET, 0, 6, algorithm)

    def test_algorithm_name_is_case_insensitive(self):
        assert hotp(RFC_SECRET, 0, 6, "sha256") == hotp(RFC_SECRET, 0, 6, HashAlgorithm.SHA256)

    @pytest.mark.parametrize("counter", [-1, 2 ** 64])
    def test_rejects_counter_out_of_range(self, counter):
        with pytest.raises(InvalidParameterError):
            hotp(RFC_SECRET, counter)


class TestTotp:

    # RFC 6238 appendix B
    @pytest.mark.parametrize("seconds,algorithm,secret,expected", [
        (59, "SHA1", RFC_SECRET, "94287082"),
        (59, "SHA256", SHA256_SECRET, "46119246"),
        (59, "SHA512", SHA512_SECRET, "90693936"),
        (1111111109, "SHA1", RFC_SECRET, "07081804"),
        (1111111109, "SHA256", SHA256_SECRET, "68084774"),
        (1111111109, "SHA512", SHA512_SECRET, "25091201"),
        (1111111111, "SHA1", RFC_SECRET, "14050471"),
        (1234567890, "SHA1", RFC_SECRET, "89005924"),
        (1234567890, "SHA256", SHA256_SECRET, "91819424"),
        (2000000000, "SHA1", RFC_SECRET, "69279037"),
        (2000000000, "SHA512", SHA512_SECRET, "38618901"),
        (20000000000, "SHA1", RFC_SECRET, "65353130"),
        (20000000000, "SHA256", SHA256_SECRET, "77737706"),
    ])
    def test_rfc6238_vectors(self, seconds, algorithm, secret, expected):
        config = VerificationConfig(digits=8, hash_algorithm=algorithm)
        assert totp(secret, seconds * 1000, config) == expected

    def test_matches_pyotp(self):
        reference = pyotp.TOTP(RFC_SECRET_B32, interval=60)
        config = VerificationConfig(time_step_millis=60_000)
        for seconds in (0, 59, 60, 1_700_000_000):
            assert totp(RFC_SECRET, seconds * 1000, config) == reference.at(seconds)

    def test_defaults_to_current_time(self):
        assert len(totp(RFC_SECRET)) == 6

    def test_current_counter(self):
        assert current_counter(30_000, 0) == 0
        assert current_counter(30_000, 29_999) == 0
        assert current_counter(30_000, 59_000) == 1

    @pytest.mark.parametrize("step", [0, -30_000])
    def test_rejects_non_positive_step(self, step):
        with pytest.raises(InvalidParameterError):
            current_counter(step, 59_000)

    def test_rejects_negative_clock(self):
        with pytest.raises(InvalidParameterError):
            current_counter(30_000, -1)

    def test_remaining_millis(self):
        assert remaining_millis(30_000, 59_000) == 1_000
        assert remaining_millis(30_000, 60_000) == 30_000


class TestOtpauthUri:

    def test_totp_and_hotp_uris(self):
        totp_uri, hotp_uri = format_otpauth_uri(RFC_SECRET, "test@prova.org", "Test Org.")
        assert totp_uri == (
            "otpauth://totp/Test%20Org.:test@prova.org"
            f"?secret={RFC_SECRET_B32}&issuer=Test%20Org.&algorithm=SHA1&digits=6&period=30"
        )
        assert hotp_uri == (
            "otpauth://hotp/Test%20Org.:test@prova.org"
            f"?secret={RFC_SECRET_B32}&issuer=Test%20Org.&algorithm=SHA1&digits=6&counter=0"
        )

    def test_uses_config_parameters(self):
        config = VerificationConfig(time_step_millis=60_000, digits=8, hash_algorithm="SHA256")
        totp_uri, _ = format_otpauth_uri(RFC_SECRET, "alice", "Acme", config)
        assert totp_uri.endswith("&algorithm=SHA256&digits=8&period=60")

    def test_account_is_percent_encoded(self):
        totp_uri, _ = format_otpauth_uri(RFC_SECRET, "alice smith/ops", "Acme")
        assert totp_uri.startswith("otpauth://totp/Acme:alice%20smith%2Fops?")

    def test_without_issuer(self):
        totp_uri, _ = format_otpauth_uri(RFC_SECRET, "alice")
        assert totp_uri.startswith(f"otpauth://totp/alice?secret={RFC_SECRET_B32}&algorithm=")

    def test_issuer_with_colon_is_rejected(self):
        with pytest.raises(InvalidParameterError):
            format_otpauth_uri(RFC_SECRET, "alice", "Acme:Corp")

    def test_uri_is_accepted_by_pyotp(self):
        totp_uri, _ = format_otpauth_uri(RFC_SECRET, "alice@example.com", "Acme")
        parsed = pyotp.parse_uri(totp_uri)
        assert parsed.secret == RFC_SECRET_B32
        assert parsed.at(59) == totp(RFC_SECRET, 59_000)
