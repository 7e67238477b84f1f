"""
twofactor_core package
======================

HOTP / TOTP one-time password engine (RFC 4226 & RFC 6238) with single-use
scratch (recovery) codes, compatible with Google Authenticator style apps.

──────────────────────────────────────────────
Core algorithm
──────────────────────────────────────────────
- HOTP (HMAC-based One-Time Password):
  code = Truncate(HMAC-SHA1(key=secret, msg=counter)) mod 10^digits
  -> the counter moves on every event (button press, login).

- TOTP (Time-based One-Time Password):
  HOTP with counter = floor(now_millis / time_step_millis)
  -> default step 30 s, 6 digits, SHA-1.

- Dynamic truncation:
  take 4 bytes of the HMAC at offset (last byte & 0x0F), clear the top bit.

- Verification window:
  counters base-w .. base+w are checked closest first, in constant time.

──────────────────────────────────────────────
Quick usage
──────────────────────────────────────────────
>>> from twofactor_core import Authenticator, InMemoryCredentialRepository
>>> auth = Authenticator()
>>> repo = InMemoryCredentialRepository()
>>> credential = auth.create_credentials_for_user(repo, "alice")
>>> totp_uri, _ = auth.provisioning_uris(credential.secret, "alice@example.com", "MyService")
>>> code = auth.get_current_code(credential.secret)
>>> auth.authorize_user(repo, "alice", code)
True
"""

from twofactor_core.authenticator import Authenticator, decode_secret
from twofactor_core.codec import KeyRepresentation, decode, encode
from twofactor_core.config import CredentialConfig, HashAlgorithm, VerificationConfig
from twofactor_core.credentials import (
    Credential,
    CredentialGenerator,
    ScratchCodes,
    validate_scratch_code,
)
from twofactor_core.errors import (
    DecodingError,
    InvalidParameterError,
    OTPError,
    ReplayRejectedError,
    UnknownIdentityError,
)
from twofactor_core.otp_core import current_counter, format_otpauth_uri, hotp, totp
from twofactor_core.repository import (
    CounterKind,
    CounterStateRepository,
    CredentialRepository,
    InMemoryCredentialRepository,
)
from twofactor_core.verification import MatchResult, verify, verify_counter

__all__ = [
    "Authenticator",
    "CounterKind",
    "CounterStateRepository",
    "Credential",
    "CredentialConfig",
    "CredentialGenerator",
    "CredentialRepository",
    "DecodingError",
    "HashAlgorithm",
    "InMemoryCredentialRepository",
    "InvalidParameterError",
    "KeyRepresentation",
    "MatchResult",
    "OTPError",
    "ReplayRejectedError",
    "ScratchCodes",
    "UnknownIdentityError",
    "VerificationConfig",
    "current_counter",
    "decode",
    "decode_secret",
    "encode",
    "format_otpauth_uri",
    "hotp",
    "totp",
    "validate_scratch_code",
    "verify",
    "verify_counter",
]
