"""
credentials.py — Credential generation and scratch (recovery) codes.

A credential is a secret plus a handful of single-use scratch codes. Both are
immutable values: consuming a scratch code produces a new ``ScratchCodes``
value, it never edits the one the caller holds.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union
import hmac
import logging
import secrets

from twofactor_core import codec
from twofactor_core.codec import KeyRepresentation
from twofactor_core.config import (
    CredentialConfig,
    SCRATCH_CODE_DIGITS,
    VerificationConfig,
)
from twofactor_core.errors import InvalidParameterError
from twofactor_core.otp_core import hotp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScratchCodes:
    """Ordered, unconsumed scratch codes of one credential."""

    codes: Tuple[int, ...] = ()
    digits: int = SCRATCH_CODE_DIGITS

    def __post_init__(self):
        object.__setattr__(self, "codes", tuple(int(c) for c in self.codes))

    def __len__(self) -> int:
        return len(self.codes)

    def __iter__(self):
        return iter(self.codes)

    def __repr__(self) -> str:
        return f"ScratchCodes(remaining={len(self.codes)}, digits={self.digits})"

    def formatted(self) -> Tuple[str, ...]:
        return tuple(str(c).zfill(self.digits) for c in self.codes)

    def without(self, code: int) -> "ScratchCodes":
        remaining = list(self.codes)
        remaining.remove(code)
        return ScratchCodes(tuple(remaining), self.digits)


@dataclass(frozen=True)
class ScratchValidation:
    accepted: bool
    remaining: ScratchCodes

    def __bool__(self) -> bool:
        return self.accepted


@dataclass(frozen=True)
class Credential:
    secret: bytes = field(repr=False)
    scratch_codes: ScratchCodes = field(default_factory=ScratchCodes)
    key_representation: KeyRepresentation = KeyRepresentation.BASE32
    verification_code: str = field(default="", repr=False)

    @property
    def key(self) -> str:
        """The secret encoded in the credential's key representation."""
        return codec.encode(self.secret, self.key_representation)


# --- Scratch code policy ---------------------------------------------------
def is_weak_scratch_code(code: int, digits: int = SCRATCH_CODE_DIGITS) -> bool:
    """
    True for codes that are trivially guessable: all the same digit
    ("00000000", "77777777") or a straight run ("12345678", "87654321").
    Codes shorter than 4 digits are never flagged.
    """
    if digits < 4:
        return False
    text = str(code).zfill(digits)
    if len(set(text)) == 1:
        return True
    steps = {int(b) - int(a) for a, b in zip(text, text[1:])}
    return steps in ({1}, {-1})


def is_well_formed_scratch_code(code, digits: int = SCRATCH_CODE_DIGITS) -> bool:
    """Format check only: an integer (or digit string) in [0, 10^digits)."""
    if isinstance(code, bool):
        return False
    if isinstance(code, str):
        if len(code) != digits or not (code.isascii() and code.isdigit()):
            return False
        code = int(code)
    return isinstance(code, int) and 0 <= code < 10 ** digits


def validate_scratch_code(scratch_codes: ScratchCodes, candidate: Union[str, int]) -> ScratchValidation:
    """
    Check a candidate against the unconsumed scratch codes.

    On success the returned ``remaining`` no longer contains the code, so a
    second validation of the same value against it fails. On failure the
    input set is returned unchanged. Malformed candidates never raise.
    Every stored code is compared in constant time; there is no early exit.
    """
    if not is_well_formed_scratch_code(candidate, scratch_codes.digits):
        return ScratchValidation(False, scratch_codes)
    wanted = str(int(candidate)).zfill(scratch_codes.digits).encode("ascii")

    matched = None
    for code in scratch_codes.codes:
        stored = str(code).zfill(scratch_codes.digits).encode("ascii")
        if hmac.compare_digest(stored, wanted) and matched is None:
            matched = code
    if matched is None:
        return ScratchValidation(False, scratch_codes)
    return ScratchValidation(True, scratch_codes.without(matched))


# --- Generator -------------------------------------------------------------
class CredentialGenerator:
    """
    Produces new credentials from a cryptographically secure random source.

    ``token_bytes`` and ``randbelow`` default to the ``secrets`` module
    (OS-level CSPRNG, safe for concurrent use); tests may inject
    deterministic callables.
    """

    def __init__(
        self,
        config: Optional[CredentialConfig] = None,
        verification_config: Optional[VerificationConfig] = None,
        token_bytes: Callable[[int], bytes] = secrets.token_bytes,
        randbelow: Callable[[int], int] = secrets.randbelow,
    ):
        self.config = config or CredentialConfig()
        self.verification_config = verification_config or VerificationConfig()
        self._token_bytes = token_bytes
        self._randbelow = randbelow

    def generate_secret(self) -> bytes:
        return self._token_bytes(self.config.secret_size)

    def generate_scratch_codes(self, count: Optional[int] = None) -> ScratchCodes:
        """
        Draw ``count`` pairwise-distinct codes in [0, 10^digits), retrying on
        duplicates and (when enabled) on weak codes.
        """
        count = self.config.scratch_code_count if count is None else count
        digits = self.config.scratch_code_digits
        modulus = 10 ** digits
        if count < 0 or count > modulus // 2:
            raise InvalidParameterError("scratch code count out of range")

        codes = []
        while len(codes) < count:
            code = self._randbelow(modulus)
            if code in codes:
                continue
            if self.config.reject_weak_scratch_codes and is_weak_scratch_code(code, digits):
                continue
            codes.append(code)
        return ScratchCodes(tuple(codes), digits)

    def generate(self, scratch_code_count: Optional[int] = None) -> Credential:
        secret = self.generate_secret()
        scratch_codes = self.generate_scratch_codes(scratch_code_count)
        verification_code = hotp(
            secret, 0,
            self.verification_config.digits,
            self.verification_config.hash_algorithm,
        )
        logger.debug("Generated credential with %d scratch codes", len(scratch_codes))
        return Credential(
            secret=secret,
            scratch_codes=scratch_codes,
            key_representation=self.config.key_representation,
            verification_code=verification_code,
        )
