"""
config.py — Immutable engine configuration.

Both config values are validated once, at construction time, and are safe to
share read-only between threads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping
import hashlib

from twofactor_core.codec import KeyRepresentation
from twofactor_core.errors import InvalidParameterError

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6                  # standard: 6 digits
MIN_DIGITS = 1
MAX_DIGITS = 9
DEFAULT_TIME_STEP_MILLIS = 30_000   # TOTP step (30 s)
DEFAULT_WINDOW_SIZE = 3             # steps tolerated before / after
DEFAULT_SCRATCH_CODES = 5
SCRATCH_CODE_DIGITS = 8
DEFAULT_SECRET_BITS = 160           # 160-bit secret (common practice)
MIN_SECRET_BYTES = 10               # 80 bits, RFC 4226 lower bound


class HashAlgorithm(str, Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digestmod(self):
        """hashlib constructor used as the HMAC digest."""
        return getattr(hashlib, self.value.lower())


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"{name} must be an integer") from e


def validate_digits(digits: int) -> int:
    if isinstance(digits, bool) or not isinstance(digits, int):
        raise InvalidParameterError("digits must be an integer")
    if not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise InvalidParameterError(f"digits must be between {MIN_DIGITS} and {MAX_DIGITS}")
    return digits


def validate_time_step(time_step_millis: int) -> int:
    if isinstance(time_step_millis, bool) or not isinstance(time_step_millis, int):
        raise InvalidParameterError("time_step_millis must be an integer")
    if time_step_millis <= 0:
        raise InvalidParameterError("time_step_millis must be > 0")
    return time_step_millis


@dataclass(frozen=True)
class VerificationConfig:
    time_step_millis: int = DEFAULT_TIME_STEP_MILLIS
    window_size: int = DEFAULT_WINDOW_SIZE
    digits: int = DEFAULT_DIGITS
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA1

    def __post_init__(self):
        validate_time_step(self.time_step_millis)
        validate_digits(self.digits)
        if isinstance(self.window_size, bool) or not isinstance(self.window_size, int):
            raise InvalidParameterError("window_size must be an integer")
        if self.window_size < 0:
            raise InvalidParameterError("window_size must be >= 0")
        try:
            algorithm = HashAlgorithm(str.upper(self.hash_algorithm))
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(f"Unsupported hash algorithm: {self.hash_algorithm}") from e
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "hash_algorithm", algorithm)

    @property
    def period_seconds(self) -> int:
        return self.time_step_millis // 1000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VerificationConfig":
        """
        Build a config from loosely typed input (request JSON, app config).

        Accepted keys: ``period`` (seconds) or ``time_step_millis``,
        ``window`` / ``window_size``, ``digits``, ``algorithm`` / ``hash_algorithm``.
        Missing keys fall back to the defaults.
        """
        if "time_step_millis" in data:
            step = _as_int("time_step_millis", data["time_step_millis"])
        elif "period" in data:
            step = _as_int("period", data["period"]) * 1000
        else:
            step = DEFAULT_TIME_STEP_MILLIS
        window = data.get("window_size", data.get("window", DEFAULT_WINDOW_SIZE))
        algorithm = data.get("hash_algorithm", data.get("algorithm", HashAlgorithm.SHA1))
        return cls(
            time_step_millis=step,
            window_size=_as_int("window_size", window),
            digits=_as_int("digits", data.get("digits", DEFAULT_DIGITS)),
            hash_algorithm=algorithm,
        )


@dataclass(frozen=True)
class CredentialConfig:
    secret_bits: int = DEFAULT_SECRET_BITS
    scratch_code_count: int = DEFAULT_SCRATCH_CODES
    scratch_code_digits: int = SCRATCH_CODE_DIGITS
    key_representation: KeyRepresentation = KeyRepresentation.BASE32
    reject_weak_scratch_codes: bool = True

    def __post_init__(self):
        if isinstance(self.secret_bits, bool) or not isinstance(self.secret_bits, int):
            raise InvalidParameterError("secret_bits must be an integer")
        if self.secret_bits % 8 != 0 or self.secret_bits < MIN_SECRET_BYTES * 8:
            raise InvalidParameterError(
                f"secret_bits must be a multiple of 8 and at least {MIN_SECRET_BYTES * 8}"
            )
        if isinstance(self.scratch_code_count, bool) or not isinstance(self.scratch_code_count, int):
            raise InvalidParameterError("scratch_code_count must be an integer")
        if self.scratch_code_count < 0:
            raise InvalidParameterError("scratch_code_count must be >= 0")
        validate_digits(self.scratch_code_digits)
        if self.scratch_code_count > 10 ** self.scratch_code_digits // 2:
            raise InvalidParameterError("scratch_code_count too large for scratch_code_digits")
        try:
            representation = KeyRepresentation(self.key_representation)
        except ValueError as e:
            raise InvalidParameterError(f"Unknown key representation: {self.key_representation}") from e
        object.__setattr__(self, "key_representation", representation)

    @property
    def secret_size(self) -> int:
        return self.secret_bits // 8
