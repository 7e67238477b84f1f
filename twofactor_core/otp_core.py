"""
otp_core.py — Core HOTP / TOTP functions (RFC 4226 / RFC 6238).

Goals:
- Pure functions only: no I/O, no storage, no global state. Safe to call
  concurrently from any number of threads.
- Every function works on raw secret bytes; decode text secrets first with
  ``twofactor_core.codec.decode``.
- The otpauth URI helper is here because it shares the code parameters
  (digits, period, algorithm) with the generators.

Security notes:
- Secrets and codes are never logged by this module.
- HMAC-SHA1 is the default (Google Authenticator compatible); SHA256 and
  SHA512 are supported for RFC 6238 tokens.
"""

from typing import Optional, Tuple
from urllib.parse import quote
import hmac
import struct
import time

from twofactor_core import codec
from twofactor_core.config import (
    DEFAULT_DIGITS,
    HashAlgorithm,
    VerificationConfig,
    validate_digits,
    validate_time_step,
)
from twofactor_core.errors import InvalidParameterError

MAX_COUNTER = 2 ** 64 - 1


# --- Clock -----------------------------------------------------------------
def now_millis() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(counter: int) -> bytes:
    """
    Convert a counter to the 8-byte big-endian message RFC 4226 requires.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'

    Raises:
        InvalidParameterError: if counter does not fit an unsigned 64-bit integer
    """
    if isinstance(counter, bool) or not isinstance(counter, int):
        raise InvalidParameterError("counter must be an integer")
    if not 0 <= counter <= MAX_COUNTER:
        raise InvalidParameterError("counter must fit in an unsigned 64-bit integer")
    return struct.pack(">Q", counter)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Apply RFC 4226 dynamic truncation.

    - offset = last_byte & 0x0F
    - take 4 bytes starting at offset, clear the MSB of the first one
    - return the 31-bit unsigned integer

    Works for SHA1 (20 bytes), SHA256 (32) and SHA512 (64) digests: the
    largest offset is 15, so offset + 4 is always within the digest.
    """
    offset = hmac_digest[-1] & 0x0F
    return (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )


def hotp(
    secret: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA1,
) -> str:
    """
    Compute an HOTP code (RFC 4226).

    Steps:
    1. message = 8-byte big-endian counter
    2. H = HMAC(hash_algorithm, key=secret, message)
    3. dynamic truncation -> 31-bit integer P
    4. code = P mod 10^digits, zero-padded to ``digits`` characters

    Arguments:
        secret: raw secret bytes (non-empty)
        counter: 0 <= counter < 2^64
        digits: code width, 1..9
        hash_algorithm: SHA1 (default), SHA256 or SHA512

    Returns:
        str: zero-padded code, e.g. "007081"

    Raises:
        InvalidParameterError: bad digit width, empty secret, unsupported
            hash algorithm or out-of-range counter
    """
    validate_digits(digits)
    if not isinstance(secret, (bytes, bytearray)) or not secret:
        raise InvalidParameterError("secret must be non-empty bytes")
    try:
        algorithm = HashAlgorithm(str.upper(hash_algorithm))
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"Unsupported hash algorithm: {hash_algorithm}") from e

    msg = int_to_bytes(counter)
    digest = hmac.new(bytes(secret), msg, algorithm.digestmod).digest()

    dbc = dynamic_truncate(digest)
    return str(dbc % (10 ** digits)).zfill(digits)


# --- TOTP ------------------------------------------------------------------
def current_counter(time_step_millis: int, clock_millis: int) -> int:
    """
    TOTP counter for a clock reading: floor(clock_millis / time_step_millis).

    Raises:
        InvalidParameterError: step <= 0 or a negative clock reading
    """
    validate_time_step(time_step_millis)
    if clock_millis < 0:
        raise InvalidParameterError("clock_millis must be >= 0")
    return int(clock_millis) // time_step_millis


def remaining_millis(time_step_millis: int, clock_millis: int) -> int:
    """Milliseconds left before the code for ``clock_millis`` rolls over."""
    validate_time_step(time_step_millis)
    return time_step_millis - (int(clock_millis) % time_step_millis)


def totp(
    secret: bytes,
    clock_millis: Optional[int] = None,
    config: Optional[VerificationConfig] = None,
) -> str:
    """
    Compute a TOTP code (RFC 6238): HOTP with counter = floor(now / step).

    Arguments:
        secret: raw secret bytes
        clock_millis: epoch milliseconds (None -> now)
        config: step size, digits and hash algorithm (None -> defaults)

    Returns:
        str: zero-padded code
    """
    config = config or VerificationConfig()
    if clock_millis is None:
        clock_millis = now_millis()
    counter = current_counter(config.time_step_millis, clock_millis)
    return hotp(secret, counter, config.digits, config.hash_algorithm)


# --- Provisioning ----------------------------------------------------------
def format_otpauth_uri(
    secret: bytes,
    account: str,
    issuer: str = "",
    config: Optional[VerificationConfig] = None,
    counter: int = 0,
) -> Tuple[str, str]:
    """
    Build otpauth:// URIs that authenticator apps can import (via QR code).

    - TOTP: otpauth://totp/{issuer}:{account}?secret=...&issuer=...&algorithm=...&digits=...&period=...
    - HOTP: otpauth://hotp/{issuer}:{account}?secret=...&issuer=...&algorithm=...&digits=...&counter=...

    Issuer and account are percent-encoded. The secret is always unpadded
    Base32, whatever representation the credential is stored in.

    Arguments:
        secret: raw secret bytes
        account: account label (e.g. 'alice@example.com')
        issuer: issuer label (e.g. 'MyService'); may be empty
        config: digits / period / algorithm (None -> defaults)
        counter: initial HOTP counter

    Returns:
        (totp_uri, hotp_uri)

    Raises:
        InvalidParameterError: empty account, or issuer containing ':'
    """
    config = config or VerificationConfig()
    if not account:
        raise InvalidParameterError("account must not be empty")
    if issuer and ":" in issuer:
        raise InvalidParameterError("issuer must not contain ':'")

    label = quote(account, safe="@")
    if issuer:
        label = f"{quote(issuer, safe='')}:{label}"

    params = f"secret={codec.encode(secret, codec.KeyRepresentation.BASE32)}"
    if issuer:
        params += f"&issuer={quote(issuer, safe='')}"
    params += f"&algorithm={config.hash_algorithm.value}&digits={config.digits}"

    totp_uri = f"otpauth://totp/{label}?{params}&period={config.period_seconds}"
    hotp_uri = f"otpauth://hotp/{label}?{params}&counter={counter}"
    return totp_uri, hotp_uri
