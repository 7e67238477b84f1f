"""
verification.py — Drift-tolerant code verification.

The window is scanned closest-first (0, -1, +1, -2, +2, ...) and every
candidate counter is always computed and compared, so the time taken does
not depend on which offset matched or whether any did.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Union
import hmac
import logging

from twofactor_core.config import VerificationConfig
from twofactor_core.errors import InvalidParameterError
from twofactor_core.otp_core import MAX_COUNTER, current_counter, hotp

logger = logging.getLogger(__name__)

Candidate = Union[str, int]


@dataclass(frozen=True)
class MatchResult:
    matched: bool
    counter_offset: Optional[int] = None
    counter: Optional[int] = None

    def __bool__(self) -> bool:
        return self.matched


NO_MATCH = MatchResult(False)


def normalize_code(candidate: Candidate, digits: int) -> Optional[str]:
    """
    Return the candidate as exactly ``digits`` ASCII digits, or None.

    Strings keep their leading zeros; spaces are dropped because apps show
    codes as "123 456". Integers are zero-padded. Anything else is malformed.
    """
    if isinstance(candidate, bool):
        return None
    if isinstance(candidate, int):
        if not 0 <= candidate < 10 ** digits:
            return None
        return str(candidate).zfill(digits)
    if not isinstance(candidate, str):
        return None
    cleaned = candidate.strip().replace(" ", "")
    if len(cleaned) != digits or not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return cleaned


def constant_time_equals(expected: str, candidate: str) -> bool:
    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("ascii"))


def window_offsets(window_size: int) -> Iterator[int]:
    """Yield 0, -1, +1, -2, +2, ... up to +/- window_size."""
    yield 0
    for distance in range(1, window_size + 1):
        yield -distance
        yield distance


def match_counters(secret: bytes, code: str, counters, config: VerificationConfig) -> Optional[int]:
    """
    Compare ``code`` against the HOTP value of every counter, in order.

    Returns the first matching counter or None. No early exit: all counters
    are evaluated.
    """
    found = None
    for counter in counters:
        expected = hotp(secret, counter, config.digits, config.hash_algorithm)
        if constant_time_equals(expected, code) and found is None:
            found = counter
    return found


def verify(
    secret: bytes,
    candidate: Candidate,
    clock_millis: int,
    config: Optional[VerificationConfig] = None,
) -> MatchResult:
    """
    Verify a TOTP candidate against base counter +/- window_size.

    Malformed candidates never raise; they simply do not match.
    Counters that would fall outside 0..2^64-1 are skipped.
    """
    config = config or VerificationConfig()
    code = normalize_code(candidate, config.digits)
    if code is None:
        logger.debug("Malformed OTP candidate rejected")
        return NO_MATCH

    base = current_counter(config.time_step_millis, clock_millis)
    offsets = [o for o in window_offsets(config.window_size) if 0 <= base + o <= MAX_COUNTER]
    matched = match_counters(secret, code, (base + o for o in offsets), config)
    if matched is None:
        return NO_MATCH
    return MatchResult(True, matched - base, matched)


def verify_counter(
    secret: bytes,
    candidate: Candidate,
    last_counter: Optional[int],
    look_ahead: int,
    config: Optional[VerificationConfig] = None,
) -> MatchResult:
    """
    Verify an HOTP (event counter) candidate.

    Only counters strictly after ``last_counter`` are searched:
    last_counter + 1 .. last_counter + 1 + look_ahead. With no previous
    counter the search starts at 0. The returned offset is relative to the
    expected next counter.
    """
    config = config or VerificationConfig()
    if look_ahead < 0:
        raise InvalidParameterError("look_ahead must be >= 0")
    code = normalize_code(candidate, config.digits)
    if code is None:
        logger.debug("Malformed OTP candidate rejected")
        return NO_MATCH

    start = 0 if last_counter is None else last_counter + 1
    counters = [c for c in range(start, start + look_ahead + 1) if c <= MAX_COUNTER]
    matched = match_counters(secret, code, counters, config)
    if matched is None:
        return NO_MATCH
    return MatchResult(True, matched - start, matched)
