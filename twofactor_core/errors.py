"""
errors.py — Exception types raised by the OTP engine.

Parameter and decoding errors are always surfaced to the caller. Unknown
identities and replays are collapsed to a plain ``False`` by the public
verification entry points and are only visible in logs.
"""


class OTPError(Exception):
    """Base OTP engine error."""
    pass


class InvalidParameterError(OTPError, ValueError):
    """Digit width, step size, window or secret length is out of range."""
    pass


class DecodingError(OTPError, ValueError):
    """Encoded secret is malformed (bad alphabet or padding)."""
    pass


class UnknownIdentityError(OTPError, LookupError):
    """Repository has no credential for the identity."""
    pass


class ReplayRejectedError(OTPError):
    """Matched counter is not strictly greater than the last accepted one."""
    pass
