"""
codec.py — Secret encoding / decoding (RFC 4648 Base32 / Base64, raw bytes).

A secret is always handled as raw bytes inside the engine; the textual
representation only matters for display, storage and otpauth URIs.
"""

from enum import Enum
import base64
import binascii

from twofactor_core.errors import DecodingError

# Unpadded Base32 lengths (mod 8) that can terminate a valid quantum.
_BASE32_VALID_REMAINDERS = (0, 2, 4, 5, 7)


class KeyRepresentation(str, Enum):
    RAW_BYTES = "RAW_BYTES"
    BASE32 = "BASE32"
    BASE64 = "BASE64"


def _strip_padding(text: str, quantum: int) -> str:
    """
    Remove trailing '=' padding after checking it is well formed.

    Padding is optional, but when present the padded string must be a whole
    number of quanta (8 chars for Base32, 4 for Base64).
    """
    stripped = text.rstrip("=")
    if stripped != text and len(text) % quantum != 0:
        raise DecodingError("Invalid padding length")
    if "=" in stripped:
        raise DecodingError("Padding character inside encoded secret")
    return stripped


def _decode_base32(text: str) -> bytes:
    # authenticator apps display the key in groups of 4 characters
    cleaned = text.strip().replace(" ", "")
    cleaned = _strip_padding(cleaned, 8)
    if len(cleaned) % 8 not in _BASE32_VALID_REMAINDERS:
        raise DecodingError("Invalid Base32 length")
    padded = cleaned + "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(padded, casefold=True)
    except (binascii.Error, ValueError) as e:
        raise DecodingError("Invalid Base32 secret") from e


def _decode_base64(text: str) -> bytes:
    cleaned = _strip_padding(text.strip(), 4)
    if len(cleaned) % 4 == 1:
        raise DecodingError("Invalid Base64 length")
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodingError("Invalid Base64 secret") from e


def encode(secret: bytes, representation: KeyRepresentation = KeyRepresentation.BASE32) -> str:
    """
    Encode raw secret bytes into text.

    Base32 output is unpadded upper case (what authenticator apps expect),
    Base64 keeps its padding, RAW_BYTES maps every byte to the code point of
    the same value (latin-1) so arbitrary bytes round-trip.
    """
    representation = KeyRepresentation(representation)
    if representation is KeyRepresentation.BASE32:
        return base64.b32encode(secret).decode("ascii").rstrip("=")
    if representation is KeyRepresentation.BASE64:
        return base64.b64encode(secret).decode("ascii")
    return bytes(secret).decode("latin-1")


def decode(text, representation: KeyRepresentation = KeyRepresentation.BASE32) -> bytes:
    """
    Decode an encoded secret back to raw bytes.

    Raises:
        DecodingError: invalid characters or invalid padding length
    """
    representation = KeyRepresentation(representation)
    if isinstance(text, (bytes, bytearray)):
        if representation is KeyRepresentation.RAW_BYTES:
            return bytes(text)
        try:
            text = bytes(text).decode("ascii")
        except UnicodeDecodeError as e:
            raise DecodingError("Encoded secret must be ASCII") from e

    if representation is KeyRepresentation.BASE32:
        return _decode_base32(text)
    if representation is KeyRepresentation.BASE64:
        return _decode_base64(text)
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError as e:
        raise DecodingError("Raw secret contains characters above 0xFF") from e
