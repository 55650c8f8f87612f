"""
Byte-level helpers for quote decoding.

This module has no intra-package dependencies other than the error
types, so any module can import from it without risk of circular imports.
"""

import binascii

from .types import InputTooLongError, InvalidHexError

MAX_INTEGER_WIDTH = 8  # bytes


def little_endian_decode(data: bytes) -> int:
    """Decode an unsigned little-endian integer of at most 8 bytes.

    Args:
        data: Integer bytes, least-significant byte first

    Returns:
        The decoded value (0 for empty input)

    Raises:
        InputTooLongError: If data is wider than 8 bytes
    """
    if len(data) > MAX_INTEGER_WIDTH:
        raise InputTooLongError(
            f"Cannot decode {len(data)}-byte integer, maximum is {MAX_INTEGER_WIDTH}"
        )
    return int.from_bytes(data, "little")


def decode_hex(quote_hex: str) -> bytes:
    """Decode a prefix-less hex string into raw quote bytes.

    Raises:
        InvalidHexError: If the string is not valid hexadecimal
    """
    try:
        return binascii.unhexlify(quote_hex)
    except (binascii.Error, TypeError, ValueError) as e:
        raise InvalidHexError(f"Quote is not valid hex: {e}") from e
