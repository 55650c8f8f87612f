"""
Unit tests for byte-level helpers (utils.py).
"""

import pytest

from sgx_register.attestation.types import InputTooLongError, InvalidHexError
from sgx_register.attestation.utils import (
    MAX_INTEGER_WIDTH,
    decode_hex,
    little_endian_decode,
)


class TestLittleEndianDecode:
    """Test little-endian integer decoding."""

    def test_two_bytes(self):
        """Test the least-significant byte comes first."""
        assert little_endian_decode(bytes([0x01, 0x02])) == 513

    def test_empty(self):
        """Test empty input decodes to zero."""
        assert little_endian_decode(b'') == 0

    def test_single_byte(self):
        assert little_endian_decode(b'\xff') == 255

    def test_max_width(self):
        """Test 8 bytes is the widest accepted input."""
        assert little_endian_decode(b'\xff' * MAX_INTEGER_WIDTH) == 2 ** 64 - 1

    def test_too_long(self):
        """Test 9 bytes is rejected."""
        with pytest.raises(InputTooLongError, match="9-byte"):
            little_endian_decode(b'\x00' * 9)

    @pytest.mark.parametrize("data", [
        b'\x10\x00',
        b'\x00\x10',
        b'\xca\x10\x00\x00',
        b'\x62\x0e\x00\x00',
        bytes(range(1, 9)),
    ])
    def test_matches_positional_sum(self, data):
        """Test result equals sum(byte[i] * 256**i)."""
        expected = sum(b * 256 ** i for i, b in enumerate(data))
        assert little_endian_decode(data) == expected


class TestDecodeHex:
    """Test hex decoding of quote strings."""

    def test_valid_hex(self):
        assert decode_hex("0300ff") == b'\x03\x00\xff'

    def test_uppercase_hex(self):
        assert decode_hex("ABCD") == b'\xab\xcd'

    def test_empty(self):
        assert decode_hex("") == b''

    def test_odd_length(self):
        with pytest.raises(InvalidHexError):
            decode_hex("030")

    def test_non_hex_characters(self):
        with pytest.raises(InvalidHexError):
            decode_hex("03zz")

    def test_prefix_rejected(self):
        """Test that a 0x prefix is not accepted."""
        with pytest.raises(InvalidHexError):
            decode_hex("0x0300")

    def test_non_ascii(self):
        with pytest.raises(InvalidHexError):
            decode_hex("03é")
