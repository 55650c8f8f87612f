"""
Unit tests for quote input helpers (quote_source.py).
"""

import json
from unittest.mock import patch, MagicMock

import pytest
import requests

from sgx_register.quote_source import (
    DEFAULT_FETCH_TIMEOUT,
    QuoteSourceError,
    fetch_quote,
    read_quote_file,
)

from sample_quote import SAMPLE_QUOTE


def mock_response(text: str) -> MagicMock:
    response = MagicMock()
    response.text = text
    response.raise_for_status.return_value = None
    return response


class TestReadQuoteFile:
    """Test reading quotes from disk."""

    def test_hex_file(self, tmp_path):
        path = tmp_path / "quote.hex"
        path.write_text(SAMPLE_QUOTE + "\n")
        assert read_quote_file(str(path)) == SAMPLE_QUOTE

    def test_wrapped_hex_file(self, tmp_path):
        """Test a hex dump split across lines."""
        path = tmp_path / "quote.hex"
        lines = [SAMPLE_QUOTE[i:i + 64] for i in range(0, len(SAMPLE_QUOTE), 64)]
        path.write_text("\n".join(lines))
        assert read_quote_file(str(path)) == SAMPLE_QUOTE

    @pytest.mark.parametrize("prefix", ["0x", "0X"])
    def test_prefixed_hex_file(self, tmp_path, prefix):
        path = tmp_path / "quote.hex"
        path.write_text(prefix + SAMPLE_QUOTE + "\n")
        assert read_quote_file(str(path)) == SAMPLE_QUOTE

    def test_binary_file(self, tmp_path):
        path = tmp_path / "quote.bin"
        path.write_bytes(bytes.fromhex(SAMPLE_QUOTE))
        assert read_quote_file(str(path)) == SAMPLE_QUOTE

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"  \n")
        with pytest.raises(QuoteSourceError, match="empty"):
            read_quote_file(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_quote_file(str(tmp_path / "missing"))


class TestFetchQuote:
    """Test fetching quotes over HTTP."""

    def test_plain_text_body(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.return_value = mock_response(SAMPLE_QUOTE + "\n")

            assert fetch_quote("https://enclave.example/quote") == SAMPLE_QUOTE
            mock_get.assert_called_once_with(
                "https://enclave.example/quote", timeout=DEFAULT_FETCH_TIMEOUT
            )

    def test_json_body(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.return_value = mock_response(json.dumps({"quote": SAMPLE_QUOTE}))
            assert fetch_quote("https://enclave.example/quote", timeout=3) == SAMPLE_QUOTE
            assert mock_get.call_args.kwargs["timeout"] == 3

    def test_json_without_quote(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.return_value = mock_response(json.dumps({"format": "sgx"}))
            with pytest.raises(QuoteSourceError, match="Invalid quote response"):
                fetch_quote("https://enclave.example/quote")

    def test_json_quote_not_string(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.return_value = mock_response(json.dumps({"quote": 12}))
            with pytest.raises(QuoteSourceError):
                fetch_quote("https://enclave.example/quote")

    def test_empty_body(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.return_value = mock_response("   ")
            with pytest.raises(QuoteSourceError, match="Empty"):
                fetch_quote("https://enclave.example/quote")

    def test_http_error(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            response = mock_response("")
            response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
            mock_get.return_value = response

            with pytest.raises(QuoteSourceError, match="503"):
                fetch_quote("https://enclave.example/quote")

    def test_connection_error(self):
        with patch('sgx_register.quote_source.requests.get') as mock_get:
            mock_get.side_effect = requests.ConnectionError("refused")
            with pytest.raises(QuoteSourceError, match="refused"):
                fetch_quote("https://enclave.example/quote")
