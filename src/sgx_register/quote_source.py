"""
Input helpers for host programs that feed quotes to the decoder.
"""

import binascii
import json
import logging
import string

import requests

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 15  # seconds

_HEX_CHARS = frozenset(string.hexdigits.encode())


class QuoteSourceError(Exception):
    """Raised when a quote cannot be read or fetched."""
    pass


def read_quote_file(path: str) -> str:
    """
    Read a quote from a file.

    The file may hold the quote as hex text or as raw binary, as written
    by the attestation runtime. Hex text may carry a leading 0x. Either
    way the quote is returned as hex without a prefix.

    Raises:
        OSError: If the file cannot be read
        QuoteSourceError: If the file is empty
    """
    with open(path, 'rb') as f:
        content = f.read()

    compact = b"".join(content.split())
    if not compact:
        raise QuoteSourceError(f"Quote file {path} is empty")

    hex_text = compact[2:] if compact[:2] in (b"0x", b"0X") else compact

    # Hex dumps are often line-wrapped
    if hex_text and all(b in _HEX_CHARS for b in hex_text):
        return hex_text.decode('ascii')

    logger.debug(f"Treating {path} as a binary quote ({len(content)} bytes)")
    return binascii.hexlify(content).decode('ascii')


def fetch_quote(url: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> str:
    """
    Retrieves a hex-encoded quote from an attestation endpoint.

    JSON responses are expected to carry the quote under a "quote" key;
    any other response body is taken as the hex quote itself.

    Raises:
        QuoteSourceError: If the request fails or the response has no quote
    """
    logger.info(f"Fetching quote from {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise QuoteSourceError(f"Error fetching quote from {url}: {e}") from e

    body = response.text.strip()
    if body.startswith('{'):
        try:
            quote = json.loads(body)["quote"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise QuoteSourceError(f"Invalid quote response format from {url}: {e}") from e
        if not isinstance(quote, str):
            raise QuoteSourceError(f"Invalid quote response format from {url}: quote is not a string")
        return quote.strip()

    if not body:
        raise QuoteSourceError(f"Empty quote response from {url}")
    return body
