"""
Certificate chain utilities for SGX quote decoding.

The certification data of an ECDSA quote carries the PCK certificate chain
(PCK leaf, intermediate CA, root CA) as concatenated PEM blocks. This module
splits that bundle into its DER certificates and, on request, loads them
with the cryptography package. No signature or trust checks happen here.
"""

import base64
import binascii
import re
from typing import Iterable, List, Tuple

from cryptography import x509

from .types import CertificateChainError

PCK_CERT_CHAIN_COUNT = 3  # leaf, intermediate, root

_PEM_BEGIN_MARKER = b"-----BEGIN "
_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN ([^\r\n-]+)-----(.*?)-----END \1-----",
    re.DOTALL,
)


def _decode_pem_body(label: bytes, body: bytes) -> bytes:
    """Base64-decode one PEM block body, ignoring line breaks."""
    try:
        return base64.b64decode(b"".join(body.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CertificateChainError(
            f"Malformed base64 in PEM block '{label.decode('ascii', 'replace')}': {e}"
        ) from e


def parse_pem_chain(pem_data: bytes) -> Tuple[bytes, bytes, bytes]:
    """
    Split a concatenated PEM bundle into exactly three DER certificates.

    Only the PEM framing is checked; block contents are not parsed as
    certificates (see load_certificates).

    Handles:
    - Line breaks and whitespace between and inside blocks
    - Trailing null bytes after the last block (common in SGX quotes)

    Args:
        pem_data: PEM-encoded certificate chain (bytes)

    Returns:
        Tuple of (leaf, intermediate, root) DER bytes in input order

    Raises:
        CertificateChainError: If a block is malformed or the bundle does
            not hold exactly three blocks
    """
    matches = list(_PEM_BLOCK_RE.finditer(pem_data))

    if pem_data.count(_PEM_BEGIN_MARKER) != len(matches):
        raise CertificateChainError(
            "PEM bundle contains a BEGIN marker without a matching END marker"
        )

    if len(matches) != PCK_CERT_CHAIN_COUNT:
        raise CertificateChainError(
            f"Expected {PCK_CERT_CHAIN_COUNT} PEM certificates, found {len(matches)}"
        )

    leaf, intermediate, root = (
        _decode_pem_body(m.group(1), m.group(2)) for m in matches
    )
    return leaf, intermediate, root


def load_certificates(certificates: Iterable[bytes]) -> List[x509.Certificate]:
    """
    Load DER certificates extracted by parse_pem_chain.

    Only the DER structure is parsed; the chain is not verified.

    Args:
        certificates: DER-encoded certificates

    Returns:
        List of parsed certificates in order

    Raises:
        CertificateChainError: If any certificate is not valid DER
    """
    certs = []
    for i, der in enumerate(certificates):
        try:
            certs.append(x509.load_der_x509_certificate(der))
        except ValueError as e:
            raise CertificateChainError(
                f"Certificate {i} is not a valid DER certificate: {e}"
            ) from e
    return certs
