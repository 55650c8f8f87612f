"""
Unit tests for PEM chain extraction (cert_utils.py).
"""

import base64
import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from sgx_register.attestation.cert_utils import (
    PCK_CERT_CHAIN_COUNT,
    load_certificates,
    parse_pem_chain,
)
from sgx_register.attestation.types import CertificateChainError


# =============================================================================
# Test Fixtures
# =============================================================================

def make_pem_block(der: bytes, label: bytes = b'CERTIFICATE', width: int = 64) -> bytes:
    """Frame raw bytes as a PEM block with wrapped base64 lines."""
    b64 = base64.b64encode(der)
    lines = [b64[i:i + width] for i in range(0, len(b64), width)]
    return (
        b'-----BEGIN ' + label + b'-----\n'
        + b'\n'.join(lines)
        + b'\n-----END ' + label + b'-----\n'
    )


def _generate_self_signed_cert(cn: str) -> x509.Certificate:
    """Generate a self-signed certificate for testing."""
    private_key = ec.generate_private_key(ec.SECP256R1())

    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])

    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(private_key, hashes.SHA256())
    )


# =============================================================================
# PEM Chain Parsing Tests
# =============================================================================

class TestParsePemChain:
    """Test splitting a PEM bundle into DER certificates."""

    def test_three_blocks_in_order(self):
        """Test that three blocks decode to their DER bytes in input order."""
        ders = [b'leaf-der', b'intermediate-der', b'root-der']
        bundle = b''.join(make_pem_block(d) for d in ders)

        result = parse_pem_chain(bundle)

        assert isinstance(result, tuple)
        assert len(result) == PCK_CERT_CHAIN_COUNT
        assert list(result) == ders

    def test_trailing_null_bytes(self):
        """Test that NUL padding after the last block is ignored."""
        bundle = b''.join(make_pem_block(bytes([i]) * 40) for i in range(3)) + b'\x00\x00'
        result = parse_pem_chain(bundle)
        assert result[2] == b'\x02' * 40

    def test_no_newlines_between_blocks(self):
        """Test blocks concatenated without separators."""
        bundle = b''.join(make_pem_block(b'x' * 10).rstrip(b'\n') for _ in range(3))
        assert len(parse_pem_chain(bundle)) == 3

    def test_long_lines(self):
        """Test base64 body that is not line-wrapped."""
        bundle = b''.join(make_pem_block(b'y' * 300, width=10_000) for _ in range(3))
        assert parse_pem_chain(bundle)[0] == b'y' * 300

    @pytest.mark.parametrize("count", [0, 1, 2, 4])
    def test_wrong_count(self, count):
        """Test that any count other than three is rejected."""
        bundle = b''.join(make_pem_block(b'der') for _ in range(count))
        with pytest.raises(CertificateChainError, match=f"found {count}"):
            parse_pem_chain(bundle)

    def test_garbage(self):
        """Test input with no PEM framing at all."""
        with pytest.raises(CertificateChainError):
            parse_pem_chain(b'\x00' * 100)

    def test_unterminated_block(self):
        """Test that a BEGIN marker without END is rejected."""
        bundle = b''.join(make_pem_block(b'der') for _ in range(3))
        bundle += b'-----BEGIN CERTIFICATE-----\nAAAA\n'
        with pytest.raises(CertificateChainError, match="without a matching END"):
            parse_pem_chain(bundle)

    def test_mismatched_labels(self):
        """Test that END must carry the same label as BEGIN."""
        bad = b'-----BEGIN CERTIFICATE-----\nAAAA\n-----END PRIVATE KEY-----\n'
        bundle = make_pem_block(b'a') + make_pem_block(b'b') + bad
        with pytest.raises(CertificateChainError):
            parse_pem_chain(bundle)

    def test_malformed_base64(self):
        """Test that a body that is not base64 is rejected."""
        bad = b'-----BEGIN CERTIFICATE-----\n!!!not base64!!!\n-----END CERTIFICATE-----\n'
        bundle = make_pem_block(b'a') + make_pem_block(b'b') + bad
        with pytest.raises(CertificateChainError, match="Malformed base64"):
            parse_pem_chain(bundle)

    def test_content_not_validated(self):
        """Test that block contents need not be real certificates."""
        bundle = b''.join(make_pem_block(b'not a certificate') for _ in range(3))
        assert parse_pem_chain(bundle) == (b'not a certificate',) * 3

    def test_real_certificates(self):
        """Test that real PEM certificates decode to their DER encoding."""
        certs = [_generate_self_signed_cert(cn) for cn in ("Leaf", "Intermediate", "Root")]
        bundle = b''.join(c.public_bytes(serialization.Encoding.PEM) for c in certs)

        result = parse_pem_chain(bundle)

        for der, cert in zip(result, certs):
            assert der == cert.public_bytes(serialization.Encoding.DER)


# =============================================================================
# Certificate Loading Tests
# =============================================================================

class TestLoadCertificates:
    """Test loading DER certificates with cryptography."""

    def test_load_valid(self):
        certs = [_generate_self_signed_cert(cn) for cn in ("Leaf", "Intermediate", "Root")]
        ders = [c.public_bytes(serialization.Encoding.DER) for c in certs]

        loaded = load_certificates(ders)

        assert len(loaded) == 3
        cns = [c.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value for c in loaded]
        assert cns == ["Leaf", "Intermediate", "Root"]

    def test_load_invalid_der(self):
        """Test that non-DER content raises CertificateChainError."""
        with pytest.raises(CertificateChainError, match="Certificate 0"):
            load_certificates([b'not a certificate'])
