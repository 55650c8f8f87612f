"""
SGX Quote parsing structures and constants.

This module provides data structures and parsing logic for Intel SGX
attestation quotes in the ECDSA-P256 QuoteV3 format, producing the
structure expected by the on-chain verifier's registerInstance call.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from cryptography import x509

from .cert_utils import PCK_CERT_CHAIN_COUNT, load_certificates, parse_pem_chain
from .types import LengthMismatchError, TruncatedInputError
from .utils import decode_hex, little_endian_decode

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Quote structure sizes
HEADER_SIZE = 0x30  # 48 bytes
ENCLAVE_REPORT_SIZE = 0x180  # 384 bytes
AUTH_DATA_SIZE_FIELD_SIZE = 0x04  # 4 bytes

# Field sizes
SIGNATURE_SIZE = 0x40  # 64 bytes
ATTESTATION_KEY_SIZE = 0x40  # 64 bytes
QE_AUTH_DATA_SIZE_FIELD_SIZE = 0x02  # 2 bytes
CERT_TYPE_FIELD_SIZE = 0x02  # 2 bytes
CERT_DATA_SIZE_FIELD_SIZE = 0x04  # 4 bytes

# Well-known header values. Exposed for callers; the decoder does not enforce them.
QUOTE_VERSION_V3 = b"\x03\x00"
ATTESTATION_KEY_TYPE_ECDSA_P256 = b"\x02\x00"
TEE_TYPE_SGX = b"\x00\x00\x00\x00"

# Intel QE Vendor ID: 939a7233-f79c-4ca9-940a-0db3957f0607
INTEL_QE_VENDOR_ID = bytes.fromhex("939a7233f79c4ca9940a0db3957f0607")

# Certification data types
CERT_DATA_TYPE_PCK_CERT_CHAIN = 5

# =============================================================================
# Header offsets (relative to quote start)
# =============================================================================

HEADER_VERSION_START = 0x00
HEADER_VERSION_END = 0x02
HEADER_AK_TYPE_START = 0x02
HEADER_AK_TYPE_END = 0x04
HEADER_TEE_TYPE_START = 0x04
HEADER_TEE_TYPE_END = 0x08
HEADER_QE_SVN_START = 0x08
HEADER_QE_SVN_END = 0x0A
HEADER_PCE_SVN_START = 0x0A
HEADER_PCE_SVN_END = 0x0C
HEADER_QE_VENDOR_ID_START = 0x0C
HEADER_QE_VENDOR_ID_END = 0x1C
HEADER_USER_DATA_START = 0x1C
HEADER_USER_DATA_END = 0x30

# =============================================================================
# Enclave report offsets (relative to report start)
# =============================================================================

REPORT_CPU_SVN_START = 0x00
REPORT_CPU_SVN_END = 0x10
REPORT_MISC_SELECT_START = 0x10
REPORT_MISC_SELECT_END = 0x14
REPORT_RESERVED1_START = 0x14
REPORT_RESERVED1_END = 0x30
REPORT_ATTRIBUTES_START = 0x30
REPORT_ATTRIBUTES_END = 0x40
REPORT_MR_ENCLAVE_START = 0x40
REPORT_MR_ENCLAVE_END = 0x60
REPORT_RESERVED2_START = 0x60
REPORT_RESERVED2_END = 0x80
REPORT_MR_SIGNER_START = 0x80
REPORT_MR_SIGNER_END = 0xA0
REPORT_RESERVED3_START = 0xA0
REPORT_RESERVED3_END = 0x100
REPORT_ISV_PROD_ID_START = 0x100
REPORT_ISV_PROD_ID_END = 0x102
REPORT_ISV_SVN_START = 0x102
REPORT_ISV_SVN_END = 0x104
REPORT_RESERVED4_START = 0x104
REPORT_RESERVED4_END = 0x140
REPORT_DATA_START = 0x140
REPORT_DATA_END = 0x180

# =============================================================================
# Quote-level offsets
# =============================================================================

QUOTE_HEADER_START = 0x00
QUOTE_HEADER_END = 0x30
QUOTE_REPORT_START = 0x30
QUOTE_REPORT_END = 0x1B0
QUOTE_AUTH_DATA_SIZE_START = 0x1B0  # 432
QUOTE_AUTH_DATA_SIZE_END = 0x1B4
QUOTE_AUTH_DATA_START = 0x1B4  # 436

# =============================================================================
# Auth data offsets (relative to auth data start)
# =============================================================================

AUTH_SIGNATURE_START = 0x00
AUTH_SIGNATURE_END = 0x40
AUTH_ATTESTATION_KEY_START = 0x40
AUTH_ATTESTATION_KEY_END = 0x80
AUTH_QE_REPORT_START = 0x80
AUTH_QE_REPORT_END = 0x200
AUTH_QE_REPORT_SIGNATURE_START = 0x200
AUTH_QE_REPORT_SIGNATURE_END = 0x240
AUTH_QE_AUTH_DATA_SIZE_START = 0x240  # 576
AUTH_QE_AUTH_DATA_START = 0x242  # 578

# =============================================================================
# Verifier ABI
# =============================================================================

HEADER_ABI_TYPE = "(bytes2,bytes2,bytes4,bytes2,bytes2,bytes16,bytes20)"
ENCLAVE_REPORT_ABI_TYPE = (
    "(bytes16,bytes4,bytes28,bytes16,bytes32,bytes32,bytes32,"
    "bytes,uint16,uint16,bytes,bytes)"
)
QE_AUTH_DATA_ABI_TYPE = "(uint16,bytes)"
CERTIFICATION_DATA_ABI_TYPE = f"(uint16,uint32,bytes[{PCK_CERT_CHAIN_COUNT}])"
AUTH_DATA_ABI_TYPE = (
    f"(bytes,bytes,{ENCLAVE_REPORT_ABI_TYPE},bytes,"
    f"{QE_AUTH_DATA_ABI_TYPE},{CERTIFICATION_DATA_ABI_TYPE})"
)
# Argument type of SgxVerifier.registerInstance(ParsedV3QuoteStruct)
PARSED_QUOTE_ABI_TYPE = (
    f"({HEADER_ABI_TYPE},{ENCLAVE_REPORT_ABI_TYPE},{AUTH_DATA_ABI_TYPE})"
)


# =============================================================================
# Data Structures
# =============================================================================

@dataclass(frozen=True)
class Header:
    """
    SGX Quote header (48 bytes).

    All fields are kept as raw bytes exactly as they appear in the quote;
    the verifier contract consumes them as fixed-size byte strings.
    """
    version: bytes  # 2 bytes - 03 00 for QuoteV3
    attestation_key_type: bytes  # 2 bytes - 02 00 (ECDSA-P256)
    tee_type: bytes  # 4 bytes - 00000000 (SGX)
    qe_svn: bytes  # 2 bytes
    pce_svn: bytes  # 2 bytes
    qe_vendor_id: bytes  # 16 bytes - Intel: 939a7233-f79c-4ca9-940a-0db3957f0607
    user_data: bytes  # 20 bytes

    def __str__(self) -> str:
        return (
            f"Header(version={self.version.hex()}, "
            f"ak_type={self.attestation_key_type.hex()}, "
            f"tee_type={self.tee_type.hex()}, "
            f"qe_vendor_id={self.qe_vendor_id.hex()})"
        )

    def as_abi_tuple(self) -> Tuple[bytes, ...]:
        return (
            self.version,
            self.attestation_key_type,
            self.tee_type,
            self.qe_svn,
            self.pce_svn,
            self.qe_vendor_id,
            self.user_data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version.hex(),
            "attestationKeyType": self.attestation_key_type.hex(),
            "teeType": self.tee_type.hex(),
            "qeSvn": self.qe_svn.hex(),
            "pceSvn": self.pce_svn.hex(),
            "qeVendorId": self.qe_vendor_id.hex(),
            "userData": self.user_data.hex(),
        }


@dataclass(frozen=True)
class EnclaveReport:
    """
    SGX Enclave Report (384 bytes).

    Used both for the attested application enclave and for the report of
    the Quoting Enclave nested in the auth data. Only isv_prod_id and
    isv_svn are integer-decoded; everything else is opaque.
    """
    cpu_svn: bytes  # 16 bytes
    misc_select: bytes  # 4 bytes
    reserved1: bytes  # 28 bytes
    attributes: bytes  # 16 bytes
    mr_enclave: bytes  # 32 bytes - enclave measurement
    reserved2: bytes  # 32 bytes
    mr_signer: bytes  # 32 bytes - enclave signer measurement
    reserved3: bytes  # 96 bytes
    isv_prod_id: int  # 2 bytes - Product ID
    isv_svn: int  # 2 bytes - Security Version Number
    reserved4: bytes  # 60 bytes
    report_data: bytes  # 64 bytes - for QE reports, hash of attestation key || QE auth data

    def __str__(self) -> str:
        return (
            f"EnclaveReport(mr_enclave={self.mr_enclave.hex()}, "
            f"mr_signer={self.mr_signer.hex()}, "
            f"isv_prod_id={self.isv_prod_id}, "
            f"isv_svn={self.isv_svn})"
        )

    def as_abi_tuple(self) -> Tuple[Any, ...]:
        return (
            self.cpu_svn,
            self.misc_select,
            self.reserved1,
            self.attributes,
            self.mr_enclave,
            self.reserved2,
            self.mr_signer,
            self.reserved3,
            self.isv_prod_id,
            self.isv_svn,
            self.reserved4,
            self.report_data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpuSvn": self.cpu_svn.hex(),
            "miscSelect": self.misc_select.hex(),
            "reserved1": self.reserved1.hex(),
            "attributes": self.attributes.hex(),
            "mrEnclave": self.mr_enclave.hex(),
            "reserved2": self.reserved2.hex(),
            "mrSigner": self.mr_signer.hex(),
            "reserved3": self.reserved3.hex(),
            "isvProdId": self.isv_prod_id,
            "isvSvn": self.isv_svn,
            "reserved4": self.reserved4.hex(),
            "reportData": self.report_data.hex(),
        }


@dataclass(frozen=True)
class QEAuthData:
    """Length-prefixed QE authentication data."""
    parsed_data_size: int  # 2 bytes
    data: bytes  # parsed_data_size bytes


@dataclass(frozen=True)
class CertificationData:
    """
    Certification Data from the auth data section.

    The PEM bundle bounded by cert_data_size is stored as its three
    DER certificates (PCK leaf, intermediate CA, root CA).
    """
    cert_type: int  # 2 bytes - 5 for a PCK cert chain
    cert_data_size: int  # 4 bytes - size of the PEM bundle
    certificates: Tuple[bytes, bytes, bytes]  # DER certificates in bundle order

    def load_certificates(self) -> List[x509.Certificate]:
        """Parse the DER certificates. No chain verification is performed."""
        return load_certificates(self.certificates)


@dataclass(frozen=True)
class ECDSAQuoteV3AuthData:
    """
    ECDSA QuoteV3 authentication data (variable length).

    Contains the quote signature, attestation public key, the QE report
    signed by the PCK key, QE auth data and the certification data.
    """
    signature: bytes  # 64 bytes - ECDSA signature (R || S)
    attestation_key: bytes  # 64 bytes - Raw ECDSA P-256 public key
    qe_report: EnclaveReport  # 384 bytes
    qe_report_signature: bytes  # 64 bytes
    qe_auth_data: QEAuthData
    certification: CertificationData

    def __str__(self) -> str:
        return (
            f"ECDSAQuoteV3AuthData(signature={self.signature[:8].hex()}..., "
            f"attestation_key={self.attestation_key[:8].hex()}..., "
            f"qe_report={self.qe_report}, "
            f"cert_type={self.certification.cert_type})"
        )

    def as_abi_tuple(self) -> Tuple[Any, ...]:
        return (
            self.signature,
            self.attestation_key,
            self.qe_report.as_abi_tuple(),
            self.qe_report_signature,
            (self.qe_auth_data.parsed_data_size, self.qe_auth_data.data),
            (
                self.certification.cert_type,
                self.certification.cert_data_size,
                list(self.certification.certificates),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ecdsa256BitSignature": self.signature.hex(),
            "ecdsaAttestationKey": self.attestation_key.hex(),
            "pckSignedQeReport": self.qe_report.to_dict(),
            "qeReportSignature": self.qe_report_signature.hex(),
            "qeAuthData": {
                "parsedDataSize": self.qe_auth_data.parsed_data_size,
                "data": self.qe_auth_data.data.hex(),
            },
            "certification": {
                "certType": self.certification.cert_type,
                "certDataSize": self.certification.cert_data_size,
                "decodedCertDataArray": [
                    cert.hex() for cert in self.certification.certificates
                ],
            },
        }


@dataclass(frozen=True)
class ParsedQuote:
    """
    SGX ECDSA Quote Version 3.

    The complete decoded quote, shaped like the ParsedV3QuoteStruct
    argument of the verifier's registerInstance entry point.
    """
    header: Header
    local_enclave_report: EnclaveReport
    auth_data: ECDSAQuoteV3AuthData

    def __str__(self) -> str:
        return (
            f"ParsedQuote(\n"
            f"  header={self.header},\n"
            f"  local_enclave_report={self.local_enclave_report},\n"
            f"  auth_data={self.auth_data}\n"
            f")"
        )

    def as_abi_tuple(self) -> Tuple[Any, ...]:
        """Return the quote as nested tuples matching PARSED_QUOTE_ABI_TYPE."""
        return (
            self.header.as_abi_tuple(),
            self.local_enclave_report.as_abi_tuple(),
            self.auth_data.as_abi_tuple(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable view with byte fields as hex strings."""
        return {
            "header": self.header.to_dict(),
            "localEnclaveReport": self.local_enclave_report.to_dict(),
            "v3AuthData": self.auth_data.to_dict(),
        }


# =============================================================================
# Parsing Functions
# =============================================================================


def _slice(data: bytes, start: int, size: int, what: str) -> bytes:
    """Return data[start:start + size], refusing to read past the end."""
    end = start + size
    if len(data) < end:
        raise TruncatedInputError(
            f"Data too short for {what}: need {end} bytes, only {len(data)} available"
        )
    return data[start:end]


def _parse_header(data: bytes) -> Header:
    """
    Parse the 48-byte SGX quote header.

    Args:
        data: At least 48 bytes of header data

    Returns:
        Parsed Header

    Raises:
        TruncatedInputError: If fewer than 48 bytes are supplied
    """
    if len(data) < HEADER_SIZE:
        raise TruncatedInputError(
            f"Header too short: {len(data)} bytes, expected {HEADER_SIZE}"
        )

    return Header(
        version=data[HEADER_VERSION_START:HEADER_VERSION_END],
        attestation_key_type=data[HEADER_AK_TYPE_START:HEADER_AK_TYPE_END],
        tee_type=data[HEADER_TEE_TYPE_START:HEADER_TEE_TYPE_END],
        qe_svn=data[HEADER_QE_SVN_START:HEADER_QE_SVN_END],
        pce_svn=data[HEADER_PCE_SVN_START:HEADER_PCE_SVN_END],
        qe_vendor_id=data[HEADER_QE_VENDOR_ID_START:HEADER_QE_VENDOR_ID_END],
        user_data=data[HEADER_USER_DATA_START:HEADER_USER_DATA_END],
    )


def _parse_enclave_report(data: bytes) -> EnclaveReport:
    """
    Parse a 384-byte enclave report.

    The caller selects the window; the same layout serves the local
    enclave report and the QE report.

    Raises:
        TruncatedInputError: If data is not exactly 384 bytes
    """
    if len(data) != ENCLAVE_REPORT_SIZE:
        raise TruncatedInputError(
            f"Enclave report must be exactly {ENCLAVE_REPORT_SIZE} bytes, got {len(data)}"
        )

    return EnclaveReport(
        cpu_svn=data[REPORT_CPU_SVN_START:REPORT_CPU_SVN_END],
        misc_select=data[REPORT_MISC_SELECT_START:REPORT_MISC_SELECT_END],
        reserved1=data[REPORT_RESERVED1_START:REPORT_RESERVED1_END],
        attributes=data[REPORT_ATTRIBUTES_START:REPORT_ATTRIBUTES_END],
        mr_enclave=data[REPORT_MR_ENCLAVE_START:REPORT_MR_ENCLAVE_END],
        reserved2=data[REPORT_RESERVED2_START:REPORT_RESERVED2_END],
        mr_signer=data[REPORT_MR_SIGNER_START:REPORT_MR_SIGNER_END],
        reserved3=data[REPORT_RESERVED3_START:REPORT_RESERVED3_END],
        isv_prod_id=little_endian_decode(
            data[REPORT_ISV_PROD_ID_START:REPORT_ISV_PROD_ID_END]
        ),
        isv_svn=little_endian_decode(data[REPORT_ISV_SVN_START:REPORT_ISV_SVN_END]),
        reserved4=data[REPORT_RESERVED4_START:REPORT_RESERVED4_END],
        report_data=data[REPORT_DATA_START:REPORT_DATA_END],
    )


def _parse_auth_data(data: bytes) -> ECDSAQuoteV3AuthData:
    """
    Parse the ECDSA QuoteV3 auth data section.

    Structure:
        - Signature: 64 bytes (ECDSA R || S)
        - Attestation Key: 64 bytes (raw P-256 public key)
        - QE Report: 384 bytes
        - QE Report Signature: 64 bytes
        - QE Auth Data Size: 2 bytes + QE Auth Data: variable
        - Cert Type: 2 bytes, Cert Data Size: 4 bytes
        - Cert Data: variable (PEM chain)

    Every length below the QE report signature comes from the quote
    itself, so each section is bounds-checked before it is read.

    Args:
        data: Raw bytes starting at the auth data section

    Returns:
        Parsed ECDSAQuoteV3AuthData

    Raises:
        TruncatedInputError: If any section runs past the end of data
        CertificateChainError: If the cert data is not a 3-certificate PEM chain
    """
    signature = _slice(data, AUTH_SIGNATURE_START, SIGNATURE_SIZE, "quote signature")
    attestation_key = _slice(
        data, AUTH_ATTESTATION_KEY_START, ATTESTATION_KEY_SIZE, "attestation key"
    )
    qe_report = _parse_enclave_report(
        _slice(data, AUTH_QE_REPORT_START, ENCLAVE_REPORT_SIZE, "QE report")
    )
    qe_report_signature = _slice(
        data, AUTH_QE_REPORT_SIGNATURE_START, SIGNATURE_SIZE, "QE report signature"
    )

    offset = AUTH_QE_AUTH_DATA_SIZE_START
    parsed_data_size = little_endian_decode(
        _slice(data, offset, QE_AUTH_DATA_SIZE_FIELD_SIZE, "QE auth data size")
    )
    offset += QE_AUTH_DATA_SIZE_FIELD_SIZE

    qe_auth_data = _slice(data, offset, parsed_data_size, "QE auth data")
    offset += parsed_data_size

    cert_type = little_endian_decode(
        _slice(data, offset, CERT_TYPE_FIELD_SIZE, "certification data type")
    )
    offset += CERT_TYPE_FIELD_SIZE

    cert_data_size = little_endian_decode(
        _slice(data, offset, CERT_DATA_SIZE_FIELD_SIZE, "certification data size")
    )
    offset += CERT_DATA_SIZE_FIELD_SIZE

    cert_data = _slice(data, offset, cert_data_size, "certification data")

    return ECDSAQuoteV3AuthData(
        signature=signature,
        attestation_key=attestation_key,
        qe_report=qe_report,
        qe_report_signature=qe_report_signature,
        qe_auth_data=QEAuthData(
            parsed_data_size=parsed_data_size,
            data=qe_auth_data,
        ),
        certification=CertificationData(
            cert_type=cert_type,
            cert_data_size=cert_data_size,
            certificates=parse_pem_chain(cert_data),
        ),
    )


def parse_quote_bytes(data: bytes) -> ParsedQuote:
    """
    Parse an SGX ECDSA QuoteV3 from raw bytes.

    Decoding is all-or-nothing: any failure raises and no partial
    result is returned.

    Args:
        data: Raw quote bytes

    Returns:
        Parsed ParsedQuote structure

    Raises:
        TruncatedInputError: If any section runs past the end of the quote
        LengthMismatchError: If the declared auth data size disagrees with
            the number of bytes after offset 436
        CertificateChainError: If the embedded PCK chain is malformed
    """
    data = bytes(data)
    if len(data) <= HEADER_SIZE:
        raise TruncatedInputError(
            f"Quote too short: {len(data)} bytes, must be longer than {HEADER_SIZE}"
        )

    header = _parse_header(data[QUOTE_HEADER_START:QUOTE_HEADER_END])

    local_enclave_report = _parse_enclave_report(
        data[QUOTE_REPORT_START:QUOTE_REPORT_END]
    )

    auth_data_size = little_endian_decode(
        _slice(data, QUOTE_AUTH_DATA_SIZE_START, AUTH_DATA_SIZE_FIELD_SIZE, "auth data size")
    )

    available = len(data) - QUOTE_AUTH_DATA_START
    if available != auth_data_size:
        raise LengthMismatchError(
            f"Quote length mismatch: auth data size is {auth_data_size}, "
            f"but {available} bytes follow offset {QUOTE_AUTH_DATA_START}"
        )

    auth_data = _parse_auth_data(data[QUOTE_AUTH_DATA_START:])

    logger.debug(
        "Parsed SGX quote: %d bytes, mr_enclave=%s",
        len(data),
        local_enclave_report.mr_enclave.hex(),
    )

    return ParsedQuote(
        header=header,
        local_enclave_report=local_enclave_report,
        auth_data=auth_data,
    )


def parse_quote(quote_hex: str) -> ParsedQuote:
    """
    Parse an SGX attestation quote from its hex encoding.

    This is the main entry point for quote decoding.

    Args:
        quote_hex: Hex-encoded quote bytes, without a 0x prefix

    Returns:
        Parsed ParsedQuote structure

    Raises:
        InvalidHexError: If quote_hex is not valid hexadecimal
        QuoteParseError: Any other decoding failure (see parse_quote_bytes)

    Example:
        >>> quote = parse_quote(quote_hex)
        >>> quote.local_enclave_report.mr_enclave.hex()
    """
    return parse_quote_bytes(decode_hex(quote_hex))
