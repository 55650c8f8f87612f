from .abi_sgx import (
    parse_quote,
    parse_quote_bytes,
    Header,
    EnclaveReport,
    QEAuthData,
    CertificationData,
    ECDSAQuoteV3AuthData,
    ParsedQuote,
    PARSED_QUOTE_ABI_TYPE,
)
from .types import (
    QuoteParseError,
    InvalidHexError,
    TruncatedInputError,
    LengthMismatchError,
    CertificateChainError,
    InputTooLongError,
)

__all__ = [
    'parse_quote',
    'parse_quote_bytes',
    'Header',
    'EnclaveReport',
    'QEAuthData',
    'CertificationData',
    'ECDSAQuoteV3AuthData',
    'ParsedQuote',
    'PARSED_QUOTE_ABI_TYPE',
    'QuoteParseError',
    'InvalidHexError',
    'TruncatedInputError',
    'LengthMismatchError',
    'CertificateChainError',
    'InputTooLongError',
]
