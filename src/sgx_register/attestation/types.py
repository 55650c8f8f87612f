"""
Shared errors for SGX quote decoding.

This module has no intra-package dependencies, so any module
can import from it without risk of circular imports.
"""


# =============================================================================
# Errors
# =============================================================================

class QuoteParseError(Exception):
    """Base class for quote decoding errors"""
    pass

class InvalidHexError(QuoteParseError):
    """Raised when the quote string is not valid hexadecimal"""
    pass

class TruncatedInputError(QuoteParseError):
    """Raised when a section would read past the end of the buffer"""
    pass

class LengthMismatchError(QuoteParseError):
    """Raised when the declared auth data length disagrees with the quote size"""
    pass

class CertificateChainError(QuoteParseError):
    """Raised when the certification data is not a chain of exactly 3 PEM blocks"""
    pass

class InputTooLongError(QuoteParseError):
    """Raised when an integer decode is requested for more than 8 bytes"""
    pass
