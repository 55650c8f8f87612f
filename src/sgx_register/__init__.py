from .attestation import (
    parse_quote,
    parse_quote_bytes,
    ParsedQuote,
    QuoteParseError,
)
from .quote_source import fetch_quote, read_quote_file, QuoteSourceError
from .registration import (
    RegistrationConfig,
    ConfigurationError,
    QuoteSubmitter,
    TransactionResult,
    register_instance,
)

__all__ = [
    'parse_quote',
    'parse_quote_bytes',
    'ParsedQuote',
    'QuoteParseError',
    'fetch_quote',
    'read_quote_file',
    'QuoteSourceError',
    'RegistrationConfig',
    'ConfigurationError',
    'QuoteSubmitter',
    'TransactionResult',
    'register_instance',
]
