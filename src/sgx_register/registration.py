"""
Boundary between quote decoding and on-chain instance registration.

Submitting a registerInstance transaction (wallet handling, RPC transport,
ABI encoding, confirmation polling) is the job of an external blockchain
client. This module supplies what that client needs from us: validated
configuration, the submitter interface, and the decode-then-submit step.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol
from urllib.parse import urlparse

import platformdirs

from .attestation.abi_sgx import ParsedQuote, parse_quote

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
DEFAULT_CREDENTIAL_ENV = "SGX_REGISTER_PRIVATE_KEY"
DEFAULT_TIMEOUT = 90.0  # seconds
DEFAULT_REQUIRED_CONFIRMATIONS = 2

ENV_RPC_URL = "SGX_REGISTER_RPC_URL"
ENV_CONTRACT_ADDRESS = "SGX_REGISTER_CONTRACT_ADDRESS"
ENV_CREDENTIAL_ENV = "SGX_REGISTER_CREDENTIAL_ENV"
ENV_CHAIN_ID = "SGX_REGISTER_CHAIN_ID"
ENV_TIMEOUT = "SGX_REGISTER_TIMEOUT"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class ConfigurationError(Exception):
    """Raised when registration configuration is missing or invalid."""
    pass


def default_config_path() -> str:
    """Per-user location of the registration config file."""
    return os.path.join(platformdirs.user_config_dir("sgx-register"), CONFIG_FILE_NAME)


@dataclass(frozen=True)
class RegistrationConfig:
    """
    Settings handed to the submission component.

    The signing key is never stored here: credential_env names the
    environment variable that holds it.
    """
    rpc_url: str
    contract_address: str
    credential_env: str = DEFAULT_CREDENTIAL_ENV
    chain_id: Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT
    required_confirmations: int = DEFAULT_REQUIRED_CONFIRMATIONS

    def __post_init__(self):
        for name in ("rpc_url", "contract_address", "credential_env"):
            if not isinstance(getattr(self, name), str):
                raise ConfigurationError(f"{name} must be a string, got {getattr(self, name)!r}")
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
            raise ConfigurationError(f"timeout must be a number, got {self.timeout!r}")
        for name in ("chain_id", "required_confirmations"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid RPC URL: {self.rpc_url!r}")
        if not _ADDRESS_RE.match(self.contract_address):
            raise ConfigurationError(
                f"Invalid contract address: {self.contract_address!r}"
            )
        if not self.credential_env:
            raise ConfigurationError("credential_env must name an environment variable")
        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout}")
        if self.required_confirmations < 0:
            raise ConfigurationError(
                f"required_confirmations must not be negative, got {self.required_confirmations}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RegistrationConfig":
        """Build the config from SGX_REGISTER_* environment variables."""
        environ = os.environ if environ is None else environ
        values = _env_overrides(environ)
        if "rpc_url" not in values or "contract_address" not in values:
            raise ConfigurationError(
                f"{ENV_RPC_URL} and {ENV_CONTRACT_ADDRESS} must be set"
            )
        return cls(**values)

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "RegistrationConfig":
        """
        Load the config from a JSON file, then apply environment overrides.

        Args:
            path: Config file path, defaults to default_config_path()
            environ: Environment mapping, defaults to os.environ

        Raises:
            ConfigurationError: If the file is unreadable or the result is invalid
        """
        environ = os.environ if environ is None else environ
        path = path or default_config_path()

        values: Dict[str, Any] = {}
        if os.path.isfile(path):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    values = json.load(f)
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
            if not isinstance(values, dict):
                raise ConfigurationError(f"Config file {path} must hold a JSON object")
            logger.debug(f"Loaded registration config from {path}")

        values.update(_env_overrides(environ))

        unknown = set(values) - _CONFIG_FIELDS
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigurationError(f"Incomplete registration config: {e}") from e

    def resolve_credential(self, environ: Optional[Mapping[str, str]] = None) -> str:
        """Return the secret held in the credential environment variable."""
        environ = os.environ if environ is None else environ
        secret = environ.get(self.credential_env)
        if not secret:
            raise ConfigurationError(
                f"Credential environment variable {self.credential_env} is not set"
            )
        return secret


_CONFIG_FIELDS = {
    "rpc_url",
    "contract_address",
    "credential_env",
    "chain_id",
    "timeout",
    "required_confirmations",
}


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if environ.get(ENV_RPC_URL):
        values["rpc_url"] = environ[ENV_RPC_URL]
    if environ.get(ENV_CONTRACT_ADDRESS):
        values["contract_address"] = environ[ENV_CONTRACT_ADDRESS]
    if environ.get(ENV_CREDENTIAL_ENV):
        values["credential_env"] = environ[ENV_CREDENTIAL_ENV]
    try:
        if environ.get(ENV_CHAIN_ID):
            values["chain_id"] = int(environ[ENV_CHAIN_ID])
        if environ.get(ENV_TIMEOUT):
            values["timeout"] = float(environ[ENV_TIMEOUT])
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e
    return values


@dataclass(frozen=True)
class TransactionResult:
    """Outcome reported by the submission component."""
    tx_hash: str
    instance_id: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class QuoteSubmitter(Protocol):
    """Anything that can submit a decoded quote to the verifier contract."""

    def submit(self, parsed_quote: ParsedQuote) -> TransactionResult:
        ...


def register_instance(quote_hex: str, submitter: QuoteSubmitter) -> TransactionResult:
    """
    Decode a quote and hand it to the submitter.

    Decoding errors propagate unchanged and the submitter is not called.

    Args:
        quote_hex: Hex-encoded SGX quote
        submitter: Blockchain client implementing QuoteSubmitter

    Returns:
        The submitter's TransactionResult
    """
    parsed_quote = parse_quote(quote_hex)
    logger.info(
        f"Registering SGX instance mr_enclave={parsed_quote.local_enclave_report.mr_enclave.hex()}"
    )
    result = submitter.submit(parsed_quote)
    logger.info(f"Registration transaction {result.tx_hash} submitted")
    return result
