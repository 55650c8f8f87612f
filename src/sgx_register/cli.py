"""
Command line entry point: decode quotes and inspect registration config.
"""

import argparse
import dataclasses
import json
import logging
import sys

from .attestation import PARSED_QUOTE_ABI_TYPE, QuoteParseError, parse_quote
from .quote_source import QuoteSourceError, fetch_quote, read_quote_file
from .registration import ConfigurationError, RegistrationConfig


def _read_quote(args) -> str:
    if args.hex is not None:
        return args.hex.strip()
    if args.url is not None:
        return fetch_quote(args.url, timeout=args.timeout)
    if args.quote_file == '-':
        return sys.stdin.read().strip()
    return read_quote_file(args.quote_file)


def cmd_decode(args) -> int:
    if args.abi_type:
        print(PARSED_QUOTE_ABI_TYPE)
        return 0

    try:
        quote_hex = _read_quote(args)
    except (QuoteSourceError, OSError) as e:
        logging.error(f"Error reading quote: {e}")
        return 1

    logging.info(f"Decoding quote ({len(quote_hex) // 2} bytes)")
    try:
        quote = parse_quote(quote_hex)
    except QuoteParseError as e:
        logging.error(f"Error decoding quote: {e}")
        return 1

    if args.json:
        print(json.dumps(quote.to_dict(), indent=2))
    else:
        print(quote)
    return 0


def cmd_show_config(args) -> int:
    try:
        config = RegistrationConfig.load(args.config)
    except ConfigurationError as e:
        logging.error(f"Error loading registration config: {e}")
        return 1

    # Only the variable name is shown, never the credential itself
    print(json.dumps(dataclasses.asdict(config), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sgx-register',
        description='Decode SGX ECDSA quotes for on-chain instance registration',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    decode = subparsers.add_parser('decode', help='Decode a quote and print its fields')
    source = decode.add_mutually_exclusive_group()
    source.add_argument('quote_file', nargs='?', default='-',
                        help="File holding the quote as hex or binary ('-' for stdin)")
    source.add_argument('--hex', help='Quote as a hex string')
    source.add_argument('--url', help='Attestation endpoint serving the quote')
    decode.add_argument('--timeout', type=float, default=15,
                        help='HTTP timeout in seconds for --url')
    decode.add_argument('--json', action='store_true',
                        help='Print the decoded quote as JSON')
    decode.add_argument('--abi-type', action='store_true',
                        help='Print the verifier ABI type of the decoded quote and exit')
    decode.set_defaults(func=cmd_decode)

    show_config = subparsers.add_parser('show-config',
                                        help='Print the resolved registration config')
    show_config.add_argument('-c', '--config', help='Config file path')
    show_config.set_defaults(func=cmd_show_config)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        format='%(message)s',
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
