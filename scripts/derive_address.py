#!/usr/bin/env python3
"""Print HD child addresses for auditing.

Derives m/44'/195'/0'/0/index from TRON_XPRV and prints the address only.
Private keys are never printed.

Usage:
    python scripts/derive_address.py 0 1 2
    python scripts/derive_address.py --range 0 20
"""

import argparse
import sys

from dotenv import load_dotenv

from tronsigner.config import get_settings
from tronsigner.hdwallet import KeyProviderError, TronHDKeyProvider


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Derive TRON HD addresses")
    parser.add_argument("indexes", nargs="*", type=int, help="Derivation indexes")
    parser.add_argument("--range", nargs=2, type=int, metavar=("START", "END"))
    args = parser.parse_args()

    indexes = list(args.indexes)
    if args.range:
        indexes.extend(range(args.range[0], args.range[1]))
    if not indexes:
        parser.error("no indexes given")

    settings = get_settings()
    if not settings.hd_enabled:
        print("Error: TRON_XPRV not set")
        sys.exit(1)

    try:
        provider = TronHDKeyProvider(settings.tron_xprv)
        for index in indexes:
            identity = provider.derive(index)
            print(f"{identity.derivation_path}\t{identity.address}")
    except KeyProviderError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
