#!/usr/bin/env python3
"""
Print the consumption URLs the collector requests for a meter.

Useful for checking an MPAN/serial pair by hand, e.g. with curl:
    curl -u "$OCTOPUS_API_KEY:" "<url>"

Usage:
    python scripts/print_urls.py <MPAN> <SERIAL>
"""

import argparse
import sys

from octopus_collector.octopus_urls import build_latest_url, build_today_url


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Print Octopus consumption URLs for a meter",
    )
    parser.add_argument("mpan", nargs="?", help="Meter point administration number")
    parser.add_argument("serial", nargs="?", help="Meter serial number")
    args = parser.parse_args(argv)

    if not args.mpan or not args.serial:
        print("Usage: python scripts/print_urls.py <MPAN> <SERIAL>", file=sys.stderr)
        return 1

    print(f"Latest: {build_latest_url(args.mpan, args.serial)}")
    print(f"Today: {build_today_url(args.mpan, args.serial)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
