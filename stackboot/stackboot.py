#!/usr/bin/env python3
"""OpenStack server provisioning tools: CLI entrypoint."""

import argparse

from stackboot.commands.server import register_server_command
from stackboot.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Provision OpenStack servers and bootstrap them with chef")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_server_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
