#!/usr/bin/env python
from __future__ import annotations
import sys
import argparse
import logging
from typing import List, Optional
from cardinal.lib.backends import DirectoryBackend
from cardinal.lib.config import CardinalConfig, ADD_REPLIES
from cardinal.lib.errors import CardinalError
from cardinal.lib.estimator import METHODS
from cardinal.lib.registers import MIN_PRECISION, MAX_PRECISION, PACKINGS
from cardinal.lib.service import CardinalityService

log = logging.getLogger("cardinal")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    arg_parser = argparse.ArgumentParser(
        prog="cardinal",
        description="""Count distinct values with HyperLogLog sketches kept in a directory store.

        Each key names one sketch. Values added to a key are hashed into its
        sketch; counting several keys estimates the size of their union.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    arg_parser.add_argument("--store", "-s", required=True,
                       help="Directory holding the sketches (created if missing)")
    arg_parser.add_argument("--precision", "-p", type=int, default=14,
                       help=f"Precision for new sketches ({MIN_PRECISION}-{MAX_PRECISION})")
    arg_parser.add_argument("--seed", type=int, default=42, help="Seed for hashing")
    arg_parser.add_argument("--packing", choices=PACKINGS, default="dense",
                       help="Register layout for saved sketches")
    arg_parser.add_argument("--estimator", choices=METHODS, default="original",
                       help="Cardinality estimator")
    arg_parser.add_argument("--reply", choices=ADD_REPLIES, default="boolean", dest="add_reply",
                       help="What 'add' prints: 1/0 for any change, or the number of raised registers")
    arg_parser.add_argument("--prefix", default="", dest="key_prefix", help="Prefix applied to every key")
    arg_parser.add_argument("--verbose", action="store_true", help="Print verbose output")
    arg_parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    commands = arg_parser.add_subparsers(dest="command", required=True)
    add_cmd = commands.add_parser("add", help="Add values to a key")
    add_cmd.add_argument("key")
    add_cmd.add_argument("values", nargs="*")
    count_cmd = commands.add_parser("count", help="Estimate distinct values of one or more keys")
    count_cmd.add_argument("keys", nargs="+")
    merge_cmd = commands.add_parser("merge", help="Store the union of source keys under a destination key")
    merge_cmd.add_argument("destination")
    merge_cmd.add_argument("sources", nargs="+")
    delete_cmd = commands.add_parser("delete", help="Delete a key")
    delete_cmd.add_argument("key")
    commands.add_parser("keys", help="List keys")

    return arg_parser.parse_args(argv)


def configure_logging(verbose: bool, debug: bool) -> None:
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def run(args: argparse.Namespace) -> None:
    config = CardinalConfig(precision=args.precision, seed=args.seed, add_reply=args.add_reply,
                            packing=args.packing, estimator=args.estimator,
                            key_prefix=args.key_prefix)
    service = CardinalityService(DirectoryBackend(args.store), config)
    log.info("Using store %s with precision %d", args.store, config.precision)

    if args.command == "add":
        print(service.add(args.key, *args.values))
    elif args.command == "count":
        print(service.size(*args.keys))
    elif args.command == "merge":
        service.union(args.destination, *args.sources)
        log.info("Merged %s into %s", ", ".join(args.sources), args.destination)
    elif args.command == "delete":
        print(1 if service.delete(args.key) else 0)
    elif args.command == "keys":
        for key in service.keys():
            print(key)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose, args.debug)
    try:
        run(args)
    except (CardinalError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
