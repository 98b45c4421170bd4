"""
tcgdumper: dump one category (details, groups and products) as JSON.

The JSON document goes to stdout; progress and errors go to stderr.
Keys may come from --pub/--pri or from TCGPLAYER_PUBLIC_KEY and
TCGPLAYER_PRIVATE_KEY, which take precedence when set.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, TextIO

from tcg_catalog.core import (
    ClientConfig,
    ConfigError,
    Credentials,
    TCGPlayerError,
    load_config,
)
from tcg_catalog.datasources import TCGPlayerClient
from tcg_catalog.dumper import dump_category

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcgdumper",
        description="Dump a TCGplayer category with all of its groups and products.",
    )
    parser.add_argument("--category", type=int, default=0, help="category id to dump")
    parser.add_argument("--pub", default="", help="TCGplayer public key")
    parser.add_argument("--pri", default="", help="TCGplayer private key")
    parser.add_argument(
        "--thread",
        type=int,
        default=None,
        help="how many concurrent page fetches to run (default from config, 8)",
    )
    parser.add_argument("--config", default=None, help="path to a client YAML config")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="exit with status 1 if any product page could not be fetched",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


async def run(
    category_id: int,
    credentials: Credentials,
    config: ClientConfig,
    workers: int,
    strict: bool = False,
    out: Optional[TextIO] = None,
) -> int:
    """
    Dump a category and write the JSON document.

    Returns:
        Process exit status
    """
    out = out or sys.stdout

    async with TCGPlayerClient(
        credentials.public_key, credentials.private_key, config=config
    ) as client:
        try:
            snapshot = await dump_category(client, category_id, workers=workers)
        except TCGPlayerError as e:
            logger.error(str(e))
            return 1

    json.dump(snapshot.to_dict(), out, indent=2)
    out.write("\n")
    logger.info(f"Dumped {len(snapshot.products)} products and {len(snapshot.groups)} groups")

    if strict and not snapshot.complete:
        logger.error(f"Export incomplete: missing pages at offsets {snapshot.failed_offsets}")
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        credentials = Credentials.resolve(args.pub, args.pri)
        credentials.validate()
        if not args.category:
            raise ConfigError("Missing category id")
        workers = args.thread if args.thread is not None else config.workers
        if workers <= 0:
            raise ConfigError("--thread must be positive")
    except (ConfigError, OSError) as e:
        logger.error(str(e))
        return 1

    return asyncio.run(run(args.category, credentials, config, workers, strict=args.strict))


if __name__ == "__main__":
    sys.exit(main())
