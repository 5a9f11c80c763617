"""
Diagnostic CLI: print the foreground browser's page as JSON.

    python -m browser_info [--method M] [--url-only] [--async] [--debug]

Exit status is 0 when a URL was extracted, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from . import get_info, get_info_async
from .config import ExtractorConfig
from .orchestrator import ExtractionResult, UrlResult
from .types import ExtractionMethod

logger = logging.getLogger("browser_info")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="browser_info", description="Report the foreground browser page.")
    parser.add_argument(
        "--method",
        default=None,
        help="auto | native | remote | platform (default: BROWSER_INFO_METHOD or auto)",
    )
    parser.add_argument("--url-only", action="store_true", help="print only the URL result")
    parser.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="use the async entry point (enables remote debugging)",
    )
    parser.add_argument("--debug", action="store_true", help="log strategy decisions to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = ExtractorConfig.from_env()
    method = ExtractionMethod.parse(args.method) if args.method else config.default_method
    logger.debug("cli method=%s async=%s", method.value, args.use_async)

    if args.use_async:
        result: ExtractionResult = asyncio.run(get_info_async(method, config=config))
    else:
        result = get_info(method, config=config)

    payload = UrlResult.from_extraction(result).to_dict() if args.url_only else result.to_dict()
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
