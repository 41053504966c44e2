"""Command-line entry point for one-off financial data lookups."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from findata.config import settings
from findata.models.financial import RetrievalResult
from findata.services.retrieval.retriever import FinancialDataRetriever, build_default_retriever

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(
        prog="findata-fetch",
        description="Retrieve company financial data from the configured sources.",
    )
    parser.add_argument("company", help="Company name or website URL.")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Skip the cache and query every source again.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.retrieval_timeout_seconds,
        help="Overall retrieval budget in seconds.",
    )
    return parser.parse_args(argv)


async def fetch(
    company: str,
    *,
    force_refresh: bool,
    timeout: float,
    retriever: FinancialDataRetriever | None = None,
) -> RetrievalResult:
    owned = retriever is None
    active = retriever or build_default_retriever()
    try:
        return await active.get_financial_data(company, force_refresh=force_refresh, timeout=timeout)
    finally:
        if owned:
            await active.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint; prints the retrieval result as JSON."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
    args = parse_args(argv if argv is not None else sys.argv[1:])
    if args.timeout <= 0:
        logger.error("--timeout must be positive, got %s", args.timeout)
        return 2
    result = asyncio.run(
        fetch(args.company, force_refresh=args.force_refresh, timeout=args.timeout)
    )
    print(json.dumps(result.to_payload(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
