from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from firmlink.app import audit_conflicts, load_bulk_source, refresh_entities, search_company
from firmlink.config import configure_logging
from firmlink.domain.model import CompanyQuery
from firmlink.domain.normalize import normalize_brno, normalize_crno

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from firmlink.domain.model import SearchResult

log = logging.getLogger(__name__)

BRNO_DIGITS = 10
CRNO_DIGITS = 13


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Link Korean company records across sources")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search every source for one company")
    search.add_argument("--brno", type=str, help="Business registration number (10 digits)")
    search.add_argument("--crno", type=str, help="Corporate registration number (13 digits)")
    search.add_argument("--name", type=str, help="Company name")
    search.add_argument(
        "--persist",
        action="store_true",
        help="Store the resolved entities, their snapshots and cross-checks",
    )
    search.add_argument(
        "--batch-id",
        type=str,
        help="Tag stored registry rows with this batch id",
    )

    subparsers.add_parser("refresh", help="Re-query entities that are stale or past due")
    subparsers.add_parser("audit", help="Summarise recent cross-source conflicts")

    bulk_load = subparsers.add_parser("bulk-load", help="Materialise a bulk dataset")
    bulk_load.add_argument("--source", type=str, required=True, help="Bulk source id")
    bulk_load.add_argument("--start-page", type=int, default=1, help="First page to load")
    bulk_load.add_argument(
        "--max-pages",
        type=int,
        help="Maximum number of pages to load before stopping",
    )

    return parser.parse_args(list(argv))


def _build_query(args: argparse.Namespace) -> CompanyQuery:
    brno = normalize_brno(args.brno)
    crno = normalize_crno(args.crno)
    if brno is not None and not (brno.isdigit() and len(brno) == BRNO_DIGITS):
        raise ValueError(f"Invalid BRNO: {args.brno}")
    if crno is not None and not (crno.isdigit() and len(crno) == CRNO_DIGITS):
        raise ValueError(f"Invalid CRNO: {args.crno}")
    query = CompanyQuery(brno=brno, crno=crno, company_name=(args.name or "").strip() or None)
    if query.is_empty:
        raise ValueError("Provide at least one of --brno, --crno or --name")
    return query


def _print_result(result: SearchResult) -> None:
    document = {
        "entities": [asdict(entity) for entity in result.entities],
        "unmatched": [asdict(record) for record in result.unmatched],
        "meta": asdict(result.meta),
        "from_cache": result.from_cache,
    }
    print(json.dumps(document, ensure_ascii=False, indent=2, default=str))  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    query: CompanyQuery | None = None
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command == "search":
            query = _build_query(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "search" and query is not None:
            result, _summary = search_company(
                query,
                persist=parsed_args.persist,
                batch_id=parsed_args.batch_id,
            )
            _print_result(result)
        elif parsed_args.command == "refresh":
            summary = refresh_entities()
            log.info("Refresh finished: refreshed=%s, failed=%s", summary.refreshed, summary.failed)
        elif parsed_args.command == "audit":
            audit = audit_conflicts()
            log.info(
                "Audit finished: entities=%s, conflicts=%s",
                audit.entities_with_conflicts,
                audit.total_conflicts,
            )
        elif parsed_args.command == "bulk-load":
            loaded = load_bulk_source(
                parsed_args.source,
                start_page=parsed_args.start_page,
                max_pages=parsed_args.max_pages,
            )
            log.info(
                "Bulk load finished: pages=%s, rows=%s, page_errors=%s",
                loaded.pages_loaded,
                loaded.items_saved,
                loaded.page_errors,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
