import argparse
import asyncio
import sys
from typing import List, Optional

from cartelera.config import settings
from cartelera.database.gateway import MongoEventGateway
from cartelera.exceptions import CarteleraError
from cartelera.scrapers import SCRAPERS, run_scrapers, summarize
from cartelera.sentry_setup import init_sentry
from cartelera.utils import save_to_json_file, setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cartelera", description="Crawl ticketing sites and store their events.")
    parser.add_argument("scraper", nargs="?", default="all", choices=sorted(SCRAPERS) + ["all"],
                        help="Scraper to run, or 'all' to run every registered scraper in turn.")
    parser.add_argument("--headless", dest="headless", action=argparse.BooleanOptionalAction,
                        default=settings.scraper_globals.default_headless_browser,
                        help="Run the browser without a window.")
    parser.add_argument("--concurrency", type=int, default=None,
                        help="Event pages scraped at once (defaults to the scraper's setting).")
    parser.add_argument("--json-output", action="store_true",
                        help="Also write each run's records to a JSON file.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.concurrency is not None and args.concurrency < 1:
        build_parser().error("--concurrency must be at least 1")

    logger = setup_logger("cartelera", "cartelera_run", level=settings.log_level)
    init_sentry()

    if args.json_output:
        settings.file_outputs.enable_json_output = True

    names = sorted(SCRAPERS) if args.scraper == "all" else [args.scraper]

    gateway = None
    try:
        gateway = MongoEventGateway.from_settings()
        gateway.ensure_indexes()
        results = asyncio.run(run_scrapers(names, gateway, headless=args.headless, concurrency=args.concurrency))
    except CarteleraError as e:
        logger.critical(f"Run aborted: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Unexpected crash: {e}", exc_info=True)
        return 1
    finally:
        if gateway is not None:
            gateway.close()

    for name, result in results.items():
        if result is not None:
            save_to_json_file([event.to_document() for event in result.events], name, logger_obj=logger)

    return summarize(results)


if __name__ == "__main__":
    sys.exit(main())
