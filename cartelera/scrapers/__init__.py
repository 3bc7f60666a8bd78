"""Registry of site scrapers and the sequential run-all driver."""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from cartelera.database.gateway import MongoEventGateway
from cartelera.schema_adapter import RunResult
from cartelera.scrapers.puntoticket.scraper import PuntoTicketScraper

logger = logging.getLogger(__name__)

SCRAPERS: Dict[str, Callable[[MongoEventGateway], PuntoTicketScraper]] = {
    "puntoticket": PuntoTicketScraper,
}

PAUSE_BETWEEN_SCRAPERS_S = 5.0


async def run_scrapers(
    names: List[str],
    gateway: MongoEventGateway,
    *,
    headless: bool = True,
    concurrency: Optional[int] = None,
    pause_s: float = PAUSE_BETWEEN_SCRAPERS_S,
) -> Dict[str, Optional[RunResult]]:
    """
    Runs the named scrapers one after another. A scraper that crashes is
    logged and recorded as ``None`` so the remaining ones still run.
    """
    results: Dict[str, Optional[RunResult]] = {}
    for position, name in enumerate(names):
        if position:
            await asyncio.sleep(pause_s)

        logger.info(f"Starting scraper: {name}")
        scraper = SCRAPERS[name](gateway)
        try:
            results[name] = await scraper.scrape(headless=headless, concurrency=concurrency)
        except Exception as e:
            logger.error(f"Scraper {name} crashed: {e}", exc_info=True)
            results[name] = None
    return results


def summarize(results: Dict[str, Optional[RunResult]]) -> int:
    """Logs a per-scraper summary and returns the process exit code."""
    failed = 0
    logger.info("=" * 60)
    for name, result in results.items():
        if result is None:
            failed += 1
            logger.info(f"  {name}: CRASHED")
            continue
        if result.exit_code:
            failed += 1
        logger.info(f"  {name}: scraped={result.scraped} skipped={result.skipped} errors={result.errors}")
    logger.info(f"Successful: {len(results) - failed}, Failed: {failed}")
    logger.info("=" * 60)
    return 1 if failed else 0
