"""
Run orchestration: dedup index, link discovery, filtering, extraction and
persistence, in that order. Returns the run's counts as a ``RunResult``.
"""
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from cartelera.database.gateway import MongoEventGateway
from cartelera.extraction_queue import ExtractFn, ExtractionQueue
from cartelera.parse_components.normalizers import extract_external_id
from cartelera.schema_adapter import CrawlTarget, DedupIndex, RunResult

logger = logging.getLogger(__name__)

DiscoverFn = Callable[[], Awaitable[List[str]]]


def make_target(url: str, source: str) -> CrawlTarget:
    return CrawlTarget(url=url, external_id=extract_external_id(url), source=source)


def build_dedup_index(gateway: MongoEventGateway, sources: Iterable[str]) -> DedupIndex:
    index: DedupIndex = {}
    for source in sources:
        index[source] = gateway.lookup_known_external_ids(source)
        logger.info(f"Found {len(index[source])} upcoming events already stored for '{source}'.")
    return index


def filter_known_targets(urls: Iterable[str], dedup_index: DedupIndex, source: str) -> Tuple[List[CrawlTarget], int]:
    """Splits discovered URLs into targets to scrape and a count of already-known ones."""
    known = dedup_index.get(source, set())
    targets: List[CrawlTarget] = []
    skipped = 0
    for url in urls:
        target = make_target(url, source)
        if target.external_id in known:
            skipped += 1
            logger.debug(f"Skipping existing event: {target.external_id}")
            continue
        targets.append(target)
    return targets, skipped


async def run_pipeline(
    *,
    gateway: MongoEventGateway,
    source: str,
    discover: DiscoverFn,
    extract: ExtractFn,
    concurrency: int = 1,
    retries: int = 2,
    delay_range_s: Tuple[float, float] = (2.0, 4.0),
    task_timeout_s: Optional[float] = 180.0,
) -> RunResult:
    dedup_index = build_dedup_index(gateway, [source])

    urls = await discover()
    targets, skipped = filter_known_targets(urls, dedup_index, source)
    logger.info(f"{len(targets)} new events to scrape, {skipped} skipped as already stored.")

    queue = ExtractionQueue(
        extract,
        on_record=gateway.upsert,
        concurrency=concurrency,
        retries=retries,
        delay_range_s=delay_range_s,
        task_timeout_s=task_timeout_s,
    )
    stats = await queue.drain(targets)

    result = RunResult(scraped=stats.scraped, skipped=skipped, errors=stats.errors, events=stats.events)
    logger.info(f"Run complete for '{source}': scraped={result.scraped} skipped={result.skipped} errors={result.errors}")
    return result
