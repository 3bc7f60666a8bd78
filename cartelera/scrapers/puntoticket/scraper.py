"""
PuntoTicket (Chile) scraper.

Wires the stealth browser session, link discovery, the extraction queue and
the Mongo gateway together for www.puntoticket.com. Each event detail page is
opened in its own tab, parsed with the field rules in ``page_extraction`` and
normalized into an ``EventRecord``.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from playwright.async_api import BrowserContext, Error as PlaywrightError, Page, async_playwright

from cartelera.config import PuntoTicketSettings, settings
from cartelera.crawl_components.link_discovery import collect_event_links
from cartelera.data_quality.cleaning import clean_price_text
from cartelera.database.gateway import MongoEventGateway
from cartelera.exceptions import NavigationError
from cartelera.parse_components.images import rank_images, select_best_image
from cartelera.parse_components.normalizers import (
    clean_title,
    extract_comuna,
    join_location,
    map_category,
    normalize_url,
    parse_price,
)
from cartelera.parse_components.page_extraction import (
    apply_natural_sizes,
    extract_image_candidates,
    extract_raw_fields,
)
from cartelera.parse_components.spanish_dates import apply_time, parse_date_range, parse_time, to_utc_iso
from cartelera.pipeline import run_pipeline
from cartelera.schema_adapter import CrawlTarget, EventRecord, RawExtraction, RunResult
from cartelera.stealth_components.navigation import safe_goto
from cartelera.stealth_components.random_delay import human_delay
from cartelera.stealth_components.session_factory import create_stealth_browser

logger = logging.getLogger(__name__)

NATURAL_SIZES_JS = """
() => Array.from(document.images).map(img => ({
    url: img.src, width: img.naturalWidth, height: img.naturalHeight
}))
"""


def build_event_record(
    raw: RawExtraction,
    target: CrawlTarget,
    site: PuntoTicketSettings,
    now: Optional[datetime] = None,
) -> EventRecord:
    """Normalizes a page's raw fields into the canonical record."""
    date_info = parse_date_range(raw.date_text, now=now)
    price = parse_price(clean_price_text(raw.price_text))
    start_time = parse_time(raw.time_text)

    start = apply_time(date_info.start, start_time)
    occurrences = [
        occurrence.model_copy(update={"start_time": start_time}) if start_time else occurrence
        for occurrence in date_info.occurrences
    ]

    ranked = rank_images(raw.images)
    best_image = select_best_image(raw.images)

    return EventRecord(
        external_id=target.external_id,
        source=target.source,
        source_url=target.url,
        title=clean_title(raw.title),
        description=raw.description,
        long_description=raw.long_description,
        start_date=to_utc_iso(start),
        end_date=to_utc_iso(date_info.end),
        event_occurrences=occurrences or None,
        venue=raw.venue,
        address=raw.address,
        comuna=extract_comuna(raw.address or raw.venue),
        location=join_location(raw.venue, raw.address),
        image_url=best_image.url if best_image else None,
        images=ranked or None,
        category_original=raw.category,
        category_english=map_category(raw.category),
        price=price.text,
        price_min=price.min,
        price_max=price.max,
        currency=price.currency,
        homepage_url=target.url,
        ticket_url=normalize_url(raw.ticket_url, site.base_url) or target.url,
        validation_status="pending",
        scrape_version=site.scrape_version,
        raw_data=raw,
    )


class PuntoTicketScraper:
    def __init__(self, gateway: MongoEventGateway, site: Optional[PuntoTicketSettings] = None):
        self.gateway = gateway
        self.site = site or settings.scrapers_specific.puntoticket
        self.source = self.site.source

    async def _natural_sizes(self, page: Page) -> Dict[str, Tuple[int, int]]:
        try:
            measured = await page.evaluate(NATURAL_SIZES_JS)
        except PlaywrightError as e:
            logger.debug(f"Could not measure images on {page.url}: {e}")
            return {}
        return {m["url"]: (m["width"], m["height"]) for m in measured or [] if m.get("url")}

    async def scrape_event_page(self, context: BrowserContext, target: CrawlTarget) -> EventRecord:
        """Loads one event detail page and returns its record. Raises NavigationError if it never loads."""
        page = await context.new_page()
        try:
            if not await safe_goto(page, target.url, timeout_ms=self.site.detail_timeout_ms):
                raise NavigationError(target.url)

            await human_delay(1.5, 2.5)
            await page.wait_for_selector('body', timeout=10000)

            html = await page.content()
            raw = extract_raw_fields(html, page.url or target.url)

            sizes = await self._natural_sizes(page)
            images = apply_natural_sizes(raw.images, sizes)
            if not rank_images(images):
                # nothing usable from the known image slots; fall back to every <img> on the page
                soup = BeautifulSoup(html, "html.parser")
                images = apply_natural_sizes(extract_image_candidates(soup, page.url or target.url, include_fallback=True), sizes)
            raw = raw.model_copy(update={"images": images})

            return build_event_record(raw, target, self.site)
        finally:
            await page.close()

    async def discover(self, context: BrowserContext) -> List[str]:
        page = await context.new_page()
        try:
            return await collect_event_links(page, self.site)
        finally:
            await page.close()

    async def scrape(self, headless: bool = True, concurrency: Optional[int] = None) -> RunResult:
        logger.info(f"Starting {self.source} scraper (headless: {headless}).")
        async with async_playwright() as playwright:
            browser, context = await create_stealth_browser(playwright, headless=headless)
            try:
                return await run_pipeline(
                    gateway=self.gateway,
                    source=self.source,
                    discover=lambda: self.discover(context),
                    extract=lambda target: self.scrape_event_page(context, target),
                    concurrency=concurrency or self.site.concurrency,
                    retries=self.site.task_retries,
                    delay_range_s=self.site.post_task_delay_range_s,
                    task_timeout_s=self.site.task_timeout_s,
                )
            finally:
                await context.close()
                await browser.close()
                logger.info("Browser closed.")
