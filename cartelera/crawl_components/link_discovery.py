"""
Event link discovery on listing pages.

Listings load more cards as the page scrolls, so links are harvested only
after scrolling until the document height stops growing. Category pages
surface events the main listing misses; they are crawled the same way.
"""
import logging
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError, Page

from cartelera.config import PuntoTicketSettings
from cartelera.stealth_components.navigation import safe_click, safe_goto
from cartelera.stealth_components.random_delay import human_delay

logger = logging.getLogger(__name__)

STABLE_HEIGHT_CHECKS = 3

COUNTRY_PICKER_JS = """
() => {
    const text = (document.body ? document.body.innerText : '').toLowerCase();
    return text.includes('selecciona tu país') || text.includes('select your country')
        || !!document.querySelector('[class*="country"]');
}
"""

HARVEST_LINKS_JS = "elements => elements.map(a => a.href).filter(Boolean)"


async def scroll_to_bottom(
    page: Page,
    *,
    max_scrolls: int = 50,
    scroll_delay_s: float = 1.0,
    check_selector: Optional[str] = None,
) -> int:
    """
    Scrolls until the page height is unchanged ``STABLE_HEIGHT_CHECKS`` times in
    a row or ``max_scrolls`` is reached. Returns the number of scrolls made.
    """
    previous_height = 0
    unchanged = 0
    scrolls = 0

    while scrolls < max_scrolls:
        current_height = await page.evaluate("() => document.body.scrollHeight")
        if current_height == previous_height:
            unchanged += 1
            if unchanged >= STABLE_HEIGHT_CHECKS:
                break
        else:
            unchanged = 0
        previous_height = current_height

        await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        scrolls += 1
        await human_delay(scroll_delay_s, scroll_delay_s + 0.5)

        if check_selector:
            count = len(await page.query_selector_all(check_selector))
            logger.debug(f"Scroll {scrolls}: {count} elements matching '{check_selector}'")

    logger.info(f"Scrolled {scrolls} times on {page.url}")
    return scrolls


async def harvest_links(page: Page, link_selector: str) -> List[str]:
    hrefs = await page.eval_on_selector_all(link_selector, HARVEST_LINKS_JS)
    return unique_in_order(hrefs)


def unique_in_order(urls: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered


async def select_country(page: Page, country_selectors: List[str]) -> bool:
    """Dismisses the country picker, if shown, by choosing Chile. Returns True if a selector was clicked."""
    try:
        if not await page.evaluate(COUNTRY_PICKER_JS):
            return False
    except PlaywrightError as e:
        logger.debug(f"Country picker check failed: {e}")
        return False

    logger.info("Country selector detected, choosing Chile.")
    for selector in country_selectors:
        try:
            if await page.query_selector(selector) is None:
                continue
        except PlaywrightError:
            continue
        if await safe_click(page, selector):
            await human_delay(2.0, 3.0)
            return True
    logger.warning("Country selector shown but no Chile option could be clicked.")
    return False


async def open_listing(page: Page, listing_url: str, site: PuntoTicketSettings) -> bool:
    """
    Loads the listing and answers the country picker. Choosing Chile can land on
    the country home page, so the listing is loaded again after a click.
    """
    if not await safe_goto(page, listing_url):
        return False
    if await select_country(page, site.country_selectors):
        return await safe_goto(page, listing_url)
    return True


async def collect_event_links(page: Page, site: PuntoTicketSettings) -> List[str]:
    """
    Harvests event detail URLs from the main listing, then from each category
    page. Discovery order is preserved; duplicates are dropped by exact string.
    A category page that fails is logged and skipped.
    """
    scroll_delay_s = site.scroll_delay_ms / 1000.0
    links: List[str] = []

    listing_url = urljoin(site.base_url, site.all_events_path)
    if await open_listing(page, listing_url, site):
        await scroll_to_bottom(page, max_scrolls=site.max_scrolls, scroll_delay_s=scroll_delay_s,
                               check_selector=site.event_card_selector)
        main_links = await harvest_links(page, site.event_link_selector)
        logger.info(f"Found {len(main_links)} event links on {listing_url}")
        links.extend(main_links)
    else:
        logger.error(f"Could not load main listing {listing_url}")

    for path in site.category_paths:
        category_url = urljoin(site.base_url, path)
        try:
            if not await safe_goto(page, category_url):
                logger.warning(f"Skipping category {path}: page did not load.")
                continue
            await scroll_to_bottom(page, max_scrolls=site.category_max_scrolls, scroll_delay_s=scroll_delay_s)
            category_links = await harvest_links(page, site.event_link_selector)
            logger.info(f"Category {path}: {len(category_links)} event links")
            links.extend(category_links)
        except PlaywrightError as e:
            logger.warning(f"Skipping category {path}: {e}")

    unique_links = unique_in_order(links)
    logger.info(f"Total unique event links: {len(unique_links)}")
    return unique_links
