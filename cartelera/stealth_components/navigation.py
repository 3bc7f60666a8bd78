"""
Resilient page navigation: retried goto, anti-bot challenge waits and
humanized clicks. None of these raise for navigation problems; they report
success as a bool and log what went wrong.
"""
import logging
import time
from typing import Optional

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from cartelera.config import settings
from cartelera.stealth_components.random_delay import human_delay

logger = logging.getLogger(__name__)

CHALLENGE_PHRASES = ('Checking your browser', 'Just a moment', 'Verificando tu navegador')
CHALLENGE_SELECTORS = ('#challenge-running', '.cf-browser-verification')


async def _challenge_present(page: Page) -> bool:
    body_text = await page.evaluate("() => document.body ? document.body.innerText : ''") or ''
    if any(phrase in body_text for phrase in CHALLENGE_PHRASES):
        return True
    for selector in CHALLENGE_SELECTORS:
        if await page.query_selector(selector):
            return True
    return False


async def wait_for_challenge(page: Page, timeout_ms: Optional[int] = None) -> bool:
    """
    Waits until an interstitial anti-bot check is gone.
    Returns True when the page is clear, False if it still shows after ``timeout_ms``.
    """
    timeout_ms = timeout_ms if timeout_ms is not None else settings.scraper_globals.challenge_timeout_ms
    deadline = time.monotonic() + timeout_ms / 1000.0

    while time.monotonic() < deadline:
        try:
            if not await _challenge_present(page):
                return True
        except PlaywrightError as e:
            # page navigated mid-evaluate; check again on the next poll
            logger.debug(f"Challenge check failed on {page.url}: {e}")
        logger.info("Anti-bot challenge detected, waiting...")
        await human_delay(1.0, 2.0)

    logger.warning(f"Challenge still present after {timeout_ms} ms on {page.url}")
    return False


async def safe_goto(
    page: Page,
    url: str,
    *,
    retries: Optional[int] = None,
    wait_until: str = "domcontentloaded",
    timeout_ms: Optional[int] = None,
) -> bool:
    retries = retries if retries is not None else settings.scraper_globals.navigation_retries
    timeout_ms = timeout_ms if timeout_ms is not None else settings.scraper_globals.default_request_timeout_ms

    for attempt in range(1, retries + 1):
        try:
            logger.debug(f"Attempt {attempt}/{retries}: navigating to {url}")
            await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            await wait_for_challenge(page)
            return True
        except PlaywrightTimeoutError as e:
            logger.warning(f"Timeout on attempt {attempt}/{retries} for {url}: {e}")
        except PlaywrightError as e:
            logger.warning(f"Navigation error on attempt {attempt}/{retries} for {url}: {e}")
        if attempt < retries:
            await human_delay(2.0, 5.0, multiplier=attempt)

    logger.error(f"Failed to navigate to {url} after {retries} attempts.")
    return False


async def safe_click(page: Page, selector: str, *, timeout_ms: int = 10000) -> bool:
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
        await human_delay(0.2, 0.5)
        await page.click(selector)
        await human_delay(0.5, 1.0)
        return True
    except PlaywrightError as e:
        logger.debug(f"Click on '{selector}' failed: {e}")
        return False
