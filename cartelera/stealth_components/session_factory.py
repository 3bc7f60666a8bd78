"""
Browser session factory.

Launches Chromium with automation flags disabled and opens a context that
looks like a regular desktop browser in Santiago: Spanish locale, local
timezone and geolocation, realistic headers, and an init script that masks the
usual headless fingerprints before any page script runs.
"""
import logging
import random
from typing import Dict, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Playwright

from cartelera.config import GlobalScraperSettings, settings
from cartelera.exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)

LAUNCH_ARGS: List[str] = [
    '--disable-blink-features=AutomationControlled',
    '--disable-features=IsolateOrigins,site-per-process',
    '--disable-infobars',
    '--no-first-run',
    '--no-default-browser-check',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--disable-gpu',
]

DEFAULT_HEADERS: Dict[str, str] = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
    'Accept-Language': 'es-CL,es;q=0.9,en;q=0.8',
    'Accept-Encoding': 'gzip, deflate, br',
    'Connection': 'keep-alive',
    'Upgrade-Insecure-Requests': '1',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
    'Cache-Control': 'max-age=0',
}

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

Object.defineProperty(navigator, 'plugins', {
    get: () => [
        { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' },
        { name: 'Native Client', filename: 'internal-nacl-plugin', description: '' },
    ],
});

Object.defineProperty(navigator, 'languages', { get: () => ['es-CL', 'es', 'en-US', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'MacIntel' });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });

const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );
}

window.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };

const getParameter = WebGLRenderingContext.prototype.getParameter;
WebGLRenderingContext.prototype.getParameter = function(parameter) {
    if (parameter === 37445) { return 'Intel Inc.'; }
    if (parameter === 37446) { return 'Intel Iris OpenGL Engine'; }
    return getParameter.call(this, parameter);
};
"""


def build_context_options(scraper_settings: GlobalScraperSettings, user_agent: str) -> Dict:
    return {
        "viewport": {"width": scraper_settings.viewport_width, "height": scraper_settings.viewport_height},
        "user_agent": user_agent,
        "locale": scraper_settings.locale,
        "timezone_id": scraper_settings.timezone_id,
        "geolocation": {"latitude": scraper_settings.latitude, "longitude": scraper_settings.longitude},
        "permissions": ["geolocation"],
        "color_scheme": "light",
        "device_scale_factor": 1,
        "has_touch": False,
        "is_mobile": False,
        "java_script_enabled": True,
        "extra_http_headers": dict(DEFAULT_HEADERS),
    }


async def create_stealth_browser(
    playwright: Playwright,
    *,
    headless: bool,
    user_agent: Optional[str] = None,
    scraper_settings: Optional[GlobalScraperSettings] = None,
) -> Tuple[Browser, BrowserContext]:
    """
    Returns a launched browser and a fingerprint-masked context.

    Raises BrowserLaunchError if Chromium cannot be started; the caller owns
    both handles and must close them.
    """
    scraper_settings = scraper_settings or settings.scraper_globals
    user_agent = user_agent or random.choice(scraper_settings.user_agents)

    args = LAUNCH_ARGS + [f'--window-size={scraper_settings.viewport_width},{scraper_settings.viewport_height}']
    try:
        browser = await playwright.chromium.launch(headless=headless, args=args)
    except PlaywrightError as e:
        logger.critical(f"Browser launch failed: {e}", exc_info=True)
        raise BrowserLaunchError(str(e)) from e

    try:
        context = await browser.new_context(**build_context_options(scraper_settings, user_agent))
        await context.add_init_script(STEALTH_INIT_SCRIPT)
    except PlaywrightError as e:
        await browser.close()
        logger.critical(f"Browser context setup failed: {e}", exc_info=True)
        raise BrowserLaunchError(str(e)) from e

    logger.info(f"Stealth browser ready (headless: {headless}, UA: {user_agent[:60]}...).")
    return browser, context
