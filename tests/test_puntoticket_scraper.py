import unittest
from datetime import datetime
from unittest import mock

from cartelera.config import PuntoTicketSettings
from cartelera.exceptions import NavigationError
from cartelera.parse_components.spanish_dates import site_timezone
from cartelera.pipeline import make_target
from cartelera.schema_adapter import ImageCandidate, RawExtraction, RunResult
from cartelera.scrapers.puntoticket import scraper as scraper_module
from cartelera.scrapers.puntoticket.scraper import PuntoTicketScraper, build_event_record

PAGE_URL = "https://www.puntoticket.com/evento/los-jaivas-2026"
SITE = PuntoTicketSettings()

DETAIL_HTML = """
<html><head><meta property="og:image" content="https://cdn.ptocdn.net/og/los-jaivas.jpg"></head>
<body>
  <h1>Concierto: Los Jaivas</h1>
  <div class="lugar">Teatro Caupolicán</div>
  <div class="fecha">Sábado 15 de agosto</div>
  <div class="precio">$15.000</div>
  <img src="https://cdn.ptocdn.net/eventos/banner.jpg">
</body></html>
"""


def _raw(**overrides):
    fields = dict(
        title="Concierto: Los Jaivas",
        description="Gira aniversario",
        venue="Teatro Caupolicán",
        address="San Diego 850, Santiago",
        date_text="Sábado 15 de agosto",
        time_text="21:00 hrs",
        price_text="$15.000 a $45.000",
        category="Música",
        images=[
            ImageCandidate(url="https://www.puntoticket.com/Content/img/logo.png", priority=2, width=900, height=900),
            ImageCandidate(url="https://cdn.ptocdn.net/eventos/banner.jpg", priority=2, width=1200, height=600),
            ImageCandidate(url="https://cdn.ptocdn.net/og/los-jaivas.jpg", priority=1),
        ],
        ticket_url="/comprar/los-jaivas",
        source_url=PAGE_URL,
    )
    fields.update(overrides)
    return RawExtraction(**fields)


class TestBuildEventRecord(unittest.TestCase):

    def setUp(self):
        self.now = site_timezone().localize(datetime(2026, 6, 1, 12, 0))
        self.target = make_target(PAGE_URL, "puntoticket")

    def test_full_record(self):
        record = build_event_record(_raw(), self.target, SITE, now=self.now)

        self.assertEqual(record.external_id, "los-jaivas-2026")
        self.assertEqual(record.source, "puntoticket")
        self.assertEqual(record.title, "Los Jaivas")
        self.assertEqual(record.start_date, "2026-08-16T01:00:00+00:00")
        self.assertIsNone(record.end_date)
        self.assertIsNone(record.event_occurrences)
        self.assertEqual(record.comuna, "Santiago")
        self.assertEqual(record.location, "Teatro Caupolicán, San Diego 850, Santiago")
        self.assertEqual(record.image_url, "https://cdn.ptocdn.net/og/los-jaivas.jpg")
        self.assertEqual([i.url for i in record.images],
                         ["https://cdn.ptocdn.net/og/los-jaivas.jpg", "https://cdn.ptocdn.net/eventos/banner.jpg"])
        self.assertEqual((record.category_original, record.category_english), ("Música", "Music"))
        self.assertEqual((record.price, record.price_min, record.price_max), ("$15.000 a $45.000", 15000, 45000))
        self.assertEqual(record.currency, "CLP")
        self.assertEqual(record.homepage_url, PAGE_URL)
        self.assertEqual(record.ticket_url, "https://www.puntoticket.com/comprar/los-jaivas")
        self.assertEqual(record.validation_status, "pending")
        self.assertEqual(record.scrape_version, "2.1")
        self.assertEqual(record.raw_data.date_text, "Sábado 15 de agosto")

    def test_multi_date_event(self):
        record = build_event_record(_raw(date_text="5, 12 y 19 de julio", time_text="20:00"), self.target, SITE, now=self.now)

        self.assertEqual(record.start_date, "2026-07-06T00:00:00+00:00")
        self.assertEqual(record.end_date, "2026-07-19T04:00:00+00:00")
        self.assertEqual(len(record.event_occurrences), 3)
        self.assertTrue(all(o.start_time == "20:00" for o in record.event_occurrences))

    def test_service_charge_left_out_of_price(self):
        raw = _raw(price_text="Precio total: $20.000 + $2.400 cargo por servicio")
        record = build_event_record(raw, self.target, SITE, now=self.now)

        self.assertEqual((record.price, record.price_min, record.price_max), ("$20.000", 20000, 20000))
        self.assertEqual(record.raw_data.price_text, "Precio total: $20.000 + $2.400 cargo por servicio")

    def test_sparse_page(self):
        raw = RawExtraction(source_url=PAGE_URL)
        record = build_event_record(raw, self.target, SITE, now=self.now)

        self.assertIsNone(record.title)
        self.assertIsNone(record.start_date)
        self.assertIsNone(record.image_url)
        self.assertIsNone(record.images)
        self.assertIsNone(record.location)
        self.assertEqual(record.ticket_url, PAGE_URL)

    def test_record_is_frozen(self):
        record = build_event_record(_raw(), self.target, SITE, now=self.now)
        with self.assertRaises(Exception):
            record.title = "otro"


class TestScrapeEventPage(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        for name in ("human_delay", "safe_goto"):
            patcher = mock.patch.object(scraper_module, name, new_callable=mock.AsyncMock, return_value=True)
            setattr(self, name, patcher.start())
            self.addCleanup(patcher.stop)

        self.page = mock.AsyncMock()
        self.page.url = PAGE_URL
        self.page.content.return_value = DETAIL_HTML
        self.page.evaluate.return_value = [
            {"url": "https://cdn.ptocdn.net/og/los-jaivas.jpg", "width": 1200, "height": 630},
        ]
        self.context = mock.AsyncMock()
        self.context.new_page.return_value = self.page
        self.scraper = PuntoTicketScraper(gateway=mock.Mock(), site=SITE)

    async def test_page_is_scraped_and_closed(self):
        record = await self.scraper.scrape_event_page(self.context, make_target(PAGE_URL, "puntoticket"))

        self.assertEqual(record.title, "Los Jaivas")
        self.assertEqual(record.venue, "Teatro Caupolicán")
        self.assertEqual(record.price_min, 15000)
        self.assertIsNotNone(record.start_date)
        self.assertEqual(record.image_url, "https://cdn.ptocdn.net/og/los-jaivas.jpg")
        og = record.images[0]
        self.assertEqual((og.width, og.height), (1200, 630))
        self.safe_goto.assert_awaited_once_with(self.page, PAGE_URL, timeout_ms=SITE.detail_timeout_ms)
        self.page.close.assert_awaited_once()

    async def test_navigation_failure_raises_and_closes_page(self):
        self.safe_goto.return_value = False
        with self.assertRaises(NavigationError):
            await self.scraper.scrape_event_page(self.context, make_target(PAGE_URL, "puntoticket"))
        self.page.close.assert_awaited_once()

    async def test_whole_page_image_fallback(self):
        self.page.content.return_value = '<html><body><h1>Sin imagen</h1><img src="/afiche.jpg"></body></html>'
        self.page.evaluate.return_value = []
        record = await self.scraper.scrape_event_page(self.context, make_target(PAGE_URL, "puntoticket"))
        self.assertEqual(record.image_url, "https://www.puntoticket.com/afiche.jpg")


class TestScrape(unittest.IsolatedAsyncioTestCase):

    async def test_browser_closed_even_when_run_fails(self):
        browser, context = mock.AsyncMock(), mock.AsyncMock()
        with mock.patch.object(scraper_module, "async_playwright"), \
                mock.patch.object(scraper_module, "create_stealth_browser", new_callable=mock.AsyncMock,
                                  return_value=(browser, context)), \
                mock.patch.object(scraper_module, "run_pipeline", new_callable=mock.AsyncMock,
                                  side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                await PuntoTicketScraper(gateway=mock.Mock(), site=SITE).scrape(headless=True)

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()

    async def test_run_settings_passed_to_pipeline(self):
        gateway = mock.Mock()
        result = RunResult(scraped=1)
        with mock.patch.object(scraper_module, "async_playwright"), \
                mock.patch.object(scraper_module, "create_stealth_browser", new_callable=mock.AsyncMock,
                                  return_value=(mock.AsyncMock(), mock.AsyncMock())), \
                mock.patch.object(scraper_module, "run_pipeline", new_callable=mock.AsyncMock,
                                  return_value=result) as run_pipeline:
            returned = await PuntoTicketScraper(gateway=gateway, site=SITE).scrape(headless=False, concurrency=3)

        self.assertIs(returned, result)
        kwargs = run_pipeline.await_args.kwargs
        self.assertIs(kwargs["gateway"], gateway)
        self.assertEqual(kwargs["source"], "puntoticket")
        self.assertEqual(kwargs["concurrency"], 3)
        self.assertEqual(kwargs["retries"], SITE.task_retries)
        self.assertEqual(kwargs["delay_range_s"], (2.0, 4.0))
        self.assertEqual(kwargs["task_timeout_s"], 180.0)


if __name__ == '__main__':
    unittest.main()
