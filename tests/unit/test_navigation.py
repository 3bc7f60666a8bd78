import asyncio
import unittest
from unittest import mock

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from cartelera.stealth_components.navigation import safe_click, safe_goto, wait_for_challenge
from cartelera.stealth_components.random_delay import human_delay

URL = "https://www.puntoticket.com/todos"


def _page(body_texts=("",)):
    page = mock.AsyncMock()
    page.url = URL
    page.evaluate.side_effect = list(body_texts)
    page.query_selector.return_value = None
    return page


class TestWaitForChallenge(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        patcher = mock.patch("cartelera.stealth_components.navigation.human_delay", new_callable=mock.AsyncMock)
        self.delay = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_clear_page_returns_immediately(self):
        page = _page(["Bienvenido a PuntoTicket"])
        self.assertTrue(await wait_for_challenge(page, timeout_ms=5000))
        self.delay.assert_not_awaited()

    async def test_waits_until_challenge_text_disappears(self):
        page = _page(["Just a moment...", "Verificando tu navegador", "Eventos"])
        self.assertTrue(await wait_for_challenge(page, timeout_ms=5000))
        self.assertEqual(self.delay.await_count, 2)

    async def test_challenge_markup_is_detected(self):
        page = _page(["", ""])
        page.query_selector.side_effect = [object(), None, None]
        self.assertTrue(await wait_for_challenge(page, timeout_ms=5000))
        self.assertEqual(self.delay.await_count, 1)

    async def test_times_out(self):
        async def short_sleep(*args, **kwargs):
            await asyncio.sleep(0.02)

        self.delay.side_effect = short_sleep
        page = mock.AsyncMock()
        page.url = URL
        page.evaluate.return_value = "Checking your browser before accessing"

        self.assertFalse(await wait_for_challenge(page, timeout_ms=50))


class TestSafeGoto(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        patcher = mock.patch("cartelera.stealth_components.navigation.human_delay", new_callable=mock.AsyncMock)
        self.delay = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_success_first_try(self):
        page = _page()
        self.assertTrue(await safe_goto(page, URL, retries=3, timeout_ms=1000))
        page.goto.assert_awaited_once_with(URL, wait_until="domcontentloaded", timeout=1000)

    async def test_retries_after_timeout(self):
        page = _page()
        page.goto.side_effect = [PlaywrightTimeoutError("Timeout 1000ms exceeded"), None]
        self.assertTrue(await safe_goto(page, URL, retries=3, timeout_ms=1000))
        self.assertEqual(page.goto.await_count, 2)
        self.delay.assert_awaited_once_with(2.0, 5.0, multiplier=1)

    async def test_gives_up_without_raising(self):
        page = _page()
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        self.assertFalse(await safe_goto(page, URL, retries=3, timeout_ms=1000))
        self.assertEqual(page.goto.await_count, 3)
        # no backoff after the last attempt
        self.assertEqual(self.delay.await_count, 2)


class TestSafeClick(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        patcher = mock.patch("cartelera.stealth_components.navigation.human_delay", new_callable=mock.AsyncMock)
        self.delay = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_click_with_humanized_pauses(self):
        page = _page()
        self.assertTrue(await safe_click(page, "a.chile"))
        page.click.assert_awaited_once_with("a.chile")
        self.assertEqual(self.delay.await_args_list, [mock.call(0.2, 0.5), mock.call(0.5, 1.0)])

    async def test_missing_selector_returns_false(self):
        page = _page()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout")
        self.assertFalse(await safe_click(page, "a.chile", timeout_ms=10))
        page.click.assert_not_awaited()


class TestHumanDelay(unittest.IsolatedAsyncioTestCase):

    async def test_duration_within_bounds(self):
        slept = await human_delay(0.0, 0.01)
        self.assertGreaterEqual(slept, 0.0)
        self.assertLessEqual(slept, 0.01)

    async def test_zero_multiplier_skips_sleep(self):
        self.assertEqual(await human_delay(1.0, 2.0, multiplier=0), 0.0)

    async def test_inverted_range_uses_upper_bound(self):
        self.assertEqual(await human_delay(0.02, 0.01), 0.01)


if __name__ == '__main__':
    unittest.main()
