import unittest
from unittest import mock

from cartelera import cli
from cartelera import scrapers
from cartelera.exceptions import ConfigurationError
from cartelera.schema_adapter import RunResult

from event_fixtures import make_record


class TestSummarize(unittest.TestCase):

    def test_clean_run(self):
        self.assertEqual(scrapers.summarize({"puntoticket": RunResult(scraped=3, skipped=1)}), 0)

    def test_errors_give_non_zero_exit(self):
        self.assertEqual(scrapers.summarize({"puntoticket": RunResult(scraped=3, errors=1)}), 1)

    def test_crash_gives_non_zero_exit(self):
        self.assertEqual(scrapers.summarize({"puntoticket": None}), 1)


class TestRunScrapers(unittest.IsolatedAsyncioTestCase):

    async def test_crashing_scraper_does_not_stop_the_rest(self):
        ok = mock.Mock()
        ok.return_value.scrape = mock.AsyncMock(return_value=RunResult(scraped=2))
        broken = mock.Mock()
        broken.return_value.scrape = mock.AsyncMock(side_effect=RuntimeError("boom"))

        with mock.patch.dict(scrapers.SCRAPERS, {"broken": broken, "ok": ok}, clear=True):
            results = await scrapers.run_scrapers(["broken", "ok"], mock.Mock(), pause_s=0)

        self.assertIsNone(results["broken"])
        self.assertEqual(results["ok"].scraped, 2)
        ok.return_value.scrape.assert_awaited_once_with(headless=True, concurrency=None)


class TestMain(unittest.TestCase):

    def setUp(self):
        for name in ("setup_logger", "init_sentry", "save_to_json_file"):
            patcher = mock.patch.object(cli, name)
            setattr(self, name, patcher.start())
            self.addCleanup(patcher.stop)

    @mock.patch.object(cli.MongoEventGateway, "from_settings", side_effect=ConfigurationError("MONGODB_URI is not set"))
    def test_missing_store_configuration_exits_one(self, _from_settings):
        self.assertEqual(cli.main(["puntoticket"]), 1)

    def test_exit_code_follows_errors(self):
        gateway = mock.Mock()
        results = {"puntoticket": RunResult(scraped=1, errors=1, events=[make_record("a")])}
        with mock.patch.object(cli.MongoEventGateway, "from_settings", return_value=gateway), \
                mock.patch.object(cli, "run_scrapers", new_callable=mock.AsyncMock, return_value=results) as run:
            self.assertEqual(cli.main(["puntoticket", "--no-headless", "--concurrency", "2"]), 1)

        run.assert_awaited_once_with(["puntoticket"], gateway, headless=False, concurrency=2)
        gateway.ensure_indexes.assert_called_once()
        gateway.close.assert_called_once()
        saved = self.save_to_json_file.call_args.args[0]
        self.assertEqual(saved[0]["external_id"], "a")

    def test_successful_run_exits_zero(self):
        with mock.patch.object(cli.MongoEventGateway, "from_settings", return_value=mock.Mock()), \
                mock.patch.object(cli, "run_scrapers", new_callable=mock.AsyncMock,
                                  return_value={"puntoticket": RunResult(scraped=4, skipped=2)}):
            self.assertEqual(cli.main([]), 0)

    def test_invalid_concurrency_rejected(self):
        with self.assertRaises(SystemExit):
            cli.main(["--concurrency", "0"])


if __name__ == '__main__':
    unittest.main()
