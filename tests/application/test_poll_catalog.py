import unittest

from tests.utils.fakes import FakeCatalog, FakeLedger
from tests.utils.http import FakeResponse, FakeSession
from tests.utils.items import make_item
from wallfeed.application.workflows.poll_catalog import CatalogPoller
from wallfeed.config.settings import WallhavenConfig
from wallfeed.domain.errors import NetworkError
from wallfeed.infrastructure.wallhaven_client import WallhavenClient


def _items(*ids):
    return {item_id: make_item(item_id) for item_id in ids}


class CatalogPollerTests(unittest.IsolatedAsyncioTestCase):
    async def test_sent_items_are_excluded_without_detail_fetch(self):
        catalog = FakeCatalog({"1d": ["a1", "a2", "a3"]}, _items("a1", "a2", "a3"))
        poller = CatalogPoller(catalog, FakeLedger(sent={"a2"}), ranges=["1d"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["a1", "a3"])
        self.assertEqual(catalog.detail_calls, ["a1", "a3"])

    async def test_failed_detail_fetch_drops_only_that_candidate(self):
        catalog = FakeCatalog({"1d": ["a1", "a2"]}, _items("a1", "a2"), failing_details={"a1"})
        poller = CatalogPoller(catalog, FakeLedger(), ranges=["1d"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["a2"])

    async def test_failed_range_does_not_affect_other_ranges(self):
        catalog = FakeCatalog({"1d": NetworkError("search:1d: HTTP 500"), "1w": ["b1"]}, _items("b1"))
        poller = CatalogPoller(catalog, FakeLedger(), ranges=["1d", "1w"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["b1"])

    async def test_candidates_in_several_ranges_appear_once(self):
        catalog = FakeCatalog({"1d": ["a1", "a2"], "1w": ["a2", "a3", "a1"]}, _items("a1", "a2", "a3"))
        ledger = FakeLedger()
        poller = CatalogPoller(catalog, ledger, ranges=["1d", "1w"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["a1", "a2", "a3"])
        self.assertEqual(catalog.detail_calls, ["a1", "a2", "a3"])
        self.assertEqual(ledger.lookups, ["a1", "a2", "a3"])

    async def test_ledger_lookup_error_skips_candidate(self):
        catalog = FakeCatalog({"1d": ["a1", "a2"]}, _items("a1", "a2"))
        poller = CatalogPoller(catalog, FakeLedger(fail_on_lookup={"a1"}), ranges=["1d"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["a2"])
        self.assertEqual(catalog.detail_calls, ["a2"])

    async def test_unexpected_detail_error_drops_only_that_candidate(self):
        catalog = FakeCatalog(
            {"1d": ["bad", "a1"], "1w": ["a2"]},
            _items("a1", "a2"),
            detail_errors={"bad": ValueError("invalid literal for int() with base 10: 'n/a'")},
        )
        poller = CatalogPoller(catalog, FakeLedger(), ranges=["1d", "1w"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["a1", "a2"])

    async def test_unexpected_search_error_skips_only_that_range(self):
        catalog = FakeCatalog({"1d": TypeError("bad payload"), "1w": ["b1"]}, _items("b1"))
        poller = CatalogPoller(catalog, FakeLedger(), ranges=["1d", "1w"])

        batch = await poller.poll(None)

        self.assertEqual([item.id for item in batch], ["b1"])

    async def test_malformed_wallhaven_detail_keeps_rest_of_cycle(self):
        def detail(item_id, **overrides):
            payload = {"id": item_id, "path": f"https://w.wallhaven.cc/full/{item_id}.jpg", "file_size": 1024}
            payload.update(overrides)
            return FakeResponse(json_data={"data": payload})

        session = FakeSession(
            [
                FakeResponse(json_data={"data": [{"id": "bad"}, {"id": "a1"}, "junk"]}),
                detail("bad", file_size="n/a"),
                detail("a1"),
                FakeResponse(json_data={"data": [{"id": "a2"}]}),
                detail("a2", tags=["not-a-dict"]),
            ]
        )
        client = WallhavenClient(WallhavenConfig(base_url="http://unit.invalid"))
        poller = CatalogPoller(client, FakeLedger(), ranges=["1d", "1w"])

        batch = await poller.poll(session)

        self.assertEqual([item.id for item in batch], ["a1"])
        self.assertEqual(len(session.calls), 5)

    async def test_empty_search_gives_empty_batch(self):
        poller = CatalogPoller(FakeCatalog({"1d": []}, {}), FakeLedger(), ranges=["1d"])

        self.assertEqual(await poller.poll(None), [])


if __name__ == "__main__":
    unittest.main()
