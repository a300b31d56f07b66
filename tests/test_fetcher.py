"""
Unit Tests for the Work Order Fetcher
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from dockmaster_sync.config_manager import SyncSettings
from dockmaster_sync.dockmaster_client import DockmasterSession, Page
from dockmaster_sync.exceptions import UpstreamError
from dockmaster_sync.fetcher import WorkOrderFetcher

SINCE = datetime(2026, 1, 15, 17, 30, tzinfo=timezone.utc)


def pages(count: int):
    return [Page(items=[{'id': str(1000 + n)}], page=n, max_pages=count) for n in range(1, count + 1)]


class TestWindowListings(unittest.TestCase):
    """Test pagination and fail-open behaviour."""

    def setUp(self):
        self.client = Mock()
        self.fetcher = WorkOrderFetcher(self.client, SyncSettings(page_size=50))
        self.auth = DockmasterSession(auth_token='tok', system_id='77')

    def test_single_page_cap(self):
        """Only the first page is read by default, even when more exist."""
        self.client.list_changed_work_orders.side_effect = pages(3)

        result = self.fetcher.fetch_changed_work_orders(self.auth, SINCE)

        self.assertEqual(len(result.items), 1)
        self.assertEqual(result.pages_fetched, 1)
        self.assertEqual(result.pages_available, 3)
        self.assertTrue(result.truncated)
        self.client.list_changed_work_orders.assert_called_once_with(
            self.auth, '2026-01-15T12:30:00.000', page=1, page_size=50
        )

    def test_all_pages(self):
        self.client.list_changed_work_orders.side_effect = pages(3)

        result = self.fetcher.fetch_changed_work_orders(self.auth, SINCE, max_pages=None)

        self.assertEqual([item['id'] for item in result.items], ['1001', '1002', '1003'])
        self.assertFalse(result.truncated)
        self.assertEqual(self.client.list_changed_work_orders.call_count, 3)

    def test_upstream_error_fails_open(self):
        self.client.list_changed_work_orders.side_effect = UpstreamError('Dockmaster API error 500', 500)

        result = self.fetcher.fetch_changed_work_orders(self.auth, SINCE)

        self.assertEqual(result.items, [])
        self.assertEqual(result.pages_fetched, 0)
        self.assertIsNotNone(result.error)

    def test_error_on_later_page_keeps_earlier_items(self):
        self.client.list_changed_work_orders.side_effect = [pages(2)[0], UpstreamError('timeout')]

        result = self.fetcher.fetch_changed_work_orders(self.auth, SINCE, max_pages=None)

        self.assertEqual(len(result.items), 1)
        self.assertEqual(result.pages_fetched, 1)

    def test_time_entry_window_formatting(self):
        self.client.list_time_entries.return_value = Page(items=[], page=1, max_pages=1)
        end = datetime(2026, 1, 15, 17, 45, tzinfo=timezone.utc)

        self.fetcher.fetch_time_entries(self.auth, SINCE, end)

        self.client.list_time_entries.assert_called_once_with(
            self.auth, '2026-01-15T12:30:00.000', '2026-01-15T12:45:00.000', page=1, page_size=50
        )


class TestCustomerBoatFetch(unittest.TestCase):
    """Test the list, batch-retrieve, filter sequence."""

    def setUp(self):
        self.client = Mock()
        self.fetcher = WorkOrderFetcher(self.client, SyncSettings())
        self.auth = DockmasterSession(auth_token='tok', system_id='77')

    def test_no_open_work_orders(self):
        self.client.list_customer_work_orders.return_value = []

        self.assertIsNone(self.fetcher.fetch_for_customer_boat(self.auth, '4455', 'B-77'))
        self.client.retrieve_work_orders.assert_not_called()

    def test_filters_on_trimmed_boat_id(self):
        self.client.list_customer_work_orders.return_value = [{'id': '2001'}, {'id': '2002'}, {'id': '2003'}]
        self.client.retrieve_work_orders.return_value = [
            {'id': '2001', 'boatId': ' B-77 '},
            {'id': '2002', 'boatId': 'B-78'},
            {'id': '2003'},
        ]

        matches = self.fetcher.fetch_for_customer_boat(self.auth, '4455', 'B-77')

        self.assertEqual([wo['id'] for wo in matches], ['2001'])
        self.client.retrieve_work_orders.assert_called_once_with(
            self.auth, ['2001', '2002', '2003'], detail=True
        )

    def test_no_match_is_empty(self):
        self.client.list_customer_work_orders.return_value = [{'id': '2001'}]
        self.client.retrieve_work_orders.return_value = [{'id': '2001', 'boatId': 'B-78'}]

        self.assertEqual(self.fetcher.fetch_for_customer_boat(self.auth, '4455', 'B-77'), [])

    def test_without_boat_returns_all(self):
        self.client.list_customer_work_orders.return_value = [{'id': '2001'}]
        self.client.retrieve_work_orders.return_value = [{'id': '2001', 'boatId': 'B-78'}]

        self.assertEqual(len(self.fetcher.fetch_for_customer_boat(self.auth, '4455')), 1)

    def test_upstream_error_propagates(self):
        self.client.list_customer_work_orders.return_value = [{'id': '2001'}]
        self.client.retrieve_work_orders.side_effect = UpstreamError('Dockmaster API error 503', 503)

        with self.assertRaises(UpstreamError) as ctx:
            self.fetcher.fetch_for_customer_boat(self.auth, '4455', 'B-77')

        self.assertEqual(ctx.exception.status_code, 503)


if __name__ == '__main__':
    unittest.main()
