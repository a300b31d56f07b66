"""
Tests for the Flask API
Services are patched; no database or Dockmaster access.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from dockmaster_sync.exceptions import AuthenticationError, UpstreamError
from dockmaster_sync.sync_engine import SyncResult


class ApiTestCase(unittest.TestCase):
    """Flask test client with logging setup patched out."""

    def setUp(self):
        with patch('dockmaster_sync.app.setup_logging'):
            from dockmaster_sync.app import create_app
            self.app = create_app()
        self.app.testing = True
        self.client = self.app.test_client()


class TestSyncRoutes(ApiTestCase):
    """Test /api/sync endpoints."""

    @patch('dockmaster_sync.api.sync_routes.run_incremental_sync')
    def test_run_success(self, mock_run):
        mock_run.return_value = SyncResult(
            success=True,
            work_orders_updated=3,
            lookback_from=datetime(2026, 1, 15, 17, 15, tzinfo=timezone.utc)
        )

        response = self.client.post('/api/sync/run')

        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertTrue(data['success'])
        self.assertEqual(data['work_orders_updated'], 3)
        mock_run.assert_called_once_with(since=None, all_pages=False)

    @patch('dockmaster_sync.api.sync_routes.run_incremental_sync')
    def test_run_failure_is_500(self, mock_run):
        mock_run.return_value = SyncResult(success=False, error='Authentication failed: 401')

        response = self.client.post('/api/sync/run')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'Authentication failed: 401')

    @patch('dockmaster_sync.api.sync_routes.run_incremental_sync')
    def test_run_with_backfill_params(self, mock_run):
        mock_run.return_value = SyncResult(success=True)

        self.client.post('/api/sync/run?since=2026-01-01T00:00:00Z&all_pages=true')

        mock_run.assert_called_once_with(
            since=datetime(2026, 1, 1, tzinfo=timezone.utc),
            all_pages=True
        )

    @patch('dockmaster_sync.api.sync_routes.run_incremental_sync')
    def test_run_rejects_bad_since(self, mock_run):
        response = self.client.post('/api/sync/run?since=not-a-date')

        self.assertEqual(response.status_code, 400)
        mock_run.assert_not_called()

    @patch('dockmaster_sync.api.sync_routes.PersistenceGateway')
    def test_status(self, mock_gateway):
        mock_gateway.return_value.list_sync_status.return_value = [
            {'id': 'internal_workorders', 'status': 'success', 'last_success': '2026-01-15T17:30:00'}
        ]

        response = self.client.get('/api/sync/status')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['jobs'][0]['status'], 'success')


class TestWorkOrderRoutes(ApiTestCase):
    """Test /api/workorders/fetch."""

    @patch('dockmaster_sync.api.workorder_routes.build_cache_service')
    def test_fetch(self, mock_build):
        service = Mock()
        service.fetch.return_value = {'workOrders': [{'id': '2001'}], 'fromCache': False, 'lastSynced': None}
        mock_build.return_value = service

        response = self.client.post('/api/workorders/fetch', json={
            'customerId': '4455', 'boatId': 'B-77', 'boatUuid': 'boat-1', 'refresh': True
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['workOrders'], [{'id': '2001'}])
        service.fetch.assert_called_once_with(
            customer_id='4455', boat_id='B-77', boat_uuid='boat-1', refresh=True
        )

    @patch('dockmaster_sync.api.workorder_routes.build_cache_service')
    def test_missing_customer_is_400(self, mock_build):
        mock_build.return_value.fetch.side_effect = ValueError('Customer ID is required to fetch work orders')

        response = self.client.post('/api/workorders/fetch', json={})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()['success'])

    @patch('dockmaster_sync.api.workorder_routes.build_cache_service')
    def test_upstream_status_passed_through(self, mock_build):
        mock_build.return_value.fetch.side_effect = UpstreamError('Dockmaster API error 404', 404)

        response = self.client.post('/api/workorders/fetch', json={'customerId': '4455'})

        self.assertEqual(response.status_code, 404)

    @patch('dockmaster_sync.api.workorder_routes.build_cache_service')
    def test_authentication_failure_is_502(self, mock_build):
        mock_build.return_value.fetch.side_effect = AuthenticationError('Authentication failed: 401', 401)

        response = self.client.post('/api/workorders/fetch', json={'customerId': '4455'})

        self.assertEqual(response.status_code, 502)


class TestAppShell(ApiTestCase):
    """Test the root and error handlers."""

    @patch('dockmaster_sync.app.get_db')
    def test_health(self, mock_get_db):
        mock_get_db.return_value.check_connection.return_value = True

        data = self.client.get('/health').get_json()

        self.assertEqual(data['status'], 'healthy')
        self.assertTrue(data['timestamp'].endswith('+00:00'))

    @patch('dockmaster_sync.app.get_db')
    def test_health_degraded(self, mock_get_db):
        mock_get_db.return_value.check_connection.return_value = False

        data = self.client.get('/health').get_json()

        self.assertEqual(data['database'], 'disconnected')

    def test_json_keys_keep_insertion_order(self):
        self.assertFalse(self.app.json.sort_keys)
        data = self.client.get('/').get_json()
        self.assertEqual(list(data['endpoints'])[0], '/health')

    def test_root_lists_endpoints(self):
        data = self.client.get('/').get_json()
        self.assertIn('/api/sync/run', data['endpoints'])

    def test_unknown_route(self):
        response = self.client.get('/nope')
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.get_json()['success'])


if __name__ == '__main__':
    unittest.main()
