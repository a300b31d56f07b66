"""
Integration Tests for the Incremental Sync Engine
Real gateway on in-memory SQLite, mocked Dockmaster client.
"""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

from dockmaster_sync.config_manager import SyncSettings
from dockmaster_sync.database.connection import DatabaseConnection
from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.database.models import Base, Boat
from dockmaster_sync.dockmaster_client import DockmasterSession, Page
from dockmaster_sync.exceptions import (
    AuthenticationError, ConfigurationError, PersistenceError, UpstreamError
)
from dockmaster_sync.fetcher import WorkOrderFetcher
from dockmaster_sync.sync_engine import IncrementalSyncEngine, run_incremental_sync

NOW = datetime(2026, 1, 15, 17, 30, tzinfo=timezone.utc)
JOB = 'internal_workorders'

CHANGED = [
    {
        'id': '1001', 'customerID': '3112', 'status': 'O', 'totalWOCharges': 250,
        'operations': [
            {'id': '1', 'opcode': 'ENG', 'opcodeDesc': 'Engine service'},
            {'id': '2', 'opcode': 'WASH'},
        ]
    },
    {'id': '1002', 'customerID': '4455', 'boatId': 'B-77', 'status': 'O', 'operations': []},
]

TIME_ENTRIES = [
    {'workOrderId': '1001', 'operations': [{'opcode': 'ENG', 'estStartDate': '01/05/2026'}]},
    {'workOrderId': '1001', 'operations': [{'opcode': 'ENG', 'estStartDate': '01/10/2026'}]},
    {'workOrderId': '9999', 'operations': [{'opcode': 'ENG', 'estStartDate': '01/10/2026'}]},
]


class SyncEngineTestCase(unittest.TestCase):
    """Engine wired to SQLite and a mocked client."""

    def setUp(self):
        db = DatabaseConnection.from_url('sqlite:///:memory:')
        Base.metadata.create_all(db.engine)
        self.gateway = PersistenceGateway(db)
        with db.session_scope() as session:
            session.add(Boat(id='boat-1', dockmaster_id='B-77'))

        self.auth = DockmasterSession(auth_token='tok', system_id='77')
        self.session_manager = Mock()
        self.session_manager.open_session.return_value = self.auth

        self.client = Mock()
        self.client.list_changed_work_orders.return_value = Page(items=CHANGED, page=1, max_pages=1)
        self.client.list_time_entries.return_value = Page(items=TIME_ENTRIES, page=1, max_pages=1)

        settings = SyncSettings()
        self.engine = IncrementalSyncEngine(
            settings=settings,
            session_manager=self.session_manager,
            fetcher=WorkOrderFetcher(self.client, settings),
            gateway=self.gateway,
            clock=lambda: NOW
        )

    def status(self):
        return self.gateway.get_sync_status(JOB)


class TestSuccessfulRun(SyncEngineTestCase):
    """Test a run where everything succeeds."""

    def test_work_orders_operations_and_time_entries(self):
        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.work_orders_updated, 2)
        self.assertEqual(result.operations_replaced, 1)
        self.assertEqual(result.time_entries_processed, 1)

        internal = self.gateway.get_work_order('1001')
        self.assertTrue(internal['is_internal'])
        self.assertEqual(internal['total_charges'], 250)

        customer = self.gateway.get_work_order('1002')
        self.assertFalse(customer['is_internal'])
        self.assertEqual(customer['boat_id'], 'boat-1')

        operations = {op['opcode']: op for op in self.gateway.get_operations('1001')}
        self.assertTrue(operations['ENG']['last_worked_at'].startswith('2026-01-10T12:00:00'))
        self.assertIsNone(operations['WASH']['last_worked_at'])

    def test_status_written_with_run_start(self):
        self.engine.run()

        status = self.status()
        self.assertEqual(status['status'], 'success')
        self.assertEqual(status['records_synced'], 2)
        self.assertIsNone(status['error_message'])
        self.assertEqual(status['last_success'].replace(tzinfo=timezone.utc), NOW)

    def test_rerun_is_idempotent(self):
        self.engine.run()
        self.engine.run()

        self.assertEqual(len(self.gateway.get_operations('1001')), 2)

    def test_empty_operations_keep_stored_set(self):
        self.gateway.upsert_work_order({'id': '1002', 'is_internal': False})
        self.gateway.replace_operations('1002', [{'id': '9', 'work_order_id': '1002', 'opcode': 'OLD'}])

        self.engine.run()

        self.assertEqual([op['opcode'] for op in self.gateway.get_operations('1002')], ['OLD'])

    def test_default_window_is_fifteen_minutes(self):
        result = self.engine.run()

        self.assertEqual(result.lookback_from, NOW - timedelta(minutes=15))
        self.client.list_changed_work_orders.assert_called_once_with(
            self.auth, '2026-01-15T12:15:00.000', page=1, page_size=100
        )
        self.client.list_time_entries.assert_called_once_with(
            self.auth, '2026-01-15T12:15:00.000', '2026-01-15T12:30:00.000', page=1, page_size=100
        )

    def test_stale_watermark_widens_window(self):
        last_success = NOW - timedelta(hours=3)
        self.gateway.upsert_sync_status(JOB, {'last_success': last_success, 'status': 'error'})

        result = self.engine.run()

        self.assertEqual(result.lookback_from, last_success)

    def test_explicit_since(self):
        since = datetime(2026, 1, 1, 5, 0, tzinfo=timezone.utc)

        result = self.engine.run(since=since, max_pages=None)

        self.assertEqual(result.lookback_from, since)
        self.assertEqual(self.client.list_changed_work_orders.call_args.args[1], '2026-01-01T00:00:00.000')


class TestDegradedRuns(SyncEngineTestCase):
    """Test failure isolation."""

    def test_changed_listing_error_still_processes_time_entries(self):
        """An HTTP 500 on the work order listing is treated as empty."""
        self.client.list_changed_work_orders.side_effect = UpstreamError('Dockmaster API error 500', 500)
        self.gateway.upsert_work_order({'id': '1001', 'is_internal': True})
        self.gateway.replace_operations('1001', [{'id': '1', 'work_order_id': '1001', 'opcode': 'ENG'}])

        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.work_orders_updated, 0)
        self.assertEqual(result.time_entries_processed, 1)
        self.client.list_time_entries.assert_called_once()
        self.assertEqual(self.status()['status'], 'success')

    def test_one_bad_work_order_does_not_abort(self):
        real_upsert = self.gateway.upsert_work_order
        calls = []

        def flaky_upsert(values):
            calls.append(values['id'])
            if values['id'] == '1001':
                raise PersistenceError('constraint violated')
            real_upsert(values)

        with patch.object(self.gateway, 'upsert_work_order', side_effect=flaky_upsert):
            result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(calls, ['1001', '1002'])
        self.assertEqual(result.work_orders_updated, 1)
        self.assertIsNone(self.gateway.get_work_order('1001'))
        self.assertIsNotNone(self.gateway.get_work_order('1002'))

    def test_payload_without_id_skipped(self):
        self.client.list_changed_work_orders.return_value = Page(items=[{'status': 'O'}] + CHANGED[:1])

        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.work_orders_updated, 1)

    def test_null_operation_entry_does_not_abort(self):
        """A null inside the operations list drops that entry; later work orders still sync."""
        self.client.list_changed_work_orders.return_value = Page(items=[
            {'id': '2000', 'customerID': '3112', 'operations': [None]},
            CHANGED[0],
        ])

        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.work_orders_updated, 2)
        self.assertIsNotNone(self.gateway.get_work_order('2000'))
        self.assertEqual(self.gateway.get_operations('2000'), [])
        self.assertEqual(len(self.gateway.get_operations('1001')), 2)
        self.client.list_time_entries.assert_called_once()
        self.assertEqual(self.status()['status'], 'success')

    def test_malformed_work_orders_skipped(self):
        self.client.list_changed_work_orders.return_value = Page(items=[
            {'id': '2000', 'customerID': '3112', 'operations': 'not-a-list'},
            None,
            'garbage',
            CHANGED[0],
        ])

        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.work_orders_updated, 1)
        self.assertIsNone(self.gateway.get_work_order('2000'))
        self.assertIsNotNone(self.gateway.get_work_order('1001'))
        self.assertEqual(result.time_entries_processed, 1)

    def test_malformed_time_entries_skipped(self):
        self.client.list_time_entries.return_value = Page(items=[None, 'junk', {'workOrderId': '1001', 'operations': [None]}] + TIME_ENTRIES)

        result = self.engine.run()

        self.assertTrue(result.success)
        self.assertEqual(result.time_entries_processed, 1)
        self.assertEqual(self.status()['status'], 'success')


class TestFatalRuns(SyncEngineTestCase):
    """Test runs aborted before any fetch."""

    def test_authentication_failure(self):
        self.session_manager.open_session.side_effect = AuthenticationError('Authentication failed: 401', 401)

        result = self.engine.run()

        self.assertFalse(result.success)
        self.assertIn('401', result.error)
        self.client.list_changed_work_orders.assert_not_called()
        self.client.list_time_entries.assert_not_called()
        self.assertIsNone(self.gateway.get_work_order('1001'))

        status = self.status()
        self.assertEqual(status['status'], 'error')
        self.assertIn('Authentication failed', status['error_message'])
        self.assertIsNone(status['last_success'])

    def test_missing_credentials(self):
        self.session_manager.open_session.side_effect = ConfigurationError('Dockmaster credentials not configured')

        result = self.engine.run()

        self.assertFalse(result.success)
        self.assertEqual(self.status()['status'], 'error')
        self.client.list_changed_work_orders.assert_not_called()

    def test_failure_keeps_previous_watermark(self):
        self.engine.run()
        self.session_manager.open_session.side_effect = AuthenticationError('Authentication failed: 401', 401)

        self.engine.run()

        status = self.status()
        self.assertEqual(status['status'], 'error')
        self.assertEqual(status['last_success'].replace(tzinfo=timezone.utc), NOW)
        self.assertEqual(status['records_synced'], 2)

    def test_result_serializes(self):
        self.session_manager.open_session.side_effect = AuthenticationError('Authentication failed: 401', 401)

        data = self.engine.run().to_dict()

        self.assertFalse(data['success'])
        self.assertEqual(data['lookback_from'], (NOW - timedelta(minutes=15)).isoformat())


class TestStartupFailures(SyncEngineTestCase):
    """Test runs that fail while the engine is being wired."""

    @patch('dockmaster_sync.sync_engine.build_engine')
    def test_wiring_failure_recorded(self, mock_build):
        mock_build.side_effect = ConfigurationError('Unknown credentials_source: vault')

        with patch('dockmaster_sync.sync_engine.PersistenceGateway', return_value=self.gateway):
            result = run_incremental_sync()

        self.assertFalse(result.success)
        self.assertIn('vault', result.error)
        status = self.status()
        self.assertEqual(status['status'], 'error')
        self.assertIn('vault', status['error_message'])
        self.assertIsNone(status['last_success'])

    @patch('dockmaster_sync.sync_engine.build_engine')
    def test_unreachable_store_still_returns_result(self, mock_build):
        mock_build.side_effect = PersistenceError('database unavailable')

        with patch('dockmaster_sync.sync_engine.PersistenceGateway', side_effect=PersistenceError('database unavailable')):
            result = run_incremental_sync()

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'database unavailable')


if __name__ == '__main__':
    unittest.main()
