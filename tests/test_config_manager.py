"""
Unit Tests for Configuration
"""

import os
import unittest
from unittest.mock import patch

from dockmaster_sync.config_manager import ConfigManager, SyncSettings


class TestSyncSettings(unittest.TestCase):
    """Test building settings from the sync section."""

    def test_defaults(self):
        settings = SyncSettings.from_config({})

        self.assertEqual(settings.job_name, 'internal_workorders')
        self.assertEqual(settings.internal_customer_id, '3112')
        self.assertEqual(settings.lookback_minutes, 15)
        self.assertEqual(settings.page_size, 100)
        self.assertEqual(settings.max_pages, 1)
        self.assertEqual(settings.timezone, 'America/New_York')

    def test_overrides(self):
        settings = SyncSettings.from_config({
            'internal_customer_id': 3112,
            'lookback_minutes': '30',
            'max_pages': 5
        })

        self.assertEqual(settings.internal_customer_id, '3112')
        self.assertEqual(settings.lookback_minutes, 30)
        self.assertEqual(settings.max_pages, 5)

    def test_zero_or_null_pages_means_all(self):
        self.assertIsNone(SyncSettings.from_config({'max_pages': 0}).max_pages)
        self.assertIsNone(SyncSettings.from_config({'max_pages': None}).max_pages)


class TestEnvSubstitution(unittest.TestCase):
    """Test ${VAR} and ${VAR:-default} substitution."""

    def setUp(self):
        self.config = ConfigManager()

    @patch.dict(os.environ, {'DOCKMASTER_USERNAME': 'api-user'})
    def test_set_variable(self):
        self.assertEqual(self.config._substitute_env_vars('u: ${DOCKMASTER_USERNAME:-x}'), 'u: api-user')

    def test_default(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('DM_TEST_UNSET', None)
            self.assertEqual(self.config._substitute_env_vars('v: ${DM_TEST_UNSET:-fallback}'), 'v: fallback')

    def test_unset_without_default_kept(self):
        os.environ.pop('DM_TEST_UNSET', None)
        self.assertEqual(self.config._substitute_env_vars('${DM_TEST_UNSET}'), '${DM_TEST_UNSET}')

    def test_shipped_config_sections(self):
        self.assertEqual(self.config.get_sync_config().get('internal_customer_id'), '3112')
        self.assertEqual(self.config.get_scheduler_config().get('interval_minutes'), 5)


if __name__ == '__main__':
    unittest.main()
