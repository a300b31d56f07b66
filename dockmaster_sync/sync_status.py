"""
Sync Status Recorder Module
Persists each run's watermark and outcome in ``sync_status``.
"""

from datetime import datetime
from typing import Optional

from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.utils.helpers import ensure_utc, utc_now
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 1000


class SyncStatusRecorder:
    """Reads the watermark at the start of a run and writes the outcome at the end."""

    def __init__(self, gateway: PersistenceGateway, clock=utc_now):
        self.gateway = gateway
        self.clock = clock

    def read_watermark(self, job_name: str) -> Optional[datetime]:
        """Last successful sync time for a job, or None if it never succeeded."""
        status = self.gateway.get_sync_status(job_name)
        if not status:
            return None
        return ensure_utc(status.get('last_success'))

    def record_success(self, job_name: str, started_at: datetime, records_synced: int) -> None:
        """Advance the watermark to the run's start time and clear any error."""
        self.gateway.upsert_sync_status(job_name, {
            'last_sync': started_at,
            'last_success': started_at,
            'status': 'success',
            'records_synced': records_synced,
            'error_message': None,
            'updated_at': self.clock()
        })
        logger.info(f"Sync status '{job_name}': success, {records_synced} records")

    def record_failure(self, job_name: str, error_message: str, attempted_at: datetime) -> None:
        """Mark the job failed; ``last_success`` is left untouched so the next window widens."""
        self.gateway.upsert_sync_status(job_name, {
            'last_sync': attempted_at,
            'status': 'error',
            'error_message': (error_message or '')[:MAX_ERROR_LENGTH],
            'updated_at': self.clock()
        })
        logger.info(f"Sync status '{job_name}': error recorded")
