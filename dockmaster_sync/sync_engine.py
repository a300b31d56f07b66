"""
Incremental Sync Engine Module
Orchestrates one incremental run: window, authentication, changed work orders,
operation replacement, time-entry aggregation and status bookkeeping.
"""

import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, Optional

from dockmaster_sync.aggregator import TimeEntryAggregator
from dockmaster_sync.config_manager import ConfigManager, SyncSettings
from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.dockmaster_client import DockmasterClient
from dockmaster_sync.exceptions import PersistenceError
from dockmaster_sync.fetcher import WorkOrderFetcher
from dockmaster_sync.reconciler import OperationReconciler
from dockmaster_sync.session_manager import RemoteSessionManager, build_credential_provider
from dockmaster_sync.sync_status import SyncStatusRecorder
from dockmaster_sync.time_window import compute_lookback_start
from dockmaster_sync.transformer import RecordTransformer
from dockmaster_sync.utils.helpers import ensure_utc, utc_now
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

_UNSET = object()


@dataclass
class SyncResult:
    """Outcome of one run, returned to the HTTP layer and the CLI."""

    success: bool = False
    work_orders_updated: int = 0
    operations_replaced: int = 0
    time_entries_processed: int = 0
    pages_fetched: int = 0
    pages_available: int = 0
    lookback_from: Optional[datetime] = None
    duration_seconds: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['lookback_from'] = self.lookback_from.isoformat() if self.lookback_from else None
        data['duration_seconds'] = round(self.duration_seconds, 2)
        return data


class IncrementalSyncEngine:
    """
    Incremental Dockmaster to PostgreSQL sync.

    Only configuration and authentication failures abort a run. Everything
    else is isolated to the smallest unit (one work order, one time-entry
    group) and logged. Each run writes exactly one sync status row.
    """

    def __init__(
        self,
        settings: SyncSettings,
        session_manager: RemoteSessionManager,
        fetcher: WorkOrderFetcher,
        gateway: PersistenceGateway,
        clock=utc_now
    ):
        self.settings = settings
        self.session_manager = session_manager
        self.fetcher = fetcher
        self.gateway = gateway
        self.clock = clock

        self.transformer = RecordTransformer(settings.internal_customer_id, gateway.find_boat_id)
        self.reconciler = OperationReconciler(gateway)
        self.aggregator = TimeEntryAggregator(gateway)
        self.recorder = SyncStatusRecorder(gateway, clock=clock)

    def run(self, since: Optional[datetime] = None, max_pages=_UNSET) -> SyncResult:
        """
        Execute one incremental run.

        Args:
            since: Explicit window start (backfills); defaults to the watermark rule
            max_pages: Page cap for both listings; defaults to the configured cap, None reads all

        Returns:
            SyncResult describing the run (``success=False`` with ``error`` on failure)
        """
        if max_pages is _UNSET:
            max_pages = self.settings.max_pages

        job_name = self.settings.job_name
        started_at = self.clock()
        started = time.monotonic()
        result = SyncResult()

        try:
            if since is None:
                watermark = self.recorder.read_watermark(job_name)
                lookback = compute_lookback_start(watermark, started_at, self.settings.lookback_minutes)
            else:
                lookback = ensure_utc(since)
            result.lookback_from = lookback
            logger.info(f"Incremental sync starting, lookback from: {lookback.isoformat()}")

            auth = self.session_manager.open_session()

            self._sync_work_orders(auth, lookback, max_pages, result)
            self._sync_time_entries(auth, lookback, started_at, max_pages, result)

            self.recorder.record_success(job_name, started_at, result.work_orders_updated)
            result.success = True

        except Exception as e:
            logger.error(f"Incremental sync failed: {e}")
            result.error = str(e)
            try:
                self.recorder.record_failure(job_name, str(e), started_at)
            except PersistenceError as record_error:
                logger.error(f"Could not record sync failure: {record_error}")

        result.duration_seconds = time.monotonic() - started
        logger.info(
            f"Incremental sync finished: success={result.success}, "
            f"work_orders={result.work_orders_updated}, time_entry_groups={result.time_entries_processed}, "
            f"duration={result.duration_seconds:.1f}s"
        )
        return result

    # ========================================
    # Phases
    # ========================================

    def _sync_work_orders(self, auth, lookback: datetime, max_pages, result: SyncResult) -> None:
        """Phase 1: upsert changed work orders and replace their operations."""
        changed = self.fetcher.fetch_changed_work_orders(auth, lookback, max_pages=max_pages)
        result.pages_fetched = changed.pages_fetched
        result.pages_available = changed.pages_available

        for payload in changed.items:
            if self._process_work_order(payload, result):
                result.work_orders_updated += 1

    def _process_work_order(self, payload: Dict, result: SyncResult) -> bool:
        """Upsert one work order; failures are logged and isolated to it."""
        try:
            record = self.transformer.transform_work_order(payload)
            self.gateway.upsert_work_order(record.to_row(self.clock()))
        except (ValueError, PersistenceError) as e:
            work_order_id = payload.get('id') if isinstance(payload, dict) else None
            logger.error(f"Error upserting work order {work_order_id}: {e}")
            return False

        if self.reconciler.replace_operations(record.id, record.operation_rows()):
            result.operations_replaced += 1
        return True

    def _sync_time_entries(self, auth, lookback: datetime, now: datetime, max_pages, result: SyncResult) -> None:
        """Phase 2: derive last_worked_at from labor time entries."""
        entries = self.fetcher.fetch_time_entries(auth, lookback, now, max_pages=max_pages)
        result.time_entries_processed = self.aggregator.process(entries.items)


def build_engine(config: ConfigManager = None) -> IncrementalSyncEngine:
    """Wire an engine from configuration."""
    config = config or ConfigManager()
    settings = SyncSettings.from_config(config.get_sync_config())
    dockmaster_config = config.get_dockmaster_config()

    gateway = PersistenceGateway()
    client = DockmasterClient(dockmaster_config)
    credentials = build_credential_provider(dockmaster_config, gateway)

    return IncrementalSyncEngine(
        settings=settings,
        session_manager=RemoteSessionManager(client, credentials),
        fetcher=WorkOrderFetcher(client, settings),
        gateway=gateway
    )


def run_incremental_sync(since: Optional[datetime] = None, all_pages: bool = False) -> SyncResult:
    """
    Convenience function to run one incremental sync.

    Args:
        since: Explicit window start for backfills
        all_pages: Read every page instead of the configured cap

    Returns:
        SyncResult
    """
    try:
        engine = build_engine()
    except Exception as e:
        logger.error(f"Incremental sync could not start: {e}")
        _record_startup_failure(str(e))
        return SyncResult(error=str(e))

    if all_pages:
        return engine.run(since=since, max_pages=None)
    return engine.run(since=since)


def _record_startup_failure(message: str) -> None:
    """Best-effort error row for a run that failed while being wired."""
    try:
        settings = SyncSettings.from_config(ConfigManager().get_sync_config())
        SyncStatusRecorder(PersistenceGateway()).record_failure(settings.job_name, message, utc_now())
    except Exception as e:
        logger.error(f"Could not record sync failure: {e}")
