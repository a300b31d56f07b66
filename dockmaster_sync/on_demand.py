"""
On-Demand Work Order Module
Read-through cache of a customer boat's open work orders.
"""

from typing import Dict, List, Optional

from dockmaster_sync.config_manager import ConfigManager, SyncSettings
from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.dockmaster_client import DockmasterClient
from dockmaster_sync.exceptions import PersistenceError
from dockmaster_sync.fetcher import WorkOrderFetcher
from dockmaster_sync.reconciler import OperationReconciler
from dockmaster_sync.session_manager import RemoteSessionManager, build_credential_provider
from dockmaster_sync.transformer import RecordTransformer
from dockmaster_sync.utils.helpers import utc_now
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


class WorkOrderCacheService:
    """
    Serves a boat's open work orders from the local store, refreshing from
    Dockmaster when asked to or when nothing is cached yet.
    """

    def __init__(
        self,
        settings: SyncSettings,
        session_manager: RemoteSessionManager,
        fetcher: WorkOrderFetcher,
        gateway: PersistenceGateway,
        clock=utc_now
    ):
        self.session_manager = session_manager
        self.fetcher = fetcher
        self.gateway = gateway
        self.clock = clock
        self.transformer = RecordTransformer(settings.internal_customer_id)
        self.reconciler = OperationReconciler(gateway)

    def fetch(
        self,
        customer_id: Optional[str] = None,
        boat_id: Optional[str] = None,
        boat_uuid: Optional[str] = None,
        refresh: bool = False
    ) -> Dict:
        """
        Open work orders for a boat.

        Args:
            customer_id: Dockmaster customer id (required when fetching upstream)
            boat_id: Dockmaster boat id used to filter the customer's work orders
            boat_uuid: Local boat id the results are cached under
            refresh: Skip the cache

        Returns:
            Dict with ``workOrders``, ``fromCache`` and ``lastSynced``

        Raises:
            ValueError: If an upstream fetch is needed and customer_id is missing
            ConfigurationError, AuthenticationError, UpstreamError: From the upstream fetch
        """
        if not refresh and boat_uuid:
            cached = self.gateway.get_cached_work_orders(boat_uuid, status='O')
            if cached:
                logger.info(f"Returning {len(cached)} cached work orders for boat {boat_uuid}")
                return {
                    'workOrders': cached,
                    'fromCache': True,
                    'lastSynced': cached[0].get('last_synced')
                }

        if not customer_id:
            raise ValueError("Customer ID is required to fetch work orders")

        auth = self.session_manager.open_session()
        details = self.fetcher.fetch_for_customer_boat(auth, str(customer_id), boat_id)

        if details is None:
            if boat_uuid:
                removed = self.gateway.delete_work_orders_for_boat(boat_uuid)
                logger.info(f"Customer {customer_id} has no open work orders, cleared {removed} cached")
            return {'workOrders': [], 'fromCache': False, 'lastSynced': None}

        synced_at = self.clock()
        work_orders = self._store(details, str(customer_id), boat_uuid, synced_at)

        return {
            'workOrders': work_orders,
            'fromCache': False,
            'lastSynced': synced_at.isoformat()
        }

    def _store(self, details: List[Dict], customer_id: str, boat_uuid: Optional[str], synced_at) -> List[Dict]:
        """Transform the detailed work orders and, when a local boat is given, cache them."""
        records = []
        for detail in details:
            try:
                record = self.transformer.transform_work_order(detail)
            except ValueError as e:
                logger.error(f"Skipping work order detail: {e}")
                continue
            record.customer_id = customer_id
            record.boat_id = boat_uuid
            records.append(record)

        if boat_uuid and records:
            stored_ids = []
            for record in records:
                try:
                    self.gateway.upsert_work_order(record.to_row(synced_at))
                except PersistenceError as e:
                    logger.error(f"Error caching work order {record.id}: {e}")
                    continue
                self.reconciler.replace_operations(record.id, record.operation_rows(), allow_empty=True)
                stored_ids.append(record.id)

            if not stored_ids:
                logger.error(f"No work orders could be cached for boat {boat_uuid}")
                return self._response_rows(records, synced_at)

            removed = self.gateway.delete_work_orders_for_boat(boat_uuid, keep_ids=stored_ids)
            if removed:
                logger.info(f"Removed {removed} work orders no longer open for boat {boat_uuid}")

            self.gateway.update_boat_work_order_number(boat_uuid, ', '.join(stored_ids))

        return self._response_rows(records, synced_at)

    @staticmethod
    def _response_rows(records, synced_at) -> List[Dict]:
        return [
            {**record.to_row(synced_at), 'last_synced': synced_at.isoformat(), 'operations': record.operation_rows()}
            for record in records
        ]


def build_cache_service(config: ConfigManager = None) -> WorkOrderCacheService:
    """Wire the on-demand service from configuration."""
    config = config or ConfigManager()
    settings = SyncSettings.from_config(config.get_sync_config())
    dockmaster_config = config.get_dockmaster_config()

    gateway = PersistenceGateway()
    client = DockmasterClient(dockmaster_config)

    return WorkOrderCacheService(
        settings=settings,
        session_manager=RemoteSessionManager(client, build_credential_provider(dockmaster_config, gateway)),
        fetcher=WorkOrderFetcher(client, settings),
        gateway=gateway
    )
