"""
Nested Entity Reconciler Module
Keeps a work order's stored operations identical to the latest upstream set.
"""

from typing import Dict, List

from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.exceptions import PersistenceError
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


class OperationReconciler:
    """Full-replace (never merge) of a work order's operations."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def replace_operations(
        self,
        work_order_id: str,
        rows: List[Dict],
        allow_empty: bool = False
    ) -> bool:
        """
        Replace all operations of ``work_order_id`` with ``rows``.

        An empty list normally means the payload did not include operations,
        so stored rows are left alone. Callers holding a full detail payload
        pass ``allow_empty=True`` to clear them.

        Returns:
            True if operations were replaced, False if skipped or failed
        """
        if not rows and not allow_empty:
            logger.debug(f"No operations in payload for WO {work_order_id}, keeping stored set")
            return False

        try:
            self.gateway.replace_operations(work_order_id, rows)
        except PersistenceError as e:
            logger.error(f"Error replacing operations for WO {work_order_id}: {e}")
            return False

        logger.debug(f"Replaced operations for WO {work_order_id}: {len(rows)} rows")
        return True
