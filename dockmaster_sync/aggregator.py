"""
Time Entry Aggregator Module
Derives each operation's last-worked timestamp from Dockmaster labor time entries.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.exceptions import PersistenceError
from dockmaster_sync.utils.helpers import parse_work_date
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

TimeWorkedKey = Tuple[str, str]

# Work dates have no time component; midday UTC keeps them on the same calendar day in US time zones
MIDDAY_SUFFIX = 'T12:00:00.000Z'


def _operation_entries(entry: Dict) -> List[Dict]:
    """Per-operation entries of a time entry; flat entries stand for themselves."""
    operations = entry.get('operations')
    if isinstance(operations, list):
        return operations
    return [entry]


def _opcode(op_entry: Dict) -> Optional[str]:
    value = op_entry.get('opcode') or op_entry.get('opCode')
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def to_timestamp(iso_value: str) -> datetime:
    """Parse a ``YYYY-MM-DDT12:00:00.000Z`` value into an aware datetime."""
    return datetime.strptime(iso_value, '%Y-%m-%dT%H:%M:%S.000Z').replace(tzinfo=timezone.utc)


class TimeEntryAggregator:
    """Latest work date per (work order, opcode), pushed to the matching operations."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def aggregate(self, entries: Iterable[Dict]) -> Dict[TimeWorkedKey, str]:
        """
        Group time entries by (work order id, opcode) and keep the latest work date.

        Dates are compared as zero-padded ``YYYY-MM-DD`` strings, which orders
        them chronologically.

        Returns:
            Mapping of (work order id, opcode) to ``YYYY-MM-DDT12:00:00.000Z``
        """
        latest: Dict[TimeWorkedKey, str] = {}
        skipped = 0

        for entry in entries:
            if not isinstance(entry, dict):
                skipped += 1
                continue
            work_order_id = entry.get('workOrderId')
            for op_entry in _operation_entries(entry):
                if not isinstance(op_entry, dict):
                    skipped += 1
                    continue
                opcode = _opcode(op_entry)
                work_date = parse_work_date(op_entry.get('estStartDate'))
                if work_order_id in (None, '') or not opcode or not work_date:
                    skipped += 1
                    continue

                key = (str(work_order_id).strip(), opcode)
                stamp = f"{work_date}{MIDDAY_SUFFIX}"
                if key not in latest or stamp > latest[key]:
                    latest[key] = stamp

        if skipped:
            logger.warning(f"Skipped {skipped} time entries without work order, opcode or date")
        logger.info(f"Aggregated time entries into {len(latest)} work order/opcode groups")
        return latest

    def apply(self, latest: Dict[TimeWorkedKey, str]) -> int:
        """
        Write ``last_worked_at`` for every group.

        Groups whose operation is not stored locally, or whose update fails,
        are logged and skipped.

        Returns:
            Number of groups that updated at least one operation
        """
        updated = 0
        for (work_order_id, opcode), stamp in latest.items():
            try:
                count = self.gateway.update_operation_last_worked(work_order_id, opcode, to_timestamp(stamp))
            except PersistenceError as e:
                logger.error(f"Error updating last_worked_at for WO {work_order_id} op {opcode}: {e}")
                continue

            if count == 0:
                logger.warning(f"No stored operation for WO {work_order_id} op {opcode}, skipping")
                continue
            updated += 1

        logger.info(f"Updated last_worked_at for {updated}/{len(latest)} groups")
        return updated

    def process(self, entries: Iterable[Dict]) -> int:
        """Aggregate and apply in one pass."""
        return self.apply(self.aggregate(entries))
