"""
Persistence Gateway Module
Keyed upsert, conditional delete, filtered select and targeted update
operations used by the sync engine and the on-demand fetch path.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from dockmaster_sync.database.connection import DatabaseConnection, get_db
from dockmaster_sync.database.models import (
    Boat, DockmasterCredential, SyncStatus, WorkOrder, WorkOrderOperation
)
from dockmaster_sync.exceptions import PersistenceError
from dockmaster_sync.utils.helpers import utc_now
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


def row_to_dict(row) -> Dict[str, Any]:
    """Serialize an ORM row to a plain dict, ISO-formatting datetimes."""
    result = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        result[column.name] = value
    return result


class PersistenceGateway:
    """
    Typed access to the local work-order store.

    Every public method runs in its own transaction, so each call is atomic
    on its own. Database failures surface as PersistenceError.
    """

    def __init__(self, db: DatabaseConnection = None):
        """Initialize with a database connection (defaults to the configured singleton)."""
        self.db = db or get_db()

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        if self.db.dialect_name == 'sqlite':
            return sqlite_insert(model)
        return pg_insert(model)

    def _upsert(self, session, model, values: Dict[str, Any], key_columns: List[str]) -> None:
        """INSERT ... ON CONFLICT (key) DO UPDATE for the supplied columns only."""
        update_columns = {k: v for k, v in values.items() if k not in key_columns}
        stmt = self._insert(model).values(**values)
        if update_columns:
            stmt = stmt.on_conflict_do_update(index_elements=key_columns, set_=update_columns)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=key_columns)
        session.execute(stmt)

    # ========================================
    # Work Orders
    # ========================================

    def upsert_work_order(self, values: Dict[str, Any]) -> None:
        """Insert or overwrite one work order keyed by its Dockmaster id."""
        try:
            with self.db.session_scope() as session:
                self._upsert(session, WorkOrder, values, ['id'])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to upsert work order {values.get('id')}: {e}") from e

    def get_work_order(self, work_order_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one work order as a dict."""
        try:
            with self.db.session_scope() as session:
                row = session.get(WorkOrder, work_order_id)
                return row_to_dict(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read work order {work_order_id}: {e}") from e

    def get_cached_work_orders(self, boat_id: str, status: str = 'O') -> List[Dict[str, Any]]:
        """Work orders for a local boat with their operations nested under ``operations``."""
        try:
            with self.db.session_scope() as session:
                rows = (
                    session.query(WorkOrder)
                    .filter(WorkOrder.boat_id == boat_id, WorkOrder.status == status)
                    .order_by(WorkOrder.id)
                    .all()
                )
                result = []
                for row in rows:
                    work_order = row_to_dict(row)
                    work_order['operations'] = [
                        row_to_dict(op) for op in sorted(row.operations, key=lambda o: o.id)
                    ]
                    result.append(work_order)
                return result
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read cached work orders for boat {boat_id}: {e}") from e

    def delete_work_orders_for_boat(self, boat_id: str, keep_ids: Iterable[str] = ()) -> int:
        """
        Delete a boat's cached work orders except ``keep_ids``.

        Operations of the deleted work orders are removed in the same transaction.

        Returns:
            Number of work orders deleted
        """
        keep_ids = list(keep_ids)
        try:
            with self.db.session_scope() as session:
                query = session.query(WorkOrder.id).filter(WorkOrder.boat_id == boat_id)
                if keep_ids:
                    query = query.filter(WorkOrder.id.notin_(keep_ids))
                stale_ids = [row.id for row in query.all()]
                if not stale_ids:
                    return 0

                session.query(WorkOrderOperation).filter(
                    WorkOrderOperation.work_order_id.in_(stale_ids)
                ).delete(synchronize_session=False)
                session.query(WorkOrder).filter(
                    WorkOrder.id.in_(stale_ids)
                ).delete(synchronize_session=False)
                return len(stale_ids)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete stale work orders for boat {boat_id}: {e}") from e

    # ========================================
    # Operations
    # ========================================

    def replace_operations(self, work_order_id: str, rows: List[Dict[str, Any]]) -> None:
        """
        Delete every operation of a work order and insert ``rows`` in one transaction.

        Readers never observe the work order with zero operations in between.
        """
        try:
            with self.db.session_scope() as session:
                session.query(WorkOrderOperation).filter(
                    WorkOrderOperation.work_order_id == work_order_id
                ).delete(synchronize_session=False)
                if rows:
                    session.execute(self._insert(WorkOrderOperation), rows)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to replace operations for work order {work_order_id}: {e}") from e

    def get_operations(self, work_order_id: str) -> List[Dict[str, Any]]:
        """Operations of one work order ordered by id."""
        try:
            with self.db.session_scope() as session:
                rows = (
                    session.query(WorkOrderOperation)
                    .filter(WorkOrderOperation.work_order_id == work_order_id)
                    .order_by(WorkOrderOperation.id)
                    .all()
                )
                return [row_to_dict(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read operations for work order {work_order_id}: {e}") from e

    def update_operation_last_worked(self, work_order_id: str, opcode: str, last_worked_at: datetime) -> int:
        """
        Set ``last_worked_at`` on the operation(s) matching (work order, opcode).

        Returns:
            Number of rows updated (0 when the operation is not stored locally)
        """
        try:
            with self.db.session_scope() as session:
                return (
                    session.query(WorkOrderOperation)
                    .filter(and_(
                        WorkOrderOperation.work_order_id == work_order_id,
                        WorkOrderOperation.opcode == opcode
                    ))
                    .update(
                        {'last_worked_at': last_worked_at, 'updated_at': utc_now()},
                        synchronize_session=False
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to update last_worked_at for {work_order_id}/{opcode}: {e}"
            ) from e

    # ========================================
    # Boats
    # ========================================

    def find_boat_id(self, dockmaster_boat_id: str) -> Optional[str]:
        """Resolve a Dockmaster boat id to the local boat id."""
        try:
            with self.db.session_scope() as session:
                boat = session.query(Boat.id).filter(Boat.dockmaster_id == dockmaster_boat_id).first()
                return boat.id if boat else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up boat {dockmaster_boat_id}: {e}") from e

    def update_boat_work_order_number(self, boat_id: str, work_order_number: str) -> None:
        """Store the comma-joined open work order ids on a boat."""
        try:
            with self.db.session_scope() as session:
                session.query(Boat).filter(Boat.id == boat_id).update(
                    {'work_order_number': work_order_number},
                    synchronize_session=False
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update work_order_number for boat {boat_id}: {e}") from e

    # ========================================
    # Credentials & Sync Status
    # ========================================

    def get_credentials(self) -> Optional[Tuple[str, str]]:
        """First stored Dockmaster (username, password) pair, if any."""
        try:
            with self.db.session_scope() as session:
                row = session.query(DockmasterCredential).order_by(DockmasterCredential.id).first()
                return (row.username, row.password) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read Dockmaster credentials: {e}") from e

    def store_credentials(self, username: str, password: str) -> None:
        """Write the single Dockmaster account row used by the sync jobs."""
        try:
            with self.db.session_scope() as session:
                self._upsert(session, DockmasterCredential, {'id': 1, 'username': username, 'password': password}, ['id'])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store Dockmaster credentials: {e}") from e

    def get_sync_status(self, job_name: str) -> Optional[Dict[str, Any]]:
        """Status row for a job, with datetimes left as datetime objects."""
        try:
            with self.db.session_scope() as session:
                row = session.get(SyncStatus, job_name)
                if not row:
                    return None
                return {column.name: getattr(row, column.name) for column in SyncStatus.__table__.columns}
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read sync status {job_name}: {e}") from e

    def list_sync_status(self) -> List[Dict[str, Any]]:
        """All sync status rows, serialized."""
        try:
            with self.db.session_scope() as session:
                return [row_to_dict(row) for row in session.query(SyncStatus).order_by(SyncStatus.id).all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list sync status: {e}") from e

    def upsert_sync_status(self, job_name: str, values: Dict[str, Any]) -> None:
        """Upsert a job's status row; only the supplied columns are overwritten."""
        try:
            with self.db.session_scope() as session:
                self._upsert(session, SyncStatus, {'id': job_name, **values}, ['id'])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write sync status {job_name}: {e}") from e
