"""
Record Transformer Module
Maps Dockmaster work-order and operation payloads onto the local schema.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from dockmaster_sync.utils.helpers import sanitize_string
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


# ============================================
# VALUE COERCION
# ============================================

def to_number(value: Any) -> float:
    """Numeric total; missing or unparsable values become 0."""
    if value is None or value == '' or isinstance(value, bool):
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def to_text(value: Any) -> str:
    """Descriptive text; missing values become ''."""
    if value is None:
        return ''
    return sanitize_string(str(value))


def to_optional(value: Any) -> Optional[str]:
    """Ids, codes and dates; missing or blank values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return sanitize_string(text) if text else None


def to_flag(value: Any) -> bool:
    """Boolean flags; Dockmaster sometimes sends 'Y'/'N' strings."""
    if isinstance(value, str):
        return value.strip().upper() in ('Y', 'YES', 'TRUE', '1')
    return bool(value)


@dataclass(frozen=True)
class FieldMapping:
    """One local column fed from one upstream key."""

    column: str
    source: str
    transform: Callable[[Any], Any] = to_optional


def apply_mappings(payload: Dict, mappings: List[FieldMapping]) -> Dict[str, Any]:
    return {m.column: m.transform(payload.get(m.source)) for m in mappings}


WORK_ORDER_FIELDS = [
    FieldMapping('customer_name', 'customerName', to_text),
    FieldMapping('clerk_id', 'clerkId'),
    FieldMapping('rigging_type', 'riggingType'),
    FieldMapping('type', 'type'),
    FieldMapping('tax_schema', 'taxSchema'),
    FieldMapping('location_code', 'locationCode'),
    FieldMapping('is_estimate', 'isEstimate', to_flag),
    FieldMapping('creation_date', 'creationDate'),
    FieldMapping('category', 'category'),
    FieldMapping('status', 'status'),
    FieldMapping('title', 'title'),
    # Boat details
    FieldMapping('boat_name', 'boatName', to_text),
    FieldMapping('boat_year', 'boatYear', to_text),
    FieldMapping('boat_make', 'boatMake', to_text),
    FieldMapping('boat_model', 'boatModel', to_text),
    FieldMapping('boat_serial_number', 'boatSerialNumber', to_text),
    FieldMapping('boat_registration', 'boatRegistration', to_text),
    FieldMapping('boat_length', 'boatLength', to_text),
    # Billed totals
    FieldMapping('total_charges', 'totalWOCharges', to_number),
    FieldMapping('total_parts', 'totalParts', to_number),
    FieldMapping('total_labor', 'totalLabor', to_number),
    FieldMapping('total_freight', 'totalFreight', to_number),
    FieldMapping('total_equipment', 'totalEquipment', to_number),
    FieldMapping('total_sublet', 'totalSublet', to_number),
    FieldMapping('total_mileage', 'totalMileage', to_number),
    FieldMapping('total_misc_supply', 'totalMiscSupply', to_number),
    FieldMapping('total_bill_codes', 'totalBillCodes', to_number),
    # Cost totals
    FieldMapping('total_parts_cost', 'totalPartsCost', to_number),
    FieldMapping('total_labor_cost', 'totalLaborCost', to_number),
    FieldMapping('total_sublet_cost', 'totalSubletCost', to_number),
    FieldMapping('total_freight_cost', 'totalFreightCost', to_number),
    # Forecasted totals
    FieldMapping('total_forecasted_parts', 'totalForecastedParts', to_number),
    FieldMapping('total_forecasted_labor', 'totalForecastedLabor', to_number),
    FieldMapping('total_forecasted_hours', 'totalForecastedHours', to_number),
    # Scheduling
    FieldMapping('est_comp_date', 'estCompDate'),
    FieldMapping('est_start_date', 'estStartDate'),
    FieldMapping('promised_date', 'promisedDate'),
    FieldMapping('last_mod_date', 'lastModDate'),
    FieldMapping('last_mod_time', 'lastModTime'),
    FieldMapping('comments', 'comments', to_text),
]

OPERATION_FIELDS = [
    FieldMapping('opcode_desc', 'opcodeDesc'),
    FieldMapping('status', 'status'),
    FieldMapping('type', 'type'),
    FieldMapping('category', 'category'),
    FieldMapping('flag_labor_finished', 'flagLaborFinished', to_flag),
    # Billed totals
    FieldMapping('total_charges', 'totalCharges', to_number),
    FieldMapping('total_parts', 'totalParts', to_number),
    FieldMapping('total_labor', 'totalLabor', to_number),
    FieldMapping('total_labor_hours', 'totalLaborHours', to_number),
    FieldMapping('total_freight', 'totalFreight', to_number),
    FieldMapping('total_equipment', 'totalEquipment', to_number),
    FieldMapping('total_sublet', 'totalSublet', to_number),
    FieldMapping('total_mileage', 'totalMileage', to_number),
    FieldMapping('total_misc_supply', 'totalMiscSupply', to_number),
    FieldMapping('total_bill_codes', 'totalBillCodes', to_number),
    FieldMapping('labor_billed', 'laborBilled', to_number),
    FieldMapping('total_to_complete', 'totalToComplete', to_number),
    # Descriptions
    FieldMapping('long_desc', 'longDesc', to_text),
    FieldMapping('tech_desc', 'techDesc', to_text),
    FieldMapping('manager_comments', 'managerComments', to_text),
    # Estimated totals
    FieldMapping('estimated_charges', 'estimatedCharges', to_number),
    FieldMapping('estimated_parts', 'estimatedParts', to_number),
    FieldMapping('estimated_labor', 'estimatedLabor', to_number),
    FieldMapping('estimated_labor_hours', 'estimatedLaborHours', to_number),
    FieldMapping('estimated_freight', 'estimatedFreight', to_number),
    FieldMapping('estimated_equipment', 'estimatedEquipment', to_number),
    FieldMapping('estimated_sublet', 'estimatedSublet', to_number),
    FieldMapping('estimated_mileage', 'estimatedMileage', to_number),
    FieldMapping('estimated_misc_supply', 'estimatedMiscSupply', to_number),
    FieldMapping('estimated_bill_codes', 'estimatedBillCodes', to_number),
    # Flat rate billing
    FieldMapping('is_opcode_approved', 'isOpcodeApproved', to_flag),
    FieldMapping('flat_rate_amount', 'flatRateAmount', to_number),
    FieldMapping('flat_rate_per_foot_rate', 'flatRatePerFootRate', to_number),
    FieldMapping('flat_rate_per_foot_method', 'flatRatePerFootMethod', to_text),
    # Forecasted totals
    FieldMapping('forecasted_parts_charges', 'forecastedPartsCharges', to_number),
    FieldMapping('forecasted_labor_charges', 'forecastedLaborCharges', to_number),
    FieldMapping('forecasted_labor_hours', 'forecastedLaborHours', to_number),
    # Scheduling
    FieldMapping('est_start_date', 'estStartDate'),
    FieldMapping('est_complete_date', 'estCompleteDate'),
    FieldMapping('req_comp_date', 'reqCompDate'),
    FieldMapping('standard_hours', 'standardHours', to_number),
]


# ============================================
# TYPED RECORDS
# ============================================

@dataclass
class OperationRecord:
    """One operation payload mapped onto ``work_order_operations`` columns."""

    id: str
    opcode: Optional[str]
    values: Dict[str, Any] = field(default_factory=dict)

    def to_row(self, work_order_id: str) -> Dict[str, Any]:
        return {'id': self.id, 'work_order_id': work_order_id, 'opcode': self.opcode, **self.values}


@dataclass
class WorkOrderRecord:
    """One work order payload mapped onto ``work_orders`` columns."""

    id: str
    customer_id: Optional[str]
    is_internal: bool
    rigging_id: Optional[str] = None
    dockmaster_boat_id: Optional[str] = None
    boat_id: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=dict)
    operations: List[OperationRecord] = field(default_factory=list)

    def to_row(self, last_synced: datetime) -> Dict[str, Any]:
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'rigging_id': self.rigging_id,
            'dockmaster_boat_id': self.dockmaster_boat_id,
            'boat_id': self.boat_id,
            'is_internal': self.is_internal,
            **self.values,
            'last_synced': last_synced
        }

    def operation_rows(self) -> List[Dict[str, Any]]:
        return [op.to_row(self.id) for op in self.operations]


# ============================================
# TRANSFORMER
# ============================================

class RecordTransformer:
    """
    Converts raw Dockmaster payloads into typed records.

    Args:
        internal_customer_id: Customer id marking dealership-internal work
        boat_lookup: Resolves a Dockmaster boat id to a local boat id (or None)
    """

    def __init__(
        self,
        internal_customer_id: str,
        boat_lookup: Optional[Callable[[str], Optional[str]]] = None
    ):
        self.internal_customer_id = str(internal_customer_id)
        self.boat_lookup = boat_lookup

    def is_internal(self, payload: Dict) -> bool:
        """Rigging jobs and work for the internal customer are internal."""
        if to_optional(payload.get('riggingId')):
            return True
        return to_optional(payload.get('customerID')) == self.internal_customer_id

    def transform_operation(self, payload: Dict) -> Optional[OperationRecord]:
        """Map one operation; payloads that are not objects or have no id are dropped."""
        if not isinstance(payload, dict):
            logger.warning(f"Skipping malformed operation payload: {payload!r}")
            return None
        op_id = to_optional(payload.get('id'))
        if op_id is None:
            logger.warning(f"Skipping operation without id (opcode {payload.get('opcode')})")
            return None
        return OperationRecord(
            id=op_id,
            opcode=to_optional(payload.get('opcode')),
            values=apply_mappings(payload, OPERATION_FIELDS)
        )

    def transform_work_order(self, payload: Dict) -> WorkOrderRecord:
        """
        Map one work order payload, classifying it and resolving its boat.

        When a rigging id is present Dockmaster reports it as the boat id too,
        so the boat id is ignored. Otherwise a customer work order's boat id is
        looked up locally; a miss leaves ``boat_id`` empty but the raw id is kept
        in ``dockmaster_boat_id`` for later reconciliation.

        Raises:
            ValueError: If the payload is not an object, has no id, or its
                operations are not a list
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Malformed work order payload: {payload!r}")

        work_order_id = to_optional(payload.get('id'))
        if work_order_id is None:
            raise ValueError("Work order payload missing id")

        rigging_id = to_optional(payload.get('riggingId'))
        is_internal = self.is_internal(payload)
        dockmaster_boat_id = None if rigging_id else to_optional(payload.get('boatId'))

        boat_id = None
        if dockmaster_boat_id and not is_internal and self.boat_lookup is not None:
            boat_id = self.boat_lookup(dockmaster_boat_id)
            if boat_id is None:
                logger.debug(f"No local boat for Dockmaster boat {dockmaster_boat_id} (WO {work_order_id})")

        op_payloads = payload.get('operations') or []
        if not isinstance(op_payloads, list):
            raise ValueError(f"Work order {work_order_id} has malformed operations: {op_payloads!r}")

        operations = []
        for op_payload in op_payloads:
            operation = self.transform_operation(op_payload)
            if operation is not None:
                operations.append(operation)

        return WorkOrderRecord(
            id=work_order_id,
            customer_id=to_optional(payload.get('customerID')),
            is_internal=is_internal,
            rigging_id=rigging_id,
            dockmaster_boat_id=dockmaster_boat_id,
            boat_id=boat_id,
            values=apply_mappings(payload, WORK_ORDER_FIELDS),
            operations=operations
        )
